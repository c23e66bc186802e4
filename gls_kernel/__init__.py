"""
GLS Kernel

Shared infrastructure for the GLS payment management system:
- Typed, coded exceptions
- Structured JSON logging
- SQLAlchemy base classes, engine and transaction scope
- Deterministic clock and workflow value objects
- Monotonic sequence numbers and the append-only audit log
"""

__version__ = "0.1.0"
