"""
GLS business modules.

Each subpackage follows the same layout: ``models.py`` (frozen DTOs and
command objects), ``orm.py`` (SQLAlchemy persistence), ``workflows.py``
(declarative state machines) and ``service.py`` (the public entry point
that authorizes, opens the transaction, and writes the audit log).
"""
