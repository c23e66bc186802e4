"""Database layer - engine, base classes, types and transaction scope."""

from gls_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from gls_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
    transaction_scope,
)
from gls_kernel.db.types import Money, Sequence, round_money, to_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "transaction_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Sequence",
    "round_money",
    "to_money",
]
