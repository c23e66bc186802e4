"""
Module: gls_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side: ageing, outstanding balances, dashboards
    and the audit log are all derived here on demand, never stored.
Architecture position: Kernel > Selectors.  Subclasses live in the kernel
    and in ``gls_modules.reporting``.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from gls_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
