"""
Principal and roles (``gls_kernel.domain.principal``).

The identity collaborator authenticates users and hands the core a
``Principal`` per call.  The core never issues or verifies credentials; it
only authorizes by role (see ``gls_services.rbac_authority``).
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Business roles.  ``OWNER`` holds override rights on every operation."""
    GODOWN = "godown"
    PURCHASE = "purchase"
    ACCOUNTS = "accounts"
    OWNER = "owner"


@dataclass(frozen=True)
class Principal:
    """An authenticated caller.

    Contract: frozen; ``user_id`` is stable across sessions.
    """
    user_id: UUID
    role: Role
    name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            # Accept the plain string form handed over by the identity layer.
            object.__setattr__(self, "role", Role(self.role))

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER
