"""
Shared helpers for module services.

Used by ``gls_modules/*/service.py`` to load rows (optionally locked),
enforce declarative workflow transitions, and validate input fields
into a single ``ValidationError``.

Architecture: Modules layer.  Imports only from ``gls_kernel`` and
``gls_config``.
"""

from __future__ import annotations

import re
from dataclasses import fields
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from gls_config.schema import DatabaseSettings
from gls_kernel.db.types import ZERO, to_money
from gls_kernel.domain.principal import Principal
from gls_kernel.domain.workflow import Transition, Workflow
from gls_kernel.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from gls_kernel.logging_config import LogContext

ModelT = TypeVar("ModelT")

DEFAULT_TIMEOUT_SECONDS = DatabaseSettings().statement_timeout_seconds

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]{8,20}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
PINCODE_PATTERN = re.compile(r"^[0-9]{6}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def operation_context(principal: Principal, operation: str, entity_id: UUID | None = None):
    """Bind actor and operation to every log line emitted inside the block."""
    return LogContext.bind(
        actor_id=principal.user_id,
        actor_role=principal.role.value,
        operation=operation,
        entity_id=entity_id,
    )


def load(session: Session, model: type[ModelT], entity_id: UUID, entity_type: str) -> ModelT:
    """Fetch a row by primary key or raise NotFoundError."""
    row = session.get(model, entity_id)
    if row is None:
        raise NotFoundError(entity_type, entity_id)
    return row


def load_for_update(
    session: Session,
    model: Any,
    entity_id: UUID,
    entity_type: str,
) -> Any:
    """Fetch a row with ``SELECT ... FOR UPDATE`` or raise NotFoundError."""
    row = session.execute(
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(entity_type, entity_id)
    return row


def require_transition(
    workflow: Workflow,
    entity_type: str,
    entity_id: UUID,
    current_state: str,
    action: str,
) -> Transition:
    """Return the declared transition or raise InvalidTransitionError."""
    transition = workflow.find_transition(current_state, action)
    if transition is None:
        raise InvalidTransitionError(entity_type, entity_id, current_state, action)
    return transition


class FieldValidator:
    """
    Collects per-field problems so that one ``ValidationError`` lists them all.

    Usage::

        v = FieldValidator()
        code = v.text("code", code, max_length=20)
        amount = v.amount("amount", amount)
        v.raise_if_invalid()
    """

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    def add(self, field: str, problem: str) -> None:
        self.errors.setdefault(field, problem)

    def text(
        self,
        field: str,
        value: Any,
        max_length: int,
        required: bool = True,
    ) -> str | None:
        """Strip and length-check a string; blank optional values become None."""
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.add(field, "is required")
            return None
        if not isinstance(value, str):
            self.add(field, "must be a string")
            return None
        value = value.strip()
        if len(value) > max_length:
            self.add(field, f"must be at most {max_length} characters")
        return value

    def pattern(
        self,
        field: str,
        value: Any,
        regex: re.Pattern[str],
        max_length: int = 100,
        required: bool = False,
        upper: bool = False,
    ) -> str | None:
        value = self.text(field, value, max_length, required=required)
        if value is None:
            return None
        if upper:
            value = value.upper()
        if not regex.match(value):
            self.add(field, "has an invalid format")
        return value

    def amount(
        self,
        field: str,
        value: Any,
        maximum: Decimal | None = None,
        required: bool = True,
    ) -> Decimal | None:
        """Parse a non-negative Decimal amount, optionally bounded above."""
        if value is None:
            if required:
                self.add(field, "is required")
            return None
        try:
            amount = to_money(value)
        except ValueError:
            self.add(field, "must be a decimal amount")
            return None
        if not amount.is_finite():
            self.add(field, "must be a finite amount")
            return None
        if amount < ZERO:
            self.add(field, "must not be negative")
        elif maximum is not None and amount > maximum:
            self.add(field, f"must not exceed {maximum}")
        return amount

    def days(self, field: str, value: Any, maximum: int = 365) -> int | None:
        if isinstance(value, bool) or not isinstance(value, int):
            self.add(field, "must be an integer")
            return None
        if not 0 <= value <= maximum:
            self.add(field, f"must be between 0 and {maximum}")
        return value

    def calendar_date(self, field: str, value: Any, required: bool = True) -> date | None:
        if value is None:
            if required:
                self.add(field, "is required")
            return None
        if not isinstance(value, date):
            self.add(field, "must be a date")
            return None
        return value

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


class PartialUpdate:
    """Mixin for frozen command dataclasses whose ``None`` fields mean "unchanged"."""

    def changes(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)  # type: ignore[arg-type]
            if getattr(self, f.name) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.changes()
