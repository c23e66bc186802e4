"""
Counterparty master columns and validation shared by vendors and customers.

Vendors (payables) and customers (receivables) carry the same contact,
tax and address fields.  The ORM mixin and ``validate_contact_fields``
keep the two masters identical on those fields.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gls_modules._helpers import (
    EMAIL_PATTERN,
    GSTIN_PATTERN,
    PAN_PATTERN,
    PHONE_PATTERN,
    PINCODE_PATTERN,
    FieldValidator,
)

DEFAULT_CREDIT_DAYS = 30

# field -> (max_length, pattern or None)
_CONTACT_RULES: dict[str, tuple[int, Any]] = {
    "phone": (20, PHONE_PATTERN),
    "mobile": (20, PHONE_PATTERN),
    "whatsapp": (20, PHONE_PATTERN),
    "email": (100, EMAIL_PATTERN),
    "gstin": (15, GSTIN_PATTERN),
    "pan": (10, PAN_PATTERN),
    "address": (500, None),
    "city": (100, None),
    "state": (100, None),
    "pincode": (6, PINCODE_PATTERN),
}

CONTACT_FIELDS: tuple[str, ...] = tuple(_CONTACT_RULES)

_UPPERCASE_FIELDS = frozenset({"gstin", "pan"})


def validate_contact_fields(validator: FieldValidator, values: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize the contact fields present in ``values``."""
    cleaned: dict[str, Any] = {}
    for field_name, value in values.items():
        max_length, regex = _CONTACT_RULES[field_name]
        if regex is None:
            cleaned[field_name] = validator.text(field_name, value, max_length, required=False)
        else:
            cleaned[field_name] = validator.pattern(
                field_name, value, regex, max_length,
                upper=field_name in _UPPERCASE_FIELDS,
            )
    return cleaned


def validate_identity(
    validator: FieldValidator,
    code: Any,
    name: Any,
    default_credit_days: Any,
) -> tuple[str | None, str | None, int | None]:
    """Validate code (1-20), name (1-200) and default credit days (0-365)."""
    return (
        validator.text("code", code, 20),
        validator.text("name", name, 200),
        validator.days("default_credit_days", default_credit_days),
    )


class CounterpartyColumns:
    """Declarative mixin with the columns shared by vendors and customers."""

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    gstin: Mapped[str | None] = mapped_column(String(15), nullable=True)
    pan: Mapped[str | None] = mapped_column(String(10), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(6), nullable=True)
    default_credit_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_CREDIT_DAYS
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
