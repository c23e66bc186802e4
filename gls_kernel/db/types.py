"""
Module: gls_kernel.db.types
Responsibility: Annotated type aliases and helpers for monetary columns and
    values.  Centralizes precision and rounding so every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/, engines and modules.

Invariants enforced:
    - No floats for money.  All amounts are Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for amounts.

Failure modes:
    - ValueError from to_money() on non-numeric input or floats.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Monotonic sequence number
Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(500)]

# Rupee amounts are displayed and settled to the paisa.
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce an input amount to Decimal.

    Floats are refused: binary floating point cannot represent most
    currency values exactly.

    Raises:
        ValueError: on floats, booleans or unparseable strings.
    """
    if isinstance(value, (bool, float)):
        raise ValueError(f"Amount must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def round_money(
    amount: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary amount to ``decimal_places`` using ROUND_HALF_UP."""
    quantum = Decimal(10) ** -decimal_places
    return amount.quantize(quantum, rounding=rounding)
