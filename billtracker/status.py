"""
Payment status derivation.

Amounts below the HTTP boundary are integer cents, so "paid in full" is an
exact integer comparison instead of a float one.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Tuple, Union

from .errors import ValidationError

# Stored in place of a null "date paid" until a payment is recorded.
SENTINEL_DATE_PAID = date(9999, 1, 1)

# at most 13 whole digits plus cents, well inside a SQLite INTEGER
AMOUNT_MAX_DIGITS = 15
MAX_CENTS = 10 ** AMOUNT_MAX_DIGITS - 1

Number = Union[int, float, Decimal, str]


def derive_status(amount_due, amount_paid) -> Tuple[bool, bool]:
    """Return ``(is_paid, paid_in_full)`` for a due/paid pair.

    Both amounts must be in the same unit. Any positive payment marks the
    bill paid; it is paid in full only when the payment equals the amount due.
    """
    if not amount_paid or amount_paid <= 0:
        return False, False
    return True, amount_paid == amount_due


def to_cents(value: Number, field: str = "amount") -> int:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", [field])
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", [field])
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", [field])
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValidationError(f"{field} must have at most two decimal places", [field])
    if cents > MAX_CENTS:
        raise ValidationError(f"{field} must be below {(MAX_CENTS + 1) // 100}", [field])
    return int(cents)


def from_cents(cents: int) -> float:
    return float(Decimal(cents) / 100)


def payment_state(amount_due_cents: int, amount_paid_cents: int) -> str:
    # unpaid | partial | paid, used by the list filter
    is_paid, in_full = derive_status(amount_due_cents, amount_paid_cents)
    if in_full:
        return "paid"
    return "partial" if is_paid else "unpaid"
