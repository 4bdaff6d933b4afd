from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .status import AMOUNT_MAX_DIGITS, SENTINEL_DATE_PAID, from_cents


class _WriteIn(BaseModel):
    """Fields shared by every write body.

    ``isPaid`` and ``paidInFull`` are derived server side. They are accepted
    so existing clients keep working, then dropped.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True, str_strip_whitespace=True)

    is_paid: Optional[bool] = Field(default=None, alias="isPaid", exclude=True)
    paid_in_full: Optional[bool] = Field(default=None, alias="paidInFull", exclude=True)


class BillIn(_WriteIn):
    bill_from: Optional[str] = Field(default=None, alias="billfrom")
    bill_type: Optional[str] = Field(default=None, alias="billType")
    amount_due: Optional[Decimal] = Field(
        default=None,
        alias="amountDue",
        ge=0,
        decimal_places=2,
        max_digits=AMOUNT_MAX_DIGITS,
    )
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    # a new bill always starts unpaid; clients that send the blank payment
    # fields are tolerated
    amount_paid: Optional[Decimal] = Field(default=None, alias="amountPaid", exclude=True)
    date_paid: Optional[date] = Field(default=None, alias="datePaid", exclude=True)
    paid_by: Optional[str] = Field(default=None, alias="paidBy", exclude=True)


class PayIn(_WriteIn):
    amount_due: Optional[Decimal] = Field(default=None, alias="amountDue")  # informational only
    amount_paid: Optional[Decimal] = Field(
        default=None,
        alias="amountPaid",
        ge=0,
        decimal_places=2,
        max_digits=AMOUNT_MAX_DIGITS,
    )
    date_paid: Optional[date] = Field(default=None, alias="datePaid")
    paid_by: Optional[str] = Field(default=None, alias="paidBy")


class UpdateIn(_WriteIn):
    bill_from: Optional[str] = Field(default=None, alias="billfrom")
    bill_type: Optional[str] = Field(default=None, alias="billType")
    amount_due: Optional[Decimal] = Field(
        default=None,
        alias="amountDue",
        ge=0,
        decimal_places=2,
        max_digits=AMOUNT_MAX_DIGITS,
    )
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    amount_paid: Optional[Decimal] = Field(
        default=None,
        alias="amountPaid",
        ge=0,
        decimal_places=2,
        max_digits=AMOUNT_MAX_DIGITS,
    )
    date_paid: Optional[date] = Field(default=None, alias="datePaid")
    paid_by: Optional[str] = Field(default=None, alias="paidBy")


class Bill(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="billid")
    bill_from: str = Field(alias="billfrom")
    bill_type: str = Field(alias="billType")
    amount_due: float = Field(alias="amountDue")
    due_date: date = Field(alias="dueDate")
    is_paid: bool = Field(default=False, alias="isPaid")
    paid_in_full: bool = Field(default=False, alias="paidInFull")
    amount_paid: float = Field(default=0.0, alias="amountPaid")
    date_paid: date = Field(default=SENTINEL_DATE_PAID, alias="datePaid")
    paid_by: str = Field(default="", alias="paidBy")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Bill":
        return cls(
            id=row["billid"],
            bill_from=row["billfrom"],
            bill_type=row["bill_type"],
            amount_due=from_cents(row["amount_due_cents"]),
            due_date=row["due_date"],
            is_paid=bool(row["is_paid"]),
            paid_in_full=bool(row["paid_in_full"]),
            amount_paid=from_cents(row["amount_paid_cents"]),
            date_paid=row["date_paid"],
            paid_by=row["paid_by"],
        )
