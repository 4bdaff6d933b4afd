import logging
import re
from datetime import date
from typing import Any, List, Optional, Sequence, Tuple

from .db import BillStore
from .errors import NotFoundError, ValidationError
from .models import Bill
from .status import SENTINEL_DATE_PAID, derive_status, from_cents, payment_state, to_cents

logger = logging.getLogger("billtracker.service")

_ID_RE = re.compile(r"^[1-9][0-9]*$")
# largest SQLite INTEGER
MAX_BILL_ID = 2 ** 63 - 1

STATUS_FILTERS = ("unpaid", "partial", "paid")


def parse_bill_id(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_BILL_ID:
        return value
    if isinstance(value, str) and _ID_RE.match(value) and int(value) <= MAX_BILL_ID:
        return int(value)
    raise ValidationError(f"billId must be a positive integer, got {value!r}", ["billId"])


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return value == 0
    except TypeError:
        return False


def _require(pairs: Sequence[Tuple[str, Any]]):
    missing = [name for name, value in pairs if _blank(value)]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing), missing)


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date", [field])


def _matches(bill: Bill, needle: str) -> bool:
    haystack = (
        bill.bill_from,
        bill.bill_type,
        str(bill.amount_due),
        bill.due_date.isoformat(),
        str(bill.is_paid),
        str(bill.paid_in_full),
        str(bill.amount_paid),
        bill.date_paid.isoformat(),
        bill.paid_by,
    )
    return any(needle in h.lower() for h in haystack)


class BillService:
    """Validates write requests, derives payment status and talks to the store.

    ``is_paid`` / ``paid_in_full`` are never taken from callers; every write
    recomputes them from the cents values that end up in the row.
    """

    def __init__(self, store: BillStore):
        self.store = store

    # ----------------------------
    # Reads
    # ----------------------------
    def list_bills(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Bill]:
        if status is not None and status not in STATUS_FILTERS:
            raise ValidationError(f"status must be one of {', '.join(STATUS_FILTERS)}", ["status"])
        rows = self.store.select_all()
        if status:
            rows = [r for r in rows if payment_state(r["amount_due_cents"], r["amount_paid_cents"]) == status]
        bills = [Bill.from_row(r) for r in rows]
        if search and search.strip():
            needle = search.strip().lower()
            bills = [b for b in bills if _matches(b, needle)]
        return bills

    def get_bill(self, bill_id: Any) -> Bill:
        bill_id = parse_bill_id(bill_id)
        row = self.store.select_one(bill_id)
        if row is None:
            raise NotFoundError(bill_id)
        return Bill.from_row(row)

    def get_amount_paid(self, bill_id: Any) -> float:
        bill_id = parse_bill_id(bill_id)
        cents = self.store.select_amount_paid(bill_id)
        if cents is None:
            raise NotFoundError(bill_id)
        return from_cents(cents)

    # ----------------------------
    # Writes
    # ----------------------------
    def add_bill(self, bill_from: Optional[str], bill_type: Optional[str], amount_due: Any, due_date: Any) -> Bill:
        _require([
            ("billfrom", bill_from),
            ("billType", bill_type),
            ("amountDue", amount_due),
            ("dueDate", due_date),
        ])
        due_cents = to_cents(amount_due, "amountDue")
        is_paid, in_full = derive_status(due_cents, 0)
        record = {
            "billfrom": bill_from.strip(),
            "bill_type": bill_type.strip(),
            "amount_due_cents": due_cents,
            "due_date": _parse_date(due_date, "dueDate"),
            "is_paid": is_paid,
            "paid_in_full": in_full,
            "amount_paid_cents": 0,
            "date_paid": SENTINEL_DATE_PAID,
            "paid_by": "",
        }
        bill_id = self.store.insert(record)
        logger.info("Added bill %s from %r for %s cents", bill_id, record["billfrom"], due_cents)
        return Bill.from_row(dict(record, billid=bill_id))

    def pay_bill(
        self,
        bill_id: Any,
        amount_paid: Any,
        date_paid: Any,
        paid_by: Optional[str],
        amount_due: Any = None,
    ) -> str:
        """Record a payment against the stored amount due.

        ``amount_due`` is accepted for callers that echo it back but is not
        trusted: status is derived from the value already in the store.
        """
        bill_id = parse_bill_id(bill_id)
        _require([
            ("amountPaid", amount_paid),
            ("datePaid", date_paid),
            ("paidBy", paid_by),
        ])
        paid_cents = to_cents(amount_paid, "amountPaid")
        paid_on = _parse_date(date_paid, "datePaid")

        row = self.store.select_one(bill_id)
        if row is None:
            raise NotFoundError(bill_id)
        due_cents = row["amount_due_cents"]
        if not _blank(amount_due):
            try:
                client_cents = to_cents(amount_due, "amountDue")
            except ValidationError:
                client_cents = None
            if client_cents != due_cents:
                logger.warning("Bill %s: client amountDue %s ignored, stored value is %s cents", bill_id, amount_due, due_cents)

        is_paid, in_full = derive_status(due_cents, paid_cents)
        count = self.store.update_fields(bill_id, {
            "is_paid": is_paid,
            "paid_in_full": in_full,
            "amount_paid_cents": paid_cents,
            "date_paid": paid_on,
            "paid_by": paid_by.strip(),
        })
        if not count:
            raise NotFoundError(bill_id)
        logger.info("Paid bill %s: %s cents (isPaid=%s paidInFull=%s)", bill_id, paid_cents, is_paid, in_full)
        return f"The bills table has been updated successfully for payment of the billId: {bill_id}"

    def update_bill(
        self,
        bill_id: Any,
        bill_from: Optional[str],
        bill_type: Optional[str],
        amount_due: Any,
        due_date: Any,
        amount_paid: Any = None,
        date_paid: Any = None,
        paid_by: Optional[str] = None,
    ) -> str:
        """Replace a bill's fields.

        Omitted payment fields keep their stored values, unless the bill ends
        up unpaid: then an omitted date paid and payer reset to their defaults.
        """
        bill_id = parse_bill_id(bill_id)
        _require([
            ("billfrom", bill_from),
            ("billType", bill_type),
            ("amountDue", amount_due),
            ("dueDate", due_date),
        ])
        due_cents = to_cents(amount_due, "amountDue")
        due_on = _parse_date(due_date, "dueDate")
        paid_cents = to_cents(amount_paid, "amountPaid") if amount_paid is not None else None
        paid_on = _parse_date(date_paid, "datePaid") if date_paid is not None else None

        row = self.store.select_one(bill_id)
        if row is None:
            raise NotFoundError(bill_id)
        if paid_cents is None:
            paid_cents = row["amount_paid_cents"]
        is_paid, in_full = derive_status(due_cents, paid_cents)
        if paid_on is None:
            paid_on = row["date_paid"] if is_paid else SENTINEL_DATE_PAID
        if paid_by is None:
            paid_by = row["paid_by"] if is_paid else ""

        count = self.store.update_fields(bill_id, {
            "billfrom": bill_from.strip(),
            "bill_type": bill_type.strip(),
            "amount_due_cents": due_cents,
            "due_date": due_on,
            "is_paid": is_paid,
            "paid_in_full": in_full,
            "amount_paid_cents": paid_cents,
            "date_paid": paid_on,
            "paid_by": paid_by.strip(),
        })
        if not count:
            raise NotFoundError(bill_id)
        logger.info("Updated bill %s (isPaid=%s paidInFull=%s)", bill_id, is_paid, in_full)
        return f"The bills table has been updated successfully for the billId: {bill_id}"

    def delete_bill(self, bill_id: Any) -> str:
        bill_id = parse_bill_id(bill_id)
        if not self.store.delete(bill_id):
            raise NotFoundError(bill_id)
        logger.info("Deleted bill %s", bill_id)
        return f"Successfully deleted the bill with the billId: {bill_id}"
