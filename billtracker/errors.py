from typing import List, Optional


class BillError(Exception):
    """Base class for failures raised by the bill service."""


class ValidationError(BillError):
    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])


class NotFoundError(BillError):
    def __init__(self, bill_id: int):
        super().__init__(f"Bill {bill_id} not found")
        self.bill_id = bill_id


class StoreError(BillError):
    """Persistence failed. The message is for logs, not for callers."""


class PoolExhaustedError(StoreError):
    pass
