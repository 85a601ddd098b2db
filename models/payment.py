from dataclasses import dataclass
from typing import Optional

from .base import Record

PAYMENT_TYPES = ("Hostel Fee", "Security Deposit")
PAYMENT_RECORD_STATUSES = ("Paid", "Pending")


@dataclass(kw_only=True)
class Payment(Record):
    student_id: str
    amount: float
    type: str = "Hostel Fee"
    transaction_id: str
    status: str = "Paid"
    date: str
    method: Optional[str] = None
