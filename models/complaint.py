from dataclasses import dataclass
from typing import Optional

from .base import Record

COMPLAINT_TYPES = ("Noise", "Cleanliness", "Safety", "Food Quality", "Others")
COMPLAINT_URGENCIES = ("High", "Medium", "Low")
COMPLAINT_STATUSES = ("Pending", "Resolved")


@dataclass(kw_only=True)
class Complaint(Record):
    student_id: str
    type: str
    description: str = ""
    urgency: str = "Medium"
    status: str = "Pending"
    reported_date: str
    resolved_date: Optional[str] = None
    resolution_notes: Optional[str] = None
