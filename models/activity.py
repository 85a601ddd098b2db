from dataclasses import dataclass, field
from typing import Any, Optional

from .base import generate_id, now_iso

ACTIVITY_TYPES = (
    "Student Allocated",
    "Student Removed",
    "Payment Received",
    "Maintenance Reported",
    "Maintenance Resolved",
    "Complaint Filed",
    "Complaint Resolved",
    "Announcement Posted",
    "Menu Updated",
    "Food Request Submitted",
)


@dataclass(kw_only=True)
class Activity:
    """Log entry; unlike the other records it has a single timestamp."""

    id: str = field(default_factory=generate_id)
    type: str
    description: str
    timestamp: str = field(default_factory=now_iso)
    related_id: Optional[str] = None
    data: Any = None

    def to_dict(self):
        data = {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "timestamp": self.timestamp,
        }
        if self.related_id is not None:
            data["relatedId"] = self.related_id
        if self.data is not None:
            data["data"] = self.data
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            type=data["type"],
            description=data.get("description", ""),
            timestamp=data["timestamp"],
            related_id=data.get("relatedId"),
            data=data.get("data"),
        )
