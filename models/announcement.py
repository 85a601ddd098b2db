from dataclasses import dataclass, field
from typing import Optional

from .base import Record

ANNOUNCEMENT_TYPES = ("General", "Urgent", "Event", "Maintenance", "Notice")
ANNOUNCEMENT_PRIORITIES = ("Low", "Medium", "High", "Critical")
ANNOUNCEMENT_STATUSES = ("Draft", "Scheduled", "Active", "Archived")


def default_notifications():
    return {"email": True, "sms": False, "push": True, "noticeBoard": True}


@dataclass(kw_only=True)
class Announcement(Record):
    title: str
    content: str
    type: str = "General"
    priority: str = "Medium"
    target_audience: dict = field(default_factory=lambda: {"allStudents": True})
    visibility: dict = field(default_factory=dict)
    attachments: list = field(default_factory=list)
    notifications: dict = field(default_factory=default_notifications)
    status: str = "Active"
    views: int = 0
    posted_by: str = "Warden"
    scheduled_date: Optional[str] = None
