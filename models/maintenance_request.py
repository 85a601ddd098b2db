from dataclasses import dataclass
from typing import Optional

from .base import Record

MAINTENANCE_CATEGORIES = ("Electrical", "Plumbing", "Furniture", "Cleaning", "Other")
MAINTENANCE_PRIORITIES = ("High", "Medium", "Low")
MAINTENANCE_STATUSES = ("Pending", "In Progress", "Resolved")


@dataclass(kw_only=True)
class MaintenanceRequest(Record):
    title: str
    description: str = ""
    room_id: str
    category: str = "Other"
    priority: str = "Medium"
    status: str = "Pending"
    reported_by: str = ""
    reported_date: str
    assigned_technician: Optional[str] = None
    started_date: Optional[str] = None
    estimated_completion: Optional[str] = None
    resolved_date: Optional[str] = None
    resolution_notes: Optional[str] = None
    progress_percentage: int = 0
    photos_count: int = 0
    condition: Optional[str] = None

    @property
    def is_open(self):
        return self.status != "Resolved"
