from dataclasses import dataclass, field
from typing import Optional

from .base import Record

ROOM_FLOORS = ("Ground", "1st", "2nd", "3rd")
ROOM_BLOCKS = ("A", "B", "C")
ROOM_STATUSES = ("Occupied", "Empty", "Maintenance")
AMENITY_STATUSES = ("Working", "Faulty")
AMENITIES = ("fans", "lights", "tables", "chairs", "beds", "cupboards")

# capacity label -> number of beds
CAPACITY_BEDS = {"Single": 1, "Double": 2, "Triple": 3}


@dataclass(kw_only=True)
class Room(Record):
    number: str
    floor: str
    block: str
    capacity: str
    occupancy: int = 0
    status: str = "Empty"
    amenities: dict = field(default_factory=dict)
    amenity_status: dict = field(default_factory=dict)
    last_inspection: Optional[str] = None
    maintenance_issue: Optional[str] = None
    # {"studentIds": [...], "bedAllocations": [{"bed": 1, "studentId": "..."}]}
    allocation_details: Optional[dict] = None

    @property
    def beds(self):
        return CAPACITY_BEDS[self.capacity]

    @property
    def is_full(self):
        return self.occupancy >= self.beds

    def taken_beds(self):
        details = self.allocation_details or {}
        return {a["bed"] for a in details.get("bedAllocations", [])}

    def free_beds(self):
        taken = self.taken_beds()
        return [bed for bed in range(1, self.beds + 1) if bed not in taken]

    def assign_bed(self, bed, student_id):
        details = self.allocation_details or {"studentIds": [], "bedAllocations": []}
        details.setdefault("studentIds", []).append(student_id)
        details.setdefault("bedAllocations", []).append({"bed": bed, "studentId": student_id})
        self.allocation_details = details

    def release_bed(self, student_id):
        details = self.allocation_details or {}
        details["studentIds"] = [s for s in details.get("studentIds", []) if s != student_id]
        details["bedAllocations"] = [
            a for a in details.get("bedAllocations", []) if a["studentId"] != student_id
        ]
        self.allocation_details = details


def default_amenities(capacity):
    beds = CAPACITY_BEDS[capacity]
    return {name: beds for name in AMENITIES}
