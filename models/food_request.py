from dataclasses import dataclass, field
from typing import Optional

from .base import Record

FOOD_REQUEST_STATUSES = ("Active", "Accepted", "Rejected")
IMPLEMENTATION_STATUSES = ("Planned", "Added to menu", "Rejected")


@dataclass(kw_only=True)
class FoodRequest(Record):
    dish_name: str
    description: str = ""
    meal_type: str = "Lunch"
    dietary: str = "Veg"
    why_want_this: str = ""
    photo: Optional[str] = None
    votes: int = 0
    voted_by: list = field(default_factory=list)
    status: str = "Active"
    implementation_status: Optional[str] = None
    created_date: str
    closing_date: str
