from dataclasses import dataclass, field
from typing import Optional

from .base import Record

DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MEAL_SLOTS = ("Breakfast", "Lunch", "Snacks", "Dinner")
DIETARY_OPTIONS = ("Veg", "Non-veg", "Both")

MEAL_TIMES = {
    "Breakfast": "7:30 - 9:30 AM",
    "Lunch": "12:30 - 2:00 PM",
    "Snacks": "5:00 - 6:00 PM",
    "Dinner": "7:30 - 9:00 PM",
}


@dataclass(kw_only=True)
class MenuItem:
    name: str
    time: str
    dietary: str = "Veg"
    allergens: list = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self):
        data = {
            "name": self.name,
            "time": self.time,
            "dietary": self.dietary,
            "allergens": list(self.allergens),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data["name"],
            time=data.get("time", ""),
            dietary=data.get("dietary", "Veg"),
            allergens=list(data.get("allergens", [])),
            description=data.get("description"),
        )


def empty_matrix():
    return [[[] for _ in MEAL_SLOTS] for _ in DAYS]


def day_index(day):
    try:
        return DAYS.index(day)
    except ValueError:
        raise ValueError(f"unknown day '{day}'") from None


def slot_index(meal):
    try:
        return MEAL_SLOTS.index(meal)
    except ValueError:
        raise ValueError(f"unknown meal slot '{meal}'") from None


@dataclass(kw_only=True)
class WeeklyMenu(Record):
    """One week of mess menu.

    `meals` is a fixed 7 x 4 matrix: meals[day][slot] is the list of
    MenuItem served, with days ordered as DAYS and slots as MEAL_SLOTS.
    The persisted form keeps the nested {"Monday": {"Breakfast": [...]}} layout.
    """

    week: int
    year: int
    meals: list = field(default_factory=empty_matrix)

    def cell(self, day, meal):
        return self.meals[day_index(day)][slot_index(meal)]

    def to_dict(self):
        data = {"id": self.id, "week": self.week, "year": self.year}
        for d, day in enumerate(DAYS):
            data[day] = {
                meal: [item.to_dict() for item in self.meals[d][s]]
                for s, meal in enumerate(MEAL_SLOTS)
            }
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data):
        meals = empty_matrix()
        for d, day in enumerate(DAYS):
            bundle = data.get(day) or {}
            for s, meal in enumerate(MEAL_SLOTS):
                meals[d][s] = [MenuItem.from_dict(item) for item in bundle.get(meal, [])]
        return cls(
            id=data["id"],
            week=data["week"],
            year=data["year"],
            meals=meals,
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )
