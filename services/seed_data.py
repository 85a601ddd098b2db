import logging
import random
from datetime import timedelta

from models.activity import Activity
from models.announcement import ANNOUNCEMENT_PRIORITIES, ANNOUNCEMENT_TYPES, Announcement
from models.base import generate_id, now_iso, utc_now
from models.complaint import COMPLAINT_TYPES, COMPLAINT_URGENCIES, Complaint
from models.food_request import FoodRequest
from models.maintenance_request import (
    MAINTENANCE_CATEGORIES,
    MAINTENANCE_PRIORITIES,
    MAINTENANCE_STATUSES,
    MaintenanceRequest,
)
from models.menu import DAYS, DIETARY_OPTIONS, MEAL_SLOTS, MEAL_TIMES, MenuItem, WeeklyMenu
from models.payment import Payment
from models.room import AMENITIES, CAPACITY_BEDS, ROOM_BLOCKS, ROOM_FLOORS, Room, default_amenities
from models.student import HOSTEL_FEE, STUDENT_CLASSES, Student

logger = logging.getLogger(__name__)

FIRST_NAMES = [
    "Rajesh", "Priya", "Amit", "Sneha", "Vikram", "Ananya", "Arjun", "Neha",
    "Rohan", "Divya", "Aditya", "Pooja", "Nikhil", "Sara", "Varun", "Isha",
]
LAST_NAMES = [
    "Kumar", "Singh", "Patel", "Gupta", "Sharma", "Verma", "Rao", "Nair",
    "Chatterjee", "Mishra", "Joshi", "Iyer", "Menon", "Desai", "Bhat", "Saxena",
]
SESSIONS = ["2024-25", "2023-24", "2022-23"]
BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "O+", "O-", "AB+", "AB-"]
MAINTENANCE_TITLES = ["Broken window", "Leaking tap", "Faulty light", "Door hinge broken", "Water damage"]
DISHES = ["Samosa", "Biryani", "Momos", "Pasta", "Pizza", "Ice Cream", "Chocolate Cake", "Sushi"]

ROOMS_PER_BLOCK = 10
MAX_STUDENTS = 200

# default dish per meal slot: (name, dietary, allergens)
DEFAULT_DISHES = {
    "Breakfast": ("Paratha, Butter, Tea", "Veg", ["dairy"]),
    "Lunch": ("Rice, Daal, Paneer Curry, Roti", "Veg", ["dairy"]),
    "Snacks": ("Tea, Samosa", "Veg", []),
    "Dinner": ("Roti, Chicken Curry, Rice", "Non-veg", []),
}


def _days_ago(rng, days):
    return utc_now() - timedelta(seconds=rng.random() * days * 86400)


def generate_rooms(rng):
    rooms = []
    room_number = 100
    for floor in ROOM_FLOORS:
        for block in ROOM_BLOCKS:
            for _ in range(ROOMS_PER_BLOCK):
                capacity = rng.choice(list(CAPACITY_BEDS))
                if rng.random() > 0.3:
                    status = "Occupied"
                elif rng.random() > 0.5:
                    status = "Empty"
                else:
                    status = "Maintenance"
                rooms.append(Room(
                    id=generate_id("room"),
                    number=f"{block}-{room_number}",
                    floor=floor,
                    block=block,
                    capacity=capacity,
                    status=status,
                    amenities=default_amenities(capacity),
                    amenity_status={a: "Working" if rng.random() > 0.1 else "Faulty" for a in AMENITIES},
                    last_inspection=now_iso(_days_ago(rng, 30)),
                    maintenance_issue="Plumbing issue in bathroom" if status == "Maintenance" else None,
                ))
                room_number += 1
    return rooms


def generate_students(rng, rooms):
    """Fill rooms marked Occupied with 1..capacity students each, bed by bed."""
    students = []
    for room in rooms:
        if room.status != "Occupied":
            continue
        for bed in range(1, rng.randint(1, room.beds) + 1):
            if len(students) >= MAX_STUDENTS:
                break
            first = rng.choice(FIRST_NAMES)
            last = rng.choice(LAST_NAMES)
            dept = rng.choice(STUDENT_CLASSES)
            semester = rng.randint(1, 8)
            session = rng.choice(SESSIONS)
            roll = f"{dept}{semester}{len(students) + 1:03d}"
            paid = rng.random() > 0.2
            student = Student(
                id=generate_id("student"),
                full_name=f"{first} {last}",
                roll_number=roll,
                university_roll_number=f"PEC{session.split('-')[0]}{roll}",
                class_name=dept,
                semester=semester,
                session=session,
                email=f"{first.lower()}.{last.lower()}@college.edu",
                mobile_number=str(rng.randint(1000000000, 9999999999)),
                emergency_contact=str(rng.randint(1000000000, 9999999999)),
                fathers_name=f"{rng.choice(FIRST_NAMES)} {last}",
                dob=f"{rng.randint(1998, 2003)}-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}",
                blood_group=rng.choice(BLOOD_GROUPS),
                address=f"{rng.randint(0, 999)} Main Street, City",
                room_id=room.id,
                bed_number=bed,
                payment_status="Paid" if paid else "Unpaid",
                payment_details=(
                    {
                        "transactionId": f"TXN{generate_id()}",
                        "paidAmount": HOSTEL_FEE,
                        "paidDate": now_iso(_days_ago(rng, 90)),
                    }
                    if paid
                    else {"paidAmount": 0}
                ),
            )
            students.append(student)
            room.occupancy += 1
            room.assign_bed(bed, student.id)
        if room.occupancy == 0:
            room.status = "Empty"
    return students


def generate_payments(students):
    """One Hostel Fee record per seeded student who has paid."""
    return [
        Payment(
            id=generate_id("payment"),
            student_id=s.id,
            amount=s.payment_details["paidAmount"],
            transaction_id=s.payment_details["transactionId"],
            date=s.payment_details["paidDate"],
            method="Online",
        )
        for s in students
        if s.payment_status == "Paid"
    ]


def generate_maintenance_requests(rng, rooms, count=15):
    requests = []
    for _ in range(count):
        room = rng.choice(rooms)
        status = rng.choice(MAINTENANCE_STATUSES)
        if room.status == "Maintenance" and status == "Resolved":
            status = "Pending"
        reported = _days_ago(rng, 30)
        started = status != "Pending"
        requests.append(MaintenanceRequest(
            id=generate_id("maintenance"),
            title=rng.choice(MAINTENANCE_TITLES),
            description="Issue reported by student - needs immediate attention",
            room_id=room.id,
            category=rng.choice(MAINTENANCE_CATEGORIES),
            priority=rng.choice(MAINTENANCE_PRIORITIES),
            status=status,
            reported_by=f"Student {rng.randint(0, 99)}",
            reported_date=now_iso(reported),
            assigned_technician=f"Technician {rng.randint(0, 9)}" if started else None,
            started_date=now_iso(reported + timedelta(days=1)) if started else None,
            estimated_completion=now_iso(reported + timedelta(days=5)) if started else None,
            resolved_date=now_iso(reported + timedelta(days=4)) if status == "Resolved" else None,
            resolution_notes="Issue fixed successfully" if status == "Resolved" else None,
            progress_percentage={"Pending": 0, "In Progress": rng.randint(0, 99), "Resolved": 100}[status],
            photos_count=rng.randint(0, 3),
            condition=rng.choice(["Critical", "Moderate", "Minor"]),
        ))
    return requests


def generate_complaints(rng, students, count=8):
    complaints = []
    if not students:
        return complaints
    for _ in range(count):
        status = rng.choice(["Pending", "Resolved"])
        reported = _days_ago(rng, 30)
        complaints.append(Complaint(
            id=generate_id("complaint"),
            student_id=rng.choice(students).id,
            type=rng.choice(COMPLAINT_TYPES),
            description="Student complaint about hostel conditions",
            urgency=rng.choice(COMPLAINT_URGENCIES),
            status=status,
            reported_date=now_iso(reported),
            resolved_date=now_iso(reported + timedelta(days=7)) if status == "Resolved" else None,
            resolution_notes="Issue resolved" if status == "Resolved" else None,
        ))
    return complaints


def default_week_menu(week, year):
    menu = WeeklyMenu(id=generate_id("menu"), week=week, year=year)
    for day in DAYS:
        for meal in MEAL_SLOTS:
            name, dietary, allergens = DEFAULT_DISHES[meal]
            menu.cell(day, meal).append(
                MenuItem(name=name, time=MEAL_TIMES[meal], dietary=dietary, allergens=list(allergens))
            )
    return menu


def generate_menus(today=None):
    """Previous, current and next ISO week."""
    today = today or utc_now()
    menus = []
    for offset in (-1, 0, 1):
        year, week, _ = (today + timedelta(weeks=offset)).isocalendar()
        menus.append(default_week_menu(week, year))
    return menus


def generate_food_requests(rng, students, count=10):
    voter_ids = [s.id for s in students]
    requests = []
    for _ in range(count):
        created = _days_ago(rng, 30)
        voters = rng.sample(voter_ids, rng.randint(0, min(len(voter_ids), 60)))
        requests.append(FoodRequest(
            id=generate_id("request"),
            dish_name=rng.choice(DISHES),
            description="A delicious and popular dish that students love",
            meal_type=rng.choice(MEAL_SLOTS),
            dietary=rng.choice(DIETARY_OPTIONS),
            why_want_this="Students would love to have this dish more often",
            votes=len(voters),
            voted_by=voters,
            status="Active" if rng.random() > 0.3 else "Accepted",
            created_date=now_iso(created),
            closing_date=now_iso(created + timedelta(days=7)),
        ))
    return requests


def generate_announcements(rng, count=5):
    announcements = []
    for i in range(count):
        created = now_iso(_days_ago(rng, 30))
        announcements.append(Announcement(
            id=generate_id("ann"),
            title=f"Announcement {i + 1}",
            content="This is an important announcement for all hostel students",
            type=rng.choice(ANNOUNCEMENT_TYPES),
            priority=rng.choice(ANNOUNCEMENT_PRIORITIES),
            visibility={"startDate": created, "displayUntilRemoved": True},
            views=rng.randint(0, 99),
            created_at=created,
            updated_at=created,
        ))
    return announcements


def generate_activities(rng, count=10):
    types = ["Student Allocated", "Payment Received", "Maintenance Reported", "Complaint Filed", "Announcement Posted"]
    return [
        Activity(type=rng.choice(types), description=f"Activity {i + 1}", timestamp=now_iso(_days_ago(rng, 7)))
        for i in range(count)
    ]


def seed_initial_data(store, rng=None, force=False):
    """Populate an empty store once. Returns False if it was already initialized."""
    if store.is_initialized() and not force:
        return False
    rng = rng or random.Random()

    rooms = generate_rooms(rng)
    students = generate_students(rng, rooms)
    collections = {
        "ROOMS": rooms,
        "STUDENTS": students,
        "MAINTENANCE": generate_maintenance_requests(rng, rooms),
        "COMPLAINTS": generate_complaints(rng, students),
        "MENUS": generate_menus(),
        "FOOD_REQUESTS": generate_food_requests(rng, students),
        "ANNOUNCEMENTS": generate_announcements(rng),
        "ACTIVITIES": generate_activities(rng),
        "PAYMENTS": generate_payments(students),
    }

    with store.transaction():
        for name, records in collections.items():
            store.set_data(store.keys[name], [r.to_dict() for r in records])
        store.mark_initialized()

    logger.info("Seeded %d rooms and %d students", len(rooms), len(students))
    return True
