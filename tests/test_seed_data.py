import random
from collections import Counter

import pytest

from models.base import utc_now
from models.room import CAPACITY_BEDS
from services.seed_data import generate_rooms, generate_students, seed_initial_data


@pytest.fixture
def seeded(store):
    assert seed_initial_data(store, rng=random.Random(7)) is True
    return store


def test_seeds_only_once(seeded):
    rooms = seeded.get_rooms()
    assert seed_initial_data(seeded, rng=random.Random(8)) is False
    assert seeded.get_rooms() == rooms


def test_force_reseeds(seeded):
    first = {r["id"] for r in seeded.get_rooms()}
    assert seed_initial_data(seeded, rng=random.Random(8), force=True) is True
    assert first.isdisjoint(r["id"] for r in seeded.get_rooms())


def test_collection_sizes(seeded):
    assert seeded.is_initialized()
    assert len(seeded.get_rooms()) == 120
    assert len(seeded.get_maintenance_requests()) == 15
    assert len(seeded.get_complaints()) == 8
    assert len(seeded.get_menus()) == 3
    assert len(seeded.get_food_requests()) == 10
    assert len(seeded.get_announcements()) == 5
    assert len(seeded.get_activities()) == 10
    assert 0 < len(seeded.get_students()) <= 200


def test_room_numbering(seeded):
    numbers = [r["number"] for r in seeded.get_rooms()]
    assert len(set(numbers)) == 120
    assert numbers[0] == "A-100"
    assert numbers[-1] == "C-219"


def test_occupancy_never_exceeds_capacity(seeded):
    residents = Counter(s["roomId"] for s in seeded.get_students())
    for room in seeded.get_rooms():
        assert room["occupancy"] <= CAPACITY_BEDS[room["capacity"]]
        assert room["occupancy"] == residents[room["id"]]
        if room["status"] == "Occupied":
            assert room["occupancy"] > 0
        else:
            assert room["occupancy"] == 0


def test_beds_are_unique_per_room(seeded):
    beds = Counter((s["roomId"], s["bedNumber"]) for s in seeded.get_students())
    assert max(beds.values()) == 1


def test_seeded_data_needs_no_sync(app, seeded):
    assert app.extensions["hostel_service"].sync_room_occupancy() == []


def test_menus_cover_current_week(seeded):
    year, week, _ = utc_now().isocalendar()
    menu = seeded.get_menu_by_week(week, year)
    assert menu is not None
    assert menu["Monday"]["Breakfast"][0]["time"] == "7:30 - 9:30 AM"


def test_maintenance_rooms_keep_open_tickets(seeded):
    under_maintenance = {r["id"] for r in seeded.get_rooms() if r["status"] == "Maintenance"}
    for ticket in seeded.get_maintenance_requests():
        if ticket["roomId"] in under_maintenance:
            assert ticket["status"] != "Resolved"


def test_student_cap():
    rng = random.Random(1)
    rooms = generate_rooms(rng)
    for room in rooms:
        room.status = "Occupied"
        room.capacity = "Triple"
    students = generate_students(rng, rooms)
    assert len(students) == 200
    assert sum(r.occupancy for r in rooms) == 200


def test_paid_students_have_payment_records(seeded):
    payments = {p["studentId"]: p for p in seeded.get_payments()}
    paid = [s for s in seeded.get_students() if s["paymentStatus"] == "Paid"]
    assert len(payments) == len(paid) == len(seeded.get_payments())
    for student in paid:
        record = payments[student["id"]]
        assert record["transactionId"] == student["paymentDetails"]["transactionId"]
        assert record["amount"] == student["paymentDetails"]["paidAmount"]
        assert record["type"] == "Hostel Fee"


def test_food_request_votes_match_voters(seeded):
    student_ids = {s["id"] for s in seeded.get_students()}
    for request in seeded.get_food_requests():
        assert request["votes"] == len(request["votedBy"])
        assert len(set(request["votedBy"])) == len(request["votedBy"])
        assert set(request["votedBy"]) <= student_ids
