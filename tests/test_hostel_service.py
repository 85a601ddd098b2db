from datetime import timedelta

import pytest

from conftest import allocation_form, room_form
from exceptions import (
    CapacityError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from models.base import now_iso, parse_iso, utc_now

OLD_STAMP = "2024-01-01T00:00:00.000Z"


@pytest.fixture
def room(service):
    return service.add_room(room_form("A-100", "Double"))


def occupancy_by_room(store):
    return {r["id"]: r.get("occupancy") for r in store.get_rooms()}


# ----------------------------------------------------------------------
# rooms & allocation
def test_add_room_defaults(service, store):
    room = service.add_room(room_form("B-200", "Triple", block="B"))

    stored = store.get_room_by_id(room.id)
    assert stored["status"] == "Empty"
    assert stored["occupancy"] == 0
    assert stored["amenities"]["beds"] == 3


def test_add_room_rejects_duplicate_number(service, store):
    service.add_room(room_form("A-100"))
    with pytest.raises(ValidationError) as exc:
        service.add_room(room_form("A-100"))
    assert "number" in exc.value.errors
    assert len(store.get_rooms()) == 1


def test_add_room_rejects_unknown_capacity(service):
    with pytest.raises(ValidationError):
        service.add_room(room_form(capacity="Quad"))


def test_allocation_increments_only_target_room(service, store, room):
    other = service.add_room(room_form("A-101", "Single"))
    before = occupancy_by_room(store)

    student = service.allocate_student(allocation_form(room.id, bed=2))

    after = occupancy_by_room(store)
    assert after[room.id] == before[room.id] + 1
    assert after[other.id] == before[other.id]
    stored_room = store.get_room_by_id(room.id)
    assert stored_room["status"] == "Occupied"
    assert stored_room["allocationDetails"]["bedAllocations"] == [{"bed": 2, "studentId": student.id}]
    stored_student = store.get_student_by_id(student.id)
    assert stored_student["roomId"] == room.id
    assert stored_student["bedNumber"] == 2
    assert stored_student["class"] == "CSE"
    assert store.get_activities()[-1]["type"] == "Student Allocated"


def test_allocation_validates_form(service, store, room):
    form = allocation_form(room.id, email="not-an-email", mobileNumber="123", universityRollNumber="pec1")
    with pytest.raises(ValidationError) as exc:
        service.allocate_student(form)
    assert set(exc.value.errors) == {"email", "mobileNumber", "universityRollNumber"}
    assert store.get_students() == []


@pytest.mark.parametrize("semester", ["third", "0", 9])
def test_allocation_rejects_bad_semester(service, store, room, semester):
    with pytest.raises(ValidationError) as exc:
        service.allocate_student(allocation_form(room.id, semester=semester))
    assert set(exc.value.errors) == {"semester"}
    assert store.get_room_by_id(room.id)["occupancy"] == 0


def test_allocation_rejects_non_text_fields(service, room):
    form = allocation_form(room.id, fullName=42, email=["a@b.co"], mobileNumber=9876543210)
    with pytest.raises(ValidationError) as exc:
        service.allocate_student(form)
    assert set(exc.value.errors) == {"fullName", "email", "mobileNumber"}


def test_allocation_rejects_full_room(service, store):
    single = service.add_room(room_form("A-102", "Single"))
    service.allocate_student(allocation_form(single.id, bed=1))

    with pytest.raises(CapacityError):
        service.allocate_student(allocation_form(single.id, bed=1, rollNumber="CSE3002"))

    assert store.get_room_by_id(single.id)["occupancy"] == 1
    assert len(store.get_students()) == 1
    # the failed attempt leaves no activity behind
    assert len(store.get_activities()) == 1


def test_allocation_rejects_taken_bed(service, room):
    service.allocate_student(allocation_form(room.id, bed=1))
    with pytest.raises(CapacityError):
        service.allocate_student(allocation_form(room.id, bed=1, rollNumber="CSE3002"))


def test_allocation_rejects_bed_out_of_range(service, room):
    with pytest.raises(CapacityError):
        service.allocate_student(allocation_form(room.id, bed=3))


def test_allocation_rejects_room_under_maintenance(service, room):
    service.set_room_maintenance(room.id, "Broken window")
    with pytest.raises(CapacityError):
        service.allocate_student(allocation_form(room.id))


def test_allocation_to_missing_room(service, store):
    with pytest.raises(NotFoundError):
        service.allocate_student(allocation_form("room_missing"))
    assert store.get_students() == []


def test_paid_allocation_records_payment(service, store, room):
    student = service.allocate_student(
        allocation_form(room.id, paymentStatus="Paid", transactionId="TXN123")
    )

    payments = store.get_payments()
    assert len(payments) == 1
    assert payments[0]["studentId"] == student.id
    assert payments[0]["amount"] == 30000
    assert store.get_student_by_id(student.id)["paymentDetails"]["paidAmount"] == 30000


def test_remove_student_frees_the_bed(service, store, room):
    student = service.allocate_student(allocation_form(room.id))

    service.remove_student(student.id)

    stored_room = store.get_room_by_id(room.id)
    assert stored_room["occupancy"] == 0
    assert stored_room["status"] == "Empty"
    assert stored_room["allocationDetails"]["bedAllocations"] == []
    stored_student = store.get_student_by_id(student.id)
    assert "roomId" not in stored_student
    assert "bedNumber" not in stored_student

    with pytest.raises(InvalidTransitionError):
        service.remove_student(student.id)


def test_sync_room_occupancy_repairs_drift(service, store, room):
    service.allocate_student(allocation_form(room.id))
    store.update_room(room.id, {"occupancy": 2, "status": "Empty"})

    changed = service.sync_room_occupancy()

    assert [r.id for r in changed] == [room.id]
    stored = store.get_room_by_id(room.id)
    assert stored["occupancy"] == 1
    assert stored["status"] == "Occupied"
    assert service.sync_room_occupancy() == []


# ----------------------------------------------------------------------
# payments
@pytest.fixture
def unpaid_student(store):
    student = {
        "id": "student_1",
        "fullName": "Rohan Verma",
        "rollNumber": "ECE2001",
        "paymentStatus": "Unpaid",
        "paymentDetails": {"paidAmount": 0},
        "createdAt": OLD_STAMP,
        "updatedAt": OLD_STAMP,
    }
    store.set_students([student])
    return student


def test_full_payment_marks_student_paid(service, store, unpaid_student):
    service.record_payment("student_1", "TXN42", 30000)

    stored = store.get_student_by_id("student_1")
    assert stored["paymentStatus"] == "Paid"
    assert stored["paymentDetails"]["paidAmount"] == 30000
    assert stored["paymentDetails"]["transactionId"] == "TXN42"
    assert stored["updatedAt"] != OLD_STAMP
    assert [p["transactionId"] for p in store.get_payments()] == ["TXN42"]
    assert store.get_activities()[-1]["type"] == "Payment Received"


def test_short_payment_is_partial(service, store, unpaid_student):
    service.record_payment("student_1", "TXN43", "10000")
    assert store.get_student_by_id("student_1")["paymentStatus"] == "Partial"


def test_instalments_add_up_to_paid(service, store, unpaid_student):
    service.record_payment("student_1", "TXN51", 15000)
    assert store.get_student_by_id("student_1")["paymentStatus"] == "Partial"

    service.record_payment("student_1", "TXN52", 15000)

    stored = store.get_student_by_id("student_1")
    assert stored["paymentStatus"] == "Paid"
    assert stored["paymentDetails"]["paidAmount"] == 30000
    assert stored["paymentDetails"]["transactionId"] == "TXN52"


def test_deposit_leaves_fee_status_alone(service, store, unpaid_student):
    service.record_payment("student_1", "TXN61", 30000)
    service.record_payment("student_1", "DEP61", 5000, payment_type="Security Deposit")

    stored = store.get_student_by_id("student_1")
    assert stored["paymentStatus"] == "Paid"
    assert stored["paymentDetails"]["paidAmount"] == 30000
    assert [p["type"] for p in store.get_payments()] == ["Hostel Fee", "Security Deposit"]


def test_paid_student_is_never_downgraded(service, store, room):
    student = service.allocate_student(allocation_form(room.id, paymentStatus="Paid"))

    service.record_payment(student.id, "TXN71", 500)

    stored = store.get_student_by_id(student.id)
    assert stored["paymentStatus"] == "Paid"
    assert stored["paymentDetails"]["paidAmount"] == 30500


@pytest.mark.parametrize("txn, amount", [("", 30000), ("TXN1", 0), ("TXN1", "abc")])
def test_payment_validation(service, store, unpaid_student, txn, amount):
    with pytest.raises(ValidationError):
        service.record_payment("student_1", txn, amount)
    assert store.get_payments() == []


def test_payment_for_unknown_student(service, store):
    with pytest.raises(NotFoundError):
        service.record_payment("student_404", "TXN1")
    assert store.get_payments() == []


# ----------------------------------------------------------------------
# maintenance
def report(service, room_id, title="Leaking tap"):
    return service.report_maintenance({"title": title, "roomId": room_id, "category": "Plumbing"})


def test_maintenance_lifecycle(service, store, room):
    ticket = report(service, room.id)
    assert ticket.status == "Pending"

    with pytest.raises(InvalidTransitionError):
        service.update_maintenance_progress(ticket.id, 10)

    service.assign_technician(ticket.id, "Ravi")
    updated = service.update_maintenance_progress(ticket.id, 40)
    assert updated.status == "In Progress"
    assert updated.progress_percentage == 40

    with pytest.raises(ValidationError):
        service.update_maintenance_progress(ticket.id, 140)


@pytest.mark.parametrize("start_in_progress", [False, True])
def test_resolve_sets_full_progress(service, store, room, start_in_progress):
    ticket = report(service, room.id)
    if start_in_progress:
        service.assign_technician(ticket.id, "Ravi")
        service.update_maintenance_progress(ticket.id, 35)

    resolved = service.resolve_maintenance(ticket.id, "Washer replaced")

    stored = next(m for m in store.get_maintenance_requests() if m["id"] == ticket.id)
    assert stored["status"] == "Resolved"
    assert stored["progressPercentage"] == 100
    assert stored["resolvedDate"]
    assert resolved.resolution_notes == "Washer replaced"

    with pytest.raises(InvalidTransitionError):
        service.resolve_maintenance(ticket.id)


def test_room_leaves_maintenance_when_last_ticket_closes(service, store, room):
    service.set_room_maintenance(room.id, "Water damage")
    first = report(service, room.id, "Water damage")
    second = report(service, room.id, "Broken window")

    service.resolve_maintenance(first.id)
    assert store.get_room_by_id(room.id)["status"] == "Maintenance"

    service.resolve_maintenance(second.id)
    stored = store.get_room_by_id(room.id)
    assert stored["status"] == "Empty"
    assert "maintenanceIssue" not in stored


def test_report_for_missing_room(service, store):
    with pytest.raises(NotFoundError):
        report(service, "room_404")
    assert store.get_maintenance_requests() == []


# ----------------------------------------------------------------------
# complaints
def test_complaint_lifecycle(service, store, room):
    student = service.allocate_student(allocation_form(room.id))
    complaint = service.file_complaint({"studentId": student.id, "type": "Noise", "urgency": "High"})

    resolved = service.resolve_complaint(complaint.id, "Spoke to neighbours")
    assert resolved.status == "Resolved"
    assert resolved.resolved_date

    with pytest.raises(InvalidTransitionError):
        service.resolve_complaint(complaint.id)


def test_complaint_needs_known_student(service):
    with pytest.raises(NotFoundError):
        service.file_complaint({"studentId": "student_404", "type": "Noise"})


# ----------------------------------------------------------------------
# food requests
@pytest.fixture
def food_request(service):
    return service.submit_food_request({"dishName": "Momos", "whyWantThis": "Everyone loves them"})


def test_food_request_closes_after_a_week(food_request):
    opened = parse_iso(food_request.created_date)
    assert parse_iso(food_request.closing_date) - opened == timedelta(days=7)
    assert food_request.status == "Active"


def test_one_vote_per_voter(service, food_request):
    assert service.vote_food_request(food_request.id, "student_1").votes == 1
    with pytest.raises(DuplicateVoteError):
        service.vote_food_request(food_request.id, "student_1")
    voted = service.vote_food_request(food_request.id, "student_2")
    assert voted.votes == 2
    assert voted.voted_by == ["student_1", "student_2"]


def test_closed_requests_take_no_votes(service, food_request):
    accepted = service.accept_food_request(food_request.id)
    assert accepted.status == "Accepted"
    assert accepted.implementation_status == "Planned"

    with pytest.raises(InvalidTransitionError):
        service.vote_food_request(food_request.id, "student_1")
    with pytest.raises(InvalidTransitionError):
        service.reject_food_request(food_request.id)


def test_vote_needs_a_voter(service, food_request):
    with pytest.raises(ValidationError):
        service.vote_food_request(food_request.id, "")


# ----------------------------------------------------------------------
# menus
def test_menu_editing(service, store):
    menu = service.create_menu(10, 2026)
    service.add_dish(menu.id, "Monday", "Lunch", {"name": "Rajma Chawal", "allergens": ["legumes"]})
    service.add_dish(menu.id, "Monday", "Lunch", {"name": "Jeera Rice"})

    loaded = service.get_menu(10, 2026)
    assert [d.name for d in loaded.cell("Monday", "Lunch")] == ["Rajma Chawal", "Jeera Rice"]
    assert loaded.cell("Monday", "Lunch")[0].time == "12:30 - 2:00 PM"
    assert loaded.cell("Tuesday", "Lunch") == []

    stored = store.get_menu_by_week(10, 2026)
    assert stored["Monday"]["Lunch"][0]["name"] == "Rajma Chawal"
    assert set(stored["Sunday"]) == {"Breakfast", "Lunch", "Snacks", "Dinner"}

    service.remove_dish(menu.id, "Monday", "Lunch", 0)
    assert [d.name for d in service.get_menu(10, 2026).cell("Monday", "Lunch")] == ["Jeera Rice"]


def test_menu_errors(service):
    menu = service.create_menu(11, 2026)
    with pytest.raises(ValidationError):
        service.create_menu(11, 2026)
    with pytest.raises(ValidationError):
        service.add_dish(menu.id, "Funday", "Lunch", {"name": "Pizza"})
    with pytest.raises(NotFoundError):
        service.remove_dish(menu.id, "Monday", "Dinner", 0)
    with pytest.raises(NotFoundError):
        service.get_menu(12, 2026)


# ----------------------------------------------------------------------
# announcements
def test_scheduled_announcement_activates(service, store):
    later = utc_now() + timedelta(days=2)
    ann = service.publish_announcement(
        {"title": "Water cut", "content": "No water on Sunday", "scheduledDate": now_iso(later)}
    )
    assert ann.status == "Scheduled"

    assert service.activate_scheduled_announcements(now=utc_now()) == []
    activated = service.activate_scheduled_announcements(now=later + timedelta(minutes=1))
    assert [a.id for a in activated] == [ann.id]
    assert store.get_announcements()[0]["status"] == "Active"


def test_announcement_views_archive_delete(service, store):
    ann = service.publish_announcement({"title": "Fest", "content": "Cultural fest on Friday", "type": "Event"})
    assert ann.status == "Active"

    service.view_announcement(ann.id)
    assert service.view_announcement(ann.id).views == 2

    service.archive_announcement(ann.id)
    with pytest.raises(InvalidTransitionError):
        service.archive_announcement(ann.id)

    service.delete_announcement(ann.id)
    assert store.get_announcements() == []
    with pytest.raises(NotFoundError):
        service.delete_announcement(ann.id)


def test_draft_announcement(service, store):
    ann = service.publish_announcement({"title": "Draft", "content": "Not yet", "draft": True})
    assert ann.status == "Draft"

    # only explicit activation publishes a draft
    assert service.activate_scheduled_announcements() == []
    assert service.activate_announcement(ann.id).status == "Active"
    assert store.get_announcements()[0]["status"] == "Active"

    with pytest.raises(InvalidTransitionError):
        service.activate_announcement(ann.id)


def test_activate_scheduled_early(service):
    later = now_iso(utc_now() + timedelta(days=3))
    ann = service.publish_announcement({"title": "Trip", "content": "Saturday", "scheduledDate": later})
    assert service.activate_announcement(ann.id).status == "Active"


def test_archived_announcement_cannot_be_activated(service):
    ann = service.publish_announcement({"title": "Old", "content": "Gone"})
    service.archive_announcement(ann.id)
    with pytest.raises(InvalidTransitionError):
        service.activate_announcement(ann.id)


def test_text_fields_must_be_strings(service):
    with pytest.raises(ValidationError) as exc:
        service.publish_announcement({"title": 5, "content": "Body"})
    assert set(exc.value.errors) == {"title"}
    with pytest.raises(ValidationError):
        service.assign_technician("m_1", 7)


# ----------------------------------------------------------------------
# activity log
def test_recent_activities_newest_first(service, store):
    store.set_activities([
        {"id": "a1", "type": "Student Allocated", "description": "old", "timestamp": "2024-01-01T00:00:00.000Z"},
        {"id": "a2", "type": "Payment Received", "description": "new", "timestamp": "2024-03-01T00:00:00.000Z"},
        {"id": "a3", "type": "Complaint Filed", "description": "mid", "timestamp": "2024-02-01T00:00:00.000Z"},
    ])
    assert [a.id for a in service.recent_activities(limit=2)] == ["a2", "a3"]


def test_unknown_activity_type(service):
    with pytest.raises(ValidationError):
        service.log_activity("Something Odd", "?")
