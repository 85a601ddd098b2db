"""
Domain operations over the hostel store.

Each public method is one unit of work: it validates its input, then applies
every cross-entity change inside a single store transaction, so either all
collections are written or none are. Failures raise the typed errors from
``exceptions`` instead of returning booleans.
"""

import logging
from datetime import timedelta

from exceptions import (
    CapacityError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from models.activity import ACTIVITY_TYPES, Activity
from models.announcement import ANNOUNCEMENT_PRIORITIES, ANNOUNCEMENT_TYPES, Announcement
from models.base import generate_id, now_iso, parse_iso, utc_now
from models.complaint import COMPLAINT_URGENCIES, Complaint
from models.food_request import FoodRequest
from models.maintenance_request import (
    MAINTENANCE_CATEGORIES,
    MAINTENANCE_PRIORITIES,
    MaintenanceRequest,
)
from models.menu import DIETARY_OPTIONS, MEAL_SLOTS, MEAL_TIMES, MenuItem, WeeklyMenu
from models.payment import PAYMENT_TYPES, Payment
from models.room import CAPACITY_BEDS, ROOM_BLOCKS, ROOM_FLOORS, Room, default_amenities
from models.student import HOSTEL_FEE, PAYMENT_STATUSES, STUDENT_CLASSES, Student
from services.validation import require_choice, require_fields, validate_allocation_form

logger = logging.getLogger(__name__)

ENTITY_NAMES = {
    "ROOMS": "Room",
    "STUDENTS": "Student",
    "MAINTENANCE": "Maintenance request",
    "COMPLAINTS": "Complaint",
    "MENUS": "Menu",
    "FOOD_REQUESTS": "Food request",
    "ANNOUNCEMENTS": "Announcement",
}

FOOD_REQUEST_VOTING_DAYS = 7


class HostelService:
    def __init__(self, store):
        self.store = store

    # ------------------------------------------------------------------
    # helpers
    def _get(self, name, model, record_id):
        data = self.store.find(name, record_id)
        if data is None:
            raise NotFoundError(ENTITY_NAMES[name], record_id)
        return model.from_dict(data)

    def _update(self, name, model, record_id, apply):
        """Load one record as `model`, let `apply` change it, and write it back."""

        def change(items):
            for index, item in enumerate(items):
                if item.get("id") == record_id:
                    record = model.from_dict(item)
                    apply(record)
                    record.touch()
                    items[index] = record.to_dict()
                    return record
            raise NotFoundError(ENTITY_NAMES[name], record_id)

        return self.store.mutate(name, change)

    def _append(self, name, record):
        self.store.mutate(name, lambda items: items.append(record.to_dict()))
        return record

    def log_activity(self, activity_type, description, related_id=None, data=None):
        if activity_type not in ACTIVITY_TYPES:
            raise ValidationError({"type": f"Unknown activity type '{activity_type}'"})
        activity = Activity(type=activity_type, description=description, related_id=related_id, data=data)
        self._append("ACTIVITIES", activity)
        return activity

    def recent_activities(self, limit=10):
        activities = [Activity.from_dict(a) for a in self.store.get_activities()]
        activities.sort(key=lambda a: parse_iso(a.timestamp), reverse=True)
        return activities[:limit]

    # ------------------------------------------------------------------
    # Rooms & allocation
    def add_room(self, form):
        require_fields(form, "number")
        floor = require_choice(form, "floor", ROOM_FLOORS)
        block = require_choice(form, "block", ROOM_BLOCKS)
        capacity = require_choice(form, "capacity", tuple(CAPACITY_BEDS))
        room = Room(
            id=generate_id("room"),
            number=form["number"].strip(),
            floor=floor,
            block=block,
            capacity=capacity,
            amenities=default_amenities(capacity),
            amenity_status={name: "Working" for name in default_amenities(capacity)},
            last_inspection=now_iso(),
        )

        def insert(items):
            if any(r.get("number") == room.number for r in items):
                raise ValidationError({"number": f"Room {room.number} already exists"})
            items.append(room.to_dict())

        with self.store.transaction():
            self.store.mutate("ROOMS", insert)
        logger.info("Added room %s", room.number)
        return room

    def set_room_maintenance(self, room_id, issue):
        def apply(room):
            room.status = "Maintenance"
            room.maintenance_issue = issue

        with self.store.transaction():
            room = self._update("ROOMS", Room, room_id, apply)
        logger.info("Room %s put under maintenance: %s", room.number, issue)
        return room

    def allocate_student(self, form):
        """Create a student in a room/bed and occupy that bed, as one transaction."""
        validate_allocation_form(form)
        payment_status = require_choice(form, "paymentStatus", PAYMENT_STATUSES, "Unpaid")
        class_name = require_choice(form, "class", STUDENT_CLASSES, "CSE")
        room_id = form["selectedRoomId"]
        bed = int(form["selectedBedNumber"])
        now = now_iso()

        paid = payment_status == "Paid"
        student = Student(
            id=generate_id("student"),
            full_name=form["fullName"].strip(),
            roll_number=form["rollNumber"].strip(),
            university_roll_number=form["universityRollNumber"],
            class_name=class_name,
            semester=int(form.get("semester") or 1),
            session=form.get("session", ""),
            email=form["email"],
            mobile_number=form["mobileNumber"],
            emergency_contact=form["emergencyContact"],
            fathers_name=form.get("fathersName") or None,
            dob=form.get("dob") or None,
            blood_group=form.get("bloodGroup") or None,
            address=form.get("address") or None,
            previous_hostel=form.get("previousHostel") or None,
            medical_conditions=form.get("medicalConditions") or None,
            allergy_information=form.get("allergyInformation") or None,
            room_id=room_id,
            bed_number=bed,
            payment_status=payment_status,
            payment_details={
                k: v
                for k, v in {
                    "transactionId": form.get("transactionId") or None,
                    "paidAmount": HOSTEL_FEE if paid else 0,
                    "paidDate": now if paid else None,
                }.items()
                if v is not None
            },
            created_at=now,
            updated_at=now,
        )

        with self.store.transaction():
            beds_in_use = {
                s.get("bedNumber") for s in self.store.get_students_by_room(room_id)
            }

            def occupy(room):
                if room.status == "Maintenance":
                    raise CapacityError(f"Room {room.number} is under maintenance")
                if room.is_full:
                    raise CapacityError(f"Room {room.number} is full")
                if not 1 <= bed <= room.beds:
                    raise CapacityError(f"Room {room.number} has no bed {bed}")
                if bed in beds_in_use or bed in room.taken_beds():
                    raise CapacityError(f"Bed {bed} in room {room.number} is already taken")
                room.occupancy += 1
                room.status = "Occupied"
                room.assign_bed(bed, student.id)

            room = self._update("ROOMS", Room, room_id, occupy)
            self._append("STUDENTS", student)
            if paid and student.payment_details.get("transactionId"):
                self._append("PAYMENTS", Payment(
                    id=generate_id("payment"),
                    student_id=student.id,
                    amount=HOSTEL_FEE,
                    transaction_id=student.payment_details["transactionId"],
                    date=now,
                ))
            self.log_activity(
                "Student Allocated",
                f"{student.full_name} allocated to room {room.number}, bed {bed}",
                related_id=student.id,
            )

        logger.info("Allocated %s to room %s bed %s", student.roll_number, room.number, bed)
        return student

    def remove_student(self, student_id):
        """Take a student out of their room; the student record is kept."""
        with self.store.transaction():
            student = self._get("STUDENTS", Student, student_id)
            if not student.room_id:
                raise InvalidTransitionError("Student", "Unallocated", "Removed")

            def vacate(room):
                room.occupancy = max(room.occupancy - 1, 0)
                room.release_bed(student_id)
                if room.occupancy == 0 and room.status != "Maintenance":
                    room.status = "Empty"

            try:
                room = self._update("ROOMS", Room, student.room_id, vacate)
                room_label = room.number
            except NotFoundError:
                logger.warning("Student %s pointed at missing room %s", student_id, student.room_id)
                room_label = student.room_id

            def unassign(record):
                record.room_id = None
                record.bed_number = None

            student = self._update("STUDENTS", Student, student_id, unassign)
            self.log_activity(
                "Student Removed", f"{student.full_name} removed from room {room_label}", related_id=student_id
            )
        logger.info("Removed student %s from room %s", student_id, room_label)
        return student

    def sync_room_occupancy(self):
        """Recompute each room's occupancy, beds and status from the students collection."""
        changed = []
        with self.store.transaction():
            by_room = {}
            for s in self.store.get_students():
                if s.get("roomId"):
                    by_room.setdefault(s["roomId"], []).append(s)

            def recount(items):
                for index, item in enumerate(items):
                    room = Room.from_dict(item)
                    residents = by_room.get(room.id, [])
                    if len(residents) > room.beds:
                        logger.warning(
                            "Room %s holds %d students but has %d beds", room.number, len(residents), room.beds
                        )
                    status = room.status
                    if status != "Maintenance":
                        status = "Occupied" if residents else "Empty"
                    details = {
                        "studentIds": [s["id"] for s in residents],
                        "bedAllocations": [
                            {"bed": s["bedNumber"], "studentId": s["id"]}
                            for s in residents
                            if s.get("bedNumber") is not None
                        ],
                    }
                    current = room.allocation_details or {"studentIds": [], "bedAllocations": []}
                    if (room.occupancy, room.status, current) != (len(residents), status, details):
                        room.occupancy = len(residents)
                        room.status = status
                        room.allocation_details = details
                        room.touch()
                        items[index] = room.to_dict()
                        changed.append(room)
                return bool(changed)

            self.store.mutate("ROOMS", recount)
        return changed

    # ------------------------------------------------------------------
    # Payments
    def record_payment(self, student_id, transaction_id, amount=HOSTEL_FEE, payment_type="Hostel Fee", method=None):
        if not transaction_id or not str(transaction_id).strip():
            raise ValidationError({"transactionId": "Transaction ID is required"})
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValidationError({"amount": "Amount must be a number"}) from None
        if amount <= 0:
            raise ValidationError({"amount": "Amount must be positive"})
        if payment_type not in PAYMENT_TYPES:
            raise ValidationError({"type": f"type must be one of: {', '.join(PAYMENT_TYPES)}"})
        if amount.is_integer():
            amount = int(amount)
        now = now_iso()

        with self.store.transaction():
            if payment_type == "Hostel Fee":
                paid_before = sum(
                    p.get("amount", 0)
                    for p in self.store.get_payments()
                    if p.get("studentId") == student_id and p.get("type", "Hostel Fee") == "Hostel Fee"
                )

                def apply(student):
                    details = student.payment_details or {}
                    # fees paid before any payment record existed, e.g. at allocation
                    total = (paid_before or details.get("paidAmount", 0) or 0) + amount
                    if student.payment_status != "Paid":
                        student.payment_status = "Paid" if total >= HOSTEL_FEE else "Partial"
                    student.payment_details = {
                        "transactionId": transaction_id,
                        "paidAmount": total,
                        "paidDate": now,
                    }

                student = self._update("STUDENTS", Student, student_id, apply)
            else:
                # deposits are tracked in the payments collection only
                student = self._get("STUDENTS", Student, student_id)
            payment = self._append("PAYMENTS", Payment(
                id=generate_id("payment"),
                student_id=student_id,
                amount=amount,
                type=payment_type,
                transaction_id=transaction_id,
                date=now,
                method=method,
            ))
            self.log_activity(
                "Payment Received",
                f"{student.full_name} paid {amount}",
                related_id=payment.id,
                data={"transactionId": transaction_id, "amount": amount},
            )
        logger.info("Recorded payment %s for student %s", transaction_id, student_id)
        return student

    # ------------------------------------------------------------------
    # Maintenance
    def report_maintenance(self, form):
        require_fields(form, "title", "roomId")
        category = require_choice(form, "category", MAINTENANCE_CATEGORIES, "Other")
        priority = require_choice(form, "priority", MAINTENANCE_PRIORITIES, "Medium")
        now = now_iso()
        request = MaintenanceRequest(
            id=generate_id("maintenance"),
            title=form["title"].strip(),
            description=form.get("description", ""),
            room_id=form["roomId"],
            category=category,
            priority=priority,
            reported_by=form.get("reportedBy") or "Warden",
            reported_date=now,
            photos_count=int(form.get("photosCount") or 0),
            condition=form.get("condition"),
            created_at=now,
            updated_at=now,
        )
        with self.store.transaction():
            room = self._get("ROOMS", Room, request.room_id)
            self._append("MAINTENANCE", request)
            self.log_activity(
                "Maintenance Reported", f"{request.title} in room {room.number}", related_id=request.id
            )
        return request

    def assign_technician(self, request_id, technician, estimated_completion=None):
        if not isinstance(technician, str) or not technician.strip():
            raise ValidationError({"technician": "Technician name is required"})

        def apply(request):
            if request.status != "Pending":
                raise InvalidTransitionError("Maintenance request", request.status, "In Progress")
            request.status = "In Progress"
            request.assigned_technician = technician.strip()
            request.progress_percentage = 0
            request.started_date = now_iso()
            if estimated_completion:
                request.estimated_completion = estimated_completion

        with self.store.transaction():
            return self._update("MAINTENANCE", MaintenanceRequest, request_id, apply)

    def update_maintenance_progress(self, request_id, percentage):
        try:
            percentage = int(percentage)
        except (TypeError, ValueError):
            raise ValidationError({"progressPercentage": "Progress must be a number"}) from None
        if not 0 <= percentage <= 100:
            raise ValidationError({"progressPercentage": "Progress must be between 0 and 100"})

        def apply(request):
            if request.status != "In Progress":
                raise InvalidTransitionError("Maintenance request", request.status, "In Progress")
            request.progress_percentage = percentage

        with self.store.transaction():
            return self._update("MAINTENANCE", MaintenanceRequest, request_id, apply)

    def resolve_maintenance(self, request_id, notes=None):
        """Close a ticket; its room leaves Maintenance once no other ticket is open for it."""

        def apply(request):
            if request.status == "Resolved":
                raise InvalidTransitionError("Maintenance request", request.status, "Resolved")
            request.status = "Resolved"
            request.progress_percentage = 100
            request.resolved_date = now_iso()
            if notes:
                request.resolution_notes = notes

        with self.store.transaction():
            request = self._update("MAINTENANCE", MaintenanceRequest, request_id, apply)
            still_open = any(
                m.get("roomId") == request.room_id and m.get("status") != "Resolved"
                for m in self.store.get_maintenance_requests()
            )
            room_data = self.store.get_room_by_id(request.room_id)
            if room_data and room_data.get("status") == "Maintenance" and not still_open:

                def reopen(room):
                    room.status = "Occupied" if room.occupancy > 0 else "Empty"
                    room.maintenance_issue = None

                self._update("ROOMS", Room, request.room_id, reopen)
            self.log_activity("Maintenance Resolved", f"{request.title} resolved", related_id=request.id)
        return request

    # ------------------------------------------------------------------
    # Complaints
    def file_complaint(self, form):
        require_fields(form, "studentId", "type")
        urgency = require_choice(form, "urgency", COMPLAINT_URGENCIES, "Medium")
        now = now_iso()
        complaint = Complaint(
            id=generate_id("complaint"),
            student_id=form["studentId"],
            type=form["type"].strip(),
            description=form.get("description", ""),
            urgency=urgency,
            reported_date=now,
            created_at=now,
            updated_at=now,
        )
        with self.store.transaction():
            student = self._get("STUDENTS", Student, complaint.student_id)
            self._append("COMPLAINTS", complaint)
            self.log_activity(
                "Complaint Filed", f"{complaint.type} complaint by {student.full_name}", related_id=complaint.id
            )
        return complaint

    def resolve_complaint(self, complaint_id, notes=""):
        def apply(complaint):
            if complaint.status != "Pending":
                raise InvalidTransitionError("Complaint", complaint.status, "Resolved")
            complaint.status = "Resolved"
            complaint.resolved_date = now_iso()
            complaint.resolution_notes = notes

        with self.store.transaction():
            complaint = self._update("COMPLAINTS", Complaint, complaint_id, apply)
            self.log_activity("Complaint Resolved", f"{complaint.type} complaint resolved", related_id=complaint_id)
        return complaint

    # ------------------------------------------------------------------
    # Food requests
    def submit_food_request(self, form):
        require_fields(form, "dishName", "whyWantThis")
        meal_type = require_choice(form, "mealType", MEAL_SLOTS, "Lunch")
        dietary = require_choice(form, "dietary", DIETARY_OPTIONS, "Veg")
        created = utc_now()
        request = FoodRequest(
            id=generate_id("request"),
            dish_name=form["dishName"].strip(),
            description=form.get("description", ""),
            meal_type=meal_type,
            dietary=dietary,
            why_want_this=form["whyWantThis"].strip(),
            photo=form.get("photo"),
            created_date=now_iso(created),
            closing_date=now_iso(created + timedelta(days=FOOD_REQUEST_VOTING_DAYS)),
        )
        with self.store.transaction():
            self._append("FOOD_REQUESTS", request)
            self.log_activity("Food Request Submitted", f"{request.dish_name} requested", related_id=request.id)
        return request

    def vote_food_request(self, request_id, voter_id):
        """Add one vote; each voter may vote once per request, and only while it is Active."""
        if not voter_id:
            raise ValidationError({"voterId": "Voter is required"})

        def apply(request):
            if request.status != "Active":
                raise InvalidTransitionError("Food request", request.status, "Active")
            if voter_id in request.voted_by:
                raise DuplicateVoteError(f"{voter_id} already voted for {request.dish_name}")
            request.votes += 1
            request.voted_by.append(voter_id)

        with self.store.transaction():
            return self._update("FOOD_REQUESTS", FoodRequest, request_id, apply)

    def _close_food_request(self, request_id, status, implementation_status):
        def apply(request):
            if request.status != "Active":
                raise InvalidTransitionError("Food request", request.status, status)
            request.status = status
            request.implementation_status = implementation_status

        with self.store.transaction():
            return self._update("FOOD_REQUESTS", FoodRequest, request_id, apply)

    def accept_food_request(self, request_id):
        return self._close_food_request(request_id, "Accepted", "Planned")

    def reject_food_request(self, request_id):
        return self._close_food_request(request_id, "Rejected", "Rejected")

    # ------------------------------------------------------------------
    # Menu
    def get_menu(self, week, year):
        data = self.store.get_menu_by_week(week, year)
        if data is None:
            raise NotFoundError("Menu", f"week {week}/{year}")
        return WeeklyMenu.from_dict(data)

    def create_menu(self, week, year, template=None):
        menu = WeeklyMenu(id=generate_id("menu"), week=week, year=year)
        if template is not None:
            menu.meals = [[list(cell) for cell in day] for day in template.meals]

        def insert(items):
            if any(m.get("week") == week and m.get("year") == year for m in items):
                raise ValidationError({"week": f"Menu for week {week}/{year} already exists"})
            items.append(menu.to_dict())

        with self.store.transaction():
            self.store.mutate("MENUS", insert)
        return menu

    def _edit_cell(self, menu_id, day, meal, edit):
        def apply(menu):
            try:
                cell = menu.cell(day, meal)
            except ValueError as e:
                raise ValidationError({"cell": str(e)}) from None
            edit(cell)

        with self.store.transaction():
            menu = self._update("MENUS", WeeklyMenu, menu_id, apply)
            self.log_activity(
                "Menu Updated", f"{day} {meal} changed for week {menu.week}", related_id=menu_id
            )
        return menu

    def add_dish(self, menu_id, day, meal, item):
        if isinstance(item, dict):
            require_fields(item, "name")
            dietary = require_choice(item, "dietary", DIETARY_OPTIONS, "Veg")
            item = MenuItem(
                name=item["name"].strip(),
                time=item.get("time") or MEAL_TIMES.get(meal, ""),
                dietary=dietary,
                allergens=list(item.get("allergens", [])),
                description=item.get("description") or None,
            )
        return self._edit_cell(menu_id, day, meal, lambda cell: cell.append(item))

    def remove_dish(self, menu_id, day, meal, index):
        def drop(cell):
            if not 0 <= index < len(cell):
                raise NotFoundError("Dish", f"{day}/{meal}/{index}")
            del cell[index]

        return self._edit_cell(menu_id, day, meal, drop)

    # ------------------------------------------------------------------
    # Announcements
    def publish_announcement(self, form):
        require_fields(form, "title", "content")
        ann_type = require_choice(form, "type", ANNOUNCEMENT_TYPES, "General")
        priority = require_choice(form, "priority", ANNOUNCEMENT_PRIORITIES, "Medium")
        now = utc_now()
        scheduled = form.get("scheduledDate")
        status = "Active"
        if scheduled:
            try:
                scheduled_at = parse_iso(scheduled)
            except ValueError:
                raise ValidationError({"scheduledDate": "Invalid date"}) from None
            if scheduled_at > now:
                status = "Scheduled"
        if form.get("draft"):
            status = "Draft"

        announcement = Announcement(
            id=generate_id("ann"),
            title=form["title"].strip(),
            content=form["content"].strip(),
            type=ann_type,
            priority=priority,
            target_audience={"allStudents": form.get("targetAllStudents", True)},
            visibility={"startDate": scheduled or now_iso(now), "displayUntilRemoved": True},
            status=status,
            posted_by=form.get("postedBy") or "Warden",
            scheduled_date=scheduled or None,
        )
        with self.store.transaction():
            self._append("ANNOUNCEMENTS", announcement)
            self.log_activity("Announcement Posted", announcement.title, related_id=announcement.id)
        return announcement

    def view_announcement(self, announcement_id):
        def apply(announcement):
            announcement.views += 1

        with self.store.transaction():
            return self._update("ANNOUNCEMENTS", Announcement, announcement_id, apply)

    def activate_announcement(self, announcement_id):
        """Publish a Draft or Scheduled announcement now."""

        def apply(announcement):
            if announcement.status not in ("Draft", "Scheduled"):
                raise InvalidTransitionError("Announcement", announcement.status, "Active")
            announcement.status = "Active"
            announcement.visibility = {**announcement.visibility, "startDate": now_iso()}

        with self.store.transaction():
            return self._update("ANNOUNCEMENTS", Announcement, announcement_id, apply)

    def archive_announcement(self, announcement_id):
        def apply(announcement):
            if announcement.status == "Archived":
                raise InvalidTransitionError("Announcement", announcement.status, "Archived")
            announcement.status = "Archived"

        with self.store.transaction():
            return self._update("ANNOUNCEMENTS", Announcement, announcement_id, apply)

    def activate_scheduled_announcements(self, now=None):
        """Move Scheduled announcements whose date has passed to Active."""
        now = now or utc_now()
        activated = []

        def apply(items):
            for index, item in enumerate(items):
                ann = Announcement.from_dict(item)
                if ann.status == "Scheduled" and ann.scheduled_date and parse_iso(ann.scheduled_date) <= now:
                    ann.status = "Active"
                    ann.touch()
                    items[index] = ann.to_dict()
                    activated.append(ann)
            return bool(activated)

        with self.store.transaction():
            self.store.mutate("ANNOUNCEMENTS", apply)
        return activated

    def delete_announcement(self, announcement_id):
        def remove(items):
            for index, item in enumerate(items):
                if item.get("id") == announcement_id:
                    del items[index]
                    return True
            raise NotFoundError("Announcement", announcement_id)

        with self.store.transaction():
            self.store.mutate("ANNOUNCEMENTS", remove)
