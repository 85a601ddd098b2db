from flask import Blueprint, jsonify, request, current_app, send_file, Response
from datetime import datetime

from exceptions import (
    ValidationError,
    NotFoundError,
    CapacityError,
    InvalidTransitionError,
    DuplicateVoteError,
    ConcurrentUpdateError,
)
from services import reports
from services.reports import filter_records, sort_by_date_desc

admin_bp = Blueprint("admin", __name__)


def _store():
    return current_app.extensions["hostel_store"]


def _service():
    return current_app.extensions["hostel_service"]


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


#-------------------------------------------------------
# Error responses
@admin_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": "Validation failed", "fields": e.errors}), 400


@admin_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@admin_bp.errorhandler(CapacityError)
@admin_bp.errorhandler(InvalidTransitionError)
@admin_bp.errorhandler(DuplicateVoteError)
@admin_bp.errorhandler(ConcurrentUpdateError)
def handle_conflict(e):
    return jsonify({"error": str(e)}), 409

#-------------------------------------------------------
# Dashboard
@admin_bp.route("/dashboard")
def dashboard():
    store = _store()
    stats = reports.dashboard_stats(
        store.get_rooms(), store.get_students(), store.get_maintenance_requests(), store.get_complaints()
    )
    activities = _service().recent_activities(limit=request.args.get("limit", 10, type=int))
    return jsonify({
        "stats": stats,
        "recentActivities": [a.to_dict() for a in activities],
        "departments": reports.department_breakdown(store.get_students()),
    })

# Export the report workbook
@admin_bp.route("/reports/export_excel")
def export_report_excel():
    store = _store()
    rooms = store.get_rooms()
    students = store.get_students()
    stats = reports.dashboard_stats(rooms, students, store.get_maintenance_requests(), store.get_complaints())
    output = reports.export_summary_excel(stats, students, rooms)
    filename = f"Hostel_Report_{datetime.now().strftime('%Y-%m-%d_%H-%M')}.xlsx"

    return send_file(
        output,
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

#-------------------------------------------------------
# Rooms
@admin_bp.route("/rooms")
def manage_rooms():
    rooms = filter_records(
        _store().get_rooms(),
        equals={
            "status": request.args.get("status"),
            "block": request.args.get("block"),
            "floor": request.args.get("floor"),
            "capacity": request.args.get("capacity"),
        },
        search=request.args.get("q"),
        search_fields=("number",),
    )
    return jsonify({"rooms": rooms, "occupancyRate": reports.calculate_occupancy_rate(rooms)})


@admin_bp.route("/rooms", methods=["POST"])
def add_room():
    room = _service().add_room(_payload())
    return jsonify(room.to_dict()), 201


@admin_bp.route("/rooms/<room_id>")
def room_detail(room_id):
    store = _store()
    room = store.get_room_by_id(room_id)
    if room is None:
        raise NotFoundError("Room", room_id)
    return jsonify({"room": room, "students": store.get_students_by_room(room_id)})


@admin_bp.route("/rooms/<room_id>/maintenance", methods=["POST"])
def mark_room_maintenance(room_id):
    issue = _payload().get("issue")
    if not issue:
        raise ValidationError({"issue": "Issue description is required"})
    return jsonify(_service().set_room_maintenance(room_id, issue).to_dict())


# Recount occupancy from the students collection
@admin_bp.route("/rooms/sync", methods=["POST"])
def sync_rooms():
    changed = _service().sync_room_occupancy()
    return jsonify({"updated": [r.number for r in changed]})

#-------------------------------------------------------
# Students
@admin_bp.route("/students")
def students():
    students = filter_records(
        _store().get_students(),
        equals={
            "paymentStatus": request.args.get("paymentStatus"),
            "class": request.args.get("class"),
            "roomId": request.args.get("roomId"),
        },
        search=request.args.get("q", "").strip(),
        search_fields=("fullName", "rollNumber", "universityRollNumber", "email", "mobileNumber"),
    )
    return jsonify({"students": students, "total": len(students)})


# Allocate a student to a room and bed
@admin_bp.route("/students", methods=["POST"])
def allocate_student():
    student = _service().allocate_student(_payload())
    return jsonify(student.to_dict()), 201


@admin_bp.route("/students/<student_id>")
def student_detail(student_id):
    store = _store()
    student = store.get_student_by_id(student_id)
    if student is None:
        raise NotFoundError("Student", student_id)
    room = store.get_room_by_id(student.get("roomId")) if student.get("roomId") else None
    payments = [p for p in store.get_payments() if p.get("studentId") == student_id]
    return jsonify({"student": student, "room": room, "payments": payments})


@admin_bp.route("/students/<student_id>/remove", methods=["POST"])
def remove_student(student_id):
    return jsonify(_service().remove_student(student_id).to_dict())

#-------------------------------------------------------
# Payments
@admin_bp.route("/payments")
def payments():
    records = filter_records(
        _store().get_payments(),
        equals={"status": request.args.get("status"), "type": request.args.get("type")},
        date_field="date",
        date_from=request.args.get("date_from"),
        date_to=request.args.get("date_to"),
    )
    return jsonify({"payments": sort_by_date_desc(records, "date")})


@admin_bp.route("/payments", methods=["POST"])
def record_payment():
    data = _payload()
    if not data.get("studentId"):
        raise ValidationError({"studentId": "Student is required"})
    student = _service().record_payment(
        data["studentId"],
        data.get("transactionId"),
        amount=data.get("paidAmount", data.get("amount", 30000)),
        payment_type=data.get("type", "Hostel Fee"),
        method=data.get("method"),
    )
    return jsonify(student.to_dict()), 201

#-------------------------------------------------------
# Maintenance requests
@admin_bp.route("/maintenance")
def manage_maintenance():
    store = _store()
    records = store.get_maintenance_requests()

    room_search = request.args.get("room")
    if room_search:
        room = next((r for r in store.get_rooms() if room_search in r.get("number", "")), None)
        if room:
            records = [m for m in records if m.get("roomId") == room["id"]]

    records = filter_records(
        records,
        equals={
            "status": request.args.get("status"),
            "category": request.args.get("category"),
            "priority": request.args.get("priority"),
        },
        date_field="reportedDate",
        date_from=request.args.get("date_from"),
        date_to=request.args.get("date_to"),
    )
    return jsonify({"requests": sort_by_date_desc(records, "reportedDate")})


@admin_bp.route("/maintenance", methods=["POST"])
def report_maintenance():
    return jsonify(_service().report_maintenance(_payload()).to_dict()), 201


@admin_bp.route("/maintenance/<request_id>/assign", methods=["POST"])
def assign_technician(request_id):
    data = _payload()
    req = _service().assign_technician(request_id, data.get("technician"), data.get("estimatedCompletion"))
    return jsonify(req.to_dict())


@admin_bp.route("/maintenance/<request_id>/progress", methods=["POST"])
def update_progress(request_id):
    req = _service().update_maintenance_progress(request_id, _payload().get("progressPercentage"))
    return jsonify(req.to_dict())


@admin_bp.route("/maintenance/<request_id>/resolve", methods=["POST"])
def resolve_maintenance(request_id):
    req = _service().resolve_maintenance(request_id, _payload().get("resolutionNotes"))
    return jsonify(req.to_dict())

#-------------------------------------------------------
# Complaints
@admin_bp.route("/complaints")
def manage_complaints():
    store = _store()
    complaints = store.get_complaints()
    names = {s["id"]: s.get("fullName", "") for s in store.get_students()}
    # search by student name or complaint type
    rows = [{**c, "studentName": names.get(c.get("studentId"), "Unknown Student")} for c in complaints]
    rows = filter_records(
        rows,
        equals={"status": request.args.get("status")},
        search=request.args.get("q"),
        search_fields=("studentName", "type"),
    )
    return jsonify({"complaints": sort_by_date_desc(rows, "reportedDate")})


@admin_bp.route("/complaints", methods=["POST"])
def file_complaint():
    return jsonify(_service().file_complaint(_payload()).to_dict()), 201


@admin_bp.route("/complaints/<complaint_id>/resolve", methods=["POST"])
def resolve_complaint(complaint_id):
    notes = _payload().get("resolutionNotes", "")
    return jsonify(_service().resolve_complaint(complaint_id, notes).to_dict())

#-------------------------------------------------------
# Mess menu
@admin_bp.route("/menus")
def get_menu():
    week = request.args.get("week", type=int)
    year = request.args.get("year", type=int)
    if week is None or year is None:
        today = datetime.now()
        year, week = today.isocalendar()[0], reports.get_current_week(today)
    return jsonify(_service().get_menu(week, year).to_dict())


@admin_bp.route("/menus", methods=["POST"])
def create_menu():
    data = _payload()
    try:
        week, year = int(data["week"]), int(data["year"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError({"week": "week and year are required"}) from None
    return jsonify(_service().create_menu(week, year).to_dict()), 201


@admin_bp.route("/menus/<menu_id>/dishes", methods=["POST"])
def add_dish(menu_id):
    data = _payload()
    menu = _service().add_dish(menu_id, data.get("day"), data.get("meal"), data.get("dish") or {})
    return jsonify(menu.to_dict())


@admin_bp.route("/menus/<menu_id>/dishes/<day>/<meal>/<int:index>", methods=["DELETE"])
def remove_dish(menu_id, day, meal, index):
    return jsonify(_service().remove_dish(menu_id, day, meal, index).to_dict())

#-------------------------------------------------------
# Food requests
@admin_bp.route("/food_requests")
def food_requests():
    records = filter_records(_store().get_food_requests(), equals={"status": request.args.get("status")})
    return jsonify({"requests": sort_by_date_desc(records, "createdDate")})


@admin_bp.route("/food_requests", methods=["POST"])
def submit_food_request():
    return jsonify(_service().submit_food_request(_payload()).to_dict()), 201


@admin_bp.route("/food_requests/<request_id>/vote", methods=["POST"])
def vote_food_request(request_id):
    return jsonify(_service().vote_food_request(request_id, _payload().get("voterId")).to_dict())


@admin_bp.route("/food_requests/<request_id>/accept", methods=["POST"])
def accept_food_request(request_id):
    return jsonify(_service().accept_food_request(request_id).to_dict())


@admin_bp.route("/food_requests/<request_id>/reject", methods=["POST"])
def reject_food_request(request_id):
    return jsonify(_service().reject_food_request(request_id).to_dict())

#-------------------------------------------------------
# Announcements
@admin_bp.route("/announcements")
def manage_announcements():
    _service().activate_scheduled_announcements()
    records = filter_records(
        _store().get_announcements(),
        equals={"status": request.args.get("status"), "type": request.args.get("type")},
        date_field="createdAt",
        date_from=request.args.get("date_from"),
        date_to=request.args.get("date_to"),
        search=request.args.get("q"),
        search_fields=("title",),
    )
    return jsonify({"announcements": sort_by_date_desc(records, "createdAt")})


@admin_bp.route("/announcements", methods=["POST"])
def create_announcement():
    return jsonify(_service().publish_announcement(_payload()).to_dict()), 201


# Reading an announcement counts a view
@admin_bp.route("/announcements/<ann_id>")
def announcement_detail(ann_id):
    return jsonify(_service().view_announcement(ann_id).to_dict())


@admin_bp.route("/announcements/<ann_id>/activate", methods=["POST"])
def activate_announcement(ann_id):
    return jsonify(_service().activate_announcement(ann_id).to_dict())


@admin_bp.route("/announcements/<ann_id>/archive", methods=["POST"])
def archive_announcement(ann_id):
    return jsonify(_service().archive_announcement(ann_id).to_dict())


@admin_bp.route("/announcements/<ann_id>/delete", methods=["POST"])
def delete_announcement(ann_id):
    _service().delete_announcement(ann_id)
    return jsonify({"deleted": ann_id})

#-------------------------------------------------------
# Activity log
@admin_bp.route("/activities")
def activities():
    limit = request.args.get("limit", 10, type=int)
    return jsonify({"activities": [a.to_dict() for a in _service().recent_activities(limit)]})

#-------------------------------------------------------
# CSV export
def _student_rows(students, rooms):
    numbers = {r["id"]: r.get("number") for r in rooms}
    rows = []
    for s in students:
        details = s.get("paymentDetails") or {}
        rows.append({
            "Student ID": s.get("id"),
            "Full Name": s.get("fullName"),
            "Roll Number": s.get("rollNumber"),
            "University Roll Number": s.get("universityRollNumber"),
            "Class": s.get("class"),
            "Semester": s.get("semester"),
            "Session": s.get("session"),
            "Email": s.get("email"),
            "Mobile Number": s.get("mobileNumber"),
            "Emergency Contact": s.get("emergencyContact"),
            "Room Number": numbers.get(s.get("roomId"), "N/A"),
            "Bed Number": s.get("bedNumber"),
            "Payment Status": s.get("paymentStatus"),
            "Paid Amount": details.get("paidAmount", 0),
            "Paid Date": (details.get("paidDate") or "").split("T")[0],
            "Transaction ID": details.get("transactionId", ""),
        })
    return rows


EXPORTABLE = {
    "students": "STUDENTS",
    "rooms": "ROOMS",
    "maintenance": "MAINTENANCE",
    "complaints": "COMPLAINTS",
    "payments": "PAYMENTS",
    "food_requests": "FOOD_REQUESTS",
    "announcements": "ANNOUNCEMENTS",
}


def export_csv(collection):
    store = _store()
    if collection == "students":
        records = _student_rows(store.get_students(), store.get_rooms())
    else:
        records = store.collection(EXPORTABLE[collection])

    if not records:
        return jsonify({"error": "No data to export"}), 404

    csv_text = reports.export_to_csv(records)
    filename = f"{collection}_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# static rules so /rooms/export.csv is not taken for a room id
for _name in EXPORTABLE:
    admin_bp.add_url_rule(
        f"/{_name}/export.csv", f"export_{_name}_csv", export_csv, defaults={"collection": _name}
    )
