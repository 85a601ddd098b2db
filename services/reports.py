"""
Read-side views over whole collections: statistics, filtering, sorting and
exports. Everything works on the persisted dict form of the records and is
recomputed from the full collection on each call.
"""

import io
import json
import logging
import math
import random
import string
import time
from datetime import datetime, timezone

import pandas as pd

from exceptions import ValidationError
from models.base import parse_iso, utc_now
from models.room import CAPACITY_BEDS
from models.student import HOSTEL_FEE

logger = logging.getLogger(__name__)

ALL = "All"


def capacity_number(capacity):
    # anything that isn't Single/Double counts as Triple
    return CAPACITY_BEDS.get(capacity, 3)


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def calculate_occupancy_rate(rooms):
    """Percentage of beds in use; only rooms marked Occupied count as in use."""
    if not rooms:
        return 0
    total_occupied = sum(r.get("occupancy", 0) for r in rooms if r.get("status") == "Occupied")
    total_capacity = sum(capacity_number(r.get("capacity")) for r in rooms)
    if total_capacity <= 0:
        return 0
    return _round_half_up(total_occupied / total_capacity * 100)


def _is_blank(value):
    return value is None or value == "" or value == ALL


def _as_datetime(value):
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return parse_iso(value)


def _date_bound(name, value):
    try:
        return _as_datetime(value)
    except ValueError:
        raise ValidationError({name: "Invalid date"}) from None


def filter_records(records, equals=None, date_field=None, date_from=None, date_to=None, search=None, search_fields=()):
    """AND together independent predicates.

    `equals` maps field -> required value; "All", "" and None mean no filter.
    Date bounds are inclusive and compared on `date_field`. `search` is a
    case-insensitive substring matched against any of `search_fields`.
    """
    predicates = []
    for field, wanted in (equals or {}).items():
        if not _is_blank(wanted):
            predicates.append(lambda r, f=field, w=wanted: r.get(f) == w)

    if date_field and not _is_blank(date_from):
        start = _date_bound("date_from", date_from)
        predicates.append(lambda r: r.get(date_field) is not None and _as_datetime(r[date_field]) >= start)
    if date_field and not _is_blank(date_to):
        end = _date_bound("date_to", date_to)
        predicates.append(lambda r: r.get(date_field) is not None and _as_datetime(r[date_field]) <= end)

    if not _is_blank(search) and search_fields:
        needle = search.lower()
        predicates.append(
            lambda r: any(needle in str(r.get(f) or "").lower() for f in search_fields)
        )

    return [r for r in records if all(p(r) for p in predicates)]


def sort_by_date_desc(records, field):
    """Most recent first; records without the field go last. Ties keep input order."""
    dated = [r for r in records if r.get(field)]
    undated = [r for r in records if not r.get(field)]
    return sorted(dated, key=lambda r: _as_datetime(r[field]), reverse=True) + undated


def group_by(records, field):
    groups = {}
    for record in records:
        groups.setdefault(str(record.get(field)), []).append(record)
    return groups


def count_by(records, field, values):
    counts = {value: 0 for value in values}
    for record in records:
        if record.get(field) in counts:
            counts[record[field]] += 1
    return counts


def department_breakdown(students):
    return [{"department": dept, "students": len(items)} for dept, items in group_by(students, "class").items()]


def dashboard_stats(rooms, students, maintenance, complaints):
    room_counts = count_by(rooms, "status", ("Occupied", "Empty", "Maintenance"))
    payment_counts = count_by(students, "paymentStatus", ("Paid", "Unpaid", "Partial"))
    maintenance_counts = count_by(maintenance, "status", ("Pending", "In Progress", "Resolved"))
    complaint_counts = count_by(complaints, "status", ("Pending", "Resolved"))

    total_collected = sum((s.get("paymentDetails") or {}).get("paidAmount", 0) or 0 for s in students)
    total_expected = len(students) * HOSTEL_FEE

    return {
        "totalStudents": len(students),
        "allocatedStudents": sum(1 for s in students if s.get("roomId")),
        "paidStudents": payment_counts["Paid"],
        "unpaidStudents": payment_counts["Unpaid"],
        "partialStudents": payment_counts["Partial"],
        "totalRooms": len(rooms),
        "occupiedRooms": room_counts["Occupied"],
        "emptyRooms": room_counts["Empty"],
        "maintenanceRooms": room_counts["Maintenance"],
        "totalCollected": total_collected,
        "totalExpected": total_expected,
        "pendingAmount": total_expected - total_collected,
        "pendingMaintenance": maintenance_counts["Pending"],
        "inProgressMaintenance": maintenance_counts["In Progress"],
        "resolvedMaintenance": maintenance_counts["Resolved"],
        "pendingComplaints": complaint_counts["Pending"],
        "resolvedComplaints": complaint_counts["Resolved"],
        "unresolvedComplaints": complaint_counts["Pending"],
        "occupancyRate": calculate_occupancy_rate(rooms),
    }


# ----------------------------------------------------------------------
# CSV export
def _csv_cell(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        if "," in value or '"' in value:
            return '"' + value.replace('"', '""') + '"'
        return value
    if isinstance(value, (dict, list)):
        return _csv_cell(json.dumps(value))
    return str(value)


def export_to_csv(records):
    """Render flat records as CSV text.

    The header comes from the first record's keys. Only string values holding
    a comma or double quote are quoted (quotes doubled); lines end with "\\n".
    """
    if not records:
        logger.error("No data to export")
        return ""
    headers = list(records[0].keys())
    lines = [",".join(headers)]
    for row in records:
        lines.append(",".join(_csv_cell(row.get(h)) for h in headers))
    return "\n".join(lines)


def summary_rows(stats):
    labels = {
        "totalStudents": "Total Students",
        "allocatedStudents": "Allocated Students",
        "paidStudents": "Paid Students",
        "unpaidStudents": "Unpaid Students",
        "totalCollected": "Total Revenue",
        "totalExpected": "Expected Revenue",
        "pendingAmount": "Pending Amount",
        "totalRooms": "Total Rooms",
        "occupiedRooms": "Occupied Rooms",
        "emptyRooms": "Empty Rooms",
        "maintenanceRooms": "Maintenance Rooms",
        "pendingMaintenance": "Pending Maintenance",
        "resolvedMaintenance": "Resolved Maintenance",
        "pendingComplaints": "Pending Complaints",
        "resolvedComplaints": "Resolved Complaints",
    }
    money = {"totalCollected", "totalExpected", "pendingAmount"}
    return [
        {"Metric": label, "Value": format_currency(stats[key]) if key in money else stats[key]}
        for key, label in labels.items()
    ]


def export_summary_excel(stats, students, rooms):
    """Workbook with a summary sheet, the student list and the room list."""
    rooms_by_id = {r["id"]: r for r in rooms}
    df_summary = pd.DataFrame(summary_rows(stats))
    df_students = pd.DataFrame([{
        "Roll Number": s.get("rollNumber"),
        "Name": s.get("fullName"),
        "Class": s.get("class"),
        "Email": s.get("email"),
        "Mobile": s.get("mobileNumber"),
        "Room": rooms_by_id.get(s.get("roomId"), {}).get("number", "N/A"),
        "Bed": s.get("bedNumber"),
        "Payment Status": s.get("paymentStatus"),
        "Paid Amount": (s.get("paymentDetails") or {}).get("paidAmount", 0),
    } for s in students])
    df_rooms = pd.DataFrame([{
        "Room": r.get("number"),
        "Floor": r.get("floor"),
        "Block": r.get("block"),
        "Capacity": r.get("capacity"),
        "Occupancy": r.get("occupancy"),
        "Status": r.get("status"),
    } for r in rooms])

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df_summary.to_excel(writer, index=False, sheet_name="Summary")
        df_students.to_excel(writer, index=False, sheet_name="Students")
        df_rooms.to_excel(writer, index=False, sheet_name="Rooms")

        workbook = writer.book
        worksheet = writer.sheets["Summary"]
        header_format = workbook.add_format({"bold": True, "bg_color": "#CCE5FF", "border": 1})
        for col_num, value in enumerate(df_summary.columns.values):
            worksheet.write(0, col_num, value, header_format)

    output.seek(0)
    return output


# ----------------------------------------------------------------------
# Formatting helpers
def format_currency(amount):
    """Rupees with Indian digit grouping and no decimals, e.g. ₹1,20,000."""
    amount = _round_half_up(amount or 0)
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}₹{digits}"


def generate_receipt_no():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=3))
    return f"RCP{int(time.time() * 1000)}{suffix}"


def calculate_fine(due_date, rate_per_day=10, now=None):
    now = now or utc_now()
    overdue = max((now - _as_datetime(due_date)).total_seconds(), 0)
    return math.ceil(overdue / 86400) * rate_per_day


def get_current_week(today=None):
    return (today or utc_now()).isocalendar()[1]
