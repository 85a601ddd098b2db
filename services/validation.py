import re

from exceptions import ValidationError

ROLL_NO_RE = re.compile(r"^[A-Z]{2,3}\d{1,7}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_RE = re.compile(r"^\d{10}$")


def validate_roll_no(roll_no):
    # e.g. CSE1001 or CSE1001001
    return isinstance(roll_no, str) and bool(ROLL_NO_RE.match(roll_no))


def validate_email(email):
    return isinstance(email, str) and bool(EMAIL_RE.match(email))


def validate_mobile_number(phone):
    return isinstance(phone, str) and bool(MOBILE_RE.match(phone))


def _text(form, field):
    # non-string values count as missing
    value = form.get(field)
    return value.strip() if isinstance(value, str) else ""


def validate_allocation_form(form):
    """Check the student allocation form, raising ValidationError with every failing field."""
    errors = {}

    if not _text(form, "fullName"):
        errors["fullName"] = "Full name is required"
    if not _text(form, "rollNumber"):
        errors["rollNumber"] = "Roll number is required"
    if not validate_roll_no(form.get("universityRollNumber")):
        errors["universityRollNumber"] = "Invalid university roll number format"
    if not validate_mobile_number(form.get("mobileNumber")):
        errors["mobileNumber"] = "Mobile number must be 10 digits"
    if not validate_mobile_number(form.get("emergencyContact")):
        errors["emergencyContact"] = "Emergency contact must be 10 digits"
    if not validate_email(form.get("email")):
        errors["email"] = "Invalid email address"
    if not form.get("selectedRoomId"):
        errors["selectedRoomId"] = "Room selection is required"
    if not form.get("selectedBedNumber"):
        errors["selectedBedNumber"] = "Bed selection is required"
    else:
        try:
            int(form["selectedBedNumber"])
        except (TypeError, ValueError):
            errors["selectedBedNumber"] = "Bed number must be a number"
    if form.get("semester") not in (None, ""):
        try:
            if not 1 <= int(form["semester"]) <= 8:
                errors["semester"] = "Semester must be between 1 and 8"
        except (TypeError, ValueError):
            errors["semester"] = "Semester must be a number"

    if errors:
        raise ValidationError(errors)


def require_fields(form, *fields):
    errors = {f: f"{f} is required" for f in fields if not _text(form, f)}
    if errors:
        raise ValidationError(errors)


def require_choice(form, field, choices, default=None):
    """Return form[field] (or default) after checking it is one of `choices`."""
    value = form.get(field, default)
    if value not in choices:
        raise ValidationError({field: f"{field} must be one of: {', '.join(choices)}"})
    return value
