from dataclasses import dataclass
from typing import Optional

from .base import Record

STUDENT_CLASSES = ("CSE", "ECE", "ME", "CE")
PAYMENT_STATUSES = ("Paid", "Unpaid", "Partial")

HOSTEL_FEE = 30000


@dataclass(kw_only=True)
class Student(Record):
    aliases = {"class_name": "class", "dob": "dob"}

    full_name: str
    roll_number: str
    university_roll_number: str = ""
    class_name: str = "CSE"
    semester: int = 1
    session: str = ""
    email: str = ""
    mobile_number: str = ""
    emergency_contact: str = ""
    fathers_name: Optional[str] = None
    dob: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    previous_hostel: Optional[str] = None
    medical_conditions: Optional[str] = None
    allergy_information: Optional[str] = None
    room_id: Optional[str] = None
    bed_number: Optional[int] = None
    payment_status: str = "Unpaid"
    # {"transactionId": ..., "paidAmount": 30000, "paidDate": ...}
    payment_details: Optional[dict] = None
    documents: Optional[dict] = None
