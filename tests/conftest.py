import pytest

from app import create_app

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "SEED_ON_STARTUP": False,
}


@pytest.fixture
def app():
    return create_app(dict(TEST_CONFIG))


@pytest.fixture
def store(app):
    with app.app_context():
        yield app.extensions["hostel_store"]


@pytest.fixture
def service(app, store):
    return app.extensions["hostel_service"]


@pytest.fixture
def client(app):
    return app.test_client()


def room_form(number="A-100", capacity="Double", floor="Ground", block="A"):
    return {"number": number, "floor": floor, "block": block, "capacity": capacity}


def allocation_form(room_id, bed=1, **overrides):
    form = {
        "fullName": "Priya Sharma",
        "rollNumber": "CSE3001",
        "universityRollNumber": "PEC2024001",
        "class": "CSE",
        "semester": 3,
        "session": "2024-25",
        "email": "priya.sharma@college.edu",
        "mobileNumber": "9876543210",
        "emergencyContact": "9123456780",
        "selectedRoomId": room_id,
        "selectedBedNumber": bed,
        "paymentStatus": "Unpaid",
    }
    form.update(overrides)
    return form
