import csv
import io

import pytest

from conftest import allocation_form, room_form


@pytest.fixture
def room(client):
    response = client.post("/admin/rooms", json=room_form("A-100", "Single"))
    assert response.status_code == 201
    return response.get_json()


@pytest.fixture
def student(client, room):
    response = client.post("/admin/students", json=allocation_form(room["id"]))
    assert response.status_code == 201
    return response.get_json()


def test_home(client):
    assert client.get("/").get_json() == {"app": "hostel-warden", "initialized": False}


def test_dashboard(client, student):
    body = client.get("/admin/dashboard").get_json()
    assert body["stats"]["totalStudents"] == 1
    assert body["stats"]["occupancyRate"] == 100
    assert body["recentActivities"][0]["type"] == "Student Allocated"
    assert body["departments"] == [{"department": "CSE", "students": 1}]


def test_validation_error_is_400(client, room):
    response = client.post("/admin/students", json=allocation_form(room["id"], email="nope"))
    assert response.status_code == 400
    assert "email" in response.get_json()["fields"]


def test_full_room_is_409(client, room, student):
    response = client.post("/admin/students", json=allocation_form(room["id"], rollNumber="CSE3002"))
    assert response.status_code == 409


def test_missing_record_is_404(client):
    assert client.get("/admin/rooms/room_404").status_code == 404
    assert client.post("/admin/maintenance/m_404/resolve", json={}).status_code == 404


def test_room_listing_filters(client, room):
    client.post("/admin/rooms", json=room_form("B-110", "Double", block="B"))

    body = client.get("/admin/rooms?block=B").get_json()
    assert [r["number"] for r in body["rooms"]] == ["B-110"]
    assert len(client.get("/admin/rooms?block=All&status=").get_json()["rooms"]) == 2


def test_room_detail_lists_students(client, room, student):
    body = client.get(f"/admin/rooms/{room['id']}").get_json()
    assert body["room"]["occupancy"] == 1
    assert [s["id"] for s in body["students"]] == [student["id"]]


def test_student_search(client, student):
    assert len(client.get("/admin/students?q=priya").get_json()["students"]) == 1
    assert client.get("/admin/students?q=zzz").get_json()["total"] == 0


def test_payment_flow(client, student):
    response = client.post(
        "/admin/payments", json={"studentId": student["id"], "transactionId": "TXN9", "paidAmount": 30000}
    )
    assert response.status_code == 201
    assert response.get_json()["paymentStatus"] == "Paid"

    detail = client.get(f"/admin/students/{student['id']}").get_json()
    assert [p["transactionId"] for p in detail["payments"]] == ["TXN9"]


def test_remove_student(client, room, student):
    body = client.post(f"/admin/students/{student['id']}/remove").get_json()
    assert "roomId" not in body
    assert client.get(f"/admin/rooms/{room['id']}").get_json()["room"]["status"] == "Empty"


def test_maintenance_flow(client, room):
    ticket = client.post("/admin/maintenance", json={"title": "Faulty light", "roomId": room["id"]}).get_json()

    client.post(f"/admin/maintenance/{ticket['id']}/assign", json={"technician": "Ravi"})
    client.post(f"/admin/maintenance/{ticket['id']}/progress", json={"progressPercentage": 60})
    resolved = client.post(f"/admin/maintenance/{ticket['id']}/resolve", json={}).get_json()
    assert resolved["progressPercentage"] == 100

    again = client.post(f"/admin/maintenance/{ticket['id']}/resolve", json={})
    assert again.status_code == 409
    listed = client.get("/admin/maintenance?status=Resolved").get_json()["requests"]
    assert [m["id"] for m in listed] == [ticket["id"]]


def test_food_request_votes(client):
    created = client.post("/admin/food_requests", json={"dishName": "Momos", "whyWantThis": "Tasty"}).get_json()
    url = f"/admin/food_requests/{created['id']}/vote"

    assert client.post(url, json={"voterId": "s1"}).get_json()["votes"] == 1
    assert client.post(url, json={"voterId": "s1"}).status_code == 409


def test_menu_routes(client):
    menu = client.post("/admin/menus", json={"week": 20, "year": 2026}).get_json()
    client.post(f"/admin/menus/{menu['id']}/dishes", json={"day": "Friday", "meal": "Dinner", "dish": {"name": "Biryani"}})

    body = client.get("/admin/menus?week=20&year=2026").get_json()
    assert body["Friday"]["Dinner"][0]["name"] == "Biryani"

    response = client.delete(f"/admin/menus/{menu['id']}/dishes/Friday/Dinner/0")
    assert response.get_json()["Friday"]["Dinner"] == []
    assert client.get("/admin/menus?week=21&year=2026").status_code == 404


def test_announcements(client):
    ann = client.post("/admin/announcements", json={"title": "Mess closed", "content": "Sunday lunch off"}).get_json()
    assert client.get(f"/admin/announcements/{ann['id']}").get_json()["views"] == 1
    assert len(client.get("/admin/announcements?q=mess").get_json()["announcements"]) == 1

    client.post(f"/admin/announcements/{ann['id']}/delete")
    assert client.get("/admin/announcements").get_json()["announcements"] == []


def test_complaints_show_student_name(client, student):
    client.post("/admin/complaints", json={"studentId": student["id"], "type": "Noise"})
    body = client.get("/admin/complaints?q=priya").get_json()
    assert body["complaints"][0]["studentName"] == "Priya Sharma"


def test_rooms_csv_export(client, room):
    response = client.get("/admin/rooms/export.csv")
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "attachment" in response.headers["Content-Disposition"]
    rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
    assert rows[0]["number"] == "A-100"


def test_students_csv_export(client, student):
    text = client.get("/admin/students/export.csv").get_data(as_text=True)
    rows = list(csv.DictReader(io.StringIO(text)))
    assert rows[0]["Full Name"] == "Priya Sharma"
    assert rows[0]["Room Number"] == "A-100"


def test_empty_export_is_404(client):
    assert client.get("/admin/complaints/export.csv").status_code == 404


def test_excel_report(client, student):
    response = client.get("/admin/reports/export_excel")
    assert response.status_code == 200
    assert response.data[:2] == b"PK"


@pytest.mark.parametrize("url", [
    "/admin/payments?date_from=notadate",
    "/admin/maintenance?date_to=yesterday",
    "/admin/announcements?date_from=31/12/2026",
])
def test_malformed_date_filter_is_400(client, url):
    response = client.get(url)
    assert response.status_code == 400
    assert set(response.get_json()["fields"]) & {"date_from", "date_to"}


def test_non_object_body_is_400(client):
    response = client.post("/admin/announcements", json=["title", "content"])
    assert response.status_code == 400
    assert set(response.get_json()["fields"]) == {"title", "content"}


def test_non_text_field_is_400(client):
    response = client.post("/admin/announcements", json={"title": 5, "content": "Body"})
    assert response.status_code == 400


def test_bad_semester_is_400(client, room):
    response = client.post("/admin/students", json=allocation_form(room["id"], semester="third"))
    assert response.status_code == 400
    assert "semester" in response.get_json()["fields"]


def test_activate_draft_announcement(client):
    ann = client.post(
        "/admin/announcements", json={"title": "Menu change", "content": "From Monday", "draft": True}
    ).get_json()
    assert ann["status"] == "Draft"

    response = client.post(f"/admin/announcements/{ann['id']}/activate")
    assert response.get_json()["status"] == "Active"
    assert client.post(f"/admin/announcements/{ann['id']}/activate").status_code == 409


def test_deposit_does_not_change_fee_status(client, student):
    client.post("/admin/payments", json={"studentId": student["id"], "transactionId": "TXN1", "paidAmount": 30000})
    body = client.post(
        "/admin/payments",
        json={"studentId": student["id"], "transactionId": "DEP1", "paidAmount": 5000, "type": "Security Deposit"},
    ).get_json()
    assert body["paymentStatus"] == "Paid"
    assert body["paymentDetails"]["paidAmount"] == 30000
