"""
Key-value persistence for the hostel collections.

Every entity type lives as one JSON array under a namespaced key in the
``storage_entries`` table. Reads return the whole collection, writes replace
it. Read-modify-write sequences run under a re-entrant lock and each write is
a compare-and-swap on the row version, so two writers can never silently
overwrite each other.
"""

import json
import logging
import threading
from contextlib import contextmanager

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from exceptions import ConcurrentUpdateError
from extensions import db
from models.base import now_iso, utc_now
from models.storage_entry import StorageEntry

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "hostelWarden"

COLLECTIONS = {
    "ROOMS": "rooms",
    "STUDENTS": "students",
    "MAINTENANCE": "maintenance",
    "COMPLAINTS": "complaints",
    "MENUS": "menus",
    "FOOD_REQUESTS": "foodRequests",
    "ANNOUNCEMENTS": "announcements",
    "ACTIVITIES": "activities",
    "PAYMENTS": "payments",
    "INITIALIZED": "initialized",
}


def storage_keys(namespace=DEFAULT_NAMESPACE):
    return {name: f"{namespace}_{suffix}" for name, suffix in COLLECTIONS.items()}


class LocalStorageService:
    def __init__(self, namespace=DEFAULT_NAMESPACE):
        self.namespace = namespace
        self.keys = storage_keys(namespace)
        self._lock = threading.RLock()
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Transactions
    @contextmanager
    def transaction(self):
        """Group collection writes into one commit.

        Nested calls join the outer transaction. Any exception rolls back every
        write made inside the outermost block.
        """
        with self._lock:
            depth = getattr(self._local, "depth", 0)
            self._local.depth = depth + 1
            try:
                yield self
                if depth == 0:
                    db.session.commit()
            except Exception:
                if depth == 0:
                    db.session.rollback()
                raise
            finally:
                self._local.depth = depth

    @property
    def in_transaction(self):
        return getattr(self._local, "depth", 0) > 0

    def _safely(self, key, action):
        # inside a caller's transaction errors must propagate so it rolls back as a unit
        if self.in_transaction:
            return action()
        try:
            with self.transaction():
                return action()
        except (SQLAlchemyError, ConcurrentUpdateError, TypeError, ValueError) as e:
            logger.error("Error saving data to storage (%s): %s", key, e)
            return False

    # ------------------------------------------------------------------
    # Raw rows
    def _fetch(self, key):
        return db.session.execute(
            select(StorageEntry.value, StorageEntry.version).where(StorageEntry.key == key)
        ).first()

    def _read(self, key):
        """Return (collection, version) for a read-modify-write; version is None if absent."""
        row = self._fetch(key)
        if row is None:
            return [], None
        try:
            data = json.loads(row.value)
        except ValueError as e:
            logger.error("Discarding unreadable collection %s: %s", key, e)
            data = []
        return data, row.version

    def _write(self, key, value, expected_version):
        payload = json.dumps(value, ensure_ascii=False)
        now = utc_now().replace(tzinfo=None)
        if expected_version is None:
            try:
                db.session.execute(
                    insert(StorageEntry).values(key=key, value=payload, version=1, updated_at=now)
                )
            except IntegrityError:
                raise ConcurrentUpdateError(key) from None
            return
        result = db.session.execute(
            update(StorageEntry)
            .where(StorageEntry.key == key, StorageEntry.version == expected_version)
            .values(value=payload, version=StorageEntry.version + 1, updated_at=now)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateError(key)

    def _mutate(self, key, change):
        """Run `change(collection)` and write the collection back.

        `change` edits the list in place; returning False skips the write.
        """
        with self.transaction():
            items, version = self._read(key)
            result = change(items)
            if result is not False:
                self._write(key, items, version)
            return result

    def mutate(self, name, change):
        """Read-modify-write the named collection (e.g. "ROOMS"); errors propagate."""
        return self._mutate(self.keys[name], change)

    # ------------------------------------------------------------------
    # Generic get/set with error handling
    def get_data(self, key, default=None):
        try:
            row = self._fetch(key)
        except SQLAlchemyError as e:
            logger.error("Error reading data from storage (%s): %s", key, e)
            if not self.in_transaction:
                db.session.rollback()
            return default
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError as e:
            logger.error("Error reading data from storage (%s): %s", key, e)
            return default

    def set_data(self, key, value):
        def overwrite():
            with self.transaction():
                row = self._fetch(key)
                self._write(key, value, row.version if row else None)
            return True

        return self._safely(key, overwrite)

    def collection(self, name):
        data = self.get_data(self.keys[name], [])
        return data if isinstance(data, list) else []

    def _add_record(self, name, record):
        key = self.keys[name]

        def change(items):
            items.append(record)
            return True

        return self._safely(key, lambda: self._mutate(key, change))

    def _update_record(self, name, record_id, updates):
        key = self.keys[name]

        def change(items):
            for index, item in enumerate(items):
                if item.get("id") == record_id:
                    items[index] = {**item, **updates, "updatedAt": now_iso()}
                    return True
            return False

        return self._safely(key, lambda: self._mutate(key, change))

    def find(self, name, record_id):
        return next((r for r in self.collection(name) if r.get("id") == record_id), None)

    # ------------------------------------------------------------------
    # Room operations
    def get_rooms(self):
        return self.collection("ROOMS")

    def set_rooms(self, rooms):
        return self.set_data(self.keys["ROOMS"], rooms)

    def get_room_by_id(self, room_id):
        return self.find("ROOMS", room_id)

    def add_room(self, room):
        return self._add_record("ROOMS", room)

    def update_room(self, room_id, updates):
        return self._update_record("ROOMS", room_id, updates)

    # Student operations
    def get_students(self):
        return self.collection("STUDENTS")

    def set_students(self, students):
        return self.set_data(self.keys["STUDENTS"], students)

    def get_student_by_id(self, student_id):
        return self.find("STUDENTS", student_id)

    def get_students_by_room(self, room_id):
        return [s for s in self.get_students() if s.get("roomId") == room_id]

    def add_student(self, student):
        return self._add_record("STUDENTS", student)

    def update_student(self, student_id, updates):
        return self._update_record("STUDENTS", student_id, updates)

    # Maintenance operations
    def get_maintenance_requests(self):
        return self.collection("MAINTENANCE")

    def set_maintenance_requests(self, requests):
        return self.set_data(self.keys["MAINTENANCE"], requests)

    def add_maintenance_request(self, request):
        return self._add_record("MAINTENANCE", request)

    def update_maintenance_request(self, request_id, updates):
        return self._update_record("MAINTENANCE", request_id, updates)

    # Complaint operations
    def get_complaints(self):
        return self.collection("COMPLAINTS")

    def set_complaints(self, complaints):
        return self.set_data(self.keys["COMPLAINTS"], complaints)

    def add_complaint(self, complaint):
        return self._add_record("COMPLAINTS", complaint)

    def update_complaint(self, complaint_id, updates):
        return self._update_record("COMPLAINTS", complaint_id, updates)

    # Menu operations
    def get_menus(self):
        return self.collection("MENUS")

    def set_menus(self, menus):
        return self.set_data(self.keys["MENUS"], menus)

    def get_menu_by_week(self, week, year):
        return next((m for m in self.get_menus() if m.get("week") == week and m.get("year") == year), None)

    def add_menu(self, menu):
        return self._add_record("MENUS", menu)

    def update_menu(self, menu_id, updates):
        return self._update_record("MENUS", menu_id, updates)

    # Food request operations
    def get_food_requests(self):
        return self.collection("FOOD_REQUESTS")

    def set_food_requests(self, requests):
        return self.set_data(self.keys["FOOD_REQUESTS"], requests)

    def add_food_request(self, request):
        return self._add_record("FOOD_REQUESTS", request)

    def update_food_request(self, request_id, updates):
        return self._update_record("FOOD_REQUESTS", request_id, updates)

    # Announcement operations
    def get_announcements(self):
        return self.collection("ANNOUNCEMENTS")

    def set_announcements(self, announcements):
        return self.set_data(self.keys["ANNOUNCEMENTS"], announcements)

    def add_announcement(self, announcement):
        return self._add_record("ANNOUNCEMENTS", announcement)

    def update_announcement(self, announcement_id, updates):
        return self._update_record("ANNOUNCEMENTS", announcement_id, updates)

    # Activity operations
    def get_activities(self):
        return self.collection("ACTIVITIES")

    def set_activities(self, activities):
        return self.set_data(self.keys["ACTIVITIES"], activities)

    def add_activity(self, activity):
        return self._add_record("ACTIVITIES", activity)

    # Payment operations
    def get_payments(self):
        return self.collection("PAYMENTS")

    def set_payments(self, payments):
        return self.set_data(self.keys["PAYMENTS"], payments)

    def add_payment(self, payment):
        return self._add_record("PAYMENTS", payment)

    # ------------------------------------------------------------------
    # Initialization flag
    def is_initialized(self):
        return self.get_data(self.keys["INITIALIZED"], False) is True

    def mark_initialized(self):
        return self.set_data(self.keys["INITIALIZED"], True)

    def clear_all(self):
        def remove():
            with self.transaction():
                db.session.execute(
                    delete(StorageEntry).where(StorageEntry.key.in_(list(self.keys.values())))
                )
            return True

        return self._safely(self.namespace, remove)
