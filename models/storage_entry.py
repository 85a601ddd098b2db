from extensions import db
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class StorageEntry(db.Model):
    __tablename__ = "storage_entries"

    # namespaced key, e.g. "hostelWarden_rooms"
    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    # bumped on every write; used for compare-and-swap
    version = db.Column(db.Integer, nullable=False, default=1)

    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)
