import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import ClassVar, Optional


def utc_now():
    return datetime.now(timezone.utc)


def now_iso(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value):
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_id(prefix=None):
    token = uuid.uuid4().hex[:12]
    return f"{prefix}_{token}" if prefix else token


_CAMEL_RE = re.compile(r"_([a-z0-9])")


def to_camel(name):
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


@dataclass(kw_only=True)
class Record:
    """Common shape of every stored record.

    Attributes are snake_case; the persisted layout uses camelCase keys.
    Optional fields left as None are omitted from the persisted dict.
    """

    # attribute name -> persisted key, for names that don't camel-case cleanly
    aliases: ClassVar[dict] = {}

    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @classmethod
    def key_for(cls, attr):
        return cls.aliases.get(attr, to_camel(attr))

    def to_dict(self):
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[self.key_for(f.name)] = value
        # timestamps trail the domain fields
        data["createdAt"] = data.pop("createdAt")
        data["updatedAt"] = data.pop("updatedAt")
        return data

    @classmethod
    def from_dict(cls, data):
        kwargs = {}
        for f in fields(cls):
            key = cls.key_for(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ValueError(f"invalid {cls.__name__} record: {e}") from e

    def touch(self):
        self.updated_at = now_iso()
