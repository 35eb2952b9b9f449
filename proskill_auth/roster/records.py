"""
Student roster record view.

The roster collection has many more fields; the core only ever reads these.
"""

from typing import Optional, Any
from dataclasses import dataclass

from ..sanitize import sanitize_name

# Roster (Mongo) field names
FIELD_FULL_NAME = "fullName"
FIELD_PHONE = "phone"
FIELD_PHONE_E164 = "phoneE164"
FIELD_PHONE_DIGITS = "phoneDigits"
FIELD_PHONE_RAW = "phoneRaw"
FIELD_UPDATED_AT = "updatedAt"

PROJECTION = {
    FIELD_FULL_NAME: 1,
    FIELD_PHONE: 1,
    FIELD_PHONE_E164: 1,
    FIELD_PHONE_DIGITS: 1,
    FIELD_PHONE_RAW: 1,
    FIELD_UPDATED_AT: 1,
}


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class StudentRecord:
    """Read-only view of one roster entry."""
    record_id: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    phone_e164: Optional[str] = None
    phone_digits: Optional[str] = None
    phone_raw: Optional[str] = None

    @classmethod
    def from_document(cls, doc: dict) -> "StudentRecord":
        return cls(
            record_id=_as_str(doc.get("_id")),
            full_name=_as_str(doc.get(FIELD_FULL_NAME)),
            phone=_as_str(doc.get(FIELD_PHONE)),
            phone_e164=_as_str(doc.get(FIELD_PHONE_E164)),
            phone_digits=_as_str(doc.get(FIELD_PHONE_DIGITS)),
            phone_raw=_as_str(doc.get(FIELD_PHONE_RAW))
        )

    @property
    def display_name(self) -> Optional[str]:
        """Sanitized full name, or None if nothing usable is left."""
        name = sanitize_name(self.full_name)
        return name or None
