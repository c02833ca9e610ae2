"""
app/models/account.py

Purpose: Account snapshot model

- Immutable record keyed by phone number
- Verification code, expiry and attempt tracking
- Conversion to and from Mongo documents
"""

from dataclasses import dataclass, replace, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from bson import ObjectId

from utils.time_utils import utcnow, format_timestamp


@dataclass(frozen=True)
class Account:
    """
    One account per phone number.

    Instances are never mutated; state-machine operations return a new
    snapshot via `dataclasses.replace`, and persisting it is the caller's job.
    """
    phone_number: str
    id: Optional[str] = None
    password_hash: Optional[str] = None
    is_phone_verified: bool = False
    is_active: bool = True
    verification_code: Optional[str] = None
    verification_code_expiry: Optional[datetime] = None
    verification_attempts: int = 0
    last_verification_attempt: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @classmethod
    def new(cls, phone_number: str, password_hash: Optional[str] = None, now: Optional[datetime] = None) -> "Account":
        """Builds an unsaved account for a number seen for the first time."""
        now = now or utcnow()
        return cls(
            phone_number=phone_number,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

    @property
    def has_outstanding_code(self) -> bool:
        return self.verification_code is not None and self.verification_code_expiry is not None

    def update(self, **changes) -> "Account":
        return replace(self, **changes)

    def to_document(self) -> Dict[str, Any]:
        """
        Mongo document without `_id`. None-valued fields are kept so the
        store can `$unset` them.
        """
        doc = asdict(self)
        doc.pop("id")
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Account":
        return cls(
            id=str(doc["_id"]) if doc.get("_id") is not None else None,
            phone_number=doc["phone_number"],
            password_hash=doc.get("password_hash"),
            is_phone_verified=doc.get("is_phone_verified", False),
            is_active=doc.get("is_active", True),
            verification_code=doc.get("verification_code"),
            verification_code_expiry=doc.get("verification_code_expiry"),
            verification_attempts=doc.get("verification_attempts", 0),
            last_verification_attempt=doc.get("last_verification_attempt"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            last_login_at=doc.get("last_login_at"),
        )

    def public_profile(self) -> Dict[str, Any]:
        """Fields safe to return to the client (no hash, no code)."""
        return {
            "id": self.id,
            "phone_number": self.phone_number,
            "is_phone_verified": self.is_phone_verified,
            "is_active": self.is_active,
            "created_at": format_timestamp(self.created_at),
            "last_login_at": format_timestamp(self.last_login_at),
        }


def object_id_or_none(value: str) -> Optional[ObjectId]:
    """Parses a string id, returning None for anything that isn't an ObjectId."""
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
