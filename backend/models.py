# Data models - canonical eligibility, view models and session types
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

# Raw records arrive from the record store as loosely-typed field maps
RawRecord = Mapping[str, Any]

PLACEHOLDER = "—"


class CanonicalEligibility(str, Enum):
    """Exactly one of these is assigned per pre-screen record."""
    SAFE = "SAFE"
    REVIEW = "REVIEW"
    UNSUITABLE = "UNSUITABLE"
    UNKNOWN = "UNKNOWN"


class RawEligibility(str, Enum):
    """Coarse reading of the free-text eligibility column."""
    PASS = "pass"
    REVIEW = "review"
    FAIL = "fail"
    UNKNOWN = "unknown"


class TriState(str, Enum):
    """Clinical answer that may be yes, no, or 'not sure'."""
    YES = "yes"
    NO = "no"
    UNSURE = "unsure"


class BookingStatus(str, Enum):
    PENDING = "Pending"
    BOOKED = "Booked"


@dataclass(frozen=True)
class ReviewSignal:
    """One supporting detail shown next to a REVIEW badge."""
    label: str
    value: str


@dataclass
class NormalizedRecord:
    """UI-ready projection of one raw pre-screen record. Never persisted."""
    id: str
    displayName: str
    email: str
    phone: str
    treatment: str
    eligibility: CanonicalEligibility
    eligibilityLabel: str
    bookingStatus: BookingStatus
    timestamp: Optional[datetime] = None
    raw: RawRecord = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.displayName,
            "email": self.email,
            "phone": self.phone,
            "treatment": self.treatment,
            "eligibility": self.eligibility.value,
            "eligibilityLabel": self.eligibilityLabel,
            "bookingStatus": self.bookingStatus.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class AuthUser:
    id: str
    email: str


@dataclass
class ClinicProfile:
    """Clinic the signed-in dashboard user belongs to (record-store id)."""
    id: str
    name: str
    active: bool = True
    enabled_features: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "active": self.active,
            "enabled_features": list(self.enabled_features),
        }
