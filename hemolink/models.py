"""
Data model for the donor matching service.

Records mirror the Firestore documents they are read from:
- donors/{id}            -> DonorRecord (hospital-managed roster entry)
- profiles/{uid}         -> DonorProfile (self-registered donor account)
- donations/{id}         -> DonationEvent
- blood_requests/{id}    -> BloodRequest
- profiles/{hospital_id} -> HospitalProfile
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a stored date value into a date.

    Accepts date/datetime objects (Firestore timestamps are datetimes) and
    ISO strings such as "2024-05-01" or "2024-05-01T10:00:00Z".
    Unparseable values are logged and treated as missing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.warning(f"Ignoring unparseable date value: {text!r}")
        return None


@dataclass
class DonorRecord:
    id: str
    full_name: str
    blood_group: str
    phone: str = ""
    location: str = ""
    donation_count: int = 0
    last_donation_date: Optional[date] = None
    hospital_id: Optional[str] = None
    linked_user_id: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict) -> "DonorRecord":
        return cls(
            id=doc_id,
            full_name=data.get("full_name") or "",
            blood_group=data.get("blood_group") or "",
            phone=data.get("phone") or "",
            location=data.get("location") or "",
            donation_count=int(data.get("donation_count") or 0),
            last_donation_date=parse_date(data.get("last_donation_date")),
            hospital_id=data.get("hospital_id"),
            linked_user_id=data.get("user_id"),
            email=data.get("email"),
        )


@dataclass
class DonorProfile:
    user_id: str
    full_name: str
    blood_group: str
    phone: str = ""
    location: str = ""

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict) -> "DonorProfile":
        return cls(
            user_id=doc_id,
            full_name=data.get("full_name") or "",
            blood_group=data.get("blood_group") or "",
            phone=data.get("phone") or "",
            location=data.get("location") or "",
        )


@dataclass
class DonationEvent:
    hospital_id: str
    blood_group: str
    donation_date: date
    units_donated: int = 1
    donor_record_id: Optional[str] = None
    donor_user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "DonationEvent":
        return cls(
            hospital_id=data.get("hospital_id") or "",
            blood_group=data.get("blood_group") or "",
            donation_date=parse_date(data.get("donation_date")),
            units_donated=int(data.get("units_donated") or 1),
            donor_record_id=data.get("donor_id"),
            donor_user_id=data.get("donor_user_id"),
        )


@dataclass(frozen=True)
class DonationHistory:
    """Donation count and most recent donation date for one donor."""

    count: int = 0
    last_date: Optional[date] = None

    @classmethod
    def from_events(cls, events) -> "DonationHistory":
        dates = [e.donation_date for e in events if e.donation_date is not None]
        return cls(count=len(events), last_date=max(dates) if dates else None)


@dataclass
class BloodRequest:
    id: str
    hospital_id: Optional[str]
    blood_group: Optional[str]
    units_needed: int = 1
    urgency_level: str = "normal"
    patient_name: str = ""
    patient_contact: str = ""
    status: str = "pending"

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict) -> "BloodRequest":
        return cls(
            id=doc_id,
            hospital_id=data.get("hospital_id"),
            blood_group=data.get("blood_group"),
            units_needed=int(data.get("units_needed") or 1),
            urgency_level=(data.get("urgency_level") or "normal").lower(),
            patient_name=data.get("patient_name") or "",
            patient_contact=data.get("patient_contact") or "",
            status=data.get("status") or "pending",
        )


@dataclass
class HospitalProfile:
    name: str = "Hospital"
    address: str = ""
    phone: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "HospitalProfile":
        return cls(
            name=data.get("hospital_name") or data.get("full_name") or "Hospital",
            address=data.get("hospital_address") or "",
            phone=data.get("phone") or "",
        )


@dataclass
class CandidateDonor:
    """
    Unified, per-evaluation view of a donor.

    Built from either a DonorRecord (is_hospital_managed=True) or a
    DonorProfile plus its donation history. `source` keeps the underlying
    record for display.
    """

    identity_key: str
    id: str
    full_name: str
    phone: str
    location: str
    blood_group: str
    donation_count: int
    last_donation_date: Optional[date]
    is_hospital_managed: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    source: Any = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "location": self.location,
            "blood_group": self.blood_group,
            "donation_count": self.donation_count,
            "last_donation_date": (
                self.last_donation_date.isoformat() if self.last_donation_date else None
            ),
            "user_id": self.user_id,
            "is_hospital_managed": self.is_hospital_managed,
        }
