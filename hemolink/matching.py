"""
Donor Eligibility & Matching Engine.

Pure functions over a snapshot of donor data for one blood request:
1. Keep donors whose blood group matches the request
2. Unify hospital roster entries and self-registered profiles into candidates
3. Drop duplicate identities (hospital-managed entries win)
4. Test eligibility against a days-since-last-donation threshold
5. Partition into eligible / ineligible and rank each side

No I/O happens here. Callers fetch the inputs and act on the outputs.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import BloodRequest, CandidateDonor, DonationHistory, DonorProfile, DonorRecord

logger = logging.getLogger(__name__)

# Alert dispatch uses a fixed minimum gap regardless of urgency.
ALERT_ELIGIBILITY_DAYS = 56

# Suggestion ranking scales with urgency.
NORMAL_RANKING_DAYS = 90
URGENT_RANKING_DAYS = 60
URGENT_LEVELS = frozenset({"urgent", "critical"})

SUGGESTION_LIMIT = 10

# Reported in payloads for donors with no recorded donation.
NEVER_DONATED_DAYS = 999

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_blood_group(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def normalize_phone(value: Optional[str]) -> str:
    return _PHONE_SEPARATORS.sub("", value or "").lower()


def ranking_threshold(urgency_level: Optional[str]) -> int:
    """Eligibility threshold for the suggestion path."""
    if (urgency_level or "").strip().lower() in URGENT_LEVELS:
        return URGENT_RANKING_DAYS
    return NORMAL_RANKING_DAYS


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def days_since_last_donation(last_donation_date: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole days elapsed since the last donation, or None if never donated."""
    if last_donation_date is None:
        return None
    today = today or today_utc()
    return (today - last_donation_date).days


def is_eligible(last_donation_date: Optional[date], threshold_days: int, today: Optional[date] = None) -> bool:
    days = days_since_last_donation(last_donation_date, today)
    return days is None or days >= threshold_days


def check_request(request: Optional[BloodRequest]) -> Optional[str]:
    """
    Validate that a request can be matched.

    Returns:
        None when the request is usable, otherwise the reason it is not.
    """
    if request is None:
        return "Blood request not found"
    if not request.hospital_id:
        return "Blood request is missing hospital information"
    if not normalize_blood_group(request.blood_group):
        return "Blood request is missing a blood group"
    return None


# ─────────────────────────────────────────────
# IDENTITY
# ─────────────────────────────────────────────

def _identity_keys(user_id: Optional[str], phone: Optional[str], fallback_id: str) -> List[str]:
    """
    All keys a donor is known by. The first entry is its identity key:
    user id if linked, else normalized phone, else its own record id.
    """
    keys = []
    if user_id:
        keys.append(f"user:{user_id}")
    phone_key = normalize_phone(phone)
    if phone_key:
        keys.append(f"phone:{phone_key}")
    if not keys:
        keys.append(f"record:{fallback_id}")
    return keys


def record_identity_keys(record: DonorRecord) -> List[str]:
    return _identity_keys(record.linked_user_id, record.phone, record.id)


def profile_identity_keys(profile: DonorProfile) -> List[str]:
    return _identity_keys(profile.user_id, profile.phone, profile.user_id)


class IdentitySet:
    """First-seen-wins registry of donor identities."""

    def __init__(self):
        self._seen = set()

    def claim(self, keys: List[str]) -> bool:
        """Register keys. Returns False if any of them was already claimed."""
        if any(key in self._seen for key in keys):
            return False
        self._seen.update(keys)
        return True


# ─────────────────────────────────────────────
# CANDIDATE UNIFICATION
# ─────────────────────────────────────────────

@dataclass
class CandidateSelection:
    """Blood-group matched, deduplicated donors before history resolution."""

    hospital_candidates: List[CandidateDonor] = field(default_factory=list)
    pending_profiles: List[DonorProfile] = field(default_factory=list)

    @property
    def pending_user_ids(self) -> List[str]:
        return [p.user_id for p in self.pending_profiles]


def candidate_from_record(record: DonorRecord) -> CandidateDonor:
    return CandidateDonor(
        identity_key=record_identity_keys(record)[0],
        id=record.id,
        full_name=record.full_name,
        phone=record.phone,
        location=record.location,
        blood_group=record.blood_group,
        donation_count=record.donation_count,
        last_donation_date=record.last_donation_date,
        is_hospital_managed=True,
        user_id=record.linked_user_id,
        email=record.email,
        source=record,
    )


def candidate_from_profile(profile: DonorProfile, history: DonationHistory) -> CandidateDonor:
    return CandidateDonor(
        identity_key=profile_identity_keys(profile)[0],
        id=profile.user_id,
        full_name=profile.full_name,
        phone=profile.phone,
        location=profile.location,
        blood_group=profile.blood_group,
        donation_count=history.count,
        last_donation_date=history.last_date,
        is_hospital_managed=False,
        user_id=profile.user_id,
        source=profile,
    )


def select_candidates(
    blood_group: Optional[str],
    hospital_donors: Iterable[DonorRecord],
    profiles: Iterable[DonorProfile],
) -> CandidateSelection:
    """
    Filter both donor populations by blood group and drop duplicate
    identities. Hospital roster entries are claimed first, so a linked
    self-registered profile never displaces them.
    """
    wanted = normalize_blood_group(blood_group)
    seen = IdentitySet()
    selection = CandidateSelection()

    for record in hospital_donors:
        if normalize_blood_group(record.blood_group) != wanted:
            continue
        if seen.claim(record_identity_keys(record)):
            selection.hospital_candidates.append(candidate_from_record(record))

    for profile in profiles:
        if normalize_blood_group(profile.blood_group) != wanted:
            continue
        if seen.claim(profile_identity_keys(profile)):
            selection.pending_profiles.append(profile)

    logger.info(
        f"Selected {len(selection.hospital_candidates)} hospital donors and "
        f"{len(selection.pending_profiles)} registered donors for blood group {wanted}"
    )
    return selection


def build_candidates(
    selection: CandidateSelection,
    histories: Mapping[str, DonationHistory],
) -> List[CandidateDonor]:
    """Attach donation histories to pending profiles. Missing entries count as no history."""
    candidates = list(selection.hospital_candidates)
    for profile in selection.pending_profiles:
        history = histories.get(profile.user_id) or DonationHistory()
        candidates.append(candidate_from_profile(profile, history))
    return candidates


# ─────────────────────────────────────────────
# RANKING
# ─────────────────────────────────────────────

@dataclass
class RankedCandidate:
    candidate: CandidateDonor
    days_since_last_donation: Optional[int]
    is_eligible: bool
    score: Optional[float] = None

    @property
    def reported_days(self) -> int:
        if self.days_since_last_donation is None:
            return NEVER_DONATED_DAYS
        return self.days_since_last_donation

    def to_dict(self) -> Dict:
        donor = self.candidate
        return {
            "id": donor.id,
            "name": donor.full_name,
            "phone": donor.phone,
            "location": donor.location or "",
            "donationCount": donor.donation_count,
            "daysSinceLastDonation": self.reported_days,
            "isEligible": self.is_eligible,
            "isHospitalManaged": donor.is_hospital_managed,
            "userId": donor.user_id,
            "score": self.score,
            "donor": donor.to_dict(),
        }


def rank_key(entry: RankedCandidate) -> Tuple[int, float]:
    """
    Sort key: more lifetime donations first, then longer wait first.
    Never-donated counts as an infinite wait.
    """
    days = entry.days_since_last_donation
    waited = math.inf if days is None else days
    return (-entry.candidate.donation_count, -waited)


def rank_candidates(entries: Iterable[RankedCandidate]) -> List[RankedCandidate]:
    return sorted(entries, key=rank_key)


@dataclass
class Partition:
    eligible: List[RankedCandidate]
    ineligible: List[RankedCandidate]

    @property
    def total(self) -> int:
        return len(self.eligible) + len(self.ineligible)


def partition_candidates(
    candidates: Iterable[CandidateDonor],
    threshold_days: int,
    today: Optional[date] = None,
) -> Partition:
    """Split candidates by eligibility and rank each side."""
    today = today or today_utc()
    eligible, ineligible = [], []
    for candidate in candidates:
        days = days_since_last_donation(candidate.last_donation_date, today)
        entry = RankedCandidate(
            candidate=candidate,
            days_since_last_donation=days,
            is_eligible=is_eligible(candidate.last_donation_date, threshold_days, today),
        )
        (eligible if entry.is_eligible else ineligible).append(entry)
    return Partition(eligible=rank_candidates(eligible), ineligible=rank_candidates(ineligible))


def match_score(entry: RankedCandidate) -> float:
    """Heuristic 0-100 score: eligibility, track record, time waited."""
    score = 50.0 if entry.is_eligible else 0.0
    score += min(entry.candidate.donation_count, 10) * 3
    days = entry.days_since_last_donation
    if days is None:
        score += 20
    else:
        score += min(max(days, 0), 365) / 365 * 20
    return round(score, 2)


# ─────────────────────────────────────────────
# OUTPUT SHAPING
# ─────────────────────────────────────────────

def eligible_for_alert(
    candidates: Iterable[CandidateDonor],
    threshold_days: int = ALERT_ELIGIBILITY_DAYS,
    today: Optional[date] = None,
) -> List[CandidateDonor]:
    """Eligible candidates, ranked, for notification fan-out."""
    partition = partition_candidates(candidates, threshold_days, today)
    return [entry.candidate for entry in partition.eligible]


@dataclass
class SuggestionOutcome:
    suggestions: List[RankedCandidate]
    total_donors: int
    eligible_donors: int
    ineligible_donors: int


def suggest(
    candidates: Iterable[CandidateDonor],
    threshold_days: int,
    today: Optional[date] = None,
    limit: int = SUGGESTION_LIMIT,
) -> SuggestionOutcome:
    """Eligible then ineligible candidates, truncated to `limit`, each scored."""
    partition = partition_candidates(candidates, threshold_days, today)
    top = (partition.eligible + partition.ineligible)[:limit]
    for entry in top:
        entry.score = match_score(entry)
    return SuggestionOutcome(
        suggestions=top,
        total_donors=partition.total,
        eligible_donors=len(partition.eligible),
        ineligible_donors=len(partition.ineligible),
    )
