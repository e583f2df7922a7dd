"""
Donor suggestions for a blood request.

Ranks every matching donor (eligible first), scores the top ten and asks the
configured text-generation backend for a short written analysis.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from .ai_backend import TextGenerator
from .candidates import fetch_donor_pool, gather_candidates
from .config import Settings
from .firebase_tools import DonorStore
from .matching import (
    SUGGESTION_LIMIT,
    RankedCandidate,
    check_request,
    ranking_threshold,
    suggest,
)
from .models import BloodRequest

logger = logging.getLogger(__name__)


@dataclass
class SuggestionResult:
    suggestions: List[RankedCandidate] = field(default_factory=list)
    total_donors: int = 0
    eligible_donors: int = 0
    ineligible_donors: int = 0
    ai_analysis: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    found: bool = True

    def to_dict(self) -> Dict:
        if self.error:
            return {
                "error": self.error,
                "suggestions": [],
                "totalDonors": 0,
                "eligibleDonors": 0,
                "ineligibleDonors": 0,
            }

        payload = {
            "suggestions": [s.to_dict() for s in self.suggestions],
            "totalDonors": self.total_donors,
            "eligibleDonors": self.eligible_donors,
            "ineligibleDonors": self.ineligible_donors,
        }
        if self.message:
            payload["message"] = self.message
        if self.ai_analysis is not None:
            payload["aiAnalysis"] = self.ai_analysis
        return payload


def build_prompt(request: BloodRequest, ranked: List[RankedCandidate], threshold_days: int) -> str:
    donor_data = [
        {k: v for k, v in entry.to_dict().items() if k != "donor"}
        for entry in ranked
    ]
    return f"""You are an AI assistant helping to match blood donors for emergency requests.

Blood Request Details:
- Patient: {request.patient_name}
- Blood Group: {request.blood_group}
- Units Needed: {request.units_needed}
- Urgency: {request.urgency_level}
- Patient Location: Contact {request.patient_contact}

Available Donors ({len(donor_data)} shown, ranked by heuristic):
{json.dumps(donor_data, indent=2)}

Analyze these donors and rank the top 5 best matches based on:
1. Eligibility (must have waited at least {threshold_days} days since last donation)
2. Donation history (higher donation count = more reliable)
3. Availability (longer time since last donation within the eligible range is better)
4. Location proximity (if available)

Provide your analysis in a structured format with:
- Donor ID
- Reasoning for the ranking (2-3 sentences)
- A match score (0-100)

Focus on donors who are eligible and have a good track record."""


class DonorSuggester:
    """
    Suggestion path for one blood request.

    Args:
        store: Donor data access
        generator: Text-generation backend for the written analysis
        settings: Service settings (concurrency cap)
    """

    def __init__(self, store: DonorStore, generator: TextGenerator, settings: Settings):
        self.store = store
        self.generator = generator
        self.settings = settings

    async def suggest(self, request_id: str, today: Optional[date] = None) -> SuggestionResult:
        logger.info(f"Generating donor suggestions for request: {request_id}")

        request = await asyncio.to_thread(self.store.fetch_request, request_id)
        if request is None:
            return SuggestionResult(error="Blood request not found", found=False)

        reason = check_request(request)
        if reason:
            logger.error(f"Cannot suggest donors for request {request_id}: {reason}")
            return SuggestionResult(error=reason)

        pool = await fetch_donor_pool(self.store, request.hospital_id)
        candidates = await gather_candidates(
            self.store, request.blood_group, pool, self.settings.max_concurrency
        )

        if not candidates:
            logger.info(f"No donors with blood group {request.blood_group} for request {request_id}")
            return SuggestionResult(message="No eligible donors found")

        threshold = ranking_threshold(request.urgency_level)
        outcome = suggest(candidates, threshold, today, SUGGESTION_LIMIT)
        logger.info(
            f"Ranked {outcome.total_donors} donors: {outcome.eligible_donors} eligible, "
            f"{outcome.ineligible_donors} ineligible (threshold {threshold} days)"
        )

        prompt = build_prompt(request, outcome.suggestions, threshold)
        analysis = await asyncio.to_thread(self.generator.generate, prompt)

        return SuggestionResult(
            suggestions=outcome.suggestions,
            total_donors=outcome.total_donors,
            eligible_donors=outcome.eligible_donors,
            ineligible_donors=outcome.ineligible_donors,
            ai_analysis=analysis,
        )
