"""
Emergency alert dispatch.

Finds every donor eligible for a blood request and notifies them by SMS
and email, then marks the request as alerted.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from .candidates import fetch_donor_pool, gather_candidates
from .config import Settings
from .firebase_tools import DonorStore
from .matching import ALERT_ELIGIBILITY_DAYS, check_request, eligible_for_alert
from .models import BloodRequest, CandidateDonor, HospitalProfile
from .notifier import DeliveryResult, Notifier, compose_sms

logger = logging.getLogger(__name__)


@dataclass
class AlertResult:
    success: bool
    notified: int = 0
    total: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
    sms_success_count: int = 0
    email_success_count: int = 0
    failed_count: int = 0
    twilio_configured: bool = False
    matching_blood_group: Optional[str] = None
    eligible_count: Optional[int] = None

    @classmethod
    def failure(cls, error: str) -> "AlertResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict:
        if not self.success:
            return {"success": False, "error": self.error, "notified": 0}

        payload = {
            "success": True,
            "message": self.message,
            "notified": self.notified,
            "total": self.total,
        }
        if self.eligible_count == 0:
            payload.update({
                "matchingBloodGroup": self.matching_blood_group,
                "eligibleCount": 0,
            })
        else:
            payload.update({
                "smsSuccessCount": self.sms_success_count,
                "emailSuccessCount": self.email_success_count,
                "twilioConfigured": self.twilio_configured,
                "failedCount": self.failed_count,
            })
        return payload


class AlertDispatcher:
    """
    Alert path for one blood request.

    Args:
        store: Donor data access
        notifier: SMS/email delivery
        settings: Service settings (concurrency cap)
        threshold_days: Minimum days since last donation to be alerted
    """

    def __init__(
        self,
        store: DonorStore,
        notifier: Notifier,
        settings: Settings,
        threshold_days: int = ALERT_ELIGIBILITY_DAYS,
    ):
        self.store = store
        self.notifier = notifier
        self.settings = settings
        self.threshold_days = threshold_days

    async def dispatch(self, request_id: str, today: Optional[date] = None) -> AlertResult:
        logger.info(f"Processing alert for request: {request_id}")

        if not request_id:
            return AlertResult.failure("Request ID is required")

        request = await asyncio.to_thread(self.store.fetch_request, request_id)
        reason = check_request(request)
        if reason:
            logger.error(f"Cannot alert for request {request_id}: {reason}")
            return AlertResult.failure(reason)

        eligible, roster_size, error = await self.find_eligible(request, today)
        if error:
            return AlertResult.failure(error)

        if not eligible:
            logger.info(f"No eligible donors for request {request_id} ({self.threshold_days}+ days since last donation)")
            await asyncio.to_thread(self.store.mark_alert_sent, request_id)
            return AlertResult(
                success=True,
                message=(
                    f"No eligible donors found. Donors with blood group {request.blood_group} "
                    f"must have waited {self.threshold_days}+ days since their last donation."
                ),
                total=roster_size,
                matching_blood_group=request.blood_group,
                eligible_count=0,
                twilio_configured=self.notifier.twilio_configured,
            )

        hospital = await asyncio.to_thread(self.store.fetch_hospital_profile, request.hospital_id)
        results = await self.notify_all(eligible, request, hospital)

        await asyncio.to_thread(self.store.mark_alert_sent, request_id)
        return self.summarize(results, len(eligible))

    async def find_eligible(self, request: BloodRequest, today: Optional[date] = None):
        """
        Returns:
            (eligible candidates, hospital roster size, error or None)
        """
        pool = await fetch_donor_pool(self.store, request.hospital_id)
        if pool.roster_error:
            return [], 0, pool.roster_error

        candidates = await gather_candidates(
            self.store, request.blood_group, pool, self.settings.max_concurrency
        )
        eligible = eligible_for_alert(candidates, self.threshold_days, today)
        logger.info(
            f"Found {len(eligible)} eligible of {len(candidates)} matching donors "
            f"for hospital {request.hospital_id}, blood group {request.blood_group}"
        )
        return eligible, len(pool.roster), None

    async def notify_all(
        self,
        donors: List[CandidateDonor],
        request: BloodRequest,
        hospital: HospitalProfile,
    ) -> List:
        """Notify every donor; one donor's failure never stops the others."""
        sms_body = compose_sms(request, hospital)
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrency))

        async def notify_one(donor: CandidateDonor) -> DeliveryResult:
            async with semaphore:
                return await asyncio.to_thread(self.notifier.notify, donor, request, hospital, sms_body)

        return await asyncio.gather(*(notify_one(d) for d in donors), return_exceptions=True)

    def summarize(self, results: List, total: int) -> AlertResult:
        delivered = [r for r in results if isinstance(r, DeliveryResult)]
        for r in results:
            if isinstance(r, Exception):
                logger.error(f"Notification raised: {str(r)}")

        notified = sum(1 for r in delivered if r.success)
        sms_count = sum(1 for r in delivered if r.sms_success)
        email_count = sum(1 for r in delivered if r.email_success)
        twilio_configured = self.notifier.twilio_configured

        if twilio_configured:
            message = f"Alerts sent to {notified} matching donors (SMS: {sms_count}, Email: {email_count})"
        else:
            logger.warning("Twilio is not configured. SMS notifications are disabled.")
            message = (
                f"Alerts sent to {notified} matching donors (Email: {email_count}). "
                "SMS disabled - Twilio not configured."
            )

        logger.info(message)
        return AlertResult(
            success=True,
            message=message,
            notified=notified,
            total=total,
            sms_success_count=sms_count,
            email_success_count=email_count,
            failed_count=len(results) - notified,
            twilio_configured=twilio_configured,
        )
