"""
Firestore integration for the matching services.

Provides reads for:
- Blood requests in blood_requests/{requestId}
- Hospital rosters in donors (filtered by hospital_id)
- Self-registered donor profiles in profiles/{uid}
- Donation history in donations (filtered by donor_user_id)

and the single write the alert path performs (request status).
"""

import logging
from typing import List, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .models import (
    BloodRequest,
    DonationEvent,
    DonationHistory,
    DonorProfile,
    DonorRecord,
    HospitalProfile,
)

logger = logging.getLogger(__name__)

REQUESTS = "blood_requests"
DONORS = "donors"
PROFILES = "profiles"
DONATIONS = "donations"

ALERT_SENT = "alert_sent"


class DonorStoreError(Exception):
    """A list query against the donor store failed."""


class DonorStore:
    """
    Read access to donor data in Firestore.

    Args:
        client: Firestore client. Defaults to the client of the default
            firebase_admin app, which must be initialized first.
    """

    def __init__(self, client=None):
        self.db = client if client is not None else firestore.client()

    def fetch_request(self, request_id: str) -> Optional[BloodRequest]:
        """
        Get blood request from blood_requests/{request_id}.

        Returns:
            BloodRequest or None if not found
        """
        try:
            doc = self.db.collection(REQUESTS).document(request_id).get()

            if not doc.exists:
                logger.error(f"Request {request_id} not found")
                return None

            request = BloodRequest.from_dict(doc.id, doc.to_dict() or {})
            logger.info(f"Retrieved request {request_id}")
            return request

        except Exception as e:
            logger.error(f"Error getting request {request_id}: {str(e)}")
            return None

    def fetch_hospital_profile(self, hospital_id: str) -> HospitalProfile:
        """
        Get display details for a hospital from profiles/{hospital_id}.
        Falls back to a generic profile when missing.
        """
        try:
            doc = self.db.collection(PROFILES).document(hospital_id).get()
            if doc.exists:
                return HospitalProfile.from_dict(doc.to_dict() or {})
            logger.warning(f"Hospital profile {hospital_id} not found")
        except Exception as e:
            logger.error(f"Error getting hospital profile: {str(e)}")
        return HospitalProfile()

    def fetch_hospital_donors(self, hospital_id: str) -> List[DonorRecord]:
        """
        Get every roster entry owned by a hospital.

        Raises:
            DonorStoreError: if the query fails
        """
        try:
            docs = self.db.collection(DONORS) \
                .where(filter=FieldFilter("hospital_id", "==", hospital_id)) \
                .stream()
            donors = [DonorRecord.from_dict(doc.id, doc.to_dict() or {}) for doc in docs]
        except Exception as e:
            raise DonorStoreError(f"Failed to fetch donors: {str(e)}") from e

        logger.info(f"Found {len(donors)} total donors for hospital {hospital_id}")
        return donors

    def fetch_all_donor_profiles(self) -> List[DonorProfile]:
        """
        Get every self-registered profile with a blood group, system-wide.

        Raises:
            DonorStoreError: if the query fails
        """
        try:
            docs = self.db.collection(PROFILES).stream()
            profiles = []
            for doc in docs:
                data = doc.to_dict() or {}
                if data.get("blood_group"):
                    profiles.append(DonorProfile.from_dict(doc.id, data))
        except Exception as e:
            raise DonorStoreError(f"Failed to fetch donor profiles: {str(e)}") from e

        logger.info(f"Found {len(profiles)} registered donor profiles")
        return profiles

    def fetch_donation_history(self, donor_user_id: str) -> DonationHistory:
        """
        Count donations and find the most recent one for a registered donor.

        Raises:
            DonorStoreError: if the query fails
        """
        try:
            docs = self.db.collection(DONATIONS) \
                .where(filter=FieldFilter("donor_user_id", "==", donor_user_id)) \
                .stream()
            events = [DonationEvent.from_dict(doc.to_dict() or {}) for doc in docs]
        except Exception as e:
            raise DonorStoreError(f"Failed to fetch donations for {donor_user_id}: {str(e)}") from e

        return DonationHistory.from_events(events)

    def mark_alert_sent(self, request_id: str) -> bool:
        """
        Set blood_requests/{request_id}.status to "alert_sent".

        Returns:
            True if successful, False otherwise
        """
        try:
            self.db.collection(REQUESTS).document(request_id).update({
                "status": ALERT_SENT,
                "updated_at": firestore.SERVER_TIMESTAMP
            })
            logger.info(f"Marked request {request_id} as {ALERT_SENT}")
            return True

        except Exception as e:
            logger.error(f"Error updating request status: {str(e)}")
            return False
