"""
Concurrent loading of the donor snapshot a matching run works on.

The roster and profile reads are independent and run together. Donation
history lookups for self-registered donors fan out under a semaphore so a
large profile set does not flood Firestore.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .firebase_tools import DonorStore
from .matching import build_candidates, select_candidates
from .models import CandidateDonor, DonationHistory, DonorProfile, DonorRecord

logger = logging.getLogger(__name__)


@dataclass
class DonorPool:
    roster: List[DonorRecord] = field(default_factory=list)
    profiles: List[DonorProfile] = field(default_factory=list)
    roster_error: Optional[str] = None
    profiles_error: Optional[str] = None


async def fetch_donor_pool(store: DonorStore, hospital_id: str) -> DonorPool:
    """Read the hospital roster and all registered profiles concurrently."""
    roster, profiles = await asyncio.gather(
        asyncio.to_thread(store.fetch_hospital_donors, hospital_id),
        asyncio.to_thread(store.fetch_all_donor_profiles),
        return_exceptions=True,
    )

    pool = DonorPool()
    if isinstance(roster, Exception):
        logger.error(f"Error fetching hospital donors: {str(roster)}")
        pool.roster_error = str(roster)
    else:
        pool.roster = roster

    if isinstance(profiles, Exception):
        logger.error(f"Error fetching registered donors: {str(profiles)}")
        pool.profiles_error = str(profiles)
    else:
        pool.profiles = profiles

    return pool


async def fetch_donation_histories(
    store: DonorStore,
    user_ids: List[str],
    max_concurrency: int = 8,
) -> Dict[str, DonationHistory]:
    """
    Resolve donation history for each registered donor.

    A failed lookup yields an empty history for that donor instead of
    failing the whole run.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def lookup(user_id: str) -> DonationHistory:
        async with semaphore:
            try:
                return await asyncio.to_thread(store.fetch_donation_history, user_id)
            except Exception as e:
                logger.warning(f"Donation history unavailable for {user_id}, treating as none: {str(e)}")
                return DonationHistory()

    histories = await asyncio.gather(*(lookup(uid) for uid in user_ids))
    return dict(zip(user_ids, histories))


async def gather_candidates(
    store: DonorStore,
    blood_group: str,
    pool: DonorPool,
    max_concurrency: int = 8,
) -> List[CandidateDonor]:
    """Blood-group match, deduplicate and resolve histories for one request."""
    selection = select_candidates(blood_group, pool.roster, pool.profiles)
    histories = await fetch_donation_histories(store, selection.pending_user_ids, max_concurrency)
    return build_candidates(selection, histories)
