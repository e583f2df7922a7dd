"""
Shared fixtures: an in-memory Firestore stand-in for DonorStore tests and
an in-memory DonorStore for service tests.
"""

from datetime import date, timedelta

import pytest

from hemolink.config import Settings
from hemolink.firebase_tools import DonorStoreError
from hemolink.models import (
    BloodRequest,
    DonationHistory,
    DonorProfile,
    DonorRecord,
    HospitalProfile,
)

TODAY = date(2024, 6, 1)


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


# ─────────────────────────────────────────────
# Fake Firestore client
# ─────────────────────────────────────────────
class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection, doc_id):
        self.collection = collection
        self.doc_id = doc_id

    def get(self):
        return FakeSnapshot(self.doc_id, self.collection.docs.get(self.doc_id))

    def update(self, values):
        if self.doc_id not in self.collection.docs:
            raise KeyError(f"No document to update: {self.doc_id}")
        self.collection.docs[self.doc_id].update(values)


class FakeQuery:
    def __init__(self, collection, filters=()):
        self.collection = collection
        self.filters = list(filters)

    def where(self, filter=None):
        return FakeQuery(self.collection, self.filters + [filter])

    def stream(self):
        if self.collection.fail:
            raise RuntimeError("backend unavailable")
        for doc_id, data in self.collection.docs.items():
            if all(data.get(f.field_path) == f.value for f in self.filters):
                yield FakeSnapshot(doc_id, data)


class FakeCollection(FakeQuery):
    def __init__(self):
        self.docs = {}
        self.fail = False
        super().__init__(self)

    def document(self, doc_id):
        return FakeDocumentRef(self, doc_id)


class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def add(self, collection, doc_id, data):
        self.collection(collection).docs[doc_id] = dict(data)


@pytest.fixture
def fake_db():
    return FakeFirestore()


# ─────────────────────────────────────────────
# In-memory donor store
# ─────────────────────────────────────────────
class InMemoryStore:
    def __init__(self):
        self.requests = {}
        self.roster = []
        self.profiles = []
        self.histories = {}
        self.hospital = HospitalProfile(name="City Hospital", address="12 Main Road", phone="+919800000000")
        self.failing_histories = set()
        self.roster_fails = False
        self.profiles_fail = False
        self.marked = []
        self.queries = []

    def fetch_request(self, request_id):
        self.queries.append(("request", request_id))
        return self.requests.get(request_id)

    def fetch_hospital_profile(self, hospital_id):
        self.queries.append(("hospital", hospital_id))
        return self.hospital

    def fetch_hospital_donors(self, hospital_id):
        self.queries.append(("donors", hospital_id))
        if self.roster_fails:
            raise DonorStoreError("Failed to fetch donors: timeout")
        return [d for d in self.roster if d.hospital_id == hospital_id]

    def fetch_all_donor_profiles(self):
        self.queries.append(("profiles", None))
        if self.profiles_fail:
            raise DonorStoreError("Failed to fetch donor profiles: timeout")
        return list(self.profiles)

    def fetch_donation_history(self, user_id):
        self.queries.append(("history", user_id))
        if user_id in self.failing_histories:
            raise DonorStoreError(f"Failed to fetch donations for {user_id}")
        return self.histories.get(user_id, DonationHistory())

    def mark_alert_sent(self, request_id):
        self.marked.append(request_id)
        return True


@pytest.fixture
def store():
    s = InMemoryStore()
    s.requests["req-1"] = BloodRequest(
        id="req-1",
        hospital_id="hosp-1",
        blood_group="A+",
        units_needed=2,
        urgency_level="normal",
        patient_name="Ravi Kumar",
        patient_contact="+919811111111",
    )
    return s


@pytest.fixture
def settings():
    return Settings(
        twilio_account_sid="AC123",
        twilio_auth_token="token",
        twilio_phone_number="+15550001111",
        resend_api_key="re_123",
        ai_provider="openai",
        ai_api_key="sk-test",
        max_concurrency=4,
        http_timeout=5.0,
    )


def record(doc_id, blood_group="A+", **kwargs):
    data = dict(
        id=doc_id,
        full_name=kwargs.pop("full_name", f"Donor {doc_id}"),
        blood_group=blood_group,
        phone=kwargs.pop("phone", ""),
        hospital_id=kwargs.pop("hospital_id", "hosp-1"),
    )
    data.update(kwargs)
    return DonorRecord(**data)


def profile(user_id, blood_group="A+", **kwargs):
    return DonorProfile(
        user_id=user_id,
        full_name=kwargs.pop("full_name", f"User {user_id}"),
        blood_group=blood_group,
        **kwargs,
    )
