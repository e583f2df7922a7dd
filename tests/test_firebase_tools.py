"""
Tests for the Firestore-backed DonorStore.
"""

import asyncio
from datetime import date

import pytest

from hemolink.alerts import AlertDispatcher
from hemolink.firebase_tools import ALERT_SENT, DonorStore, DonorStoreError
from test_alerts import FakeNotifier


@pytest.fixture
def db(fake_db):
    fake_db.add("blood_requests", "req-1", {
        "hospital_id": "hosp-1",
        "blood_group": "B-",
        "units_needed": 3,
        "urgency_level": "Critical",
        "patient_name": "Meena",
        "patient_contact": "+919822222222",
        "status": "pending",
    })
    fake_db.add("profiles", "hosp-1", {"full_name": "Admin", "hospital_name": "Sunrise Hospital",
                                      "hospital_address": "4 Lake View", "phone": "+919833333333"})
    fake_db.add("profiles", "u1", {"full_name": "Kiran", "blood_group": "b-", "phone": "9876500000"})
    fake_db.add("profiles", "u2", {"full_name": "No Group", "blood_group": None})
    fake_db.add("donors", "d1", {"full_name": "Anil", "blood_group": "B-", "hospital_id": "hosp-1",
                                 "phone": "9876511111", "donation_count": 4,
                                 "last_donation_date": "2024-02-10", "user_id": "u7"})
    fake_db.add("donors", "d2", {"full_name": "Other", "blood_group": "B-", "hospital_id": "hosp-2"})
    fake_db.add("donations", "x1", {"donor_user_id": "u1", "hospital_id": "hosp-1",
                                    "blood_group": "B-", "donation_date": "2024-01-05", "units_donated": 1})
    fake_db.add("donations", "x2", {"donor_user_id": "u1", "hospital_id": "hosp-1",
                                    "blood_group": "B-", "donation_date": "2024-04-20T09:30:00Z"})
    fake_db.add("donations", "x3", {"donor_id": "d1", "hospital_id": "hosp-1",
                                    "blood_group": "B-", "donation_date": "2024-02-10"})
    return fake_db


class TestFetchRequest:
    """Blood request reads."""

    def test_reads_request(self, db):
        request = DonorStore(client=db).fetch_request("req-1")
        assert request.hospital_id == "hosp-1"
        assert request.units_needed == 3
        assert request.urgency_level == "critical"

    def test_missing_request_is_none(self, db):
        assert DonorStore(client=db).fetch_request("nope") is None


class TestFetchDonors:
    """Roster and profile reads."""

    def test_roster_scoped_to_hospital(self, db):
        donors = DonorStore(client=db).fetch_hospital_donors("hosp-1")
        assert [d.id for d in donors] == ["d1"]
        assert donors[0].linked_user_id == "u7"
        assert donors[0].last_donation_date == date(2024, 2, 10)
        assert donors[0].donation_count == 4

    def test_malformed_date_keeps_rest_of_roster(self, db):
        """A bad date on one entry reads as never-donated; the roster survives."""
        db.add("donors", "d3", {"full_name": "Bad Date", "blood_group": "B-", "hospital_id": "hosp-1",
                                "last_donation_date": "n/a"})
        donors = DonorStore(client=db).fetch_hospital_donors("hosp-1")
        assert [d.id for d in donors] == ["d1", "d3"]
        assert donors[0].last_donation_date == date(2024, 2, 10)
        assert donors[1].last_donation_date is None

    def test_malformed_date_flows_through_alerts(self, db, settings):
        db.add("donors", "d3", {"full_name": "Bad Date", "blood_group": "B-", "hospital_id": "hosp-1",
                                "phone": "9876522222", "last_donation_date": "n/a"})
        notifier = FakeNotifier()
        dispatcher = AlertDispatcher(DonorStore(client=db), notifier, settings)

        result = asyncio.run(dispatcher.dispatch("req-1", today=date(2024, 6, 1)))

        assert result.success
        assert sorted(notifier.notified) == ["d1", "d3"]
        assert result.total == 2

    def test_roster_failure_raises(self, db):
        db.collection("donors").fail = True
        with pytest.raises(DonorStoreError):
            DonorStore(client=db).fetch_hospital_donors("hosp-1")

    def test_profiles_without_blood_group_are_skipped(self, db):
        profiles = DonorStore(client=db).fetch_all_donor_profiles()
        assert [p.user_id for p in profiles] == ["u1"]

    def test_hospital_profile(self, db):
        hospital = DonorStore(client=db).fetch_hospital_profile("hosp-1")
        assert hospital.name == "Sunrise Hospital"
        assert hospital.address == "4 Lake View"

    def test_missing_hospital_profile_falls_back(self, db):
        hospital = DonorStore(client=db).fetch_hospital_profile("hosp-9")
        assert hospital.name == "Hospital"


class TestDonationHistory:
    """History aggregation for registered donors."""

    def test_counts_and_latest_date(self, db):
        history = DonorStore(client=db).fetch_donation_history("u1")
        assert history.count == 2
        assert history.last_date == date(2024, 4, 20)

    def test_no_donations(self, db):
        history = DonorStore(client=db).fetch_donation_history("u2")
        assert history.count == 0
        assert history.last_date is None

    def test_failure_raises(self, db):
        db.collection("donations").fail = True
        with pytest.raises(DonorStoreError):
            DonorStore(client=db).fetch_donation_history("u1")


class TestMarkAlertSent:
    """Request status write."""

    def test_updates_status(self, db):
        assert DonorStore(client=db).mark_alert_sent("req-1") is True
        assert db.collection("blood_requests").docs["req-1"]["status"] == ALERT_SENT

    def test_missing_request_returns_false(self, db):
        assert DonorStore(client=db).mark_alert_sent("nope") is False
