# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for alert classification, supersession and listing.
"""

import pytest
from datetime import datetime, timedelta

from domain.alerts import (
    alert_candidates,
    alert_message,
    build_alert,
    classify_due,
    compliance_rate,
    compute_due_status,
    is_surfaced,
    overdue_urgency,
    plan_alerts_for_record,
    urgency_for_due_status
)
from models.requests import AlertFilters
from services.alerts import AlertManager
from utils.errors import RecordNotFoundException


BOOSTER_DUE = datetime(2024, 1, 1)


@pytest.fixture
def manager(alert_store):
    return AlertManager(alert_store)


@pytest.fixture
def booster_record(record_factory):
    """Booster administered 2023-01-01, next due 2024-01-01."""
    return record_factory(
        id="rec-booster",
        vaccine_name="Rabies",
        dose_number=None,
        is_booster=True,
        status="completed",
        administration_date=datetime(2023, 1, 1),
        next_due_date=BOOSTER_DUE
    )


class TestClassification:
    """Test due date classification."""

    @pytest.mark.parametrize("days,expected", [
        (-1, ("overdue", "high")),
        (-40, ("overdue", "high")),
        (0, ("due_soon", "high")),
        (7, ("due_soon", "high")),
        (8, ("due_soon", "medium")),
        (30, ("due_soon", "medium")),
        (31, None)
    ])
    def test_classify_due(self, days, expected):
        """Test the alert classification bands."""
        assert classify_due(days) == expected

    @pytest.mark.parametrize("days,status", [
        (-3, "overdue"), (0, "due_today"), (1, "due_soon"), (7, "due_soon"),
        (8, "upcoming"), (30, "upcoming"), (31, "scheduled")
    ])
    def test_compute_due_status(self, record_factory, days, status):
        """Test derived due status bands."""
        now = datetime(2024, 3, 1, 12)
        record = record_factory(scheduled_date=datetime(2024, 3, 1) + timedelta(days=days))

        assert compute_due_status(record, now) == status

    def test_due_status_unknown_without_dates(self, record_factory):
        """Test that a record without dates has an unknown status."""
        assert compute_due_status(record_factory(), datetime(2024, 3, 1)) == "unknown"

    def test_urgency_mappings(self):
        """Test urgency helpers."""
        assert urgency_for_due_status("overdue") == "critical"
        assert urgency_for_due_status("due_today") == "high"
        assert urgency_for_due_status("upcoming") == "medium"
        assert urgency_for_due_status("scheduled") == "low"
        assert overdue_urgency(31) == "critical"
        assert overdue_urgency(15) == "high"
        assert overdue_urgency(14) == "medium"

    def test_alert_messages(self):
        """Test alert message wording."""
        assert alert_message("CDT", -3) == "CDT vaccination is 3 days overdue"
        assert alert_message("CDT", 0) == "CDT vaccination is due today"
        assert alert_message("CDT", 5) == "CDT vaccination is due in 5 days"


class TestAlertLifecycle:
    """Test alert planning rules."""

    def test_booster_alert_thirty_days_before(self, booster_record):
        """Test that a due_soon/medium alert appears 30 days before the booster."""
        plan = plan_alerts_for_record(booster_record, [], datetime(2023, 12, 2, 8))

        assert plan.create is not None
        assert plan.create.alert_type == "due_soon"
        assert plan.create.priority == "medium"
        assert plan.create.due_date == BOOSTER_DUE
        assert plan.create.expiry_date == BOOSTER_DUE + timedelta(days=90)

    def test_no_alert_beyond_thirty_days(self, booster_record):
        """Test that no alert is created more than 30 days ahead."""
        plan = plan_alerts_for_record(booster_record, [], datetime(2023, 12, 1))

        assert plan.create is None

    def test_ensure_alert_beyond_horizon(self, booster_record):
        """Test a low-priority alert when one is explicitly requested."""
        plan = plan_alerts_for_record(booster_record, [], datetime(2023, 6, 1), ensure_alert=True)

        assert plan.create.alert_type == "booster_due"
        assert plan.create.priority == "low"

    def test_existing_alert_escalates_instead_of_duplicating(self, booster_record):
        """Test escalation of an alert for the same due date."""
        existing = build_alert(booster_record, BOOSTER_DUE, "due_soon", "medium", datetime(2023, 12, 2))

        plan = plan_alerts_for_record(booster_record, [existing], datetime(2024, 1, 3))

        assert plan.create is None
        assert plan.supersede == []
        assert plan.escalate[0][0].id == existing.id
        assert plan.escalate[0][1]["alert_type"] == "overdue"
        assert plan.escalate[0][1]["priority"] == "high"

    def test_stale_alert_is_superseded(self, booster_record):
        """Test that an alert tied to a different due date is superseded."""
        stale = build_alert(booster_record, datetime(2023, 6, 1), "overdue", "high", datetime(2023, 6, 5))

        plan = plan_alerts_for_record(booster_record, [stale], datetime(2023, 12, 20))

        assert [alert.id for alert in plan.supersede] == [stale.id]
        assert plan.create.due_date == BOOSTER_DUE

    def test_expired_alert_is_not_surfaced(self, booster_record):
        """Test that an alert past its expiry is hidden even if unread."""
        alert = build_alert(booster_record, BOOSTER_DUE, "overdue", "high", datetime(2024, 1, 2))

        assert is_surfaced(alert, datetime(2024, 3, 31))
        assert not is_surfaced(alert, datetime(2024, 4, 1))

    def test_alert_candidates_keep_latest_completion(self, record_factory):
        """Test that only the newest completion per vaccine drives alerts."""
        old = record_factory(id="old", status="completed", administration_date=datetime(2023, 1, 1))
        new = record_factory(id="new", status="completed", administration_date=datetime(2024, 1, 1))
        pending = record_factory(id="pending", dose_number=2)
        cancelled = record_factory(id="cancelled", status="cancelled")

        ids = {record.id for record in alert_candidates([old, new, pending, cancelled])}

        assert ids == {"new", "pending"}


class TestCompliance:
    """Test the compliance rate."""

    def test_no_tracked_records_is_full_compliance(self, record_factory):
        """Test the empty case."""
        assert compliance_rate([record_factory(status="cancelled")]) == 100

    def test_on_time_share(self, record_factory):
        """Test completed-on-time share with half-up rounding."""
        on_time = record_factory(status="completed", administration_date=datetime(2024, 1, 1),
                                 next_due_date=datetime(2024, 1, 5))
        late = record_factory(status="completed", administration_date=datetime(2024, 2, 1),
                              next_due_date=datetime(2024, 1, 5))
        pending = record_factory(status="scheduled")

        assert compliance_rate([on_time, late, pending]) == 33
        assert compliance_rate([on_time, pending]) == 50


class TestAlertManager:
    """Test alert persistence through the manager."""

    def test_completion_leaves_single_alert_for_new_due_date(self, manager, alert_store, record_factory):
        """Test supersession when a completion moves the due date."""
        scheduled = record_factory(id="rec-1", scheduled_date=datetime(2024, 3, 11),
                                   next_due_date=datetime(2024, 3, 11))
        manager.on_schedule_computed([scheduled], datetime(2024, 3, 5))
        assert len(alert_store.active_for_record("rec-1")) == 1

        completed = scheduled.model_copy(update={
            "status": "completed",
            "administration_date": datetime(2024, 3, 11),
            "next_due_date": datetime(2025, 3, 11)
        })
        produced = manager.on_schedule_computed([completed], datetime(2024, 3, 11), ensure_alert=True)

        active = alert_store.active_for_record("rec-1")
        assert len(active) == 1
        assert active[0].due_date == datetime(2025, 3, 11)
        assert [alert.id for alert in produced] == [active[0].id]
        old = [a for a in alert_store.alerts.values() if a.due_date == datetime(2024, 3, 11)]
        assert old[0].is_active is False
        assert old[0].superseded_at == datetime(2024, 3, 11)

    def test_rescan_escalates_without_duplicates(self, manager, alert_store, record_factory):
        """Test repeated derivation for the same due date."""
        record = record_factory(id="rec-2", scheduled_date=datetime(2024, 3, 20),
                                next_due_date=datetime(2024, 3, 20))
        manager.on_schedule_computed([record], datetime(2024, 3, 1))
        manager.on_schedule_computed([record], datetime(2024, 3, 1))
        manager.on_schedule_computed([record], datetime(2024, 3, 15))

        active = alert_store.active_for_record("rec-2")
        assert len(active) == 1
        assert active[0].priority == "high"
        assert len(alert_store.alerts) == 1

    def test_cancelled_record_retires_alerts(self, manager, alert_store, record_factory):
        """Test that non-tracked statuses retire their alerts."""
        record = record_factory(id="rec-3", scheduled_date=datetime(2024, 3, 5), next_due_date=datetime(2024, 3, 5))
        manager.on_schedule_computed([record], datetime(2024, 3, 1))

        manager.on_schedule_computed([record.model_copy(update={"status": "cancelled"})], datetime(2024, 3, 2))

        assert alert_store.active_for_record("rec-3") == []

    def test_list_alerts_filters_sorts_and_summarises(self, manager, alert_store, record_factory):
        """Test listing of surfaced alerts."""
        now = datetime(2024, 3, 1)
        records = [
            record_factory(id="r-overdue", scheduled_date=datetime(2024, 2, 20), next_due_date=datetime(2024, 2, 20)),
            record_factory(id="r-soon", dose_number=2, scheduled_date=datetime(2024, 3, 4),
                           next_due_date=datetime(2024, 3, 4)),
            record_factory(id="r-later", dose_number=3, scheduled_date=datetime(2024, 3, 20),
                           next_due_date=datetime(2024, 3, 20))
        ]
        manager.on_schedule_computed(records, now)
        actioned = alert_store.active_for_record("r-later")[0]
        manager.mark_actioned("owner-1", actioned.id, now)

        listing = manager.list_alerts("owner-1", now=now)

        assert [alert.record_id for alert in listing.alerts] == ["r-overdue", "r-soon"]
        assert listing.summary == {"total": 2, "unread": 2, "overdue": 1, "dueSoon": 1}
        assert set(listing.grouped) == {"high"}

        unread_overdue = manager.list_alerts("owner-1", AlertFilters(alert_type="overdue"), now)
        assert [alert.record_id for alert in unread_overdue.alerts] == ["r-overdue"]

    def test_mark_read(self, manager, alert_store, record_factory):
        """Test marking an alert read."""
        record = record_factory(id="rec-4", scheduled_date=datetime(2024, 3, 5), next_due_date=datetime(2024, 3, 5))
        alert = manager.on_schedule_computed([record], datetime(2024, 3, 1))[0]

        updated = manager.mark_read("owner-1", alert.id)

        assert updated.is_read is True
        assert alert_store.alerts[alert.id].is_read is True

    def test_mark_read_for_other_owner_fails(self, manager, alert_store, record_factory):
        """Test owner scoping of alert updates."""
        record = record_factory(id="rec-5", scheduled_date=datetime(2024, 3, 5), next_due_date=datetime(2024, 3, 5))
        alert = manager.on_schedule_computed([record], datetime(2024, 3, 1))[0]

        with pytest.raises(RecordNotFoundException):
            manager.mark_read("someone-else", alert.id)
