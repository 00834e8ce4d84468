# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for schedule reconciliation on location change.
"""

import pytest
from datetime import datetime

from domain.reconciliation import ReconciliationPlan, index_pending, plan_reconciliation
from services.reconciliation import ReconciliationEngine
from utils.errors import PersistenceException


@pytest.fixture
def engine(record_store):
    return ReconciliationEngine(record_store)


@pytest.fixture
def ppr_scheduled(record_factory, cattle):
    """Pending south_asia-only dose."""
    return record_factory(
        id="rec-ppr",
        animal_id=cattle.id,
        region="south_asia",
        country="IN",
        vaccine_name="PPR",
        dose_number=1,
        scheduled_date=datetime(2024, 4, 30),
        next_due_date=datetime(2024, 4, 30)
    )


class TestPlanReconciliation:
    """Test the three-way diff."""

    def test_relocation_swaps_regional_doses(self, cattle, ppr_scheduled, europe_cattle_protocol, now):
        """Test that a south_asia dose is removed and a europe dose added."""
        plan = plan_reconciliation(cattle, [ppr_scheduled], europe_cattle_protocol, "europe", "DE", now)

        assert plan.counts() == {"updated": 0, "added": 1, "removed": 1}
        assert plan.deletes[0].id == "rec-ppr"
        added = plan.inserts[0]
        assert added.vaccine_name == "IBR/BVD"
        assert added.dose_number == 1
        assert added.scheduled_date == datetime(2024, 3, 31)
        assert added.region == "europe"
        assert added.country == "DE"
        assert added.status == "scheduled"

    def test_matching_dose_is_updated_in_place(self, goat, goat_protocol, record_factory, now):
        """Test that a consumed record gets new region/country and dates."""
        pending = record_factory(
            id="rec-cdt-2",
            dose_number=2,
            region="south_asia",
            country="IN",
            scheduled_date=datetime(2024, 3, 20),
            next_due_date=datetime(2024, 3, 20)
        )

        plan = plan_reconciliation(goat, [pending], goat_protocol, "europe", "DE", now)

        assert plan.counts() == {"updated": 1, "added": 0, "removed": 0}
        update = plan.updates[0]
        assert update.record_id == "rec-cdt-2"
        assert update.changes == {
            "region": "europe",
            "country": "DE",
            "scheduled_date": datetime(2024, 3, 11),
            "next_due_date": datetime(2024, 3, 11)
        }

    def test_unchanged_record_produces_no_update(self, goat, goat_protocol, record_factory, now):
        """Test that a record already matching the protocol is left alone."""
        pending = record_factory(
            dose_number=2,
            region="europe",
            country="DE",
            scheduled_date=datetime(2024, 3, 11),
            next_due_date=datetime(2024, 3, 11)
        )

        plan = plan_reconciliation(goat, [pending], goat_protocol, "europe", "DE", now)

        assert plan.is_empty

    def test_completed_records_never_enter_the_plan(self, goat, goat_protocol, record_factory, now):
        """Test that administered records are neither updated nor deleted."""
        completed = record_factory(
            id="rec-done",
            dose_number=2,
            status="completed",
            administration_date=datetime(2024, 2, 28),
            scheduled_date=datetime(2024, 3, 11),
            next_due_date=datetime(2025, 1, 1)
        )
        unrelated = record_factory(
            id="rec-old-vaccine",
            vaccine_name="PPR",
            status="completed",
            administration_date=datetime(2024, 2, 1)
        )

        plan = plan_reconciliation(goat, [completed, unrelated], goat_protocol, "europe", "DE", now)

        touched = {u.record_id for u in plan.updates} | {r.id for r in plan.deletes}
        assert "rec-done" not in touched
        assert "rec-old-vaccine" not in touched
        # Dose 2 was already given, so it is not re-added either
        assert plan.inserts == []

    def test_surplus_duplicates_are_removed(self, goat, goat_protocol, record_factory, now):
        """Test that a second pending record for the same dose is deleted."""
        first = record_factory(id="dup-1", dose_number=2, scheduled_date=datetime(2024, 3, 11),
                               next_due_date=datetime(2024, 3, 11))
        second = record_factory(id="dup-2", dose_number=2, scheduled_date=datetime(2024, 3, 11),
                                next_due_date=datetime(2024, 3, 11))

        plan = plan_reconciliation(goat, [first, second], goat_protocol, "global_default", "unspecified", now)

        assert [record.id for record in plan.deletes] == ["dup-2"]
        assert plan.updates == []

    def test_index_ignores_non_pending(self, record_factory):
        """Test that only scheduled, unadministered records are indexed."""
        records = [
            record_factory(id="a", dose_number=1),
            record_factory(id="b", dose_number=2, status="cancelled"),
            record_factory(id="c", dose_number=3, status="completed", administration_date=datetime(2024, 1, 1))
        ]

        index, surplus = index_pending(records)

        assert list(index) == [("CDT", 1)]
        assert surplus == []


    def test_overdue_records_stay_outside_the_plan(self, goat, goat_protocol, record_factory, now):
        """Test that an overdue dose is kept and a scheduled one planned next to it."""
        overdue = record_factory(
            id="rec-overdue",
            dose_number=2,
            status="overdue",
            region="south_asia",
            country="IN",
            scheduled_date=datetime(2024, 2, 25),
            next_due_date=datetime(2024, 2, 25)
        )

        plan = plan_reconciliation(goat, [overdue], goat_protocol, "europe", "DE", now)

        assert plan.updates == []
        assert plan.deletes == []
        assert [(r.vaccine_name, r.dose_number, r.status) for r in plan.inserts] == [("CDT", 2, "scheduled")]
        assert plan.inserts[0].scheduled_date == datetime(2024, 3, 11)


class TestReconciliationEngine:
    """Test transactional application of plans."""

    def test_relocation_counts(self, engine, record_store, cattle, ppr_scheduled, europe_cattle_protocol, now):
        """Test the relocation scenario end to end."""
        record_store.add(ppr_scheduled)

        result = engine.reconcile(cattle, [ppr_scheduled], europe_cattle_protocol, "europe", "DE", now)

        assert (result.updated, result.added, result.removed) == (0, 1, 1)
        names = {record.vaccine_name for record in record_store.records.values()}
        assert names == {"IBR/BVD"}

    def test_second_run_is_noop(self, engine, record_store, cattle, ppr_scheduled, europe_cattle_protocol, now):
        """Test idempotence with unchanged inputs."""
        record_store.add(ppr_scheduled)
        engine.reconcile(cattle, [ppr_scheduled], europe_cattle_protocol, "europe", "DE", now)

        existing = record_store.query_by_animal(cattle.owner_id, cattle.id)
        second = engine.reconcile(cattle, existing, europe_cattle_protocol, "europe", "DE", now)

        assert second.is_noop
        assert (second.updated, second.added, second.removed) == (0, 0, 0)

    def test_history_is_preserved(self, engine, record_store, goat, goat_protocol, record_factory, now):
        """Test that administered records survive unmodified."""
        completed = record_factory(
            id="rec-history",
            status="completed",
            region="south_asia",
            country="IN",
            administration_date=datetime(2024, 2, 12),
            scheduled_date=datetime(2024, 2, 12),
            next_due_date=datetime(2024, 3, 11)
        )
        pending = record_factory(id="rec-pending", dose_number=2, region="south_asia", country="IN",
                                 scheduled_date=datetime(2024, 3, 11), next_due_date=datetime(2024, 3, 11))
        record_store.add(completed, pending)
        before = completed.model_dump()

        result = engine.reconcile(goat, [completed, pending], goat_protocol, "europe", "DE", now)

        assert result.updated == 1
        assert record_store.records["rec-history"].model_dump() == before
        assert record_store.records["rec-pending"].region == "europe"

    def test_failure_rolls_back_whole_unit(self, engine, record_store, cattle, ppr_scheduled,
                                           europe_cattle_protocol, now):
        """Test that a failed write leaves no partial reconciliation."""
        record_store.add(ppr_scheduled)
        record_store.fail_on = "delete"

        with pytest.raises(PersistenceException) as exc_info:
            engine.reconcile(cattle, [ppr_scheduled], europe_cattle_protocol, "europe", "DE", now)

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503
        assert list(record_store.records) == ["rec-ppr"]

    def test_empty_plan_skips_transaction(self, engine, record_store, goat, goat_protocol, now):
        """Test that nothing is written when the schedule already matches."""
        result = engine.reconcile(goat, [], goat_protocol, "global_default", "unspecified", datetime(2024, 6, 1))

        assert result.is_noop
        assert record_store.transactions == 0

    def test_skipped_duplicate_inserts_are_not_counted(self, engine, record_store, goat, record_factory, now):
        """Test that the added count reflects what the store accepted."""
        existing = record_factory(id="rec-existing", dose_number=2, scheduled_date=datetime(2024, 3, 11),
                                  next_due_date=datetime(2024, 3, 11))
        record_store.add(existing)
        duplicate = record_factory(id="rec-duplicate", dose_number=2, scheduled_date=datetime(2024, 3, 11),
                                   next_due_date=datetime(2024, 3, 11))

        result = engine.apply(goat.id, ReconciliationPlan(inserts=[duplicate]), now)

        assert (result.updated, result.added, result.removed) == (0, 0, 0)
        assert list(record_store.records) == ["rec-existing"]
