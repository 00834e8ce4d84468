# SPDX-License-Identifier: Apache-2.0

"""
Reconciliation engine.

Applies the update/insert/delete plan for one animal as a single
transactional unit against the record store.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from opentelemetry import trace

from domain.reconciliation import ReconciliationPlan, plan_reconciliation
from models.entities import Animal, RegionalProtocol, VaccinationRecord
from models.responses import ReconciliationResult
from utils.errors import PersistenceException
from .stores import RecordStore

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Brings an animal's outstanding schedule in line with a new protocol."""

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def plan(
        self,
        animal: Animal,
        existing_records: Sequence[VaccinationRecord],
        protocol: RegionalProtocol,
        region: str,
        country: str,
        now: Optional[datetime] = None
    ) -> ReconciliationPlan:
        return plan_reconciliation(animal, existing_records, protocol, region, country, now)

    def apply(self, animal_id: str, plan: ReconciliationPlan, now: Optional[datetime] = None) -> ReconciliationResult:
        """
        Write a plan atomically.

        Counts report what the store committed, so duplicate scheduled
        inserts skipped by the store are not counted as added.

        Raises:
            PersistenceException: Any write failed; nothing was committed
        """
        if plan.is_empty:
            return ReconciliationResult(animal_id=animal_id)

        now = now or datetime.utcnow()
        counts = {"updated": 0, "added": 0, "removed": 0}
        with tracer.start_as_current_span("reconciliation.apply") as span:
            span.set_attribute("animal.id", animal_id)

            try:
                with self.record_store.transaction() as session:
                    for update in plan.updates:
                        changes = dict(update.changes)
                        changes["updated_at"] = now
                        if self.record_store.update(update.record_id, changes, session=session):
                            counts["updated"] += 1
                    if plan.inserts:
                        inserted, skipped = self.record_store.insert_many(plan.inserts, session=session)
                        counts["added"] = len(inserted)
                        if skipped:
                            logger.warning(f"Skipped {skipped} duplicate scheduled records for animal {animal_id}")
                    if plan.deletes:
                        counts["removed"] = self.record_store.delete_many(
                            [record.id for record in plan.deletes], session=session
                        )
            except Exception as e:
                span.set_attribute("reconciliation.result", "aborted")
                logger.error(f"Reconciliation for animal {animal_id} aborted: {e}")
                raise PersistenceException(f"Reconciliation for animal {animal_id} failed; no changes were applied") from e

            span.set_attributes({
                "reconciliation.result": "committed",
                "reconciliation.updated": counts["updated"],
                "reconciliation.added": counts["added"],
                "reconciliation.removed": counts["removed"]
            })

        logger.info(
            f"Reconciled animal {animal_id}: updated={counts['updated']} "
            f"added={counts['added']} removed={counts['removed']}"
        )
        return ReconciliationResult(animal_id=animal_id, **counts)

    def reconcile(
        self,
        animal: Animal,
        existing_records: Sequence[VaccinationRecord],
        protocol: RegionalProtocol,
        region: str,
        country: str,
        now: Optional[datetime] = None
    ) -> ReconciliationResult:
        """
        Reconcile an animal's pending records against a protocol.

        Administered records are never read into the diff and never written.
        Running twice with unchanged inputs yields all-zero counts.

        Args:
            animal: Animal being reconciled
            existing_records: The animal's current records
            protocol: Protocol for the new location
            region: New region
            country: New country
            now: Evaluation time (defaults to utcnow)

        Returns:
            ReconciliationResult with updated/added/removed counts
        """
        with tracer.start_as_current_span("reconciliation.reconcile") as span:
            span.set_attributes({
                "animal.id": animal.id,
                "reconciliation.region": region,
                "reconciliation.country": country
            })
            plan = self.plan(animal, existing_records, protocol, region, country, now)
            return self.apply(animal.id, plan, now)
