# SPDX-License-Identifier: Apache-2.0

"""
Reconciliation domain logic.

Computes the three-way diff between an animal's outstanding schedule and a
new protocol. The plan is applied by the reconciliation engine; nothing here
touches storage, and administered records never enter the plan.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from models.entities import Animal, RegionalProtocol, ScheduledItem, VaccinationRecord
from models.enums import VaccinationStatus
from .scheduling import build_scheduled_record, eligible_primary_doses

RecordKey = Tuple[str, Optional[int]]

RECONCILED_FIELDS = ("region", "country", "scheduled_date", "next_due_date")


@dataclass
class RecordUpdate:
    """In-place update of a pending record."""
    record: VaccinationRecord
    changes: Dict[str, Any]

    @property
    def record_id(self) -> str:
        return self.record.id


@dataclass
class ReconciliationPlan:
    """Writes required to bring a schedule in line with a protocol."""
    updates: List[RecordUpdate] = field(default_factory=list)
    inserts: List[VaccinationRecord] = field(default_factory=list)
    deletes: List[VaccinationRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.updates or self.inserts or self.deletes)

    def counts(self) -> Dict[str, int]:
        return {
            "updated": len(self.updates),
            "added": len(self.inserts),
            "removed": len(self.deletes)
        }


def is_administered(record: VaccinationRecord) -> bool:
    """True once a dose has been given; such records are immutable history."""
    return record.administration_date is not None


def is_pending(record: VaccinationRecord) -> bool:
    """
    Scheduled and not yet administered.

    Overdue records are not pending: reconciliation leaves them in place and
    plans a fresh scheduled dose for the same key when the protocol still
    requires it, so the overdue history stays visible to alerting.
    """
    return record.status == VaccinationStatus.SCHEDULED.value and not is_administered(record)


def record_key(record: VaccinationRecord) -> RecordKey:
    return record.vaccine_name, record.dose_number


def index_pending(
    records: Sequence[VaccinationRecord]
) -> Tuple[Dict[RecordKey, VaccinationRecord], List[VaccinationRecord]]:
    """
    Index pending records by (vaccine name, dose number).

    Returns:
        The index and any surplus records sharing an already indexed key
    """
    index: Dict[RecordKey, VaccinationRecord] = {}
    surplus: List[VaccinationRecord] = []
    for record in records:
        if not is_pending(record):
            continue
        key = record_key(record)
        if key in index:
            surplus.append(record)
        else:
            index[key] = record
    return index, surplus


def administered_keys(records: Sequence[VaccinationRecord]) -> Set[RecordKey]:
    """Primary doses already given."""
    return {
        record_key(record)
        for record in records
        if is_administered(record) and not record.is_booster
    }


def plan_reconciliation(
    animal: Animal,
    existing_records: Sequence[VaccinationRecord],
    protocol: RegionalProtocol,
    region: str,
    country: str,
    now: Optional[datetime] = None
) -> ReconciliationPlan:
    """
    Diff an animal's outstanding schedule against a new protocol.

    Args:
        animal: Animal being reconciled
        existing_records: All of the animal's records; only pending ones are indexed
        protocol: Protocol for the new location
        region: New region
        country: New country
        now: Evaluation time (defaults to utcnow)

    Returns:
        ReconciliationPlan; empty when the schedule already matches
    """
    now = now or datetime.utcnow()
    index, surplus = index_pending(existing_records)
    given = administered_keys(existing_records)
    plan = ReconciliationPlan()

    for vaccine, dose, scheduled_date in eligible_primary_doses(protocol, animal.date_of_birth, now):
        key = (vaccine.vaccine_name, dose.dose_number)
        if key in given:
            continue

        existing = index.pop(key, None)
        if existing is not None:
            target = {
                "region": region,
                "country": country,
                "scheduled_date": scheduled_date,
                "next_due_date": scheduled_date
            }
            changes = {
                name: value for name, value in target.items()
                if getattr(existing, name) != value
            }
            if changes:
                plan.updates.append(RecordUpdate(record=existing, changes=changes))
            continue

        item = ScheduledItem(
            vaccine_name=vaccine.vaccine_name,
            dose_number=dose.dose_number,
            scheduled_date=scheduled_date,
            age_in_days=dose.age_in_days,
            is_required=dose.is_required,
            vaccine_type=vaccine.vaccine_type,
            administration_route=vaccine.administration_route
        )
        plan.inserts.append(build_scheduled_record(item, animal.id, animal.owner_id, region, country))

    # Whatever was not consumed is no longer required
    plan.deletes.extend(index.values())
    plan.deletes.extend(surplus)
    return plan
