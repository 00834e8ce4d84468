# SPDX-License-Identifier: Apache-2.0

"""
Schedule generation domain logic.

Pure functions computing primary-dose schedules and next due dates from a
regional protocol. Nothing here reads or writes storage; duplicate
suppression against existing records is left to the storage layer.
"""

from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Tuple

from models.entities import (
    Animal, PrimaryDose, RegionalProtocol, ScheduledItem, Vaccine, VaccinationRecord
)
from models.enums import VaccinationStatus


def days_between(start: datetime, end: datetime) -> int:
    """Calendar days from start to end (negative when end is earlier)."""
    return (end.date() - start.date()).days


def animal_age_in_days(date_of_birth: datetime, now: datetime) -> int:
    """Whole calendar days elapsed since birth."""
    return days_between(date_of_birth, now)


def dose_date(date_of_birth: datetime, age_in_days: int) -> datetime:
    """Calendar date on which an age-triggered dose falls due."""
    return date_of_birth + timedelta(days=age_in_days)


def eligible_primary_doses(
    protocol: RegionalProtocol,
    date_of_birth: datetime,
    now: datetime
) -> Iterator[Tuple[Vaccine, PrimaryDose, datetime]]:
    """
    Yield primary doses the animal has not yet aged past, in protocol order.

    Args:
        protocol: Active regional protocol
        date_of_birth: Animal's date of birth
        now: Evaluation time

    Yields:
        (vaccine, dose, scheduled_date) for every dose with ageInDays > current age
    """
    age = animal_age_in_days(date_of_birth, now)
    for vaccine in protocol.vaccines:
        for dose in vaccine.primary_series:
            if dose.age_in_days > age:
                yield vaccine, dose, dose_date(date_of_birth, dose.age_in_days)


def generate_schedule(
    animal: Animal,
    protocol: RegionalProtocol,
    now: Optional[datetime] = None
) -> List[ScheduledItem]:
    """
    Compute the forward list of primary-dose items for an animal.

    Boosters are not pre-scheduled; they are derived once a prior dose is
    completed (see compute_next_due_date).

    Args:
        animal: Animal being scheduled
        protocol: Protocol resolved for the animal's owner
        now: Evaluation time (defaults to utcnow)

    Returns:
        Scheduled items in protocol iteration order
    """
    now = now or datetime.utcnow()
    return [
        ScheduledItem(
            vaccine_name=vaccine.vaccine_name,
            dose_number=dose.dose_number,
            scheduled_date=scheduled_date,
            age_in_days=dose.age_in_days,
            is_required=dose.is_required,
            vaccine_type=vaccine.vaccine_type,
            administration_route=vaccine.administration_route
        )
        for vaccine, dose, scheduled_date in eligible_primary_doses(
            protocol, animal.date_of_birth, now
        )
    ]


def build_scheduled_record(
    item: ScheduledItem,
    animal_id: str,
    owner_id: str,
    region: str,
    country: str
) -> VaccinationRecord:
    """Turn a scheduled item into a persistable record."""
    return VaccinationRecord(
        owner_id=owner_id,
        animal_id=animal_id,
        region=region,
        country=country,
        vaccine_name=item.vaccine_name,
        dose_number=item.dose_number,
        is_booster=False,
        status=VaccinationStatus.SCHEDULED,
        scheduled_date=item.scheduled_date,
        next_due_date=item.scheduled_date,
        vaccine_type=item.vaccine_type,
        administration_route=item.administration_route,
        is_required=item.is_required
    )


def compute_next_due_date(
    protocol: Optional[RegionalProtocol],
    vaccine_name: str,
    dose_number: Optional[int],
    is_booster: bool,
    administration_date: datetime
) -> Optional[datetime]:
    """
    Next due date after an administered dose.

    The result depends only on the vaccine, the dose identity, the
    administration date and the protocol, so recomputation is idempotent.

    Args:
        protocol: Active protocol, or None when none could be resolved
        vaccine_name: Administered vaccine
        dose_number: Primary dose number (ignored for boosters)
        is_booster: Whether the administered dose was a booster
        administration_date: When the dose was given

    Returns:
        Due date of the following dose/booster, or None when nothing follows
    """
    if protocol is None:
        return None

    vaccine = protocol.find_vaccine(vaccine_name)
    if vaccine is None:
        return None

    first_booster = vaccine.boosters[0] if vaccine.boosters else None

    if is_booster:
        if first_booster is None:
            return None
        return administration_date + timedelta(days=first_booster.frequency_in_days)

    current = vaccine.find_dose(dose_number)
    if current is not None:
        later = sorted(
            (dose for dose in vaccine.primary_series if dose.dose_number > current.dose_number),
            key=lambda dose: dose.dose_number
        )
        if later:
            interval = max(later[0].age_in_days - current.age_in_days, 0)
            return administration_date + timedelta(days=interval)

    # Primary series complete (or dose outside the series): first booster
    if first_booster is None:
        return None
    gap = first_booster.last_vaccination_gap or first_booster.frequency_in_days
    return administration_date + timedelta(days=gap)
