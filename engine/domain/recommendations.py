# SPDX-License-Identifier: Apache-2.0

"""
Recommendation domain logic.

Derives seasonal, overdue-primary and booster recommendations for one animal
from its protocol and completed history, ordered by urgency.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from models.entities import (
    Animal, RegionalProtocol, Recommendation, SeasonalRecommendation, Vaccine, VaccinationRecord
)
from models.enums import Priority, PRIORITY_RANK, RecommendationType, Season, VaccinationStatus
from .scheduling import animal_age_in_days, days_between


def season_for_month(month: int) -> str:
    """Meteorological season for a calendar month."""
    if 3 <= month <= 5:
        return Season.SPRING.value
    if 6 <= month <= 8:
        return Season.SUMMER.value
    if 9 <= month <= 11:
        return Season.AUTUMN.value
    return Season.WINTER.value


def current_season(now: Optional[datetime] = None) -> str:
    """Season at the given time."""
    return season_for_month((now or datetime.utcnow()).month)


def nearest_month_date(months: Sequence[int], now: datetime) -> datetime:
    """
    Start of the nearest upcoming month from the list.

    The current month counts as upcoming and yields today's date; when every
    month has already passed this year the earliest one next year is used.
    """
    today = datetime(now.year, now.month, now.day)
    if not months:
        return today
    upcoming = sorted(month for month in months if month >= now.month)
    if upcoming:
        target = upcoming[0]
        if target == now.month:
            return today
        return datetime(now.year, target, 1)
    return datetime(now.year + 1, min(months), 1)


def find_seasonal_match(
    vaccine: Vaccine,
    season: str,
    now: datetime
) -> Optional[SeasonalRecommendation]:
    """First seasonal entry matching the season name or the current month."""
    for entry in vaccine.seasonal_recommendations:
        if entry.season == season or now.month in entry.months:
            return entry
    return None


def _completed_by_vaccine(records: Sequence[VaccinationRecord]) -> Dict[str, List[VaccinationRecord]]:
    """Completed records grouped by vaccine, newest administration first."""
    grouped: Dict[str, List[VaccinationRecord]] = {}
    for record in records:
        if record.status != VaccinationStatus.COMPLETED.value or record.administration_date is None:
            continue
        grouped.setdefault(record.vaccine_name, []).append(record)
    for items in grouped.values():
        items.sort(key=lambda r: r.administration_date, reverse=True)
    return grouped


def sort_recommendations(recommendations: List[Recommendation]) -> List[Recommendation]:
    """
    Order by urgency (critical first), then ascending due date.

    The sort is stable, so ties keep protocol iteration order.
    """
    return sorted(
        recommendations,
        key=lambda rec: (-PRIORITY_RANK[rec.urgency], rec.due_date)
    )


def recommend(
    animal: Animal,
    protocol: RegionalProtocol,
    completed_records: Sequence[VaccinationRecord],
    season: Optional[str] = None,
    now: Optional[datetime] = None
) -> List[Recommendation]:
    """
    Compute prioritized recommendations for one animal.

    Args:
        animal: Animal being assessed
        protocol: Active regional protocol
        completed_records: The animal's vaccination history
        season: Season override (defaults to the season of ``now``)
        now: Evaluation time (defaults to utcnow)

    Returns:
        Recommendations sorted by urgency then due date
    """
    now = now or datetime.utcnow()
    season = season or current_season(now)
    age = animal_age_in_days(animal.date_of_birth, now)
    history = _completed_by_vaccine(completed_records)

    recommendations: List[Recommendation] = []

    for vaccine in protocol.vaccines:
        received = history.get(vaccine.vaccine_name, [])

        seasonal = find_seasonal_match(vaccine, season, now)
        if seasonal is not None and seasonal.is_priority:
            recommendations.append(Recommendation(
                vaccine_name=vaccine.vaccine_name,
                reason=f"Seasonal priority: {seasonal.reason or seasonal.season or 'seasonal risk'}",
                urgency=Priority.HIGH,
                due_date=nearest_month_date(seasonal.months, now),
                type=RecommendationType.SEASONAL
            ))

        received_doses = {record.dose_number for record in received if not record.is_booster}
        for dose in vaccine.primary_series:
            if not dose.is_required or dose.age_in_days > age:
                continue
            if dose.dose_number not in received_doses:
                recommendations.append(Recommendation(
                    vaccine_name=vaccine.vaccine_name,
                    reason=f"Overdue primary vaccination (dose {dose.dose_number})",
                    urgency=Priority.CRITICAL,
                    due_date=now,
                    type=RecommendationType.OVERDUE_PRIMARY,
                    dose_number=dose.dose_number
                ))

        if received and vaccine.boosters:
            booster = vaccine.boosters[0]
            last_date = received[0].administration_date
            if days_between(last_date, now) >= booster.frequency_in_days:
                label = booster.frequency or f"every {booster.frequency_in_days} days"
                recommendations.append(Recommendation(
                    vaccine_name=vaccine.vaccine_name,
                    reason=f"Booster vaccination due ({label})",
                    urgency=Priority.MEDIUM,
                    due_date=last_date + timedelta(days=booster.frequency_in_days),
                    type=RecommendationType.BOOSTER
                ))

    return sort_recommendations(recommendations)
