# SPDX-License-Identifier: Apache-2.0

"""
Alert and due-status domain logic.

Pure functions classifying due dates, building alert records, deciding which
alerts a changed due date supersedes, and summarising compliance.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models.entities import VaccinationAlert, VaccinationRecord
from models.enums import AlertType, DueStatus, Priority, VaccinationStatus
from .scheduling import days_between

ALERT_EXPIRY = timedelta(days=90)
ALERT_HORIZON_DAYS = 30
UPCOMING_WINDOW_DAYS = 90

COMPLIANCE_STATUSES = (
    VaccinationStatus.SCHEDULED.value,
    VaccinationStatus.COMPLETED.value,
    VaccinationStatus.OVERDUE.value,
)


@dataclass
class AlertPlan:
    """Alert writes derived for a single record."""
    supersede: List[VaccinationAlert] = field(default_factory=list)
    escalate: List[Tuple[VaccinationAlert, Dict[str, Any]]] = field(default_factory=list)
    create: Optional[VaccinationAlert] = None


def record_due_date(record: VaccinationRecord) -> Optional[datetime]:
    """Due date driving alerts: nextDueDate, else scheduledDate for pending doses."""
    if record.next_due_date is not None:
        return record.next_due_date
    if record.administration_date is None:
        return record.scheduled_date
    return None


def days_until(due_date: datetime, now: datetime) -> int:
    """Calendar days until the due date (negative once it has passed)."""
    return days_between(now, due_date)


def classify_due(days: int) -> Optional[Tuple[str, str]]:
    """
    Map days-until-due to (alert type, priority).

    Returns None when the due date is more than 30 days away.
    """
    if days < 0:
        return AlertType.OVERDUE.value, Priority.HIGH.value
    if days <= 7:
        return AlertType.DUE_SOON.value, Priority.HIGH.value
    if days <= ALERT_HORIZON_DAYS:
        return AlertType.DUE_SOON.value, Priority.MEDIUM.value
    return None


def alert_message(vaccine_name: str, days: int) -> str:
    if days < 0:
        return f"{vaccine_name} vaccination is {abs(days)} days overdue"
    if days == 0:
        return f"{vaccine_name} vaccination is due today"
    return f"{vaccine_name} vaccination is due in {days} days"


def build_alert(
    record: VaccinationRecord,
    due_date: datetime,
    alert_type: str,
    priority: str,
    now: datetime
) -> VaccinationAlert:
    """Alert for a record's due date, expiring 90 days after it."""
    return VaccinationAlert(
        owner_id=record.owner_id,
        animal_id=record.animal_id,
        record_id=record.id,
        vaccine_name=record.vaccine_name,
        alert_type=alert_type,
        due_date=due_date,
        priority=priority,
        message=alert_message(record.vaccine_name, days_until(due_date, now)),
        expiry_date=due_date + ALERT_EXPIRY,
        region=record.region,
        country=record.country,
        created_at=now,
        updated_at=now
    )


def is_expired(alert: VaccinationAlert, now: datetime) -> bool:
    return now > alert.expiry_date


def is_surfaced(alert: VaccinationAlert, now: datetime) -> bool:
    """Whether an alert should still be shown to the owner."""
    return alert.is_active and not alert.is_actioned and not is_expired(alert, now)


def alert_candidates(records: Sequence[VaccinationRecord]) -> List[VaccinationRecord]:
    """
    Records that may carry an alert.

    Pending records always qualify; of the completed records only the most
    recent administration per vaccine does, since later doses replace the
    due date of earlier ones.
    """
    latest: Dict[str, VaccinationRecord] = {}
    candidates: List[VaccinationRecord] = []
    for record in records:
        if record.status not in COMPLIANCE_STATUSES:
            continue
        if record.administration_date is None:
            candidates.append(record)
            continue
        current = latest.get(record.vaccine_name)
        if current is None or record.administration_date > current.administration_date:
            latest[record.vaccine_name] = record
    candidates.extend(latest.values())
    return candidates


def plan_alerts_for_record(
    record: VaccinationRecord,
    active_alerts: Sequence[VaccinationAlert],
    now: datetime,
    ensure_alert: bool = False
) -> AlertPlan:
    """
    Decide alert writes after a record's due date was (re)computed.

    Active alerts tied to any other due date are superseded, so at most one
    alert per record stays active. An alert already covering the current due
    date is escalated when its classification changed, never duplicated.

    Args:
        record: Record whose due date was computed
        active_alerts: Active alerts currently tied to the record
        now: Evaluation time
        ensure_alert: Create a low-priority alert even beyond the 30 day horizon

    Returns:
        AlertPlan with the alerts to supersede, escalate and create
    """
    plan = AlertPlan()
    due_date = record_due_date(record)

    current: Optional[VaccinationAlert] = None
    for alert in active_alerts:
        if due_date is not None and alert.due_date == due_date and current is None:
            current = alert
        else:
            plan.supersede.append(alert)

    if due_date is None:
        return plan

    days = days_until(due_date, now)
    classification = classify_due(days)
    if classification is None and ensure_alert:
        fallback_type = AlertType.BOOSTER_DUE.value if record.is_booster else AlertType.DUE_SOON.value
        classification = (fallback_type, Priority.LOW.value)

    if current is not None:
        if current.is_actioned or classification is None:
            return plan
        alert_type, priority = classification
        if (current.alert_type, current.priority) != (alert_type, priority):
            plan.escalate.append((current, {
                "alert_type": alert_type,
                "priority": priority,
                "message": alert_message(record.vaccine_name, days)
            }))
        return plan

    if classification is not None:
        alert_type, priority = classification
        plan.create = build_alert(record, due_date, alert_type, priority, now)
    return plan


def compute_due_status(record: VaccinationRecord, now: datetime) -> str:
    """Due status of a record at the given time."""
    due_date = record.next_due_date or record.scheduled_date
    if due_date is None:
        return DueStatus.UNKNOWN.value

    days = days_until(due_date, now)
    if days < 0:
        return DueStatus.OVERDUE.value
    if days == 0:
        return DueStatus.DUE_TODAY.value
    if days <= 7:
        return DueStatus.DUE_SOON.value
    if days <= ALERT_HORIZON_DAYS:
        return DueStatus.UPCOMING.value
    return DueStatus.SCHEDULED.value


def urgency_for_due_status(status: str) -> str:
    if status == DueStatus.OVERDUE.value:
        return Priority.CRITICAL.value
    if status in (DueStatus.DUE_TODAY.value, DueStatus.DUE_SOON.value):
        return Priority.HIGH.value
    if status == DueStatus.UPCOMING.value:
        return Priority.MEDIUM.value
    return Priority.LOW.value


def overdue_urgency(days_overdue: int) -> str:
    """Urgency of an overdue vaccination by how long it has been missed."""
    if days_overdue > 30:
        return Priority.CRITICAL.value
    if days_overdue > 14:
        return Priority.HIGH.value
    return Priority.MEDIUM.value


def compliance_rate(records: Sequence[VaccinationRecord]) -> int:
    """
    Percentage of tracked records completed on time.

    A record counts as on time when it is completed and its administration
    date is not later than the record's own nextDueDate.
    """
    tracked = [record for record in records if record.status in COMPLIANCE_STATUSES]
    if not tracked:
        return 100

    on_time = sum(
        1 for record in tracked
        if record.status == VaccinationStatus.COMPLETED.value
        and record.administration_date is not None
        and record.next_due_date is not None
        and record.administration_date <= record.next_due_date
    )
    return int(on_time * 100 / len(tracked) + 0.5)
