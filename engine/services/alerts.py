# SPDX-License-Identifier: Apache-2.0

"""
Alert manager.

Derives alerts from record due dates, supersedes alerts whose due date moved
and serves the surfaced alert listing.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from opentelemetry import trace

from domain.alerts import COMPLIANCE_STATUSES, is_surfaced, plan_alerts_for_record
from models.entities import VaccinationAlert, VaccinationRecord
from models.enums import AlertType, PRIORITY_RANK
from models.requests import AlertFilters
from models.responses import AlertListing
from utils.errors import RecordNotFoundException
from .stores import AlertStore

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def sort_alerts(alerts: Sequence[VaccinationAlert]) -> List[VaccinationAlert]:
    """Highest priority first, then earliest due date."""
    return sorted(alerts, key=lambda alert: (-PRIORITY_RANK[alert.priority], alert.due_date))


class AlertManager:
    """Keeps derived alerts in step with record due dates."""

    def __init__(self, alert_store: AlertStore):
        self.alert_store = alert_store

    def _supersede(self, alert: VaccinationAlert, now: datetime) -> None:
        self.alert_store.update(alert.id, {
            "is_active": False,
            "superseded_at": now,
            "updated_at": now
        })
        logger.debug(f"Superseded alert {alert.id} for record {alert.record_id}")

    def on_schedule_computed(
        self,
        records: Sequence[VaccinationRecord],
        now: Optional[datetime] = None,
        ensure_alert: bool = False
    ) -> List[VaccinationAlert]:
        """
        Derive alerts for records whose due dates were (re)computed.

        Args:
            records: Records with current due dates
            now: Evaluation time (defaults to utcnow)
            ensure_alert: Also raise a low-priority alert for due dates beyond 30 days

        Returns:
            Active alerts created or escalated by this call
        """
        now = now or datetime.utcnow()
        if not records:
            return []

        with tracer.start_as_current_span("alerts.on_schedule_computed") as span:
            span.set_attribute("alerts.records", len(records))

            active_by_record: Dict[str, List[VaccinationAlert]] = {}
            for alert in self.alert_store.find_active_for_records([record.id for record in records]):
                active_by_record.setdefault(alert.record_id, []).append(alert)

            produced: List[VaccinationAlert] = []
            superseded = 0
            for record in records:
                active = active_by_record.get(record.id, [])
                if record.status not in COMPLIANCE_STATUSES:
                    for alert in active:
                        self._supersede(alert, now)
                    superseded += len(active)
                    continue

                plan = plan_alerts_for_record(record, active, now, ensure_alert=ensure_alert)
                for alert in plan.supersede:
                    self._supersede(alert, now)
                superseded += len(plan.supersede)

                for alert, changes in plan.escalate:
                    changes = dict(changes, updated_at=now)
                    self.alert_store.update(alert.id, changes)
                    produced.append(alert.model_copy(update=changes))

                if plan.create is not None:
                    produced.append(self.alert_store.insert(plan.create))

            span.set_attribute("alerts.produced", len(produced))
            span.set_attribute("alerts.superseded", superseded)

        return produced

    def retire_for_records(self, record_ids: Sequence[str], now: Optional[datetime] = None) -> int:
        """Supersede every active alert tied to the records (e.g. deleted schedule items)."""
        now = now or datetime.utcnow()
        alerts = self.alert_store.find_active_for_records(list(record_ids))
        for alert in alerts:
            self._supersede(alert, now)
        return len(alerts)

    def list_alerts(
        self,
        owner_id: str,
        filters: Optional[AlertFilters] = None,
        now: Optional[datetime] = None
    ) -> AlertListing:
        """Surfaced alerts of an owner, sorted, grouped by priority and summarised."""
        now = now or datetime.utcnow()
        filters = filters or AlertFilters()

        alerts = [
            alert for alert in self.alert_store.query_by_owner(owner_id)
            if is_surfaced(alert, now)
            and (filters.priority is None or alert.priority == filters.priority)
            and (filters.alert_type is None or alert.alert_type == filters.alert_type)
            and (filters.is_read is None or alert.is_read == filters.is_read)
        ]
        alerts = sort_alerts(alerts)

        grouped: Dict[str, List[VaccinationAlert]] = {}
        for alert in alerts:
            grouped.setdefault(alert.priority, []).append(alert)

        summary = {
            "total": len(alerts),
            "unread": sum(1 for alert in alerts if not alert.is_read),
            "overdue": sum(1 for alert in alerts if alert.alert_type == AlertType.OVERDUE.value),
            "dueSoon": sum(1 for alert in alerts if alert.alert_type == AlertType.DUE_SOON.value)
        }
        return AlertListing(alerts=alerts, grouped=grouped, summary=summary)

    def _require(self, owner_id: str, alert_id: str) -> VaccinationAlert:
        alert = self.alert_store.get(owner_id, alert_id)
        if alert is None:
            raise RecordNotFoundException(f"Alert not found: {alert_id}")
        return alert

    def mark_read(self, owner_id: str, alert_id: str, now: Optional[datetime] = None) -> VaccinationAlert:
        now = now or datetime.utcnow()
        alert = self._require(owner_id, alert_id)
        changes = {"is_read": True, "updated_at": now}
        self.alert_store.update(alert_id, changes)
        return alert.model_copy(update=changes)

    def mark_actioned(self, owner_id: str, alert_id: str, now: Optional[datetime] = None) -> VaccinationAlert:
        """Mark an alert as acted upon; actioned alerts are no longer surfaced."""
        now = now or datetime.utcnow()
        alert = self._require(owner_id, alert_id)
        changes = {"is_actioned": True, "actioned_date": now, "updated_at": now}
        self.alert_store.update(alert_id, changes)
        return alert.model_copy(update=changes)
