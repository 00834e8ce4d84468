# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Vaccination service: the operations exposed to the route layer.

Coordinates region resolution, protocol lookup, the pure scheduling and
recommendation functions, reconciliation and alert derivation.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from opentelemetry import trace

from domain.alerts import (
    UPCOMING_WINDOW_DAYS,
    ALERT_HORIZON_DAYS,
    alert_candidates,
    compliance_rate,
    compute_due_status,
    days_until,
    overdue_urgency,
    urgency_for_due_status
)
from domain.reconciliation import administered_keys, is_pending, record_key
from domain.recommendations import recommend
from domain.regions import GLOBAL_DEFAULT, UNSPECIFIED_COUNTRY, normalize_country, normalize_region
from domain.scheduling import build_scheduled_record, compute_next_due_date, days_between, generate_schedule
from models.entities import Animal, Recommendation, RegionContext, VaccinationAlert, VaccinationRecord
from models.enums import VaccinationStatus
from models.requests import (
    AlertFilters,
    LocationChangeRequest,
    RecommendationOptions,
    RecordVaccinationRequest,
    ScheduleFilters
)
from models.responses import (
    AlertListing,
    AnnotatedRecord,
    Dashboard,
    GeneratedSchedule,
    LocationChangeResult,
    OverdueListing,
    RegionalSchedule
)
from utils.errors import (
    AnimalNotFoundException,
    ConflictException,
    PersistenceException,
    RecordNotFoundException,
    ValidationException
)
from .alerts import AlertManager
from .protocols import RegionalProtocolStore
from .reconciliation import ReconciliationEngine
from .region_resolver import RegionResolver
from .stores import AnimalStore, RecordStore

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DASHBOARD_LIMIT = 10
RECENT_WINDOW_DAYS = 30


class VaccinationService:
    """Facade over the regional vaccination engine."""

    def __init__(
        self,
        animals: AnimalStore,
        records: RecordStore,
        protocols: RegionalProtocolStore,
        resolver: RegionResolver,
        alerts: AlertManager,
        reconciliation: Optional[ReconciliationEngine] = None
    ):
        self.animals = animals
        self.records = records
        self.protocols = protocols
        self.resolver = resolver
        self.alerts = alerts
        self.reconciliation = reconciliation or ReconciliationEngine(records)

    # Helpers

    def _get_animal(self, owner_id: str, animal_id: str) -> Animal:
        animal = self.animals.get(animal_id)
        if animal is None or animal.owner_id != owner_id:
            raise AnimalNotFoundException(animal_id)
        return animal

    def _context(self, owner_id: str, context: Optional[RegionContext]) -> RegionContext:
        if context is None:
            return RegionContext(owner_id=owner_id)
        if context.owner_id is None:
            return context.model_copy(update={"owner_id": owner_id})
        return context

    def _resolve_location(
        self,
        owner_id: str,
        context: Optional[RegionContext] = None,
        region: Optional[str] = None,
        country: Optional[str] = None
    ):
        context = self._context(owner_id, context)
        resolved_region = normalize_region(region) or self.resolver.resolve(context)
        resolved_country = normalize_country(country) or self.resolver.resolve_country(context)
        return resolved_region, resolved_country

    # Exposed operations

    def generate_schedule_for_animal(
        self,
        animal_id: str,
        owner_id: str,
        context: Optional[RegionContext] = None,
        now: Optional[datetime] = None
    ) -> GeneratedSchedule:
        """
        Create scheduled records for an animal's upcoming primary doses.

        Doses already administered are left out, and the storage layer's
        scheduled-dose uniqueness rule turns a repeated call into a no-op.

        Raises:
            AnimalNotFoundException: Unknown animal or not owned by the caller
            ProtocolNotFoundException: No protocol anywhere in the fallback chain
            PersistenceException: The records could not be written
        """
        now = now or datetime.utcnow()
        with tracer.start_as_current_span("vaccination.generate_schedule") as span:
            span.set_attributes({"animal.id": animal_id, "owner.id": owner_id})

            animal = self._get_animal(owner_id, animal_id)
            region, country = self._resolve_location(owner_id, context)
            span.set_attributes({"vaccination.region": region, "vaccination.country": country})

            protocol = self.protocols.require_protocol(region, country, animal.animal_type)

            existing = self.records.query_by_animal(owner_id, animal_id)
            given = administered_keys(existing)
            items = generate_schedule(animal, protocol, now)
            pending = [
                build_scheduled_record(item, animal.id, owner_id, region, country)
                for item in items
                if (item.vaccine_name, item.dose_number) not in given
            ]

            try:
                inserted, skipped = self.records.insert_many(pending)
            except Exception as e:
                logger.error(f"Failed to write schedule for animal {animal_id}: {e}")
                raise PersistenceException(f"Schedule for animal {animal_id} could not be saved") from e

            skipped += len(items) - len(pending)
            alerts = self.alerts.on_schedule_computed(inserted, now)

            span.set_attribute("vaccination.scheduled", len(inserted))
            logger.info(
                f"Generated {len(inserted)} scheduled doses for animal {animal_id} "
                f"({region}/{country}, {skipped} skipped)"
            )
            return GeneratedSchedule(
                animal_id=animal_id,
                region=region,
                country=country,
                records=inserted,
                skipped_duplicates=skipped,
                alerts=alerts
            )

    def get_recommendations(
        self,
        owner_id: str,
        animal_id: str,
        options: Optional[RecommendationOptions] = None
    ) -> List[Recommendation]:
        """
        Prioritized recommendations for one animal.

        Raises:
            AnimalNotFoundException: Unknown animal or not owned by the caller
            ProtocolNotFoundException: No protocol anywhere in the fallback chain
        """
        options = options or RecommendationOptions()
        with tracer.start_as_current_span("vaccination.get_recommendations") as span:
            span.set_attributes({"animal.id": animal_id, "owner.id": owner_id})

            animal = self._get_animal(owner_id, animal_id)
            region, country = self._resolve_location(owner_id, options.context, options.region, options.country)
            protocol = self.protocols.require_protocol(region, country, animal.animal_type)
            history = self.records.query_by_animal(owner_id, animal_id)

            recommendations = recommend(animal, protocol, history, season=options.season, now=options.now)
            span.set_attribute("vaccination.recommendations", len(recommendations))
            return recommendations

    def _find_pending_dose(self, owner_id: str, request: RecordVaccinationRequest) -> Optional[VaccinationRecord]:
        if request.is_booster or request.dose_number is None:
            return None
        key = (request.vaccine_name, request.dose_number)
        for record in self.records.query_by_animal(owner_id, request.animal_id):
            if is_pending(record) and record_key(record) == key:
                return record
        return None

    def record_vaccination(
        self,
        request: RecordVaccinationRequest,
        now: Optional[datetime] = None
    ) -> VaccinationRecord:
        """
        Record an administered dose and recompute its next due date.

        Fulfils the referenced (or matching pending) scheduled record when
        there is one, otherwise creates a completed record. Alerts tied to the
        prior due date are superseded by one alert for the new due date.

        Raises:
            AnimalNotFoundException: Unknown animal or not owned by the caller
            RecordNotFoundException: The referenced scheduled record does not exist
            ConflictException: The referenced record was already administered
            PersistenceException: The record could not be written
        """
        now = now or datetime.utcnow()
        with tracer.start_as_current_span("vaccination.record_vaccination") as span:
            span.set_attributes({
                "animal.id": request.animal_id,
                "owner.id": request.owner_id,
                "vaccination.vaccine": request.vaccine_name
            })

            animal = self._get_animal(request.owner_id, request.animal_id)

            target: Optional[VaccinationRecord] = None
            if request.scheduled_record_id:
                target = self.records.get(request.owner_id, request.scheduled_record_id)
                if target is None or target.animal_id != request.animal_id:
                    raise RecordNotFoundException(
                        f"Vaccination record not found: {request.scheduled_record_id}"
                    )
                if target.administration_date is not None:
                    raise ConflictException(
                        f"Vaccination record {target.id} was already administered"
                    )
            else:
                target = self._find_pending_dose(request.owner_id, request)

            region = normalize_region(request.region) or (target.region if target else None)
            country = normalize_country(request.country) or (target.country if target else None)
            if region is None or country is None:
                resolved_region, resolved_country = self._resolve_location(request.owner_id)
                region = region or resolved_region
                country = country or resolved_country

            vaccine_name = target.vaccine_name if target else request.vaccine_name
            dose_number = target.dose_number if target else request.dose_number
            is_booster = target.is_booster if target else request.is_booster
            administration_date = request.administration_date or now

            protocol = self.protocols.get_protocol(region, country, animal.animal_type)
            if protocol is None:
                logger.warning(
                    f"No protocol for {animal.animal_type} in {region}/{country}; "
                    f"next due date for {vaccine_name} left unset"
                )
            next_due_date = compute_next_due_date(
                protocol, vaccine_name, dose_number, is_booster, administration_date
            )

            details = {
                "batch_number": request.batch_number,
                "manufacturer": request.manufacturer,
                "administered_by": request.administered_by,
                "administration_site": request.administration_site,
                "notes": request.notes
            }

            try:
                if target is not None:
                    changes = {
                        "administration_date": administration_date,
                        "status": VaccinationStatus.COMPLETED.value,
                        "next_due_date": next_due_date,
                        "updated_at": now,
                        **{name: value for name, value in details.items() if value is not None}
                    }
                    self.records.update(target.id, changes)
                    record = target.model_copy(update=changes)
                else:
                    record = VaccinationRecord(
                        owner_id=request.owner_id,
                        animal_id=request.animal_id,
                        region=region,
                        country=country,
                        vaccine_name=vaccine_name,
                        dose_number=dose_number,
                        is_booster=is_booster,
                        status=VaccinationStatus.COMPLETED,
                        administration_date=administration_date,
                        next_due_date=next_due_date,
                        created_at=now,
                        updated_at=now,
                        **details
                    )
                    self.records.insert(record)
            except Exception as e:
                logger.error(f"Failed to record vaccination for animal {request.animal_id}: {e}")
                raise PersistenceException(
                    f"Vaccination for animal {request.animal_id} could not be recorded"
                ) from e

            # Earlier completions of the same vaccine no longer drive alerts
            earlier = [
                existing.id for existing in self.records.query_by_animal(request.owner_id, request.animal_id)
                if existing.id != record.id
                and existing.vaccine_name == vaccine_name
                and existing.administration_date is not None
                and existing.administration_date <= administration_date
            ]
            if earlier:
                self.alerts.retire_for_records(earlier, now)
            self.alerts.on_schedule_computed([record], now, ensure_alert=True)

            span.set_attribute("vaccination.record_id", record.id)
            logger.info(
                f"Recorded {vaccine_name} for animal {request.animal_id}; next due {next_due_date}"
            )
            return record

    def update_schedule_for_location_change(
        self,
        owner_id: str,
        new_region: str,
        new_country: str,
        now: Optional[datetime] = None
    ) -> LocationChangeResult:
        """
        Reconcile every animal of an owner against the protocols of a new location.

        Each animal is reconciled as its own atomic unit. Animals without a
        protocol at the new location keep their schedule and are reported as
        skipped.

        Raises:
            ValidationException: Unknown region or malformed country
            PersistenceException: A reconciliation unit failed and was rolled back
        """
        now = now or datetime.utcnow()
        try:
            request = LocationChangeRequest(owner_id=owner_id, region=new_region, country=new_country)
        except ValueError as e:
            raise ValidationException("Invalid location", validation_errors=[str(e)]) from e

        with tracer.start_as_current_span("vaccination.update_schedule_for_location_change") as span:
            span.set_attributes({
                "owner.id": owner_id,
                "vaccination.region": request.region,
                "vaccination.country": request.country
            })

            result = LocationChangeResult(owner_id=owner_id, region=request.region, country=request.country)

            for animal in self.animals.find_by_owner(owner_id):
                protocol = self.protocols.get_protocol(request.region, request.country, animal.animal_type)
                if protocol is None:
                    logger.warning(
                        f"No {animal.animal_type} protocol for {request.region}/{request.country}; "
                        f"schedule of animal {animal.id} left unchanged"
                    )
                    result.skipped_animal_ids.append(animal.id)
                    continue

                existing = self.records.query_by_animal(owner_id, animal.id)
                plan = self.reconciliation.plan(animal, existing, protocol, request.region, request.country, now)
                result.animals.append(self.reconciliation.apply(animal.id, plan, now))

                if plan.deletes:
                    self.alerts.retire_for_records([record.id for record in plan.deletes], now)
                changed = [update.record.model_copy(update=update.changes) for update in plan.updates]
                self.alerts.on_schedule_computed(changed + plan.inserts, now)

            span.set_attributes({
                "reconciliation.updated": result.updated,
                "reconciliation.added": result.added,
                "reconciliation.removed": result.removed
            })
            logger.info(
                f"Location change for owner {owner_id} to {request.region}/{request.country}: "
                f"updated={result.updated} added={result.added} removed={result.removed}"
            )
            return result

    def get_regional_schedule(self, region: str, country: str, animal_type: str) -> RegionalSchedule:
        """
        Protocol for a (region, country, animal type).

        Raises:
            ProtocolNotFoundException: No protocol anywhere in the fallback chain
        """
        region = normalize_region(region) or GLOBAL_DEFAULT
        country = normalize_country(country) or UNSPECIFIED_COUNTRY
        protocol = self.protocols.require_protocol(region, country, animal_type)
        return RegionalSchedule(region=region, country=country, animal_type=animal_type, protocol=protocol)

    # Listings

    def get_animal_schedule(
        self,
        owner_id: str,
        animal_id: str,
        filters: Optional[ScheduleFilters] = None,
        now: Optional[datetime] = None
    ) -> List[AnnotatedRecord]:
        """An animal's records in scheduled-date order with due status and urgency."""
        now = now or datetime.utcnow()
        filters = filters or ScheduleFilters()
        self._get_animal(owner_id, animal_id)

        annotated = []
        for record in self.records.query_by_animal(owner_id, animal_id):
            if filters.status is not None and record.status != filters.status:
                continue
            due_date = record.next_due_date or record.scheduled_date
            if filters.upcoming:
                if due_date is None or not 0 <= days_until(due_date, now) <= UPCOMING_WINDOW_DAYS:
                    continue
            status = compute_due_status(record, now)
            annotated.append(AnnotatedRecord(
                record=record,
                due_status=status,
                urgency=urgency_for_due_status(status)
            ))

        annotated.sort(key=lambda item: item.record.scheduled_date or datetime.max)
        return annotated

    def get_overdue_vaccinations(self, owner_id: str, now: Optional[datetime] = None) -> OverdueListing:
        """Overdue records of an owner with days overdue and urgency."""
        now = now or datetime.utcnow()
        overdue = []
        for record in self.records.query_overdue(owner_id, now):
            days_overdue = days_between(record.next_due_date, now)
            overdue.append(AnnotatedRecord(
                record=record,
                due_status=compute_due_status(record, now),
                urgency=overdue_urgency(days_overdue),
                days_overdue=days_overdue
            ))

        summary = {"total": len(overdue)}
        for level in ("critical", "high", "medium"):
            summary[level] = sum(1 for item in overdue if item.urgency == level)
        return OverdueListing(overdue=overdue, summary=summary)

    def get_alerts(
        self,
        owner_id: str,
        filters: Optional[AlertFilters] = None,
        now: Optional[datetime] = None
    ) -> AlertListing:
        return self.alerts.list_alerts(owner_id, filters, now)

    def mark_alert_read(self, owner_id: str, alert_id: str) -> VaccinationAlert:
        return self.alerts.mark_read(owner_id, alert_id)

    def mark_alert_actioned(self, owner_id: str, alert_id: str) -> VaccinationAlert:
        return self.alerts.mark_actioned(owner_id, alert_id)

    def rescan_alerts(self, owner_id: str, now: Optional[datetime] = None) -> List[VaccinationAlert]:
        """Re-derive an owner's alerts; invoked periodically by an external scheduler."""
        now = now or datetime.utcnow()
        with tracer.start_as_current_span("vaccination.rescan_alerts") as span:
            span.set_attribute("owner.id", owner_id)
            candidates = alert_candidates(self.records.query_by_owner(owner_id))
            return self.alerts.on_schedule_computed(candidates, now)

    def get_dashboard(self, owner_id: str, now: Optional[datetime] = None) -> Dashboard:
        """Owner overview: upcoming, overdue, recent, unread alerts and compliance."""
        now = now or datetime.utcnow()
        records = self.records.query_by_owner(owner_id)

        upcoming = sorted(
            (
                record for record in records
                if record.status == VaccinationStatus.SCHEDULED.value
                and record.next_due_date is not None
                and 0 <= days_until(record.next_due_date, now) <= ALERT_HORIZON_DAYS
            ),
            key=lambda record: record.next_due_date
        )
        recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
        recent = sorted(
            (
                record for record in records
                if record.status == VaccinationStatus.COMPLETED.value
                and record.administration_date is not None
                and record.administration_date >= recent_cutoff
            ),
            key=lambda record: record.administration_date,
            reverse=True
        )
        overdue = self.records.query_overdue(owner_id, now)
        alerts = self.alerts.list_alerts(owner_id, AlertFilters(is_read=False), now).alerts

        rate = compliance_rate(records)
        return Dashboard(
            upcoming=upcoming[:DASHBOARD_LIMIT],
            overdue=overdue[:DASHBOARD_LIMIT],
            recent=recent[:DASHBOARD_LIMIT],
            alerts=alerts[:DASHBOARD_LIMIT],
            compliance_rate=rate,
            summary={
                "totalRecords": len(records),
                "upcoming": len(upcoming),
                "overdue": len(overdue),
                "recentlyCompleted": len(recent),
                "unreadAlerts": len(alerts),
                "complianceRate": rate
            }
        )
