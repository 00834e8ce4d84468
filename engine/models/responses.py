# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Result models returned by the engine operations.
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field

from .entities import RegionalProtocol, VaccinationRecord, VaccinationAlert


class ReconciliationResult(BaseModel):
    """Counts of the writes produced by one reconciliation."""

    animal_id: Optional[str] = None
    updated: int = 0
    added: int = 0
    removed: int = 0

    @property
    def is_noop(self) -> bool:
        return self.updated == 0 and self.added == 0 and self.removed == 0


class LocationChangeResult(BaseModel):
    """Aggregate result of reconciling every animal of an owner."""

    owner_id: str
    region: str
    country: str
    animals: List[ReconciliationResult] = Field(default_factory=list)
    skipped_animal_ids: List[str] = Field(default_factory=list)

    @property
    def updated(self) -> int:
        return sum(result.updated for result in self.animals)

    @property
    def added(self) -> int:
        return sum(result.added for result in self.animals)

    @property
    def removed(self) -> int:
        return sum(result.removed for result in self.animals)


class GeneratedSchedule(BaseModel):
    """Records created for a newly registered animal."""

    animal_id: str
    region: str
    country: str
    records: List[VaccinationRecord] = Field(default_factory=list)
    skipped_duplicates: int = 0
    alerts: List[VaccinationAlert] = Field(default_factory=list)

    @property
    def total_scheduled(self) -> int:
        return len(self.records)


class RegionalSchedule(BaseModel):
    """Protocol resolved for a (region, country, animal type) request."""

    region: str
    country: str
    animal_type: str
    protocol: RegionalProtocol


class AnnotatedRecord(BaseModel):
    """Record with its derived due status and urgency."""

    record: VaccinationRecord
    due_status: str
    urgency: str
    days_overdue: Optional[int] = None


class AlertListing(BaseModel):
    """Surfaced alerts with grouping and summary."""

    alerts: List[VaccinationAlert] = Field(default_factory=list)
    grouped: Dict[str, List[VaccinationAlert]] = Field(default_factory=dict)
    summary: Dict[str, int] = Field(default_factory=dict)


class OverdueListing(BaseModel):
    """Overdue vaccinations with summary counts."""

    overdue: List[AnnotatedRecord] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=dict)


class Dashboard(BaseModel):
    """Owner-level vaccination overview."""

    upcoming: List[VaccinationRecord] = Field(default_factory=list)
    overdue: List[VaccinationRecord] = Field(default_factory=list)
    recent: List[VaccinationRecord] = Field(default_factory=list)
    alerts: List[VaccinationAlert] = Field(default_factory=list)
    compliance_rate: int = 100
    summary: Dict[str, Any] = Field(default_factory=dict)
