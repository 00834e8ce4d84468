# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the regional vaccination engine.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity, DocumentModel
from .enums import (
    VaccinationStatus,
    AlertType,
    Priority,
    RecommendationType
)


class Country(DocumentModel):
    """Country covered by a regional protocol."""

    code: str = Field(..., min_length=2, max_length=3, description="ISO country code")
    name: Optional[str] = Field(None, description="Country display name")

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        """Normalize country code to upper case."""
        return v.strip().upper()


class PrimaryDose(DocumentModel):
    """Single age-triggered dose of a primary series."""

    age_in_days: int = Field(..., ge=0, description="Animal age at which the dose is due")
    dose_number: int = Field(..., ge=1, description="Position of the dose in the series")
    is_required: bool = Field(default=True, description="Whether the dose is mandatory")
    age_description: Optional[str] = Field(None, description="Human readable age, e.g. '6-8 weeks'")
    notes: Optional[str] = None


class Booster(DocumentModel):
    """Recurring re-vaccination following the primary series."""

    frequency: Optional[str] = Field(None, description="Label such as 'annual' or 'biannual'")
    frequency_in_days: int = Field(..., gt=0, description="Days between boosters")
    last_vaccination_gap: Optional[int] = Field(
        None, ge=0, description="Days after the last primary dose for the first booster"
    )
    is_required: bool = Field(default=True)
    notes: Optional[str] = None


class SeasonalRecommendation(DocumentModel):
    """Season or month window in which a vaccine should be prioritised."""

    season: Optional[str] = Field(None, description="Season name")
    months: List[int] = Field(default_factory=list, description="Calendar months (1-12)")
    is_priority: bool = Field(default=False)
    reason: Optional[str] = None

    @field_validator('months')
    @classmethod
    def validate_months(cls, v):
        """Validate calendar months."""
        for month in v:
            if month < 1 or month > 12:
                raise ValueError(f'Invalid month: {month}')
        return v


class Vaccine(DocumentModel):
    """Vaccine entry of a regional protocol."""

    vaccine_name: str = Field(..., min_length=1, description="Vaccine name")
    vaccine_type: Optional[str] = Field(None, description="e.g. live_attenuated, inactivated, toxoid")
    administration_route: Optional[str] = Field(None, description="e.g. subcutaneous, intramuscular")
    diseases_prevented: List[str] = Field(default_factory=list)
    primary_series: List[PrimaryDose] = Field(default_factory=list)
    boosters: List[Booster] = Field(default_factory=list)
    seasonal_recommendations: List[SeasonalRecommendation] = Field(default_factory=list)

    @field_validator('primary_series')
    @classmethod
    def validate_unique_doses(cls, v):
        """Dose numbers must be unique within a series."""
        dose_numbers = [dose.dose_number for dose in v]
        if len(dose_numbers) != len(set(dose_numbers)):
            raise ValueError('Dose numbers must be unique within a primary series')
        return v

    def find_dose(self, dose_number: Optional[int]) -> Optional[PrimaryDose]:
        """Return the primary dose with the given number."""
        for dose in self.primary_series:
            if dose.dose_number == dose_number:
                return dose
        return None


class RegionalProtocol(DocumentModel):
    """Immutable vaccination protocol for a (region, countries, animal type)."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    id: Optional[str] = Field(None, description="Protocol identifier")
    region: str = Field(..., description="Region key")
    countries: List[Country] = Field(default_factory=list)
    animal_type: str = Field(..., min_length=1, description="Animal type, e.g. goat, cattle")
    vaccines: List[Vaccine] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    def find_vaccine(self, vaccine_name: str) -> Optional[Vaccine]:
        """Return the vaccine entry with the given name."""
        for vaccine in self.vaccines:
            if vaccine.vaccine_name == vaccine_name:
                return vaccine
        return None


class Animal(DocumentModel):
    """Read-only view of an animal owned by a user."""

    id: str = Field(..., description="Animal identifier")
    owner_id: str = Field(..., description="Owner identifier")
    date_of_birth: datetime = Field(..., description="Date of birth")
    animal_type: str = Field(..., min_length=1, description="Animal type")
    name: Optional[str] = None


class VaccinationRecord(BaseEntity):
    """One dose instance, scheduled or administered."""

    animal_id: str = Field(..., description="Animal identifier")
    region: Optional[str] = None
    country: Optional[str] = None
    vaccine_name: str = Field(..., min_length=1)
    dose_number: Optional[int] = Field(None, ge=1)
    is_booster: bool = False
    status: VaccinationStatus = Field(default=VaccinationStatus.SCHEDULED)
    scheduled_date: Optional[datetime] = None
    administration_date: Optional[datetime] = None
    next_due_date: Optional[datetime] = None
    vaccine_type: Optional[str] = None
    administration_route: Optional[str] = None
    is_required: Optional[bool] = None
    batch_number: Optional[str] = None
    manufacturer: Optional[str] = None
    administered_by: Optional[Dict[str, Any]] = None
    administration_site: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_completion(self):
        """A completed record must carry its administration date."""
        if self.status == VaccinationStatus.COMPLETED.value and self.administration_date is None:
            raise ValueError('Completed vaccination requires an administration date')
        return self


class VaccinationAlert(BaseEntity):
    """Derived, disposable alert about an upcoming or missed vaccination."""

    animal_id: str = Field(..., description="Animal identifier")
    record_id: Optional[str] = Field(None, description="Record the alert was derived from")
    vaccine_name: str = Field(..., min_length=1)
    alert_type: AlertType
    due_date: datetime
    priority: Priority = Field(default=Priority.MEDIUM)
    message: Optional[str] = None
    is_read: bool = False
    is_actioned: bool = False
    actioned_date: Optional[datetime] = None
    is_active: bool = Field(default=True, description="False once superseded by a newer due date")
    superseded_at: Optional[datetime] = None
    expiry_date: datetime
    region: Optional[str] = None
    country: Optional[str] = None


class Recommendation(BaseModel):
    """Time-sensitive vaccination recommendation."""

    model_config = ConfigDict(use_enum_values=True)

    vaccine_name: str
    reason: str
    urgency: Priority
    due_date: datetime
    type: RecommendationType
    dose_number: Optional[int] = None


class ScheduledItem(BaseModel):
    """Primary dose computed for an animal by the schedule generator."""

    vaccine_name: str
    dose_number: int
    scheduled_date: datetime
    age_in_days: int
    is_required: bool = True
    vaccine_type: Optional[str] = None
    administration_route: Optional[str] = None


class GeoLocation(BaseModel):
    """Result of an IP geolocation lookup."""

    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class RegionContext(BaseModel):
    """Request-derived inputs for region and country resolution."""

    region: Optional[str] = Field(None, description="Explicitly requested region")
    owner_id: Optional[str] = Field(None, description="Owner whose preferences apply")
    ip_address: Optional[str] = None
    accept_language: Optional[str] = None
