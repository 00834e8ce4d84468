# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for the operations exposed to the route layer.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .entities import RegionContext
from .enums import Region, AlertType, Priority, VaccinationStatus


class RecordVaccinationRequest(BaseModel):
    """Request model for recording an administered vaccination."""

    model_config = ConfigDict(use_enum_values=True)

    owner_id: str = Field(..., description="Owner recording the vaccination")
    animal_id: str = Field(..., description="Vaccinated animal")
    vaccine_name: str = Field(..., min_length=1, max_length=200)
    scheduled_record_id: Optional[str] = Field(None, description="Scheduled record being fulfilled")
    administration_date: Optional[datetime] = Field(None, description="Defaults to now")
    dose_number: Optional[int] = Field(None, ge=1)
    is_booster: bool = False
    region: Optional[str] = None
    country: Optional[str] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    manufacturer: Optional[str] = Field(None, max_length=200)
    administered_by: Optional[Dict[str, Any]] = None
    administration_site: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('vaccine_name')
    @classmethod
    def validate_vaccine_name(cls, v):
        """Validate vaccine name."""
        if not v.strip():
            raise ValueError('Vaccine name cannot be empty')
        return v.strip()

    @field_validator('administration_date')
    @classmethod
    def validate_administration_date(cls, v):
        """Administration cannot be recorded in the future; aware values are stored as naive UTC."""
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        if v is not None and v > datetime.utcnow():
            raise ValueError('Administration date cannot be in the future')
        return v


class RecommendationOptions(BaseModel):
    """Options for recommendation requests."""

    region: Optional[str] = None
    country: Optional[str] = None
    season: Optional[str] = None
    now: Optional[datetime] = None
    context: Optional[RegionContext] = None


class LocationChangeRequest(BaseModel):
    """Request model for an owner's change of location."""

    model_config = ConfigDict(use_enum_values=True)

    owner_id: str
    region: Region
    country: str = Field(..., min_length=2, max_length=3)

    @field_validator('country')
    @classmethod
    def validate_country(cls, v):
        """Normalize country code."""
        return v.strip().upper()


class AlertFilters(BaseModel):
    """Filters for alert listing."""

    model_config = ConfigDict(use_enum_values=True)

    priority: Optional[Priority] = None
    alert_type: Optional[AlertType] = None
    is_read: Optional[bool] = None


class ScheduleFilters(BaseModel):
    """Filters for an animal's schedule listing."""

    model_config = ConfigDict(use_enum_values=True)

    status: Optional[VaccinationStatus] = None
    upcoming: bool = False
