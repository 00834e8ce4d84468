# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the vaccination engine.
"""

# Base models
from .base import BaseEntity, DocumentModel, generate_object_id

# Enumerations
from .enums import (
    Region,
    VaccinationStatus,
    AlertType,
    Priority,
    PRIORITY_RANK,
    RecommendationType,
    DueStatus,
    Season
)

# Core entities
from .entities import (
    Country,
    PrimaryDose,
    Booster,
    SeasonalRecommendation,
    Vaccine,
    RegionalProtocol,
    Animal,
    VaccinationRecord,
    VaccinationAlert,
    Recommendation,
    ScheduledItem,
    GeoLocation,
    RegionContext
)

# Request models
from .requests import (
    RecordVaccinationRequest,
    RecommendationOptions,
    LocationChangeRequest,
    AlertFilters,
    ScheduleFilters
)

# Result models
from .responses import (
    ReconciliationResult,
    LocationChangeResult,
    GeneratedSchedule,
    RegionalSchedule,
    AnnotatedRecord,
    AlertListing,
    OverdueListing,
    Dashboard
)

__all__ = [
    "BaseEntity",
    "DocumentModel",
    "generate_object_id",
    "Region",
    "VaccinationStatus",
    "AlertType",
    "Priority",
    "PRIORITY_RANK",
    "RecommendationType",
    "DueStatus",
    "Season",
    "Country",
    "PrimaryDose",
    "Booster",
    "SeasonalRecommendation",
    "Vaccine",
    "RegionalProtocol",
    "Animal",
    "VaccinationRecord",
    "VaccinationAlert",
    "Recommendation",
    "ScheduledItem",
    "GeoLocation",
    "RegionContext",
    "RecordVaccinationRequest",
    "RecommendationOptions",
    "LocationChangeRequest",
    "AlertFilters",
    "ScheduleFilters",
    "ReconciliationResult",
    "LocationChangeResult",
    "GeneratedSchedule",
    "RegionalSchedule",
    "AnnotatedRecord",
    "AlertListing",
    "OverdueListing",
    "Dashboard"
]
