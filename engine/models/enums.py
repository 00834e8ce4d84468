# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the regional vaccination engine.
"""

from enum import Enum


class Region(str, Enum):
    """Regions for which vaccination protocols are maintained."""
    NORTH_AMERICA = "north_america"
    EUROPE = "europe"
    SOUTH_ASIA = "south_asia"
    AFRICA = "africa"
    LATIN_AMERICA = "latin_america"
    EAST_ASIA = "east_asia"
    SOUTHEAST_ASIA = "southeast_asia"
    MIDDLE_EAST = "middle_east"
    OCEANIA = "oceania"
    GLOBAL_DEFAULT = "global_default"


class VaccinationStatus(str, Enum):
    """Lifecycle status of a single dose instance."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    ADVERSE_REACTION = "adverse_reaction"


class AlertType(str, Enum):
    """Vaccination alert types."""
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    SEASONAL_REMINDER = "seasonal_reminder"
    EMERGENCY = "emergency"
    BOOSTER_DUE = "booster_due"


class Priority(str, Enum):
    """Priority/urgency levels shared by alerts and recommendations."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_RANK = {
    Priority.CRITICAL.value: 3,
    Priority.HIGH.value: 2,
    Priority.MEDIUM.value: 1,
    Priority.LOW.value: 0,
}


class RecommendationType(str, Enum):
    """Classes of recommendation produced for an animal."""
    SEASONAL = "seasonal"
    OVERDUE_PRIMARY = "overdue_primary"
    BOOSTER = "booster"


class DueStatus(str, Enum):
    """Derived due status of a vaccination record."""
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    UPCOMING = "upcoming"
    SCHEDULED = "scheduled"
    UNKNOWN = "unknown"


class Season(str, Enum):
    """Meteorological seasons."""
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"
