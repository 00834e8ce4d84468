# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - External integrations and side effects.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .redis import RedisService
from .cache import ProtocolCache, InMemoryProtocolCache, RedisProtocolCache
from .geolocation import GeoLocationProvider, IpApiGeoLocationProvider
from .protocols import RegionalProtocolStore
from .region_resolver import RegionResolver
from .reconciliation import ReconciliationEngine
from .alerts import AlertManager
from .vaccination import VaccinationService

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "RedisService",
    "ProtocolCache",
    "InMemoryProtocolCache",
    "RedisProtocolCache",
    "GeoLocationProvider",
    "IpApiGeoLocationProvider",
    "RegionalProtocolStore",
    "RegionResolver",
    "ReconciliationEngine",
    "AlertManager",
    "VaccinationService"
]
