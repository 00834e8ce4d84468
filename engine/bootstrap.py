# SPDX-License-Identifier: Apache-2.0

"""
Regional vaccination engine - service wiring.

Builds the engine's collaborators once per process from environment
configuration. The protocol cache instance is created here and injected, so
every consumer shares the same cache.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from observability.config import setup_observability
from services.alerts import AlertManager
from services.cache import (
    DEFAULT_PROTOCOL_TTL_SECONDS,
    InMemoryProtocolCache,
    ProtocolCache,
    RedisProtocolCache
)
from services.geolocation import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_GEOLOCATION_URL,
    DEFAULT_TIMEOUT_SECONDS,
    IpApiGeoLocationProvider
)
from services.mongodb import MongoDBService
from services.protocols import RegionalProtocolStore
from services.reconciliation import ReconciliationEngine
from services.redis import RedisService
from services.region_resolver import RegionResolver
from services.stores import (
    MongoAlertStore,
    MongoAnimalStore,
    MongoProtocolRepository,
    MongoRecordStore,
    MongoUserProfileStore
)
from services.vaccination import VaccinationService

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Runtime configuration of the engine."""

    environment: str = 'development'
    mongodb_uri: str = 'mongodb://localhost:27017/vaccination_engine_dev'
    mongodb_database: str = 'vaccination_engine_dev'
    redis_url: str = 'redis://localhost:6379'
    protocol_cache_backend: str = 'memory'
    protocol_cache_ttl_seconds: int = DEFAULT_PROTOCOL_TTL_SECONDS
    geolocation_url: str = DEFAULT_GEOLOCATION_URL
    geolocation_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    geolocation_cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    otel_enabled: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            environment=os.getenv('ENVIRONMENT', 'development'),
            mongodb_uri=os.getenv('MONGODB_URI', cls.mongodb_uri),
            mongodb_database=os.getenv('MONGODB_DATABASE', cls.mongodb_database),
            redis_url=os.getenv('REDIS_URL', cls.redis_url),
            protocol_cache_backend=os.getenv('PROTOCOL_CACHE_BACKEND', cls.protocol_cache_backend).lower(),
            protocol_cache_ttl_seconds=int(
                os.getenv('PROTOCOL_CACHE_TTL_SECONDS', str(DEFAULT_PROTOCOL_TTL_SECONDS))
            ),
            geolocation_url=os.getenv('GEOLOCATION_URL', DEFAULT_GEOLOCATION_URL),
            geolocation_timeout_seconds=float(
                os.getenv('GEOLOCATION_TIMEOUT_SECONDS', str(DEFAULT_TIMEOUT_SECONDS))
            ),
            geolocation_cache_ttl_seconds=int(
                os.getenv('GEOLOCATION_CACHE_TTL_SECONDS', str(DEFAULT_CACHE_TTL_SECONDS))
            ),
            otel_enabled=os.getenv('OTEL_ENABLED', 'true').lower() == 'true'
        )


def create_protocol_cache(config: EngineConfig) -> ProtocolCache:
    """Build the configured protocol cache backend."""
    if config.protocol_cache_backend == 'redis':
        return RedisProtocolCache(RedisService(config.redis_url), config.protocol_cache_ttl_seconds)
    if config.protocol_cache_backend != 'memory':
        logger.warning(f"Unknown protocol cache backend {config.protocol_cache_backend!r}, using memory")
    return InMemoryProtocolCache(config.protocol_cache_ttl_seconds)


def create_vaccination_service(
    config: Optional[EngineConfig] = None,
    mongodb: Optional[MongoDBService] = None
) -> VaccinationService:
    """
    Wire the vaccination service against MongoDB.

    Args:
        config: Engine configuration (read from the environment when omitted)
        mongodb: Existing MongoDB service to share

    Returns:
        Ready VaccinationService
    """
    config = config or EngineConfig.from_env()
    mongodb = mongodb or MongoDBService(config.mongodb_uri, config.mongodb_database)

    records = MongoRecordStore(mongodb)
    profiles = MongoUserProfileStore(mongodb)
    protocols = RegionalProtocolStore(MongoProtocolRepository(mongodb), create_protocol_cache(config))
    geolocation = IpApiGeoLocationProvider(
        url=config.geolocation_url,
        timeout=config.geolocation_timeout_seconds,
        cache_ttl_seconds=config.geolocation_cache_ttl_seconds
    )

    logger.info(
        f"Vaccination engine wired for {config.environment} "
        f"(protocol cache: {config.protocol_cache_backend})"
    )
    return VaccinationService(
        animals=MongoAnimalStore(mongodb),
        records=records,
        protocols=protocols,
        resolver=RegionResolver(profiles=profiles, geolocation=geolocation),
        alerts=AlertManager(MongoAlertStore(mongodb)),
        reconciliation=ReconciliationEngine(records)
    )


def create_engine() -> VaccinationService:
    """Process entry point: configure observability and build the service."""
    config = EngineConfig.from_env()
    setup_observability(config.environment)
    return create_vaccination_service(config)
