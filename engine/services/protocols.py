# SPDX-License-Identifier: Apache-2.0

"""
Regional protocol store with fallback resolution and positive-only caching.
"""

import logging
from typing import Optional

from opentelemetry import trace

from domain.regions import GLOBAL_DEFAULT
from models.entities import RegionalProtocol
from utils.errors import ProtocolNotFoundException
from .cache import ProtocolCache, cache_key
from .stores import ProtocolRepository

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RegionalProtocolStore:
    """
    Read-mostly access to vaccination protocols.

    Lookup order is exact (region, country, animal type), then any protocol of
    the region for the animal type, then the global default. A miss is never
    cached so protocols added later surface without a restart.
    """

    def __init__(self, repository: ProtocolRepository, cache: ProtocolCache):
        self.repository = repository
        self.cache = cache

    def get_protocol(self, region: str, country: str, animal_type: str) -> Optional[RegionalProtocol]:
        """
        Resolve the protocol for a location and animal type.

        Args:
            region: Region key
            country: Country code (may be "unspecified")
            animal_type: Animal type

        Returns:
            RegionalProtocol or None when the fallback chain is exhausted
        """
        with tracer.start_as_current_span("protocols.get_protocol") as span:
            span.set_attributes({
                "protocol.region": region or "",
                "protocol.country": country or "",
                "protocol.animal_type": animal_type or ""
            })

            key = cache_key(region, country, animal_type)
            cached = self.cache.get(key)
            if cached is not None:
                span.set_attribute("protocol.cache", "hit")
                return cached
            span.set_attribute("protocol.cache", "miss")

            protocol = self.repository.find(region, animal_type, country=country)
            source = "exact"
            if protocol is None:
                protocol = self.repository.find(region, animal_type)
                source = "region"
            if protocol is None and region != GLOBAL_DEFAULT:
                protocol = self.repository.find(GLOBAL_DEFAULT, animal_type)
                source = "global_default"

            if protocol is None:
                span.set_attribute("protocol.source", "none")
                logger.info(f"No protocol for {animal_type} in {region}/{country}")
                return None

            span.set_attribute("protocol.source", source)
            logger.debug(f"Resolved {animal_type} protocol for {region}/{country} from {source}")
            self.cache.set(key, protocol)
            return protocol

    def require_protocol(self, region: str, country: str, animal_type: str) -> RegionalProtocol:
        """Resolve a protocol or raise ProtocolNotFoundException."""
        protocol = self.get_protocol(region, country, animal_type)
        if protocol is None:
            raise ProtocolNotFoundException(region, country, animal_type)
        return protocol

    def refresh(self) -> None:
        """Drop cached protocols so reference data changes are picked up."""
        self.cache.clear()
        logger.info("Protocol cache cleared")
