# SPDX-License-Identifier: Apache-2.0

"""
Region and country resolution for a request.

Region resolution walks an ordered list of strategies and stops at the first
one that yields a known region. A failing strategy is logged and skipped, so
resolution never raises and degrades to the global default.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from opentelemetry import trace

from domain.regions import (
    GLOBAL_DEFAULT,
    UNSPECIFIED_COUNTRY,
    map_country_to_region,
    map_language_to_region,
    normalize_country,
    normalize_region
)
from models.entities import GeoLocation, RegionContext
from .geolocation import GeoLocationProvider
from .stores import UserProfileStore

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RegionStrategy(ABC):
    """One step of the region fallback chain."""

    name = "strategy"

    @abstractmethod
    def resolve(self, context: RegionContext) -> Optional[str]:
        """Return a region key or None to fall through."""


class ExplicitRegionStrategy(RegionStrategy):
    name = "explicit"

    def resolve(self, context: RegionContext) -> Optional[str]:
        return normalize_region(context.region)


class UserPreferenceStrategy(RegionStrategy):
    name = "user_preference"

    def __init__(self, profiles: UserProfileStore):
        self.profiles = profiles

    def resolve(self, context: RegionContext) -> Optional[str]:
        if not context.owner_id:
            return None
        return normalize_region(self.profiles.get_region_preference(context.owner_id))


class GeoLocationStrategy(RegionStrategy):
    name = "geolocation"

    def __init__(self, provider: GeoLocationProvider):
        self.provider = provider

    def resolve(self, context: RegionContext) -> Optional[str]:
        if not context.ip_address:
            return None
        location = self.provider.lookup(context.ip_address)
        if location is None:
            return None
        return map_country_to_region(location.country_code)


class AcceptLanguageStrategy(RegionStrategy):
    name = "accept_language"

    def resolve(self, context: RegionContext) -> Optional[str]:
        return map_language_to_region(context.accept_language)


class RegionResolver:
    """Resolves the effective region and country of a request."""

    def __init__(
        self,
        profiles: Optional[UserProfileStore] = None,
        geolocation: Optional[GeoLocationProvider] = None,
        strategies: Optional[Sequence[RegionStrategy]] = None
    ):
        self.profiles = profiles
        self.geolocation = geolocation
        if strategies is None:
            strategies = [ExplicitRegionStrategy()]
            if profiles is not None:
                strategies.append(UserPreferenceStrategy(profiles))
            if geolocation is not None:
                strategies.append(GeoLocationStrategy(geolocation))
            strategies.append(AcceptLanguageStrategy())
        self.strategies: List[RegionStrategy] = list(strategies)

    def resolve(self, context: Optional[RegionContext]) -> str:
        """
        Resolve the region for a request context.

        Returns:
            First region yielded by the strategy chain, else "global_default"
        """
        context = context or RegionContext()
        with tracer.start_as_current_span("region.resolve") as span:
            for strategy in self.strategies:
                try:
                    region = strategy.resolve(context)
                except Exception as e:
                    logger.warning(f"Region strategy {strategy.name} failed: {e}")
                    continue

                if region:
                    span.set_attribute("region.source", strategy.name)
                    span.set_attribute("region.value", region)
                    return region

            span.set_attribute("region.source", "default")
            span.set_attribute("region.value", GLOBAL_DEFAULT)
            return GLOBAL_DEFAULT

    def resolve_country(self, context: Optional[RegionContext]) -> str:
        """
        Resolve the country code independently of the region.

        Order is the stored profile country, then the geolocated country,
        then "unspecified".
        """
        context = context or RegionContext()

        if self.profiles is not None and context.owner_id:
            try:
                country = normalize_country(self.profiles.get_country(context.owner_id))
                if country:
                    return country
            except Exception as e:
                logger.warning(f"Profile country lookup failed: {e}")

        if self.geolocation is not None and context.ip_address:
            try:
                location: Optional[GeoLocation] = self.geolocation.lookup(context.ip_address)
                if location is not None:
                    country = normalize_country(location.country_code)
                    if country:
                        return country
            except Exception as e:
                logger.warning(f"Geolocated country lookup failed: {e}")

        return UNSPECIFIED_COUNTRY
