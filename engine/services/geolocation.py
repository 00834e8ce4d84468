# SPDX-License-Identifier: Apache-2.0

"""
IP geolocation providers used by region resolution.

Lookups are bounded by a timeout and never raise: any transport or payload
problem is logged and reported as "no location".
"""

import ipaddress
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import requests
from opentelemetry import trace

from models.entities import GeoLocation

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_GEOLOCATION_URL = "http://ip-api.com/json/{ip}"
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
MAX_CACHE_ENTRIES = 10000


def is_public_ip(ip_address: Optional[str]) -> bool:
    """True for a parsable, globally routable address."""
    if not ip_address:
        return False
    try:
        address = ipaddress.ip_address(ip_address.strip())
    except ValueError:
        return False
    return not (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )


class GeoLocationProvider(ABC):
    """Resolves an IP address to a coarse location."""

    @abstractmethod
    def lookup(self, ip_address: str) -> Optional[GeoLocation]:
        """Return the location of an address, or None when unknown."""


class IpApiGeoLocationProvider(GeoLocationProvider):
    """
    Geolocation through the ip-api.com JSON endpoint.

    Successful lookups are cached per address for the configured TTL. The cache
    holds at most max_cache_entries addresses; expired entries are swept on
    write and the soonest-expiring ones are evicted when it is still full.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        max_cache_entries: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.monotonic
    ):
        self.url = url or os.getenv("GEOLOCATION_URL", DEFAULT_GEOLOCATION_URL)
        self.timeout = timeout if timeout is not None else float(
            os.getenv("GEOLOCATION_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
        )
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_cache_entries = max(1, max_cache_entries)
        self._clock = clock
        self._cache: Dict[str, Tuple[float, GeoLocation]] = {}
        self._lock = threading.Lock()

    def _cached(self, ip_address: str) -> Optional[GeoLocation]:
        with self._lock:
            entry = self._cache.get(ip_address)
            if entry is None:
                return None
            expires_at, location = entry
            if self._clock() >= expires_at:
                del self._cache[ip_address]
                return None
            return location

    def _remember(self, ip_address: str, location: GeoLocation) -> None:
        with self._lock:
            now = self._clock()
            expired = [ip for ip, (expires_at, _) in self._cache.items() if now >= expires_at]
            for ip in expired:
                del self._cache[ip]

            self._cache.pop(ip_address, None)
            overflow = len(self._cache) - self.max_cache_entries + 1
            if overflow > 0:
                oldest = sorted(self._cache, key=lambda ip: self._cache[ip][0])[:overflow]
                for ip in oldest:
                    del self._cache[ip]
                logger.debug(f"Evicted {len(oldest)} geolocation cache entries")

            self._cache[ip_address] = (now + self.cache_ttl_seconds, location)

    def lookup(self, ip_address: str) -> Optional[GeoLocation]:
        if not is_public_ip(ip_address):
            logger.debug(f"Skipping geolocation for non-public address {ip_address!r}")
            return None

        ip_address = ip_address.strip()
        cached = self._cached(ip_address)
        if cached is not None:
            return cached

        with tracer.start_as_current_span("geolocation.lookup") as span:
            span.set_attribute("geolocation.timeout", self.timeout)

            try:
                response = requests.get(self.url.format(ip=ip_address), timeout=self.timeout)
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as e:
                span.set_attribute("geolocation.result", "error")
                logger.warning(f"Geolocation lookup failed: {e}")
                return None

            if not isinstance(payload, dict) or payload.get("status", "success") != "success":
                span.set_attribute("geolocation.result", "miss")
                logger.info(f"Geolocation service could not locate address: {payload!r}")
                return None

            location = GeoLocation(
                country_code=payload.get("countryCode"),
                region=payload.get("region"),
                city=payload.get("city"),
                timezone=payload.get("timezone")
            )
            span.set_attribute("geolocation.result", "hit")
            span.set_attribute("geolocation.country", location.country_code or "")
            self._remember(ip_address, location)
            return location
