# SPDX-License-Identifier: Apache-2.0

"""
Protocol cache backends.

A single cache instance is built at startup and injected into the protocol
store. Only positive lookups are ever written; concurrent population of the
same key is harmless because protocols are immutable once loaded.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from models.entities import RegionalProtocol
from .redis import RedisService

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_TTL_SECONDS = 12 * 60 * 60

CacheKey = Tuple[str, str, str]


def cache_key(region: str, country: str, animal_type: str) -> CacheKey:
    return region, country, animal_type


class ProtocolCache(ABC):
    """Cache of resolved protocols keyed by (region, country, animal type)."""

    @abstractmethod
    def get(self, key: CacheKey) -> Optional[RegionalProtocol]:
        """Return a live entry or None."""

    @abstractmethod
    def set(self, key: CacheKey, protocol: RegionalProtocol) -> None:
        """Store a protocol that was found."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry (manual refresh)."""


class InMemoryProtocolCache(ProtocolCache):
    """Process-local TTL map."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_PROTOCOL_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, RegionalProtocol]] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[RegionalProtocol]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, protocol = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return protocol

    def set(self, key: CacheKey, protocol: RegionalProtocol) -> None:
        if protocol is None:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, protocol)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisProtocolCache(ProtocolCache):
    """
    Protocol cache shared across processes through Redis.

    Entries are stored as JSON with SETEX. Redis failures are logged by the
    Redis service and behave as cache misses.
    """

    KEY_PREFIX = "protocol"

    def __init__(self, redis_service: RedisService, ttl_seconds: int = DEFAULT_PROTOCOL_TTL_SECONDS):
        self.redis = redis_service
        self.ttl_seconds = ttl_seconds

    def _redis_key(self, key: CacheKey) -> str:
        region, country, animal_type = key
        return f"{self.KEY_PREFIX}:{region}:{country}:{animal_type}"

    def get(self, key: CacheKey) -> Optional[RegionalProtocol]:
        raw = self.redis.get(self._redis_key(key))
        if raw is None:
            return None
        try:
            return RegionalProtocol.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached protocol {self._redis_key(key)}: {e}")
            self.redis.delete(self._redis_key(key))
            return None

    def set(self, key: CacheKey, protocol: RegionalProtocol) -> None:
        if protocol is None:
            return
        self.redis.set(
            self._redis_key(key),
            protocol.model_dump_json(by_alias=True),
            ttl=self.ttl_seconds
        )

    def clear(self) -> None:
        removed = self.redis.delete_pattern(f"{self.KEY_PREFIX}:*")
        logger.info(f"Cleared {removed} cached protocols")
