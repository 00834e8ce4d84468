# SPDX-License-Identifier: Apache-2.0

"""
Redis service for shared caching.

This module wraps the redis-py client for protocol caching across processes.
Cache operations fail gracefully: errors are logged and treated as misses.
"""

import os
import json
from typing import Optional, List, Dict, Any, Union
import redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """
    Redis service with the standard redis-py client.

    Provides TTL-bound key/value caching with JSON serialization.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Any] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port)
            client: Pre-built client (tests inject a mock here)
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")

        if client is not None:
            self.client = client
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)

            # Test connection
            self._test_connection()

            logger.info(f"Redis service initialized successfully at {self.redis_url}")

        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        if not self.client:
            return

        try:
            result = self.client.ping()
            if not result:
                raise RedisConnectionError("Redis ping failed")
        except Exception as e:
            logger.error(f"Redis connection test failed: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def set(self, key: str, value: Union[str, Dict, List], ttl: Optional[int] = None) -> bool:
        """
        Set a key-value pair in Redis.

        Args:
            key: Redis key
            value: Value to store (will be JSON serialized if not string)
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            logger.warning("Redis client not available, skipping set operation")
            return False

        with tracer.start_as_current_span("redis.set") as span:
            span.set_attributes({
                "redis.key": key,
                "redis.ttl": ttl or 0
            })

            try:
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, default=str)

                if ttl:
                    result = self.client.setex(key, ttl, value)
                else:
                    result = self.client.set(key, value)

                span.set_attribute("redis.result", "success")
                return bool(result)

            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis set failed for key {key}: {str(e)}")
                return False

    def get(self, key: str) -> Optional[str]:
        """
        Get a raw value from Redis.

        Args:
            key: Redis key

        Returns:
            Stored string, or None when missing or Redis is unavailable
        """
        if not self.client:
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attribute("redis.key", key)

            try:
                value = self.client.get(key)
                span.set_attribute("redis.result", "hit" if value is not None else "miss")
                logger.debug(f"Redis GET: {key} -> {'hit' if value is not None else 'miss'}")
                return value

            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis get failed for key {key}: {str(e)}")
                return None

    def delete(self, key: str) -> bool:
        """Delete a key; True when something was removed."""
        if not self.client:
            return False

        with tracer.start_as_current_span("redis.delete") as span:
            span.set_attribute("redis.key", key)

            try:
                result = self.client.delete(key)
                span.set_attribute("redis.result", "success")
                return bool(result)

            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis delete failed for key {key}: {str(e)}")
                return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number removed."""
        if not self.client:
            return 0

        try:
            keys = list(self.client.scan_iter(match=pattern))
            if not keys:
                return 0
            return int(self.client.delete(*keys))
        except Exception as e:
            logger.error(f"Redis delete by pattern failed for {pattern}: {str(e)}")
            return 0

