"""
Search Result Cache

Short-lived cache of per-source search results keyed by a content hash of
(source, query, limit). Uses Redis with a TTL when reachable and falls back
to a bounded in-memory LRU with the same TTL otherwise.
"""
import hashlib
import json
import time
from collections import OrderedDict
from typing import List, Optional, Tuple

import redis

from medsearch.core.config import Settings
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

logger = get_logger(__name__)

KEY_PREFIX = "search:"


def cache_key(source_name: str, query: str, max_results: int) -> str:
    """Content hash identifying one source call."""
    digest = hashlib.sha256(f"{source_name}\x1f{query}\x1f{max_results}".encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{digest}"


class SearchCache:
    """Redis-backed cache for source results with TTL and bounded memory fallback."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        ttl_seconds: int = 1800,
        max_entries: int = 512,
        use_redis: bool = True,
    ):
        self.host = host
        self.port = port
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._client: Optional[redis.Redis] = None
        self._connected = False
        self._fallback_cache: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()
        if use_redis:
            self._connect()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchCache":
        return cls(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            ttl_seconds=settings.SEARCH_CACHE_TTL_SECONDS,
            max_entries=settings.search_cache_max_entries,
            use_redis=settings.use_redis_cache,
        )

    def _connect(self):
        """Attempt to connect to Redis."""
        try:
            self._client = redis.Redis(
                host=self.host,
                port=self.port,
                db=0,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2
            )
            self._client.ping()
            self._connected = True
            logger.info("Connected to Redis search cache")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis not available, using in-memory fallback: {e}")
            self._client = None
            self._connected = False

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._fallback_cache.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= time.monotonic():
            del self._fallback_cache[key]
            return None
        self._fallback_cache.move_to_end(key)
        return payload

    def _memory_set(self, key: str, payload: str):
        self._fallback_cache[key] = (time.monotonic() + self.ttl_seconds, payload)
        self._fallback_cache.move_to_end(key)
        while len(self._fallback_cache) > self.max_entries:
            self._fallback_cache.popitem(last=False)

    def get(self, source_name: str, query: str, max_results: int) -> Optional[List[RawRecord]]:
        """
        Look up cached records for one source call.

        Returns:
            The cached records, or None on a miss or a cache failure
        """
        key = cache_key(source_name, query, max_results)
        try:
            if self._connected and self._client:
                data = self._client.get(key)
            else:
                data = self._memory_get(key)

            if data is None:
                return None
            return [RawRecord.model_validate(item) for item in json.loads(data)]
        except Exception as e:
            logger.error(f"Cache get error: {e}")
            return None

    def set(self, source_name: str, query: str, max_results: int, records: List[RawRecord]) -> bool:
        """Store records for one source call; False when the write failed."""
        key = cache_key(source_name, query, max_results)
        payload = json.dumps([record.model_dump() for record in records])
        try:
            if self._connected and self._client:
                self._client.setex(key, self.ttl_seconds, payload)
            else:
                self._memory_set(key, payload)
            return True
        except Exception as e:
            logger.error(f"Cache set error: {e}")
            return False

    def clear(self) -> int:
        """Drop every cached search result; returns the number of entries removed."""
        try:
            if self._connected and self._client:
                keys = list(self._client.scan_iter(f"{KEY_PREFIX}*"))
                if keys:
                    self._client.delete(*keys)
                return len(keys)
            removed = len(self._fallback_cache)
            self._fallback_cache.clear()
            return removed
        except Exception as e:
            logger.error(f"Cache clear error: {e}")
            return 0

    def __len__(self) -> int:
        if self._connected and self._client:
            return sum(1 for _ in self._client.scan_iter(f"{KEY_PREFIX}*"))
        return len(self._fallback_cache)

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._connected
