"""
Redis Search Result Cache

Caches complete (HTTP 200) search responses so that repeated identical
searches within the TTL skip the scraper fan-out entirely. Partial and
failed results are never cached.

Cache Key Pattern:
    search:{criteria_hash} - serialized SearchResponse JSON

The hash covers every criteria field that changes the result set or its
scores; timeoutMs is excluded because it only bounds latency.

Usage:
    cache = await get_cache()

    cached = await cache.get(criteria)
    if not cached:
        response = await run_search(criteria)
        await cache.set(criteria, response)
"""

import json
import hashlib
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis

from app.config import get_settings
from app.schemas import SearchCriteria

logger = logging.getLogger(__name__)

KEY_PREFIX = "search"


def hash_content(*args: Any) -> str:
    """
    Generate a 16-character hex hash from content.

    Dict keys are sorted for consistent hashing.
    """
    content = json.dumps(args, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def criteria_key(criteria: SearchCriteria) -> str:
    payload = criteria.model_dump(mode="json", exclude={"timeout_ms"})
    payload["query"] = payload["query"].lower()
    return f"{KEY_PREFIX}:{hash_content(payload)}"


class SearchCache:
    """
    Redis cache for search responses.

    Provides graceful degradation when Redis is unavailable: every error is
    logged and treated as a miss, never raised to the caller.

    Attributes:
        redis: Async Redis client
        stats: Hit/miss counters
    """

    def __init__(self, redis_url: str, ttl: int = 300, enabled: bool = True):
        self.redis_url = redis_url
        self.ttl = ttl
        self.enabled = enabled
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, int] = {"hits": 0, "misses": 0, "errors": 0}

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        """Ensure Redis connection is established."""
        if not self.enabled:
            return None
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    async def get(self, criteria: SearchCriteria) -> Optional[Dict[str, Any]]:
        """Return the cached response dict, or None on miss/error."""
        try:
            client = await self._ensure_connected()
            if not client:
                return None

            cached = await client.get(criteria_key(criteria))
            if cached:
                self.stats["hits"] += 1
                return json.loads(cached)

            self.stats["misses"] += 1
            return None

        except Exception as e:
            logger.warning(f"Redis get error (search cache): {e}")
            self.stats["errors"] += 1
            return None

    async def set(self, criteria: SearchCriteria, response: Dict[str, Any]) -> bool:
        """Cache a JSON-ready response dict. Returns True on success."""
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.setex(criteria_key(criteria), self.ttl, json.dumps(response))
            return True

        except Exception as e:
            logger.warning(f"Redis set error (search cache): {e}")
            self.stats["errors"] += 1
            return False

    async def health_check(self) -> bool:
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.ping()
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        hits = self.stats["hits"]
        misses = self.stats["misses"]
        total = hits + misses
        return {
            **self.stats,
            "total": total,
            "hit_rate": hits / total if total > 0 else 0.0,
        }

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_cache_instance: Optional[SearchCache] = None


async def get_cache() -> SearchCache:
    """Get or create the cache singleton from settings."""
    global _cache_instance

    if _cache_instance is None:
        settings = get_settings()
        _cache_instance = SearchCache(
            redis_url=settings.redis_url,
            ttl=settings.search_cache_ttl_seconds,
            enabled=settings.search_cache_enabled,
        )

    return _cache_instance


async def close_cache() -> None:
    global _cache_instance

    if _cache_instance is not None:
        await _cache_instance.close()
        _cache_instance = None
