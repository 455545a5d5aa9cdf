"""
Tests for the Redis search result cache.

Tests cover:
- Hash functions for key generation
- Cache hit/miss with TTL
- Health check and stats
- Graceful degradation (Redis unavailable or disabled)
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from app.schemas import SearchCriteria
from app.services.cache import SearchCache, criteria_key, hash_content


class TestHashContent:
    """Test content hashing for cache keys."""

    def test_hash_content_returns_16_char_hex(self):
        result = hash_content("test content")
        assert len(result) == 16
        assert all(c in "0123456789abcdef" for c in result)

    def test_hash_content_deterministic(self):
        content = "Senior Python Developer"
        assert hash_content(content) == hash_content(content)

    def test_hash_content_handles_dict(self):
        """Dict ordering shouldn't matter."""
        assert hash_content({"a": 1, "b": 2}) == hash_content({"b": 2, "a": 1})


class TestCriteriaKey:

    def test_key_prefix(self):
        assert criteria_key(SearchCriteria(query="Engineer")).startswith("search:")

    def test_query_case_ignored(self):
        assert criteria_key(SearchCriteria(query="Engineer")) == criteria_key(SearchCriteria(query="engineer"))

    def test_timeout_not_part_of_key(self):
        fast = SearchCriteria(query="Engineer", timeout_ms=1000)
        slow = SearchCriteria(query="Engineer", timeout_ms=60000)
        assert criteria_key(fast) == criteria_key(slow)

    def test_result_affecting_fields_change_key(self):
        base = SearchCriteria(query="Engineer")
        assert criteria_key(base) != criteria_key(SearchCriteria(query="Engineer", location="Austin, TX"))
        assert criteria_key(base) != criteria_key(SearchCriteria(query="Engineer", max_results=5))


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock(return_value=True)
    redis.ping = AsyncMock(return_value=True)
    redis.close = AsyncMock()
    return redis


@pytest.fixture
def cache_service(mock_redis):
    cache = SearchCache(redis_url="redis://localhost:6379", ttl=300)
    cache.redis = mock_redis
    return cache


@pytest.fixture
def search_criteria():
    return SearchCriteria(query="Software Engineer", location="San Francisco, CA")


class TestSearchCache:

    @pytest.mark.asyncio
    async def test_get_miss(self, cache_service, mock_redis, search_criteria):
        mock_redis.get.return_value = None

        result = await cache_service.get(search_criteria)

        assert result is None
        assert cache_service.stats["misses"] == 1
        mock_redis.get.assert_called_once_with(criteria_key(search_criteria))

    @pytest.mark.asyncio
    async def test_get_hit(self, cache_service, mock_redis, search_criteria):
        cached = {"success": True, "data": {"jobs": []}}
        mock_redis.get.return_value = json.dumps(cached)

        result = await cache_service.get(search_criteria)

        assert result == cached
        assert cache_service.stats["hits"] == 1

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self, cache_service, mock_redis, search_criteria):
        body = {"success": True, "data": {"jobs": []}}

        assert await cache_service.set(search_criteria, body) is True

        key, ttl, payload = mock_redis.setex.call_args[0]
        assert key.startswith("search:")
        assert ttl == 300
        assert json.loads(payload) == body

    @pytest.mark.asyncio
    async def test_health_check(self, cache_service):
        assert await cache_service.health_check() is True

    def test_stats_hit_rate(self, cache_service):
        cache_service.stats["hits"] = 3
        cache_service.stats["misses"] = 1

        stats = cache_service.get_stats()

        assert stats["total"] == 4
        assert stats["hit_rate"] == 0.75

    @pytest.mark.asyncio
    async def test_close(self, cache_service, mock_redis):
        await cache_service.close()
        mock_redis.close.assert_called_once()
        assert cache_service.redis is None


class TestCacheGracefulDegradation:
    """Redis failures must never reach the caller."""

    @pytest.mark.asyncio
    async def test_get_error_is_a_miss(self, cache_service, mock_redis, search_criteria):
        mock_redis.get.side_effect = ConnectionError("Redis unavailable")

        assert await cache_service.get(search_criteria) is None
        assert cache_service.stats["errors"] == 1

    @pytest.mark.asyncio
    async def test_set_error_returns_false(self, cache_service, mock_redis, search_criteria):
        mock_redis.setex.side_effect = ConnectionError("Redis unavailable")

        assert await cache_service.set(search_criteria, {"success": True}) is False

    @pytest.mark.asyncio
    async def test_health_check_failure(self, cache_service, mock_redis):
        mock_redis.ping.side_effect = ConnectionError("Redis unavailable")

        assert await cache_service.health_check() is False

    @pytest.mark.asyncio
    async def test_connection_failure(self, search_criteria):
        cache = SearchCache(redis_url="redis://invalid:6379")

        with patch("app.services.cache.redis.from_url", side_effect=ValueError("bad url")):
            assert await cache.get(search_criteria) is None
            assert await cache.set(search_criteria, {}) is False

    @pytest.mark.asyncio
    async def test_disabled_cache_never_connects(self, search_criteria):
        cache = SearchCache(redis_url="redis://localhost:6379", enabled=False)

        with patch("app.services.cache.redis.from_url") as from_url:
            assert await cache.get(search_criteria) is None
            assert await cache.set(search_criteria, {"success": True}) is False
            from_url.assert_not_called()
