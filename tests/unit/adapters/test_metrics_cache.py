"""Unit tests for RedisMetricsCache with a mocked redis.asyncio client."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from scoutrank.adapters.metrics_cache import RedisMetricsCache, metrics_key
from scoutrank.contracts.statistics import CCWMResult, OPRMetrics


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock()
    mock.ping = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def cache(client) -> RedisMetricsCache:
    adapter = RedisMetricsCache("redis://test:6379")
    adapter._client = client
    return adapter


@pytest.fixture
def metrics() -> OPRMetrics:
    return OPRMetrics(
        event_key="2025wimi",
        ccwm=[CCWMResult(team_number=254, opr=60.0, dpr=10.0, ccwm=50.0, matches_played=10)],
        calculated_at=datetime(2025, 3, 15, tzinfo=UTC),
        total_matches=10,
    )


def test_keys_are_namespaced_by_event() -> None:
    assert metrics_key("2025wimi") == "opr_metrics:2025wimi"


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_pings_server(self, client) -> None:
        cache = RedisMetricsCache("redis://test:6379")

        with patch("scoutrank.adapters.metrics_cache.aioredis.from_url", return_value=client) as from_url:
            await cache.connect()

        from_url.assert_called_once_with("redis://test:6379", encoding="utf-8", decode_responses=True)
        client.ping.assert_awaited_once()
        assert await cache.health_check() is True

    @pytest.mark.asyncio
    async def test_unreachable_server_leaves_cache_disconnected(self, client) -> None:
        client.ping.side_effect = RedisConnectionError("refused")
        cache = RedisMetricsCache("redis://test:6379")

        with (
            patch("scoutrank.adapters.metrics_cache.aioredis.from_url", return_value=client),
            pytest.raises(RedisConnectionError),
        ):
            await cache.connect()

        client.aclose.assert_awaited_once()
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_disconnect(self, cache, client) -> None:
        await cache.disconnect()

        client.aclose.assert_awaited_once()
        assert cache._client is None


class TestMetricsEntries:
    @pytest.mark.asyncio
    async def test_stored_metrics_read_back_typed(self, cache, client, metrics) -> None:
        # Arrange
        await cache.store_metrics(metrics, ttl=3600)
        key, payload = client.set.await_args.args
        client.get.return_value = payload

        # Act
        cached = await cache.get_metrics("2025wimi")

        # Assert
        assert key == "opr_metrics:2025wimi"
        assert client.set.await_args.kwargs == {"ex": 3600}
        assert cached.model_dump() == metrics.model_dump()
        assert cached.ccwm[0].team_number == 254

    @pytest.mark.asyncio
    async def test_store_without_ttl_never_expires(self, cache, client, metrics) -> None:
        assert await cache.store_metrics(metrics) is True

        assert client.set.await_args.kwargs == {"ex": None}

    @pytest.mark.asyncio
    async def test_miss(self, cache, client) -> None:
        assert await cache.get_metrics("2025wila") is None

        client.get.assert_awaited_once_with("opr_metrics:2025wila")

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_dropped(self, cache, client) -> None:
        client.get.return_value = '{"event_key": "2025wimi"}'

        assert await cache.get_metrics("2025wimi") is None

        client.delete.assert_awaited_once_with("opr_metrics:2025wimi")

    @pytest.mark.asyncio
    async def test_read_error_is_a_miss(self, cache, client) -> None:
        client.get.side_effect = RedisTimeoutError()

        assert await cache.get_metrics("2025wimi") is None

    @pytest.mark.asyncio
    async def test_write_error_reports_false(self, cache, client, metrics) -> None:
        client.set.side_effect = RedisConnectionError("reset")

        assert await cache.store_metrics(metrics, ttl=60) is False

    @pytest.mark.asyncio
    async def test_invalidate(self, cache, client) -> None:
        assert await cache.invalidate("2025wimi") is True

        client.delete.assert_awaited_once_with("opr_metrics:2025wimi")

    @pytest.mark.asyncio
    async def test_operations_without_connection(self, metrics) -> None:
        cache = RedisMetricsCache("redis://test:6379")

        assert await cache.get_metrics("2025wimi") is None
        assert await cache.store_metrics(metrics) is False
        assert await cache.invalidate("2025wimi") is False
