"""Redis-backed cache for per-event OPR metrics.

Entries are stored as the JSON form of ``OPRMetrics`` under
``opr_metrics:<event_key>``. A cache outage never fails a request: reads
degrade to a miss and writes report False.
"""

import logging
from typing import Any

import pydantic
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from scoutrank.config import get_settings
from scoutrank.contracts.statistics import OPRMetrics
from scoutrank.core.ports import MetricsCachePort

logger = logging.getLogger(__name__)

KEY_PREFIX = "opr_metrics"


def metrics_key(event_key: str) -> str:
    return f"{KEY_PREFIX}:{event_key}"


class RedisMetricsCache(MetricsCachePort):
    def __init__(self, redis_url: str | None = None) -> None:
        self._redis_url = redis_url or get_settings().redis_url
        self._client: Any = None  # aioredis.Redis (untyped library)

    async def connect(self) -> None:
        if self._client is not None:
            logger.warning("Metrics cache already connected")
            return

        client = aioredis.from_url(self._redis_url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect metrics cache: {e}")
            await client.aclose()
            raise
        self._client = client
        logger.info("Metrics cache connected")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("Metrics cache disconnected")

    async def get_metrics(self, event_key: str) -> OPRMetrics | None:
        """Cached metrics for an event.

        An entry that no longer parses (e.g. written before a contract change)
        is dropped so the next calculation replaces it.
        """
        if self._client is None:
            logger.error("Metrics cache not connected")
            return None

        key = metrics_key(event_key)
        try:
            payload = await self._client.get(key)
        except (RedisError, OSError) as e:
            logger.error(f"Error reading {key}: {e}")
            return None
        if payload is None:
            return None

        try:
            return OPRMetrics.model_validate_json(payload)
        except pydantic.ValidationError as e:
            logger.warning(f"Dropping unreadable cached OPR metrics for {event_key}: {e.error_count()} errors")
            await self.invalidate(event_key)
            return None

    async def store_metrics(self, metrics: OPRMetrics, ttl: int | None = None) -> bool:
        """Write metrics under their event key; ``ttl`` is in seconds."""
        if self._client is None:
            logger.error("Metrics cache not connected")
            return False

        key = metrics_key(metrics.event_key)
        try:
            await self._client.set(key, metrics.model_dump_json(), ex=ttl or None)
        except (RedisError, OSError) as e:
            logger.error(f"Error writing {key}: {e}")
            return False
        return True

    async def invalidate(self, event_key: str) -> bool:
        if self._client is None:
            logger.error("Metrics cache not connected")
            return False

        key = metrics_key(event_key)
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            logger.error(f"Error deleting {key}: {e}")
            return False
        return True

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False
