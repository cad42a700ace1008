"""
Redis Client
============

Shared async Redis connection. The engine keeps a single key here: the
health-score batch watermark, updated by compare-and-set scripts so
that every replica sees the same last run.

Version: 0.1.0
"""

import time
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import settings
from shared.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Process-wide client holder; created on first use."""

    _client: Redis | None = None  # type: ignore[type-arg]

    @classmethod
    def get_client(cls) -> Redis:  # type: ignore[type-arg]
        if cls._client is None:
            rs = settings.redis
            cls._client = aioredis.from_url(
                rs.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=rs.max_connections,
                socket_timeout=rs.socket_timeout_seconds,
            )
            logger.info("redis_client_created", host=rs.host, db=rs.db)
        return cls._client

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None
            logger.info("redis_client_closed")

    @classmethod
    async def health_check(cls, watermark_key: str | None = None) -> dict[str, Any]:
        """
        Ping the server and, when a key is given, report the watermark it holds.

        Returns:
            dict with status, latency and the stored last-run marker
        """
        try:
            start = time.perf_counter()
            client = cls.get_client()
            pong = await client.ping()
            latency_ms = (time.perf_counter() - start) * 1000

            result: dict[str, Any] = {
                "status": "healthy" if pong else "unhealthy",
                "latency_ms": round(latency_ms, 2),
            }
            if watermark_key:
                result["watermark"] = await client.get(watermark_key)
            return result
        except Exception as e:
            logger.error("redis_health_check_failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
