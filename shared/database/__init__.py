"""
Database Module
===============

Async clients for the AuditOps stores.

Clients:
- PostgreSQL (asyncpg + SQLAlchemy): health-score records
- Redis (redis.asyncio): health-score batch watermark

Usage:
    from shared.database import PostgresClient, RedisClient

    store = PostgresHealthScoreStore(PostgresClient.get_session_factory())
    watermark = RedisBatchWatermark(RedisClient.get_client(), key)
"""

from shared.database.postgres import Base, PostgresClient
from shared.database.redis import RedisClient


__all__ = [
    # PostgreSQL
    "PostgresClient",
    "Base",
    # Redis
    "RedisClient",
]
