"""
PostgreSQL Client
=================

Async engine and session factory for the health-score store
(SQLAlchemy 2.0 on asyncpg).

Tables live in a dedicated schema; `create_tables` provisions it and the
ORM tables registered on `Base`.

Version: 0.1.0
"""

import time
from typing import Any

from sqlalchemy import Table, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the engine's ORM tables."""

    pass


class PostgresClient:
    """
    Process-wide engine holder.

    The engine is created lazily so that services configured for the
    in-memory store never open a pool.
    """

    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            pg = settings.postgres
            cls._engine = create_async_engine(
                pg.async_url,
                echo=settings.debug and pg.echo_sql,
                pool_size=pg.pool_size,
                max_overflow=pg.max_overflow,
                pool_pre_ping=True,
                pool_recycle=pg.pool_recycle_seconds,
            )
            logger.info(
                "postgres_engine_created",
                host=pg.host,
                database=pg.db,
                pool_size=pg.pool_size,
            )
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        """Sessions keep loaded rows usable after commit."""
        if cls._session_factory is None:
            cls._session_factory = async_sessionmaker(
                cls.get_engine(),
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return cls._session_factory

    @classmethod
    async def create_tables(cls, *tables: Table) -> list[str]:
        """
        Create the schema and the given tables if they do not exist.

        Args:
            tables: ORM tables to create; all tables on `Base` when omitted

        Returns:
            Qualified names of the tables now present
        """
        selected = list(tables) or list(Base.metadata.sorted_tables)
        schemas = sorted({t.schema for t in selected if t.schema})

        async with cls.get_engine().begin() as conn:
            for schema in schemas:
                await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            await conn.run_sync(Base.metadata.create_all, tables=selected)
            present = await conn.run_sync(
                lambda sync_conn: {
                    s: set(inspect(sync_conn).get_table_names(schema=s)) for s in schemas
                }
            )

        names = [
            t.fullname for t in selected if t.schema is None or t.name in present[t.schema]
        ]
        logger.info("postgres_tables_ready", tables=names)
        return names

    @classmethod
    async def close(cls) -> None:
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._session_factory = None
            logger.info("postgres_engine_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """Round-trip a trivial query and report latency."""
        try:
            start = time.perf_counter()
            async with cls.get_session_factory()() as session:
                await session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
                "database": settings.postgres.db,
            }
        except Exception as e:
            logger.error("postgres_health_check_failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
