#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Create the AuditOps health-score schema and verify the batch watermark store.

Usage:
    python scripts/init_databases.py
    python scripts/init_databases.py --postgres-only
    python scripts/init_databases.py --redis-only

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.logging import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="init-db")
logger = get_logger(__name__)


async def init_postgres() -> bool:
    """Create the audit schema and the health_scores table."""
    from services.audit_engine.models.db import HealthScoreModel
    from shared.database.postgres import PostgresClient

    logger.info("Initializing PostgreSQL...")

    try:
        health = await PostgresClient.health_check()
        if health["status"] != "healthy":
            return False

        tables = await PostgresClient.create_tables(HealthScoreModel.__table__)
        logger.info(f"PostgreSQL ready: {', '.join(tables)}")
        return True

    except Exception as e:
        logger.error(f"PostgreSQL initialization failed: {e}")
        return False

    finally:
        await PostgresClient.close()


async def init_redis() -> bool:
    """Verify Redis and report the current batch watermark."""
    from services.audit_engine.services.watermark import RedisBatchWatermark
    from shared.config import settings
    from shared.database.redis import RedisClient

    logger.info("Initializing Redis...")

    try:
        health = await RedisClient.health_check()
        if health["status"] != "healthy":
            return False
        logger.info(f"Redis connected in {health['latency_ms']}ms")

        watermark = RedisBatchWatermark(RedisClient.get_client(), settings.audit.watermark_key)
        logger.info(
            "health_batch_watermark",
            key=settings.audit.watermark_key,
            last_run_at=await watermark.read(),
        )

        logger.info("Redis initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")
        return False

    finally:
        await RedisClient.close()


async def main(args: argparse.Namespace) -> int:
    """Main initialization function."""
    logger.info("=" * 60)
    logger.info("AuditOps Database Initialization")
    logger.info("=" * 60)

    results = {}

    if args.all or args.postgres_only:
        results["PostgreSQL"] = await init_postgres()

    if args.all or args.redis_only:
        results["Redis"] = await init_redis()

    # Summary
    logger.info("=" * 60)
    logger.info("Initialization Summary")
    logger.info("=" * 60)

    failed = []
    for name, success in results.items():
        status = "OK" if success else "FAILED"
        logger.info(f"  {name}: {status}")
        if not success:
            failed.append(name)

    if failed:
        logger.error(f"Failed: {', '.join(failed)}")
        return 1

    logger.info("All stores initialized successfully")
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize AuditOps stores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--postgres-only",
        action="store_true",
        help="Initialize only PostgreSQL",
    )
    parser.add_argument(
        "--redis-only",
        action="store_true",
        help="Verify only Redis",
    )

    args = parser.parse_args()

    # If no specific store is selected, init all
    args.all = not (args.postgres_only or args.redis_only)

    return args


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
