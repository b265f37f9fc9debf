"""
Shared PostgreSQL connection pools for the article scorer.

Pools are keyed by DSN. The article store takes its pool from here and
never closes it itself; the application context releases every pool at
shutdown through close_pool().
"""
import asyncio
from typing import Dict, Optional

import asyncpg
import structlog

from scorer.config import StorageConfig

logger = structlog.get_logger()

_pools: Dict[str, asyncpg.Pool] = {}
_pool_lock = asyncio.Lock()


def safe_dsn(dsn: str) -> str:
    """Strip credentials from a DSN for logging."""
    return dsn.split("@")[-1] if "@" in dsn else dsn


async def get_pool(config: StorageConfig) -> asyncpg.Pool:
    """
    Return the pool for the configured DSN, creating it on first use.

    Raises:
        ValueError: If the configuration has no postgres_dsn
    """
    dsn = config.postgres_dsn
    if not dsn:
        raise ValueError("postgres_dsn is not configured")

    async with _pool_lock:
        pool = _pools.get(dsn)
        if pool is None:
            logger.info(
                "Creating PostgreSQL connection pool",
                dsn=safe_dsn(dsn),
                min_size=config.pool_min_size,
                max_size=config.pool_max_size,
            )
            pool = await asyncpg.create_pool(
                dsn,
                min_size=config.pool_min_size,
                max_size=config.pool_max_size,
                command_timeout=config.command_timeout,
            )
            _pools[dsn] = pool
    return pool


async def close_pool(dsn: Optional[str] = None) -> None:
    """Close the pool for one DSN, or every pool when dsn is None."""
    targets = [dsn] if dsn is not None else list(_pools)
    for key in targets:
        pool = _pools.pop(key, None)
        if pool is None:
            continue
        logger.info("Closing PostgreSQL connection pool", dsn=safe_dsn(key))
        await pool.close()
