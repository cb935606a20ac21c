"""
Redis client for the KPI cache.

KPI snapshots are cached for a few seconds to absorb dashboard polling.
Every cache operation is best-effort: connection failures are logged and the
caller falls back to the database.

CHANGELOG:
- 2026-10-18: Initial creation
"""

import logging

import redis.asyncio as redis

from rtu_energy.config import get_settings

logger = logging.getLogger(__name__)


async def get_redis() -> redis.Redis:
    """Create and return an async Redis client from settings.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(get_settings().redis_url)


def kpi_cache_key(
    device_id: str,
    energy_hex: str,
    slot: int | None,
    variant: int | None = None,
    *,
    detail_hourly: bool = False,
) -> str:
    """Cache key of one KPI view, e.g. ``kpi:8612...:01:all``.

    A pinned variant is appended as a fourth segment and the hourly detail
    flag as a trailing ``:hourly``.
    """
    slot_part = "all" if slot is None else f"{slot:02x}"
    key = f"kpi:{device_id}:{energy_hex}:{slot_part}"
    if variant is not None:
        key += f":{variant:02x}"
    if detail_hourly:
        key += ":hourly"
    return key


async def cache_get(key: str) -> str | bytes | None:
    """Read a cached value; ``None`` on miss or Redis failure."""
    try:
        client = await get_redis()
        try:
            return await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB",
            key,
            exc_info=True,
        )
        return None


async def cache_set(key: str, value: str, ttl_s: int) -> None:
    """Store a value with a TTL; failures are logged and ignored."""
    try:
        client = await get_redis()
        try:
            await client.set(key, value, ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis write failed for key %s",
            key,
            exc_info=True,
        )
