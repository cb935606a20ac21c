"""
Liveness probe for the RTU energy API.

GET /health answers without touching PostgreSQL or Redis, so it reports
process liveness only. The local timezone is echoed because every
day/month boundary the API computes depends on it.

CHANGELOG:
- 2026-10-18: Initial creation
"""

from fastapi import APIRouter

from rtu_energy.services.timeutil import TZ_NAME

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Return ``{"status": "ok", "service": ..., "tz": ...}``."""
    return {"status": "ok", "service": "rtu-energy", "tz": TZ_NAME}
