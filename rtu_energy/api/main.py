"""
FastAPI application entry point for the RTU energy read API.

Settings are loaded and validated at startup; a missing DATABASE_URL or
REDIS_URL aborts startup. Logging is configured as single-line JSON on
stderr. The database engine is created at startup and disposed at shutdown.

CHANGELOG:
- 2026-10-18: Initial creation
"""

import json
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rtu_energy.api.health import router as health_router
from rtu_energy.api.instant import router as instant_router
from rtu_energy.api.kpi import router as kpi_router
from rtu_energy.api.series import router as series_router
from rtu_energy.config import get_settings
from rtu_energy.db.session import dispose_engine, init_engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Install a JSON handler on the root logger writing to stderr.

    Args:
        level: Root log level name.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: settings validation, engine setup and teardown."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.settings = settings
    init_engine()

    logger.info("Settings validated, RTU energy API ready")
    yield
    await dispose_engine()
    logger.info("RTU energy API shutting down")


app = FastAPI(
    title="RTU Energy API",
    description="Decoded telemetry, energy series and KPIs for renewable-energy RTUs.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
)

app.include_router(health_router)
app.include_router(kpi_router)
app.include_router(series_router)
app.include_router(instant_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
