"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running
and the database is reachable.
"""

import structlog
from fastapi import APIRouter
from sqlalchemy import text

from tasktrack import __version__
from tasktrack.db.engine import engine

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and database connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.warning("health.database_unavailable", error=str(e))
        checks["database"] = "unavailable"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
