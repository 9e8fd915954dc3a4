"""Liveness and readiness checks."""

from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from fretmarine.config import settings
from fretmarine.database import engine
from fretmarine.utils.cache import get_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Process is up; touches neither the ledger store nor Redis."""
    return {
        "status": "ok",
        "service": "FretMarine",
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat(),
    }


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    await (await get_redis()).ping()


@router.get("/health/ready")
async def readiness_check():
    """503 until both the ledger store and Redis answer."""
    checks = {}
    for name, ping in (("database", _ping_database), ("redis", _ping_redis)):
        try:
            await ping()
            checks[name] = "ok"
        except Exception as e:
            checks[name] = f"error: {str(e)[:100]}"

    ready = all(result == "ok" for result in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
