"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import redis.asyncio as redis
from billtrack.config import settings
from billtrack.database import engine
from billtrack.utils.cache import get_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check for load balancer (no DB/Redis check)."""
    return {
        "status": "ok",
        "service": "BillTrack",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check including the database and Redis.

    Redis being down degrades caching only, so it is reported but does not
    fail readiness.
    """
    checks = {
        "service": "ok",
        "database": "unknown",
        "redis": "unknown",
    }
    healthy = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {str(e)[:100]}"
        healthy = False

    try:
        client = await get_redis()
        await client.ping()
        checks["redis"] = "ok"
    except redis.RedisError as e:
        checks["redis"] = f"degraded: {str(e)[:100]}"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": "BillTrack",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
