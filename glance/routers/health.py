"""
Health check endpoints: used by load balancers, Kubernetes probes, and monitoring.

/health/live    liveness, is the process running?
/health/ready   readiness, can we reach the database?
/health         full status with version info
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.config import settings
from glance.core.database import get_db
from glance.core.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: datetime
    database: str


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("health.database_unreachable", error=str(e))
        return "unreachable"
    return "connected"


@router.get("/live", status_code=200, summary="Liveness probe")
async def liveness():
    return {"status": "alive"}


@router.get("/ready", status_code=200, summary="Readiness probe")
async def readiness(db: AsyncSession = Depends(get_db)):
    db_status = await _database_status(db)
    return {"status": "ready" if db_status == "connected" else "degraded", "database": db_status}


@router.get("", response_model=HealthResponse, summary="Full health status")
async def health(db: AsyncSession = Depends(get_db)):
    db_status = await _database_status(db)
    return HealthResponse(
        status="healthy" if db_status == "connected" else "degraded",
        version=settings.API_VERSION,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc),
        database=db_status,
    )
