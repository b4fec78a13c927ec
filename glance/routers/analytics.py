"""
Analytics router: workspace dashboard reporting.

  GET /api/analytics?workspace_id=...&period=24h|7d|30d|90d → any workspace member

Unknown `period` values fall back to 7d instead of failing validation.
"""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.config import settings
from glance.core.database import get_db
from glance.core.limiter import limiter
from glance.core.logging import get_logger
from glance.core.security import (
    Permission,
    WorkspaceAccess,
    require_workspace_permission,
)
from glance.services.analytics_service import Period, get_workspace_analytics

router = APIRouter()
logger = get_logger(__name__)


# ── Schemas ────────────────────────────────────────────────────────────────────
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatValues(CamelModel):
    visitors: float
    widget_opens: float
    unique_widget_opens: float
    users_created: float
    form_submissions: float
    chats_initiated: float
    conversion_rate: float
    bounce_rate: float


class Stats(CamelModel):
    visitors: int
    widget_opens: int
    unique_widget_opens: int
    users_created: int
    form_submissions: int
    chats_initiated: int
    conversion_rate: float
    bounce_rate: float
    changes: StatValues


class DailyPoint(CamelModel):
    date: str
    visitors: int
    opens: int
    unique_opens: int
    form_submissions: int
    chats_initiated: int
    users_created: int
    conversion_rate: float


class GlanceSummary(CamelModel):
    id: str
    name: str
    visitors: int
    bounce_rate: float
    avg_session_seconds: int


class AnalyticsResponse(CamelModel):
    stats: Stats
    time_series: list[DailyPoint]
    peak_hours: list[list[int]]
    glances: list[GlanceSummary]


# ── Endpoints ──────────────────────────────────────────────────────────────────
@router.get(
    "",
    response_model=AnalyticsResponse,
    summary="Aggregated widget analytics for a workspace",
)
@limiter.limit(settings.RATE_LIMIT_DASHBOARD)
async def get_analytics(
    request: Request,
    period: str | None = Query(default=None, description="24h, 7d, 30d or 90d"),
    access: WorkspaceAccess = Depends(
        require_workspace_permission(Permission.VIEW_ANALYTICS)
    ),
    db: AsyncSession = Depends(get_db),
):
    resolved = Period.parse(period)
    if period and resolved.value != period:
        logger.info("analytics.period_defaulted", requested=period, used=resolved.value)

    report = await get_workspace_analytics(db, access.workspace_id, resolved)
    return AnalyticsResponse(**report)
