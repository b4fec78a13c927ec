"""
Widget events router: public ingestion endpoint for embedded widgets.

  POST /api/widget-events → no dashboard auth; rate limited per client IP
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.config import settings
from glance.core.database import get_db
from glance.core.errors import InvalidRequest
from glance.core.limiter import limiter
from glance.services.event_service import IncomingEvent, record_events

router = APIRouter()


# ── Schemas ────────────────────────────────────────────────────────────────────
class EventIn(BaseModel):
    event_type: str = Field(default="", max_length=50)
    event_data: dict[str, Any] | None = None
    timestamp: datetime | None = None


class EventBatchIn(BaseModel):
    # Lengths match the widget_events columns
    widget_id: str = Field(default="", max_length=36)
    session_id: str = Field(default="", max_length=100)
    widget_user_id: str | None = Field(default=None, max_length=36)
    page_url: str | None = None
    events: list[EventIn] = []


class EventBatchOut(BaseModel):
    success: bool = True
    count: int


# ── Endpoints ──────────────────────────────────────────────────────────────────
@router.post(
    "",
    response_model=EventBatchOut,
    summary="Record a batch of widget events",
)
@limiter.limit(settings.RATE_LIMIT_INGEST, key_func=get_remote_address)
async def ingest_events(
    request: Request,
    body: EventBatchIn,
    db: AsyncSession = Depends(get_db),
):
    if not body.widget_id or not body.session_id or not body.events:
        raise InvalidRequest("Missing widget_id, session_id, or events array")
    if len(body.events) > settings.MAX_EVENTS_PER_BATCH:
        raise InvalidRequest(f"At most {settings.MAX_EVENTS_PER_BATCH} events per batch")

    count = await record_events(
        db,
        widget_id=body.widget_id,
        session_id=body.session_id,
        widget_user_id=body.widget_user_id,
        page_url=body.page_url,
        events=[
            IncomingEvent(
                event_type=e.event_type,
                event_data=e.event_data,
                timestamp=e.timestamp,
            )
            for e in body.events
        ],
    )
    return EventBatchOut(count=count)
