"""
Event service: persists batches of events reported by embedded widgets.

The widget batches events client-side and posts them with its widget and
session ids. Unknown event types are dropped; the rest of the batch is still
written.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.errors import DataStoreFailure, InvalidRequest, NotFound
from glance.core.logging import get_logger
from glance.models.events import EVENT_TYPES, WidgetEvent, as_utc
from glance.services.workspace_service import get_widget

logger = get_logger(__name__)


@dataclass
class IncomingEvent:
    event_type: str
    event_data: dict[str, Any] | None = None
    timestamp: datetime | None = None


async def record_events(
    db: AsyncSession,
    widget_id: str,
    session_id: str,
    events: list[IncomingEvent],
    widget_user_id: str | None = None,
    page_url: str | None = None,
) -> int:
    """Validate and insert a batch. Returns the number of rows written."""
    widget = await get_widget(db, widget_id)
    if widget is None or not widget.is_active:
        logger.warning("events.unknown_widget", widget_id=widget_id)
        raise NotFound("Unknown widget")

    now = datetime.now(timezone.utc)
    rows = [
        WidgetEvent(
            widget_id=widget_id,
            session_id=session_id,
            widget_user_id=widget_user_id or None,
            event_type=event.event_type,
            event_data=event.event_data or {},
            page_url=page_url or None,
            created_at=as_utc(event.timestamp) if event.timestamp else now,
        )
        for event in events
        if event.event_type in EVENT_TYPES
    ]

    skipped = len(events) - len(rows)
    if not rows:
        logger.warning("events.no_valid_events", widget_id=widget_id, skipped=skipped)
        raise InvalidRequest("No valid events to insert")

    try:
        db.add_all(rows)
        await db.flush()
    except SQLAlchemyError as e:
        logger.error("events.insert_failed", widget_id=widget_id, count=len(rows), error=str(e))
        raise DataStoreFailure("insert_events", "Failed to save events") from e

    logger.info(
        "events.recorded",
        widget_id=widget_id,
        workspace_id=widget.workspace_id,
        count=len(rows),
        skipped=skipped,
    )
    return len(rows)
