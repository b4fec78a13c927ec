"""
Widget event and widget-user models.

widget_events rows are written by the ingestion endpoint on behalf of the
embedded widget and are never updated afterwards. The analytics aggregator
only reads them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from glance.core.database import Base


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# Event types the widget is allowed to report
WIDGET_OPENED = "widget_opened"
TAB_VIEWED = "tab_viewed"
FORM_SUBMITTED = "form_submitted"
LINK_CLICKED = "link_clicked"
CHAT_STARTED = "chat_started"
PAGE_VIEW = "page_view"

EVENT_TYPES = frozenset({
    WIDGET_OPENED,
    TAB_VIEWED,
    FORM_SUBMITTED,
    LINK_CLICKED,
    CHAT_STARTED,
    PAGE_VIEW,
})


class WidgetEvent(Base):
    __tablename__ = "widget_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    widget_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("widgets.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    widget_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    page_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_widget_events_widget_created", "widget_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WidgetEvent id={self.id} type={self.event_type} widget={self.widget_id}>"


class WidgetUser(Base):
    """A site visitor who created an account through a widget."""

    __tablename__ = "widget_users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    workspace_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_widget_users_workspace_created", "workspace_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WidgetUser id={self.id} workspace={self.workspace_id}>"
