"""
Analytics service: workspace-level widget engagement reporting.

A report covers a period of N days ending now and compares it with the
N days immediately before it:

    prev_start ──── period_start ──── now
       previous window   current window

Everything is computed in memory from the raw widget_events rows of the two
windows. The pure helpers below take any objects exposing `session_id`,
`widget_id`, `event_type` and `created_at`, so they work on ORM instances and
on result rows alike.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.errors import AggregationFailure
from glance.core.logging import get_logger
from glance.models.events import (
    CHAT_STARTED,
    FORM_SUBMITTED,
    WIDGET_OPENED,
    WidgetEvent,
    WidgetUser,
    as_utc,
)
from glance.services.workspace_service import get_widget_names

logger = get_logger(__name__)

UNKNOWN_WIDGET_NAME = "Unknown"

STAT_KEYS = (
    "visitors",
    "widget_opens",
    "unique_widget_opens",
    "users_created",
    "form_submissions",
    "chats_initiated",
    "conversion_rate",
    "bounce_rate",
)


class Period(str, Enum):
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"

    @property
    def days(self) -> int:
        return PERIOD_DAYS[self]

    @classmethod
    def parse(cls, value: str | None) -> "Period":
        """Unknown or missing values fall back to the 7-day period."""
        try:
            return cls(value)
        except ValueError:
            return cls.WEEK


PERIOD_DAYS = {
    Period.DAY: 1,
    Period.WEEK: 7,
    Period.MONTH: 30,
    Period.QUARTER: 90,
}


# ── Numeric helpers ────────────────────────────────────────────────────────────
def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (12.5 → 13, -12.5 → -13)."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percentage(numerator: float, denominator: float) -> float:
    """numerator / denominator as a percentage with one decimal place."""
    return round_half_away(numerator / denominator * 1000) / 10


def session_rate(sessions: int, visitors: int) -> float:
    """Share of visitors (sessions) as a one-decimal percentage, 0 with no visitors."""
    if visitors == 0:
        return 0.0
    return percentage(sessions, visitors)


def pct_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return percentage(current - previous, previous)


def iter_dates(start: date, end: date) -> Iterable[date]:
    """Every calendar date from start to end, both inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


# ── Aggregation ────────────────────────────────────────────────────────────────
def compute_stats(events: Iterable[Any], users_created: int) -> dict[str, Any]:
    """Headline numbers for one window of events."""
    sessions: dict[str, set[str]] = defaultdict(set)
    opens = form_submissions = chats_initiated = 0

    for e in events:
        sessions[e.session_id].add(e.event_type)
        if e.event_type == WIDGET_OPENED:
            opens += 1
        elif e.event_type == FORM_SUBMITTED:
            form_submissions += 1
        elif e.event_type == CHAT_STARTED:
            chats_initiated += 1

    visitors = len(sessions)
    unique_opens = sum(1 for types in sessions.values() if WIDGET_OPENED in types)
    bounced = sum(1 for types in sessions.values() if len(types) <= 1)

    return {
        "visitors": visitors,
        "widget_opens": opens,
        "unique_widget_opens": unique_opens,
        "users_created": users_created,
        "form_submissions": form_submissions,
        "chats_initiated": chats_initiated,
        "conversion_rate": session_rate(unique_opens, visitors),
        "bounce_rate": session_rate(bounced, visitors),
    }


def compute_changes(current: dict[str, Any], previous: dict[str, Any]) -> dict[str, float]:
    return {key: pct_change(current[key], previous[key]) for key in STAT_KEYS}


@dataclass
class _DayBucket:
    visitors: set[str] = field(default_factory=set)
    opens: int = 0
    unique_opens: set[str] = field(default_factory=set)
    form_submissions: int = 0
    chats_initiated: int = 0
    users_created: int = 0


def build_time_series(
    events: Iterable[Any],
    account_created_at: Iterable[datetime],
    period_start: datetime,
    now: datetime,
) -> list[dict[str, Any]]:
    """One zero-filled bucket per UTC day of the window, ascending by date."""
    buckets = {
        day.isoformat(): _DayBucket()
        for day in iter_dates(as_utc(period_start).date(), as_utc(now).date())
    }

    for e in events:
        bucket = buckets.setdefault(as_utc(e.created_at).date().isoformat(), _DayBucket())
        bucket.visitors.add(e.session_id)
        if e.event_type == WIDGET_OPENED:
            bucket.opens += 1
            bucket.unique_opens.add(e.session_id)
        elif e.event_type == FORM_SUBMITTED:
            bucket.form_submissions += 1
        elif e.event_type == CHAT_STARTED:
            bucket.chats_initiated += 1

    for created_at in account_created_at:
        key = as_utc(created_at).date().isoformat()
        buckets.setdefault(key, _DayBucket()).users_created += 1

    return [
        {
            "date": day,
            "visitors": len(b.visitors),
            "opens": b.opens,
            "unique_opens": len(b.unique_opens),
            "form_submissions": b.form_submissions,
            "chats_initiated": b.chats_initiated,
            "users_created": b.users_created,
            "conversion_rate": session_rate(len(b.unique_opens), len(b.visitors)),
        }
        for day, b in sorted(buckets.items())
    ]


def build_peak_hours(events: Iterable[Any]) -> list[list[int]]:
    """7x24 grid of widget opens; rows are UTC weekdays starting Sunday, columns UTC hours."""
    grid = [[0] * 24 for _ in range(7)]
    for e in events:
        if e.event_type != WIDGET_OPENED:
            continue
        ts = as_utc(e.created_at)
        grid[(ts.weekday() + 1) % 7][ts.hour] += 1
    return grid


@dataclass
class _SessionSpan:
    first: datetime
    last: datetime
    types: set[str] = field(default_factory=set)


def build_widget_breakdown(
    events: Iterable[Any], widget_names: dict[str, str]
) -> list[dict[str, Any]]:
    """
    Visitors, bounce rate and average session length per widget, busiest
    widget first. A session bounces when it holds at most one distinct
    event type.
    """
    spans: dict[str, dict[str, _SessionSpan]] = defaultdict(dict)

    for e in events:
        ts = as_utc(e.created_at)
        span = spans[e.widget_id].get(e.session_id)
        if span is None:
            span = spans[e.widget_id][e.session_id] = _SessionSpan(first=ts, last=ts)
        span.types.add(e.event_type)
        if ts < span.first:
            span.first = ts
        if ts > span.last:
            span.last = ts

    breakdown = []
    for widget_id, sessions in spans.items():
        # Single-event sessions count as visitors but not toward the average
        durations = [
            (s.last - s.first).total_seconds()
            for s in sessions.values()
            if s.last > s.first
        ]
        breakdown.append({
            "id": widget_id,
            "name": widget_names.get(widget_id) or UNKNOWN_WIDGET_NAME,
            "visitors": len(sessions),
            "bounce_rate": session_rate(
                sum(1 for s in sessions.values() if len(s.types) <= 1), len(sessions)
            ),
            "avg_session_seconds": (
                round_half_away(sum(durations) / len(durations)) if durations else 0
            ),
        })

    breakdown.sort(key=lambda g: g["visitors"], reverse=True)
    return breakdown


def empty_report() -> dict[str, Any]:
    zero = {key: 0 for key in STAT_KEYS}
    return {
        "stats": {**zero, "changes": dict(zero)},
        "time_series": [],
        "peak_hours": build_peak_hours([]),
        "glances": [],
    }


def build_report(
    current_events: Sequence[Any],
    previous_events: Sequence[Any],
    current_users: int,
    previous_users: int,
    account_created_at: Sequence[datetime],
    widget_names: dict[str, str],
    period_start: datetime,
    now: datetime,
) -> dict[str, Any]:
    current = compute_stats(current_events, current_users)
    previous = compute_stats(previous_events, previous_users)

    return {
        "stats": {**current, "changes": compute_changes(current, previous)},
        "time_series": build_time_series(current_events, account_created_at, period_start, now),
        "peak_hours": build_peak_hours(current_events),
        "glances": build_widget_breakdown(current_events, widget_names),
    }


# ── Data access ────────────────────────────────────────────────────────────────
async def fetch_events(
    db: AsyncSession,
    widget_ids: Sequence[str],
    start: datetime,
    end: datetime,
    *,
    include_end: bool,
) -> list[Any]:
    stmt = select(
        WidgetEvent.session_id,
        WidgetEvent.widget_id,
        WidgetEvent.event_type,
        WidgetEvent.created_at,
    ).where(
        WidgetEvent.widget_id.in_(widget_ids),
        WidgetEvent.created_at >= start,
    )
    if include_end:
        stmt = stmt.where(WidgetEvent.created_at <= end)
    else:
        stmt = stmt.where(WidgetEvent.created_at < end)

    result = await db.execute(stmt)
    return list(result.all())


async def count_widget_users(
    db: AsyncSession,
    workspace_id: str,
    start: datetime,
    end: datetime,
    *,
    include_end: bool,
) -> int:
    upper = WidgetUser.created_at <= end if include_end else WidgetUser.created_at < end
    result = await db.execute(
        select(func.count(WidgetUser.id)).where(
            WidgetUser.workspace_id == workspace_id,
            WidgetUser.created_at >= start,
            upper,
        )
    )
    return result.scalar_one()


async def list_widget_user_dates(
    db: AsyncSession, workspace_id: str, start: datetime, end: datetime
) -> list[datetime]:
    result = await db.execute(
        select(WidgetUser.created_at).where(
            WidgetUser.workspace_id == workspace_id,
            WidgetUser.created_at >= start,
            WidgetUser.created_at <= end,
        )
    )
    return list(result.scalars().all())


async def get_workspace_analytics(
    db: AsyncSession,
    workspace_id: str,
    period: Period,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the analytics report for a workspace.

    Raises AggregationFailure if any query fails; callers never receive a
    partially computed report.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    period_start = now - timedelta(days=period.days)
    prev_start = period_start - timedelta(days=period.days)

    stage = "widgets"
    try:
        widget_names = await get_widget_names(db, workspace_id)
        if not widget_names:
            logger.info("analytics.no_widgets", workspace_id=workspace_id, period=period.value)
            return empty_report()
        widget_ids = list(widget_names)

        stage = "current_events"
        current_events = await fetch_events(db, widget_ids, period_start, now, include_end=True)

        stage = "previous_events"
        previous_events = await fetch_events(
            db, widget_ids, prev_start, period_start, include_end=False
        )

        stage = "current_users"
        current_users = await count_widget_users(
            db, workspace_id, period_start, now, include_end=True
        )

        stage = "previous_users"
        previous_users = await count_widget_users(
            db, workspace_id, prev_start, period_start, include_end=False
        )

        stage = "user_dates"
        account_created_at = await list_widget_user_dates(db, workspace_id, period_start, now)

    except SQLAlchemyError as e:
        logger.error(
            "analytics.query_failed",
            workspace_id=workspace_id,
            period=period.value,
            stage=stage,
            error=str(e),
        )
        raise AggregationFailure(stage) from e

    report = build_report(
        current_events,
        previous_events,
        current_users,
        previous_users,
        account_created_at,
        widget_names,
        period_start,
        now,
    )

    logger.info(
        "analytics.computed",
        workspace_id=workspace_id,
        period=period.value,
        widgets=len(widget_ids),
        current_events=len(current_events),
        previous_events=len(previous_events),
        visitors=report["stats"]["visitors"],
    )
    return report
