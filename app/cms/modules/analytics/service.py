from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from flask import request
from sqlalchemy import func

from app.cms.utils import ValidationError, iso, parse_iso_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.modules.analytics.models import AnalyticsEvent


# Events the public site may report on its own; server-side events
# (consultation_booked, ...) are recorded by their modules directly.
CLIENT_EVENTS = frozenset({"view", "conversion", "calculator_used", "cta_click", "form_submit"})


def track_event(
    s: "Session",
    *,
    event: str,
    page_id: int | None = None,
    post_id: int | None = None,
    data: dict[str, Any] | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
    referrer: str | None = None,
) -> "AnalyticsEvent":
    from app.cms.modules.analytics.models import AnalyticsEvent

    ev = AnalyticsEvent(
        event=event,
        page_id=page_id,
        post_id=post_id,
        data=data,
        user_agent=user_agent or "",
        ip_address=ip_address or "unknown",
        referrer=referrer,
    )
    s.add(ev)
    return ev


def track_request_event(
    s: "Session",
    *,
    event: str,
    page_id: int | None = None,
    post_id: int | None = None,
    data: dict[str, Any] | None = None,
) -> "AnalyticsEvent":
    """track_event() with user agent, IP and referrer taken from the current request."""
    return track_event(
        s,
        event=event,
        page_id=page_id,
        post_id=post_id,
        data=data,
        user_agent=request.headers.get("User-Agent", ""),
        ip_address=request.remote_addr,
        referrer=request.headers.get("Referer") or None,
    )


def parse_range(start_raw: str | None, end_raw: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Parse the dashboard date range. A bare YYYY-MM-DD end date covers that whole day.
    """
    try:
        start = parse_iso_datetime(start_raw)
        end = parse_iso_datetime(end_raw)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {e}") from e
    if end is not None and end_raw and len(str(end_raw).strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    if start and end and start > end:
        raise ValidationError("Start date must be before end date.")
    return start, end


def _apply_range(q, start: datetime | None, end: datetime | None):
    from app.cms.modules.analytics.models import AnalyticsEvent

    if start is not None:
        q = q.filter(AnalyticsEvent.created_at >= start)
    if end is not None:
        q = q.filter(AnalyticsEvent.created_at <= end)
    return q


def query_events(
    s: "Session",
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    event: str | None = None,
    limit: int | None = None,
) -> list["AnalyticsEvent"]:
    from app.cms.modules.analytics.models import AnalyticsEvent

    q = _apply_range(s.query(AnalyticsEvent), start, end)
    if event:
        q = q.filter(AnalyticsEvent.event == event)
    q = q.order_by(AnalyticsEvent.created_at.desc(), AnalyticsEvent.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def summarize(s: "Session", *, start: datetime | None = None, end: datetime | None = None, top_n: int = 5) -> dict:
    """Rollups for the admin dashboard: counts per event and most viewed pages/posts."""
    from app.cms.modules.analytics.models import AnalyticsEvent
    from app.cms.modules.blog.models import Post
    from app.cms.modules.pages.models import Page

    by_event_rows = (
        _apply_range(s.query(AnalyticsEvent.event, func.count(AnalyticsEvent.id)), start, end)
        .group_by(AnalyticsEvent.event)
        .all()
    )
    by_event = {name: int(count) for name, count in by_event_rows}

    views = func.count(AnalyticsEvent.id).label("views")
    top_pages = (
        _apply_range(
            s.query(Page.id, Page.title, Page.slug, views)
            .join(AnalyticsEvent, AnalyticsEvent.page_id == Page.id)
            .filter(AnalyticsEvent.event == "view"),
            start,
            end,
        )
        .group_by(Page.id, Page.title, Page.slug)
        .order_by(views.desc(), Page.id.asc())
        .limit(top_n)
        .all()
    )
    top_posts = (
        _apply_range(
            s.query(Post.id, Post.title, Post.slug, views)
            .join(AnalyticsEvent, AnalyticsEvent.post_id == Post.id)
            .filter(AnalyticsEvent.event == "view"),
            start,
            end,
        )
        .group_by(Post.id, Post.title, Post.slug)
        .order_by(views.desc(), Post.id.asc())
        .limit(top_n)
        .all()
    )

    return {
        "total": sum(by_event.values()),
        "by_event": by_event,
        "top_pages": [{"id": r[0], "title": r[1], "slug": r[2], "views": int(r[3])} for r in top_pages],
        "top_posts": [{"id": r[0], "title": r[1], "slug": r[2], "views": int(r[3])} for r in top_posts],
        "start": iso(start),
        "end": iso(end),
    }


def serialize_event(ev: "AnalyticsEvent") -> dict:
    return {
        "id": ev.id,
        "event": ev.event,
        "page_id": ev.page_id,
        "post_id": ev.post_id,
        "data": ev.data,
        "user_agent": ev.user_agent,
        "ip_address": ev.ip_address,
        "referrer": ev.referrer,
        "created_at": iso(ev.created_at),
    }
