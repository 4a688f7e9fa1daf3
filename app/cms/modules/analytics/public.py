from __future__ import annotations

from flask import Blueprint, jsonify

from app.cms.db import db_session
from app.cms.modules.analytics.service import CLIENT_EVENTS, track_request_event
from app.cms.utils import ValidationError, request_payload

bp = Blueprint("analytics_public", __name__)


def _optional_id(payload: dict, key: str) -> int | None:
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} must be an integer.") from e


@bp.post("/analytics/events")
def analytics_track():
    payload = request_payload()
    event = str(payload.get("event") or "").strip()
    if event not in CLIENT_EVENTS:
        raise ValidationError(f"Unsupported event. Must be one of: {', '.join(sorted(CLIENT_EVENTS))}")

    data = payload.get("data")
    if data is not None and not isinstance(data, dict):
        raise ValidationError("data must be an object.")

    s = db_session()
    page_id = _optional_id(payload, "page_id")
    post_id = _optional_id(payload, "post_id")
    if page_id is not None:
        from app.cms.modules.pages.models import Page

        if s.get(Page, page_id) is None:
            raise ValidationError("Unknown page_id.")
    if post_id is not None:
        from app.cms.modules.blog.models import Post

        if s.get(Post, post_id) is None:
            raise ValidationError("Unknown post_id.")

    ev = track_request_event(s, event=event, page_id=page_id, post_id=post_id, data=data)
    s.commit()
    return jsonify({"id": ev.id}), 201
