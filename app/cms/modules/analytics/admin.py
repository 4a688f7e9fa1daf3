from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cms.db import db_session
from app.cms.modules.analytics.service import parse_range, query_events, serialize_event, summarize
from app.cms.rbac import require_permission
from app.cms.utils import parse_positive_int

bp = Blueprint("analytics_admin", __name__)


def _range_from_args():
    # Dashboard sends camelCase; snake_case accepted for scripts.
    start_raw = request.args.get("startDate") or request.args.get("start_date")
    end_raw = request.args.get("endDate") or request.args.get("end_date")
    return parse_range(start_raw, end_raw)


@bp.get("/analytics")
@require_permission("analytics.view")
def analytics_events():
    s = db_session()
    start, end = _range_from_args()
    event = (request.args.get("event") or "").strip() or None
    limit = parse_positive_int(request.args.get("limit"), 1000, maximum=5000)
    events = query_events(s, start=start, end=end, event=event, limit=limit)
    return jsonify([serialize_event(e) for e in events])


@bp.get("/analytics/summary")
@require_permission("analytics.view")
def analytics_summary():
    s = db_session()
    start, end = _range_from_args()
    return jsonify(summarize(s, start=start, end=end))
