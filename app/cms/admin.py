from __future__ import annotations

from flask import Blueprint, abort, g, jsonify, request

from app.cms.audit import query_events, serialize_audit_event
from app.cms.db import db_session
from app.cms.modules.analytics.service import parse_range
from app.cms.rbac import require_permission, user_permissions
from app.cms.utils import parse_positive_int

bp = Blueprint("admin", __name__)


@bp.get("/me")
def me():
    """The signed-in user with effective permissions; the admin UI hides what the user cannot do."""
    user = getattr(g, "current_user", None)
    if not user:
        abort(401)
    return jsonify({**user.to_dict(), "permissions": sorted(user_permissions(user))})


@bp.get("/audit")
@require_permission("audit.view")
def audit_list():
    """
    Audit trail, newest first. Filters:
    - action, actor_email (substring)
    - entity_type, entity_id (exact)
    - date_from / date_to (ISO; a bare end date covers the whole day)
    """
    s = db_session()
    start, end = parse_range(request.args.get("date_from"), request.args.get("date_to"))
    events = query_events(
        s,
        action=(request.args.get("action") or "").strip() or None,
        actor_email=(request.args.get("actor_email") or "").strip() or None,
        entity_type=(request.args.get("entity_type") or "").strip() or None,
        entity_id=(request.args.get("entity_id") or "").strip() or None,
        start=start,
        end=end,
        limit=parse_positive_int(request.args.get("limit"), 200, maximum=1000),
    )
    return jsonify([serialize_audit_event(e) for e in events])
