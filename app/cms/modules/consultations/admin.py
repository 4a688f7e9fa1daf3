from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.cms.db import db_session
from app.cms.modules.consultations.models import Consultation
from app.cms.modules.consultations.service import list_consultations, serialize_consultation, update_status
from app.cms.rbac import current_user, require_permission
from app.cms.utils import request_payload

bp = Blueprint("consultations_admin", __name__)


def _get_consultation_or_404(s, consultation_id: int) -> Consultation:
    c = s.get(Consultation, consultation_id)
    if not c:
        abort(404)
    return c


@bp.get("/consultations")
@require_permission("consultations.view")
def consultations_list():
    s = db_session()
    status = (request.args.get("status") or "").strip().lower() or None
    return jsonify([serialize_consultation(c) for c in list_consultations(s, status=status)])


@bp.get("/consultations/<int:consultation_id>")
@require_permission("consultations.view")
def consultation_detail(consultation_id: int):
    s = db_session()
    return jsonify(serialize_consultation(_get_consultation_or_404(s, consultation_id)))


@bp.post("/consultations/<int:consultation_id>/status")
@bp.patch("/consultations/<int:consultation_id>")
@require_permission("consultations.edit")
def consultation_status(consultation_id: int):
    s = db_session()
    c = _get_consultation_or_404(s, consultation_id)
    payload = request_payload()
    update_status(s, c, str(payload.get("status") or ""), current_user(), reason=payload.get("reason"))
    s.commit()
    return jsonify(serialize_consultation(c))
