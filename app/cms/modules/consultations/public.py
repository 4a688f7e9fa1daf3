from __future__ import annotations

from flask import Blueprint, jsonify

from app.cms.db import db_session
from app.cms.modules.analytics.service import track_request_event
from app.cms.modules.consultations.service import create_consultation
from app.cms.utils import request_payload

bp = Blueprint("consultations_public", __name__)


@bp.post("/consultations")
def consultation_book():
    s = db_session()
    c = create_consultation(s, request_payload())
    track_request_event(s, event="consultation_booked", data={"consultation_id": c.id, "service": c.service})
    s.commit()
    return jsonify({"message": "Consultation booked successfully", "id": c.id}), 201
