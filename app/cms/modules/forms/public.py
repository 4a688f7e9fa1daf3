from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cms.db import db_session
from app.cms.modules.analytics.service import track_request_event
from app.cms.modules.forms.models import Form
from app.cms.modules.forms.service import DEFAULT_SETTINGS, public_form, submit_form
from app.cms.utils import json_error, request_payload

bp = Blueprint("forms_public", __name__)


def _active_form(s, form_id: int) -> Form | None:
    form = s.get(Form, form_id)
    if not form or not form.is_active:
        return None
    return form


@bp.get("/forms/<int:form_id>")
def form_schema(form_id: int):
    s = db_session()
    form = _active_form(s, form_id)
    if not form:
        return json_error("Form not found or inactive", 404)
    return jsonify(public_form(form))


@bp.post("/forms/<int:form_id>/submit")
def form_submit(form_id: int):
    s = db_session()
    form = _active_form(s, form_id)
    if not form:
        return json_error("Form not found or inactive", 404)

    payload = request_payload()
    # Accept {"data": {...}} or the field values at the top level.
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    sub = submit_form(
        s,
        form,
        data,
        user_agent=request.headers.get("User-Agent", ""),
        ip_address=request.remote_addr,
    )
    track_request_event(s, event="form_submit", data={"form_id": form.id, "submission_id": sub.id})
    s.commit()

    settings = form.settings or DEFAULT_SETTINGS
    return (
        jsonify(
            {
                "message": settings.get("success_message") or DEFAULT_SETTINGS["success_message"],
                "id": sub.id,
                "redirect_url": settings.get("redirect_url"),
            }
        ),
        201,
    )
