from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.cms.db import db_session
from app.cms.modules.forms.models import Form, FormSubmission
from app.cms.modules.forms.service import (
    create_form,
    delete_form,
    list_forms,
    list_submissions,
    mark_submission_read,
    serialize_form,
    serialize_submission,
    update_form,
)
from app.cms.rbac import current_user, require_permission
from app.cms.utils import parse_bool, request_payload

bp = Blueprint("forms_admin", __name__)


def _get_or_404(s, model, obj_id: int):
    obj = s.get(model, obj_id)
    if not obj:
        abort(404)
    return obj


@bp.get("/forms")
@require_permission("forms.view")
def forms_list():
    s = db_session()
    return jsonify([serialize_form(f, total=total, unread=unread) for f, total, unread in list_forms(s)])


@bp.get("/forms/<int:form_id>")
@require_permission("forms.view")
def form_detail(form_id: int):
    s = db_session()
    return jsonify(serialize_form(_get_or_404(s, Form, form_id)))


@bp.post("/forms")
@require_permission("forms.edit")
def form_create():
    s = db_session()
    form = create_form(s, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_form(form)), 201


@bp.put("/forms/<int:form_id>")
@bp.patch("/forms/<int:form_id>")
@require_permission("forms.edit")
def form_update(form_id: int):
    s = db_session()
    form = _get_or_404(s, Form, form_id)
    update_form(s, form, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_form(form))


@bp.delete("/forms/<int:form_id>")
@require_permission("forms.edit")
def form_delete(form_id: int):
    s = db_session()
    form = _get_or_404(s, Form, form_id)
    delete_form(s, form, current_user())
    s.commit()
    return "", 204


@bp.get("/forms/<int:form_id>/submissions")
@require_permission("forms.view")
def form_submissions(form_id: int):
    s = db_session()
    form = _get_or_404(s, Form, form_id)
    unread_only = parse_bool(request.args.get("unread"))
    return jsonify([serialize_submission(x) for x in list_submissions(s, form, unread_only=unread_only)])


@bp.post("/forms/submissions/<int:submission_id>/read")
@require_permission("forms.edit")
def submission_mark_read(submission_id: int):
    s = db_session()
    sub = _get_or_404(s, FormSubmission, submission_id)
    read = parse_bool(request_payload().get("is_read"), default=True)
    mark_submission_read(s, sub, current_user(), read=read)
    s.commit()
    return jsonify(serialize_submission(sub))
