from __future__ import annotations

from flask import Blueprint, abort, jsonify
from sqlalchemy.orm import Session

from app.cms.db import db_session
from app.cms.modules.pages.models import Page
from app.cms.modules.pages.service import (
    create_page,
    delete_page,
    list_pages,
    serialize_page,
    set_page_published,
    update_page,
)
from app.cms.rbac import current_user, require_permission
from app.cms.utils import request_payload

bp = Blueprint("pages_admin", __name__)


def _get_page_or_404(s: Session, page_id: int) -> Page:
    p = s.get(Page, page_id)
    if not p:
        abort(404)
    return p


@bp.get("/pages")
@require_permission("pages.view")
def pages_list():
    s = db_session()
    return jsonify([serialize_page(p, include_content=False) for p in list_pages(s)])


@bp.get("/pages/<int:page_id>")
@require_permission("pages.view")
def page_detail(page_id: int):
    s = db_session()
    return jsonify(serialize_page(_get_page_or_404(s, page_id)))


@bp.post("/pages")
@require_permission("pages.edit")
def page_create():
    s = db_session()
    page = create_page(s, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_page(page)), 201


@bp.put("/pages/<int:page_id>")
@bp.patch("/pages/<int:page_id>")
@require_permission("pages.edit")
def page_update(page_id: int):
    s = db_session()
    page = _get_page_or_404(s, page_id)
    update_page(s, page, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_page(page))


@bp.post("/pages/<int:page_id>/publish")
@require_permission("pages.edit")
def page_publish(page_id: int):
    s = db_session()
    page = _get_page_or_404(s, page_id)
    set_page_published(s, page, True, current_user())
    s.commit()
    return jsonify(serialize_page(page, include_content=False))


@bp.post("/pages/<int:page_id>/unpublish")
@require_permission("pages.edit")
def page_unpublish(page_id: int):
    s = db_session()
    page = _get_page_or_404(s, page_id)
    set_page_published(s, page, False, current_user())
    s.commit()
    return jsonify(serialize_page(page, include_content=False))


@bp.delete("/pages/<int:page_id>")
@require_permission("pages.edit")
def page_delete(page_id: int):
    s = db_session()
    page = _get_page_or_404(s, page_id)
    delete_page(s, page, current_user())
    s.commit()
    return "", 204
