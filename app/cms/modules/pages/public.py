from __future__ import annotations

from flask import Blueprint, jsonify

from app.cms.db import db_session
from app.cms.modules.analytics.service import track_request_event
from app.cms.modules.pages.service import get_published_page_by_slug, list_published_pages, serialize_page
from app.cms.utils import json_error

bp = Blueprint("pages_public", __name__)


@bp.get("/pages/published")
def published_pages():
    s = db_session()
    return jsonify([serialize_page(p) for p in list_published_pages(s)])


@bp.get("/pages/slug/<slug>")
def page_by_slug(slug: str):
    s = db_session()
    page = get_published_page_by_slug(s, slug)
    if not page:
        return json_error("Page not found", 404)

    track_request_event(s, event="view", page_id=page.id)
    s.commit()
    return jsonify(serialize_page(page))
