from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cms.db import db_session
from app.cms.modules.analytics.service import track_request_event
from app.cms.modules.blog.service import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    get_published_post_by_slug,
    list_categories,
    list_published_posts,
    list_tags,
    serialize_category,
    serialize_post,
    serialize_tag,
)
from app.cms.utils import json_error, parse_positive_int

bp = Blueprint("blog_public", __name__)


@bp.get("/posts/published")
def published_posts():
    s = db_session()
    result = list_published_posts(
        s,
        page=parse_positive_int(request.args.get("page"), 1),
        limit=parse_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE),
        category_slug=(request.args.get("category") or "").strip() or None,
        tag_slug=(request.args.get("tag") or "").strip() or None,
    )
    result["posts"] = [serialize_post(p) for p in result["posts"]]
    return jsonify(result)


@bp.get("/posts/slug/<slug>")
def post_by_slug(slug: str):
    s = db_session()
    post = get_published_post_by_slug(s, slug)
    if not post:
        return json_error("Post not found", 404)

    track_request_event(s, event="view", post_id=post.id)
    s.commit()
    return jsonify(serialize_post(post))


@bp.get("/categories")
def categories():
    s = db_session()
    return jsonify([serialize_category(c) for c in list_categories(s)])


@bp.get("/tags")
def tags():
    s = db_session()
    return jsonify([serialize_tag(t) for t in list_tags(s)])
