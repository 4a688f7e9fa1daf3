from __future__ import annotations

from flask import Blueprint, abort, jsonify
from sqlalchemy.orm import Session

from app.cms.db import db_session
from app.cms.modules.blog.models import Category, Post, Tag
from app.cms.modules.blog.service import (
    create_post,
    create_term,
    delete_post,
    delete_term,
    list_categories,
    list_posts,
    list_tags,
    serialize_category,
    serialize_post,
    serialize_tag,
    set_post_published,
    set_post_tags,
    update_post,
    update_term,
)
from app.cms.rbac import current_user, require_permission
from app.cms.utils import request_payload

bp = Blueprint("blog_admin", __name__)


def _get_or_404(s: Session, model, obj_id: int):
    obj = s.get(model, obj_id)
    if not obj:
        abort(404)
    return obj


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@bp.get("/posts")
@require_permission("posts.view")
def posts_list():
    s = db_session()
    return jsonify([serialize_post(p, include_content=False) for p in list_posts(s)])


@bp.get("/posts/<int:post_id>")
@require_permission("posts.view")
def post_detail(post_id: int):
    s = db_session()
    return jsonify(serialize_post(_get_or_404(s, Post, post_id)))


@bp.post("/posts")
@require_permission("posts.edit")
def post_create():
    s = db_session()
    post = create_post(s, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_post(post)), 201


@bp.put("/posts/<int:post_id>")
@bp.patch("/posts/<int:post_id>")
@require_permission("posts.edit")
def post_update(post_id: int):
    s = db_session()
    post = _get_or_404(s, Post, post_id)
    update_post(s, post, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_post(post))


@bp.put("/posts/<int:post_id>/tags")
@require_permission("posts.edit")
def post_tags(post_id: int):
    s = db_session()
    post = _get_or_404(s, Post, post_id)
    set_post_tags(s, post, request_payload().get("tag_ids"), current_user())
    s.commit()
    return jsonify(serialize_post(post, include_content=False))


@bp.post("/posts/<int:post_id>/publish")
@require_permission("posts.edit")
def post_publish(post_id: int):
    s = db_session()
    post = _get_or_404(s, Post, post_id)
    set_post_published(s, post, True, current_user())
    s.commit()
    return jsonify(serialize_post(post, include_content=False))


@bp.post("/posts/<int:post_id>/unpublish")
@require_permission("posts.edit")
def post_unpublish(post_id: int):
    s = db_session()
    post = _get_or_404(s, Post, post_id)
    set_post_published(s, post, False, current_user())
    s.commit()
    return jsonify(serialize_post(post, include_content=False))


@bp.delete("/posts/<int:post_id>")
@require_permission("posts.edit")
def post_delete(post_id: int):
    s = db_session()
    post = _get_or_404(s, Post, post_id)
    delete_post(s, post, current_user())
    s.commit()
    return "", 204


# ---------------------------------------------------------------------------
# Categories / tags
# ---------------------------------------------------------------------------


@bp.get("/categories")
@require_permission("posts.view")
def categories_list():
    s = db_session()
    return jsonify([serialize_category(c) for c in list_categories(s)])


@bp.post("/categories")
@require_permission("taxonomy.edit")
def category_create():
    s = db_session()
    c = create_term(s, "category", request_payload(), current_user())
    s.commit()
    return jsonify(serialize_category(c)), 201


@bp.put("/categories/<int:category_id>")
@bp.patch("/categories/<int:category_id>")
@require_permission("taxonomy.edit")
def category_update(category_id: int):
    s = db_session()
    c = _get_or_404(s, Category, category_id)
    update_term(s, c, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_category(c))


@bp.delete("/categories/<int:category_id>")
@require_permission("taxonomy.edit")
def category_delete(category_id: int):
    s = db_session()
    c = _get_or_404(s, Category, category_id)
    delete_term(s, c, current_user())
    s.commit()
    return "", 204


@bp.get("/tags")
@require_permission("posts.view")
def tags_list():
    s = db_session()
    return jsonify([serialize_tag(t) for t in list_tags(s)])


@bp.post("/tags")
@require_permission("taxonomy.edit")
def tag_create():
    s = db_session()
    t = create_term(s, "tag", request_payload(), current_user())
    s.commit()
    return jsonify(serialize_tag(t)), 201


@bp.put("/tags/<int:tag_id>")
@bp.patch("/tags/<int:tag_id>")
@require_permission("taxonomy.edit")
def tag_update(tag_id: int):
    s = db_session()
    t = _get_or_404(s, Tag, tag_id)
    update_term(s, t, request_payload(), current_user())
    s.commit()
    return jsonify(serialize_tag(t))


@bp.delete("/tags/<int:tag_id>")
@require_permission("taxonomy.edit")
def tag_delete(tag_id: int):
    s = db_session()
    t = _get_or_404(s, Tag, tag_id)
    delete_term(s, t, current_user())
    s.commit()
    return "", 204
