"""
In-memory content for local development without a database.

Mounted under /api/mock-* by create_app() when ENV=development and the
database is unreachable (or USE_MOCK_DATA=1). Responses have the same
shapes, filtering and pagination as the real public endpoints.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from app.cms import demo_content
from app.cms.modules.blog.service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, page_count, reading_time
from app.cms.utils import iso, json_error, parse_positive_int

bp = Blueprint("mock_data", __name__)


@dataclass
class MockCatalogue:
    categories: list[dict] = field(default_factory=list)
    tags: list[dict] = field(default_factory=list)
    pages: list[dict] = field(default_factory=list)
    posts: list[dict] = field(default_factory=list)

    def published_pages(self) -> list[dict]:
        rows = [p for p in self.pages if p["is_published"]]
        return sorted(rows, key=lambda p: (p["published_at"] or "", p["id"]), reverse=True)

    def page_by_slug(self, slug: str) -> dict | None:
        return next((p for p in self.pages if p["slug"] == slug and p["is_published"]), None)

    def published_posts(
        self,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        category_slug: str | None = None,
        tag_slug: str | None = None,
    ) -> dict:
        rows = [p for p in self.posts if p["is_published"]]
        if category_slug:
            rows = [p for p in rows if p["category"] and p["category"]["slug"] == category_slug]
        if tag_slug:
            rows = [p for p in rows if any(t["slug"] == tag_slug for t in p["tags"])]
        rows.sort(key=lambda p: (p["published_at"] or "", p["id"]), reverse=True)
        offset = (page - 1) * limit
        return {
            "posts": rows[offset : offset + limit],
            "total": len(rows),
            "page": page,
            "limit": limit,
            "pages": page_count(len(rows), limit),
        }

    def post_by_slug(self, slug: str) -> dict | None:
        return next((p for p in self.posts if p["slug"] == slug and p["is_published"]), None)


def build_catalogue(now: datetime | None = None) -> MockCatalogue:
    """Materialize demo_content with ids and timestamps; newer items first in the source lists."""
    now = now or datetime.utcnow()
    cat = MockCatalogue()

    for i, c in enumerate(demo_content.CATEGORIES, start=1):
        cat.categories.append({"id": i, **c, "created_at": iso(now)})
    for i, t in enumerate(demo_content.TAGS, start=1):
        cat.tags.append({"id": i, **t, "created_at": iso(now)})
    cat.categories.sort(key=lambda c: c["name"])
    cat.tags.sort(key=lambda t: t["name"])

    by_cat_slug = {c["slug"]: c for c in cat.categories}
    by_tag_slug = {t["slug"]: t for t in cat.tags}

    for i, p in enumerate(demo_content.PAGES, start=1):
        ts = now - timedelta(days=i)
        cat.pages.append(
            {
                "id": i,
                "title": p["title"],
                "slug": p["slug"],
                "template": p["template"],
                "content": copy.deepcopy(p["content"]),
                "meta_title": p.get("meta_title"),
                "meta_description": p.get("meta_description"),
                "is_published": p["is_published"],
                "published_at": iso(ts) if p["is_published"] else None,
                "author_id": None,
                "created_at": iso(ts),
                "updated_at": iso(ts),
            }
        )

    for i, p in enumerate(demo_content.POSTS, start=1):
        ts = now - timedelta(days=i)
        category = by_cat_slug.get(p.get("category") or "")
        tags = sorted((by_tag_slug[s] for s in p.get("tags", []) if s in by_tag_slug), key=lambda t: t["name"])
        cat.posts.append(
            {
                "id": i,
                "title": p["title"],
                "slug": p["slug"],
                "excerpt": p.get("excerpt"),
                "content": p["content"],
                "featured_image": None,
                "category_id": category["id"] if category else None,
                "category": (
                    {"id": category["id"], "name": category["name"], "slug": category["slug"]} if category else None
                ),
                "tags": [{"id": t["id"], "name": t["name"], "slug": t["slug"]} for t in tags],
                "meta_title": None,
                "meta_description": None,
                "is_published": p["is_published"],
                "published_at": iso(ts) if p["is_published"] else None,
                "reading_time": p.get("reading_time") or reading_time(p["content"]),
                "author_id": None,
                "created_at": iso(ts),
                "updated_at": iso(ts),
            }
        )
    return cat


def _catalogue() -> MockCatalogue:
    c = current_app.extensions.get("mock_catalogue")
    if c is None:
        c = build_catalogue()
        current_app.extensions["mock_catalogue"] = c
    return c


@bp.get("/mock-categories")
def mock_categories():
    return jsonify(_catalogue().categories)


@bp.get("/mock-tags")
def mock_tags():
    return jsonify(_catalogue().tags)


@bp.get("/mock-posts")
def mock_posts():
    return jsonify(_catalogue().posts)


@bp.get("/mock-posts/published")
def mock_posts_published():
    return jsonify(
        _catalogue().published_posts(
            page=parse_positive_int(request.args.get("page"), 1),
            limit=parse_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE),
            category_slug=(request.args.get("category") or "").strip() or None,
            tag_slug=(request.args.get("tag") or "").strip() or None,
        )
    )


@bp.get("/mock-posts/slug/<slug>")
def mock_post_by_slug(slug: str):
    post = _catalogue().post_by_slug(slug)
    if not post:
        return json_error("Post not found", 404)
    return jsonify(post)


@bp.get("/mock-pages")
def mock_pages():
    return jsonify(_catalogue().pages)


@bp.get("/mock-pages/published")
def mock_pages_published():
    return jsonify(_catalogue().published_pages())


@bp.get("/mock-pages/slug/<slug>")
def mock_page_by_slug(slug: str):
    page = _catalogue().page_by_slug(slug)
    if not page:
        return json_error("Page not found", 404)
    return jsonify(page)
