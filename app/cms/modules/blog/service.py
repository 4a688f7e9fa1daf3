from __future__ import annotations

import math
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.cms.audit import record_event
from app.cms.utils import SlugConflictError, ValidationError, iso, normalize_slug, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.models import User
    from app.cms.modules.blog.models import Category, Post, Tag


WORDS_PER_MINUTE = 200
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

_TAG_RE = re.compile(r"<[^>]+>")

_TEXT_FIELDS = ("title", "excerpt", "content", "featured_image", "meta_title", "meta_description")
_NULLABLE_TEXT_FIELDS = ("excerpt", "featured_image", "meta_title", "meta_description")


def reading_time(content: str | None) -> int:
    """Minutes at 200 words per minute, HTML tags ignored. Never less than 1."""
    words = len(_TAG_RE.sub(" ", content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


def validate_post_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate post creation/update payload. Returns list of errors."""
    errors = []
    title = str(payload.get("title") or "").strip()
    if (not partial or "title" in payload) and not title:
        errors.append("Title is required.")
    if partial:
        if "slug" in payload and not normalize_slug(payload.get("slug")):
            errors.append("Slug must contain letters or digits.")
    elif title and not normalize_slug(payload.get("slug"), fallback_title=title):
        errors.append("Slug must contain letters or digits.")
    if payload.get("reading_time") not in (None, ""):
        try:
            if int(payload.get("reading_time")) < 1:
                errors.append("Reading time must be a positive number of minutes.")
        except (TypeError, ValueError):
            errors.append("Reading time must be a positive number of minutes.")
    if "tag_ids" in payload and not isinstance(payload.get("tag_ids"), list):
        errors.append("tag_ids must be a list.")
    return errors


def _ensure_unique_post_slug(s: "Session", slug: str, *, exclude_id: int | None = None) -> None:
    from app.cms.modules.blog.models import Post

    q = s.query(Post.id).filter(Post.slug == slug)
    if exclude_id is not None:
        q = q.filter(Post.id != exclude_id)
    if q.first() is not None:
        raise SlugConflictError("Post", slug)


def _resolve_category_id(s: "Session", raw: Any) -> int | None:
    from app.cms.modules.blog.models import Category

    if raw in (None, ""):
        return None
    try:
        category_id = int(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError("category_id must be an integer.") from e
    if s.get(Category, category_id) is None:
        raise ValidationError(f"Unknown category_id {category_id}.")
    return category_id


def _resolve_tags(s: "Session", raw_ids: list) -> list["Tag"]:
    from app.cms.modules.blog.models import Tag

    try:
        ids = sorted({int(x) for x in raw_ids})
    except (TypeError, ValueError) as e:
        raise ValidationError("tag_ids must be integers.") from e
    if not ids:
        return []
    tags = s.query(Tag).filter(Tag.id.in_(ids)).all()
    missing = set(ids) - {t.id for t in tags}
    if missing:
        raise ValidationError(f"Unknown tag_ids: {', '.join(str(i) for i in sorted(missing))}")
    return tags


def _apply_published(post: "Post", published: bool) -> bool:
    if published == bool(post.is_published):
        return False
    post.is_published = published
    post.published_at = datetime.utcnow() if published else None
    return True


def create_post(s: "Session", payload: dict, user: "User") -> "Post":
    from app.cms.modules.blog.models import Post

    errors = validate_post_payload(payload)
    if errors:
        raise ValidationError(errors)

    title = str(payload.get("title")).strip()
    slug = normalize_slug(payload.get("slug"), fallback_title=title)
    _ensure_unique_post_slug(s, slug)

    content = str(payload.get("content") or "")
    minutes = payload.get("reading_time")
    now = datetime.utcnow()
    post = Post(
        title=title,
        slug=slug,
        excerpt=(str(payload.get("excerpt") or "").strip() or None),
        content=content,
        featured_image=(str(payload.get("featured_image") or "").strip() or None),
        category_id=_resolve_category_id(s, payload.get("category_id")),
        meta_title=(str(payload.get("meta_title") or "").strip() or None),
        meta_description=(str(payload.get("meta_description") or "").strip() or None),
        is_published=False,
        reading_time=int(minutes) if minutes not in (None, "") else reading_time(content),
        author_id=user.id,
        created_at=now,
        updated_at=now,
    )
    if "tag_ids" in payload:
        post.tags = _resolve_tags(s, payload.get("tag_ids") or [])
    _apply_published(post, parse_bool(payload.get("is_published")))
    s.add(post)
    s.flush()

    record_event(
        s,
        actor=user,
        action="post.create",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"slug": post.slug, "tags": [t.slug for t in post.tags]},
    )
    return post


def update_post(s: "Session", post: "Post", payload: dict, user: "User") -> "Post":
    errors = validate_post_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)

    changes: dict[str, Any] = {}
    if "slug" in payload:
        new_slug = normalize_slug(payload.get("slug"))
        if new_slug != post.slug:
            _ensure_unique_post_slug(s, new_slug, exclude_id=post.id)
            changes["slug"] = {"old": post.slug, "new": new_slug}
            post.slug = new_slug

    for field in _TEXT_FIELDS:
        if field not in payload:
            continue
        raw = payload.get(field)
        if field == "content":
            new = str(raw or "")
        elif field in _NULLABLE_TEXT_FIELDS:
            new = str(raw or "").strip() or None
        else:
            new = str(raw or "").strip()
        old = getattr(post, field)
        if new != old:
            # Body diffs are not worth storing in the audit trail.
            changes[field] = True if field == "content" else {"old": old, "new": new}
            setattr(post, field, new)

    if "category_id" in payload:
        new_cat = _resolve_category_id(s, payload.get("category_id"))
        if new_cat != post.category_id:
            changes["category_id"] = {"old": post.category_id, "new": new_cat}
            post.category_id = new_cat

    if payload.get("reading_time") not in (None, ""):
        post.reading_time = int(payload["reading_time"])
    elif "content" in changes:
        post.reading_time = reading_time(post.content)

    if "tag_ids" in payload:
        old_tags = sorted(t.slug for t in post.tags)
        post.tags = _resolve_tags(s, payload.get("tag_ids") or [])
        new_tags = sorted(t.slug for t in post.tags)
        if old_tags != new_tags:
            changes["tags"] = {"old": old_tags, "new": new_tags}

    if "is_published" in payload:
        if _apply_published(post, parse_bool(payload.get("is_published"))):
            changes["is_published"] = post.is_published

    post.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="post.edit",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"slug": post.slug, "changes": changes},
    )
    return post


def set_post_tags(s: "Session", post: "Post", tag_ids: list, user: "User") -> "Post":
    if not isinstance(tag_ids, list):
        raise ValidationError("tag_ids must be a list.")
    old_tags = sorted(t.slug for t in post.tags)
    post.tags = _resolve_tags(s, tag_ids)
    post.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="post.tags",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"old": old_tags, "new": sorted(t.slug for t in post.tags)},
    )
    return post


def set_post_published(s: "Session", post: "Post", published: bool, user: "User") -> "Post":
    if _apply_published(post, published):
        post.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="post.publish" if published else "post.unpublish",
            entity_type="Post",
            entity_id=str(post.id),
            metadata={"slug": post.slug},
        )
    return post


def delete_post(s: "Session", post: "Post", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="post.delete",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"slug": post.slug, "title": post.title},
    )
    s.delete(post)


def list_posts(s: "Session") -> list["Post"]:
    from app.cms.modules.blog.models import Post

    return s.query(Post).order_by(Post.updated_at.desc(), Post.id.desc()).all()


def list_published_posts(
    s: "Session",
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    category_slug: str | None = None,
    tag_slug: str | None = None,
) -> dict:
    """
    One page of published posts, newest publication first.

    Filtering by an unknown category or tag slug matches nothing rather than
    silently falling back to the unfiltered list.
    """
    from app.cms.modules.blog.models import Category, Post, PostTag, Tag

    q = s.query(Post).filter(Post.is_published.is_(True))
    if category_slug:
        q = q.join(Category, Post.category_id == Category.id).filter(Category.slug == category_slug)
    if tag_slug:
        q = (
            q.join(PostTag, PostTag.post_id == Post.id)
            .join(Tag, Tag.id == PostTag.tag_id)
            .filter(Tag.slug == tag_slug)
        )

    total = q.count()
    posts = (
        q.order_by(Post.published_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "posts": posts,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": page_count(total, limit),
    }


def get_published_post_by_slug(s: "Session", slug: str) -> "Post | None":
    from app.cms.modules.blog.models import Post

    post = s.query(Post).filter(Post.slug == slug).one_or_none()
    if not post or not post.is_published:
        return None
    return post


def serialize_post(post: "Post", *, include_content: bool = True) -> dict:
    out = {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "featured_image": post.featured_image,
        "category_id": post.category_id,
        "category": (
            {"id": post.category.id, "name": post.category.name, "slug": post.category.slug}
            if post.category
            else None
        ),
        "tags": [{"id": t.id, "name": t.name, "slug": t.slug} for t in post.tags],
        "meta_title": post.meta_title,
        "meta_description": post.meta_description,
        "is_published": bool(post.is_published),
        "published_at": iso(post.published_at),
        "reading_time": post.reading_time,
        "author_id": post.author_id,
        "created_at": iso(post.created_at),
        "updated_at": iso(post.updated_at),
    }
    if include_content:
        out["content"] = post.content
    return out


# ---------------------------------------------------------------------------
# Categories and tags
# ---------------------------------------------------------------------------


def _taxonomy_model(kind: str):
    from app.cms.modules.blog.models import Category, Tag

    if kind == "category":
        return Category
    if kind == "tag":
        return Tag
    raise ValueError(f"unknown taxonomy kind {kind!r}")


def _ensure_unique_term_slug(s: "Session", model, slug: str, *, exclude_id: int | None = None) -> None:
    q = s.query(model.id).filter(model.slug == slug)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first() is not None:
        raise SlugConflictError(model.__name__, slug)


def validate_term_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    name = str(payload.get("name") or "").strip()
    if (not partial or "name" in payload) and not name:
        errors.append("Name is required.")
    if partial:
        if "slug" in payload and not normalize_slug(payload.get("slug")):
            errors.append("Slug must contain letters or digits.")
    elif name and not normalize_slug(payload.get("slug"), fallback_title=name):
        errors.append("Slug must contain letters or digits.")
    return errors


def create_term(s: "Session", kind: str, payload: dict, user: "User"):
    model = _taxonomy_model(kind)
    errors = validate_term_payload(payload)
    if errors:
        raise ValidationError(errors)

    name = str(payload.get("name")).strip()
    slug = normalize_slug(payload.get("slug"), fallback_title=name)
    _ensure_unique_term_slug(s, model, slug)

    term = model(name=name, slug=slug, created_at=datetime.utcnow())
    if kind == "category":
        term.description = str(payload.get("description") or "").strip() or None
    s.add(term)
    s.flush()

    record_event(
        s,
        actor=user,
        action=f"{kind}.create",
        entity_type=model.__name__,
        entity_id=str(term.id),
        metadata={"slug": term.slug, "name": term.name},
    )
    return term


def update_term(s: "Session", term, payload: dict, user: "User"):
    kind = "category" if type(term).__name__ == "Category" else "tag"
    errors = validate_term_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)

    changes: dict[str, Any] = {}
    if "name" in payload:
        new_name = str(payload.get("name")).strip()
        if new_name != term.name:
            changes["name"] = {"old": term.name, "new": new_name}
            term.name = new_name
    if "slug" in payload:
        new_slug = normalize_slug(payload.get("slug"))
        if new_slug != term.slug:
            _ensure_unique_term_slug(s, type(term), new_slug, exclude_id=term.id)
            changes["slug"] = {"old": term.slug, "new": new_slug}
            term.slug = new_slug
    if kind == "category" and "description" in payload:
        new_desc = str(payload.get("description") or "").strip() or None
        if new_desc != term.description:
            changes["description"] = {"old": term.description, "new": new_desc}
            term.description = new_desc

    record_event(
        s,
        actor=user,
        action=f"{kind}.edit",
        entity_type=type(term).__name__,
        entity_id=str(term.id),
        metadata={"slug": term.slug, "changes": changes},
    )
    return term


def delete_term(s: "Session", term, user: "User") -> None:
    kind = "category" if type(term).__name__ == "Category" else "tag"
    record_event(
        s,
        actor=user,
        action=f"{kind}.delete",
        entity_type=type(term).__name__,
        entity_id=str(term.id),
        metadata={"slug": term.slug, "name": term.name},
    )
    s.delete(term)


def list_categories(s: "Session") -> list["Category"]:
    from app.cms.modules.blog.models import Category

    return s.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def list_tags(s: "Session") -> list["Tag"]:
    from app.cms.modules.blog.models import Tag

    return s.query(Tag).order_by(Tag.name.asc(), Tag.id.asc()).all()


def serialize_category(c: "Category") -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "created_at": iso(c.created_at),
    }


def serialize_tag(t: "Tag") -> dict:
    return {"id": t.id, "name": t.name, "slug": t.slug, "created_at": iso(t.created_at)}
