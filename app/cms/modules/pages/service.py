from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.cms.audit import record_event
from app.cms.utils import SlugConflictError, ValidationError, iso, normalize_slug, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.models import User
    from app.cms.modules.pages.models import Page


VALID_TEMPLATES = ("landing", "service", "portfolio", "about")

# Blocks offered by the page builder plus the section types used by seeded pages.
SECTION_TYPES = frozenset(
    {
        "hero",
        "heading",
        "paragraph",
        "image",
        "video",
        "button",
        "form",
        "columns",
        "quote",
        "list",
        "chart",
        "map",
        "calendar",
        "header",
        "services-list",
        "expertise",
        "services",
    }
)

_EDITABLE_FIELDS = ("title", "slug", "content", "template", "meta_title", "meta_description")


def empty_content() -> dict:
    return {"sections": [], "metadata": {"seo": {"title": "", "description": ""}}}


def normalize_content(raw: Any) -> dict:
    """
    Coerce a page-builder tree into canonical form.

    Accepts a dict or its JSON string encoding. Every section must carry a known
    `type`; sections without an `id` get one so the builder can address them.
    """
    if raw is None or raw == "":
        return empty_content()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Content is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValidationError("Content must be a JSON object.")

    sections = raw.get("sections", [])
    if not isinstance(sections, list):
        raise ValidationError("content.sections must be a list.")

    errors: list[str] = []
    out_sections: list[dict] = []
    for idx, section in enumerate(sections):
        if not isinstance(section, dict):
            errors.append(f"Section {idx} must be an object.")
            continue
        stype = section.get("type")
        if stype not in SECTION_TYPES:
            errors.append(f"Section {idx} has unknown type {stype!r}.")
            continue
        sec = dict(section)
        sec.setdefault("id", f"section-{uuid.uuid4().hex[:12]}")
        out_sections.append(sec)
    if errors:
        raise ValidationError(errors)

    metadata = raw.get("metadata")
    if metadata is None:
        metadata = empty_content()["metadata"]
    elif not isinstance(metadata, dict):
        raise ValidationError("content.metadata must be an object.")

    content = dict(raw)
    content["sections"] = out_sections
    content["metadata"] = metadata
    return content


def validate_page_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate page creation/update payload. Returns list of errors."""
    errors = []
    title = str(payload.get("title") or "").strip()
    if (not partial or "title" in payload) and not title:
        errors.append("Title is required.")
    if partial:
        if "slug" in payload and not normalize_slug(payload.get("slug")):
            errors.append("Slug must contain letters or digits.")
    elif title and not normalize_slug(payload.get("slug"), fallback_title=title):
        errors.append("Slug must contain letters or digits.")
    template = str(payload.get("template") or "").strip()
    # Omitted on create means the default; present on update must name a real template.
    if (template or (partial and "template" in payload)) and template not in VALID_TEMPLATES:
        errors.append(f"Invalid template. Must be one of: {', '.join(VALID_TEMPLATES)}")
    return errors


def _ensure_unique_slug(s: "Session", slug: str, *, exclude_id: int | None = None) -> None:
    from app.cms.modules.pages.models import Page

    q = s.query(Page.id).filter(Page.slug == slug)
    if exclude_id is not None:
        q = q.filter(Page.id != exclude_id)
    if q.first() is not None:
        raise SlugConflictError("Page", slug)


def _apply_published(page: "Page", published: bool) -> bool:
    """Returns True when the flag actually changed."""
    if published == bool(page.is_published):
        return False
    page.is_published = published
    page.published_at = datetime.utcnow() if published else None
    return True


def create_page(s: "Session", payload: dict, user: "User") -> "Page":
    from app.cms.modules.pages.models import Page

    errors = validate_page_payload(payload)
    if errors:
        raise ValidationError(errors)

    title = str(payload.get("title")).strip()
    slug = normalize_slug(payload.get("slug"), fallback_title=title)
    _ensure_unique_slug(s, slug)

    now = datetime.utcnow()
    page = Page(
        title=title,
        slug=slug,
        content=normalize_content(payload.get("content")),
        template=str(payload.get("template") or "landing").strip(),
        meta_title=(str(payload.get("meta_title") or "").strip() or None),
        meta_description=(str(payload.get("meta_description") or "").strip() or None),
        is_published=False,
        author_id=user.id,
        created_at=now,
        updated_at=now,
    )
    _apply_published(page, parse_bool(payload.get("is_published")))
    s.add(page)
    s.flush()

    record_event(
        s,
        actor=user,
        action="page.create",
        entity_type="Page",
        entity_id=str(page.id),
        metadata={"slug": page.slug, "template": page.template},
    )
    return page


def update_page(s: "Session", page: "Page", payload: dict, user: "User") -> "Page":
    """Partial update: only keys present in the payload are touched."""
    errors = validate_page_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)

    changes: dict[str, Any] = {}
    for field in _EDITABLE_FIELDS:
        if field not in payload:
            continue
        raw = payload.get(field)
        if field == "slug":
            new = normalize_slug(raw)
            if new != page.slug:
                _ensure_unique_slug(s, new, exclude_id=page.id)
        elif field == "content":
            new = normalize_content(raw)
        elif field in ("meta_title", "meta_description"):
            new = str(raw or "").strip() or None
        else:
            new = str(raw or "").strip()
        old = getattr(page, field)
        if new != old:
            if field != "content":
                changes[field] = {"old": old, "new": new}
            else:
                changes["content"] = {"sections": len(new.get("sections", []))}
            setattr(page, field, new)

    if "is_published" in payload:
        if _apply_published(page, parse_bool(payload.get("is_published"))):
            changes["is_published"] = page.is_published

    page.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="page.edit",
        entity_type="Page",
        entity_id=str(page.id),
        metadata={"slug": page.slug, "changes": changes},
    )
    return page


def set_page_published(s: "Session", page: "Page", published: bool, user: "User") -> "Page":
    if _apply_published(page, published):
        page.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="page.publish" if published else "page.unpublish",
            entity_type="Page",
            entity_id=str(page.id),
            metadata={"slug": page.slug},
        )
    return page


def delete_page(s: "Session", page: "Page", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="page.delete",
        entity_type="Page",
        entity_id=str(page.id),
        metadata={"slug": page.slug, "title": page.title},
    )
    s.delete(page)


def list_pages(s: "Session") -> list["Page"]:
    from app.cms.modules.pages.models import Page

    return s.query(Page).order_by(Page.updated_at.desc(), Page.id.desc()).all()


def list_published_pages(s: "Session") -> list["Page"]:
    from app.cms.modules.pages.models import Page

    return (
        s.query(Page)
        .filter(Page.is_published.is_(True))
        .order_by(Page.published_at.desc(), Page.id.desc())
        .all()
    )


def get_published_page_by_slug(s: "Session", slug: str) -> "Page | None":
    from app.cms.modules.pages.models import Page

    page = s.query(Page).filter(Page.slug == slug).one_or_none()
    if not page or not page.is_published:
        return None
    return page


def serialize_page(page: "Page", *, include_content: bool = True) -> dict:
    out = {
        "id": page.id,
        "title": page.title,
        "slug": page.slug,
        "template": page.template,
        "meta_title": page.meta_title,
        "meta_description": page.meta_description,
        "is_published": bool(page.is_published),
        "published_at": iso(page.published_at),
        "author_id": page.author_id,
        "created_at": iso(page.created_at),
        "updated_at": iso(page.updated_at),
    }
    if include_content:
        out["content"] = page.content
    return out
