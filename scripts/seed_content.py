#!/usr/bin/env python3
"""Seed demo categories, tags, pages and posts (idempotent by slug).

Usage:
  python scripts/seed_content.py [--reset]

--reset deletes existing posts, tags, categories and pages first.
"""

import argparse
import sys
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cms import demo_content  # noqa: E402
from app.cms.models import Category, Page, Post, PostTag, Tag, User  # noqa: E402
from app.cms.modules.blog.service import reading_time  # noqa: E402
from scripts._db_utils import database_url, script_session  # noqa: E402


def reset_content(s: Session) -> None:
    for model in (PostTag, Post, Tag, Category, Page):
        s.query(model).delete()
    s.flush()


def seed_content(s: Session, *, author: User | None = None, now: datetime | None = None) -> dict[str, int]:
    """Insert whatever demo rows are missing. Returns counts of rows created per kind."""
    now = now or datetime.utcnow()
    created = {"categories": 0, "tags": 0, "pages": 0, "posts": 0}

    categories: dict[str, Category] = {}
    for c in demo_content.CATEGORIES:
        row = s.query(Category).filter(Category.slug == c["slug"]).one_or_none()
        if not row:
            row = Category(name=c["name"], slug=c["slug"], description=c.get("description"))
            s.add(row)
            created["categories"] += 1
        categories[c["slug"]] = row

    tags: dict[str, Tag] = {}
    for t in demo_content.TAGS:
        row = s.query(Tag).filter(Tag.slug == t["slug"]).one_or_none()
        if not row:
            row = Tag(name=t["name"], slug=t["slug"])
            s.add(row)
            created["tags"] += 1
        tags[t["slug"]] = row
    s.flush()

    for i, p in enumerate(demo_content.PAGES, start=1):
        if s.query(Page.id).filter(Page.slug == p["slug"]).first():
            continue
        ts = now - timedelta(days=i)
        s.add(
            Page(
                title=p["title"],
                slug=p["slug"],
                template=p["template"],
                content=p["content"],
                meta_title=p.get("meta_title"),
                meta_description=p.get("meta_description"),
                is_published=p["is_published"],
                published_at=ts if p["is_published"] else None,
                author_id=author.id if author else None,
                created_at=ts,
                updated_at=ts,
            )
        )
        created["pages"] += 1

    for i, p in enumerate(demo_content.POSTS, start=1):
        if s.query(Post.id).filter(Post.slug == p["slug"]).first():
            continue
        ts = now - timedelta(days=i)
        post = Post(
            title=p["title"],
            slug=p["slug"],
            excerpt=p.get("excerpt"),
            content=p["content"],
            category_id=categories[p["category"]].id if p.get("category") else None,
            is_published=p["is_published"],
            published_at=ts if p["is_published"] else None,
            reading_time=p.get("reading_time") or reading_time(p["content"]),
            author_id=author.id if author else None,
            created_at=ts,
            updated_at=ts,
        )
        post.tags = [tags[slug] for slug in p.get("tags", [])]
        s.add(post)
        created["posts"] += 1

    s.flush()
    return created


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Delete existing content before seeding")
    args = parser.parse_args()

    with script_session(database_url()) as s:
        if args.reset:
            reset_content(s)
            print("Existing content deleted.")
        author = s.query(User).order_by(User.id.asc()).first()
        created = seed_content(s, author=author)

    print("Seeded: " + ", ".join(f"{k}={v}" for k, v in created.items()))


if __name__ == "__main__":
    main()
