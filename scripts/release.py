"""
Release phase: migrate, seed RBAC, optionally seed demo content.

Runs before every deploy (scripts/start.py calls it). Each step is
idempotent, so re-running a release against the same database is safe.

Environment:
  DATABASE_URL        required; must be Postgres when ENV=production
  ADMIN_EMAIL/ADMIN_PASSWORD  first admin account (existing passwords are kept)
  SEED_DEMO_CONTENT=1 also load the demo pages, posts and forms

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _log(msg: str) -> None:
    print(f"[release] {msg}", flush=True)


def release_database_url() -> str:
    from app.cms.config import load_settings

    settings = load_settings()
    if not (os.environ.get("DATABASE_URL") or "").strip():
        raise RuntimeError("DATABASE_URL must be set for a release; refusing to fall back to the local SQLite file.")
    problems = settings.production_problems()
    if problems:
        raise RuntimeError(" ".join(problems))
    return settings.database_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def seed_demo(db_url: str) -> dict[str, int]:
    from scripts._db_utils import script_session
    from scripts.seed_content import seed_content

    with script_session(db_url) as s:
        return seed_content(s)


def run_release() -> None:
    db_url = release_database_url()
    _log(f"start (ENV={os.environ.get('ENV') or '(unset)'})")

    _log("alembic upgrade head")
    migrate(db_url)

    _log("seeding permissions, roles and admin user")
    from scripts import init_db

    init_db.seed_only(database_url_override=db_url)

    if (os.environ.get("SEED_DEMO_CONTENT") or "").strip() == "1":
        _log(f"demo content: {seed_demo(db_url)}")

    _log("done")


if __name__ == "__main__":
    run_release()
