from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.cms.db import build_engine, make_sessionmaker, transaction

DEFAULT_DATABASE_URL = "sqlite:///cms.db"


def database_url(explicit: str | None = None) -> str:
    """Explicit URL, else $DATABASE_URL, else the local SQLite file create_app() also defaults to."""
    return (explicit or os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL).strip()


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """Short-lived engine + session for CLI scripts; the engine is disposed on exit."""
    engine = build_engine(db_url)
    try:
        with transaction(make_sessionmaker(engine)) as s:
            yield s
    finally:
        engine.dispose()
