from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from flask import Flask, current_app, g
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker


def _engine_options(db_url: str) -> dict[str, object]:
    opts: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(
            pool_recycle=1800,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            connect_args={"connect_timeout": 5},
        )
    return opts


def build_engine(db_url: str) -> Engine:
    """Engine for the app and the scripts alike; SQLite gets FK enforcement (ON DELETE CASCADE/SET NULL)."""
    engine = create_engine(db_url, **_engine_options(db_url))
    if db_url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _sqlite_foreign_keys(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


@contextmanager
def transaction(sm: sessionmaker) -> Generator[Session, None, None]:
    """One unit of work: commit on success, roll back on error, always close."""
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def check_db_connectivity(app: Flask) -> bool:
    """`SELECT 1`; decides at start-up whether development falls back to mock content."""
    engine = app.extensions.get("sqlalchemy_engine")
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        app.logger.warning("Database unreachable: %s", e)
        return False
    return True


def db_session() -> Session:
    """Request-scoped session, closed by teardown_db_session()."""
    s = getattr(g, "db_session", None)
    if s is None:
        s = g.db_session = current_app.extensions["sqlalchemy_sessionmaker"]()
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """transaction() outside a request (tests, shell)."""
    with transaction(app.extensions["sqlalchemy_sessionmaker"]) as s:
        yield s
