from datetime import datetime

import pytest

from app.cms import create_app
from app.cms.db import session_scope
from app.cms.models import Base, Page, Post, Role, User
from scripts.init_db import seed_permissions
from scripts.seed_content import reset_content, seed_content
from scripts.release import release_database_url
from scripts.start import DEFAULT_PORT, gunicorn_argv, parse_port


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USE_MOCK_DATA"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


def test_seed_permissions_idempotent(app):
    with session_scope(app) as s:
        seed_permissions(s, admin_email="owner@example.com", admin_password="pw")
    with session_scope(app) as s:
        seed_permissions(s, admin_email="owner@example.com", admin_password="other")

    with session_scope(app) as s:
        assert s.query(User).count() == 1
        editor = s.query(Role).filter(Role.key == "editor").one()
        keys = {p.key for p in editor.permissions}
        assert "pages.edit" in keys
        assert "analytics.view" not in keys

    client = app.test_client()
    # The second run did not overwrite the password.
    assert client.post("/api/login", json={"email": "owner@example.com", "password": "other"}).status_code == 401
    r = client.post("/api/login", json={"email": "owner@example.com", "password": "pw"})
    assert r.status_code == 200
    assert client.get("/api/admin/analytics/summary").status_code == 200


def test_seed_content_idempotent(app):
    now = datetime(2025, 3, 14, 12, 0)
    with session_scope(app) as s:
        created = seed_content(s, now=now)
    assert created == {"categories": 3, "tags": 5, "pages": 2, "posts": 3}

    with session_scope(app) as s:
        again = seed_content(s, now=now)
    assert again == {"categories": 0, "tags": 0, "pages": 0, "posts": 0}

    client = app.test_client()
    r = client.get("/api/posts/published")
    assert r.json["total"] == 2
    assert r.json["posts"][0]["slug"] == "improve-unit-economics-marketplace"
    assert client.get("/api/pages/slug/home").status_code == 200

    with session_scope(app) as s:
        reset_content(s)
    with session_scope(app) as s:
        assert s.query(Post).count() == 0
        assert s.query(Page).count() == 0


def test_gunicorn_argv():
    argv = gunicorn_argv("8000", "3")
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:8000"
    assert argv[argv.index("--workers") + 1] == "3"
    assert argv[argv.index("--timeout") + 1] == "60"
    assert "--preload" in argv


def test_parse_port():
    assert parse_port(None) == DEFAULT_PORT
    assert parse_port("  ") == DEFAULT_PORT
    assert parse_port("5000") == 5000
    with pytest.raises(ValueError):
        parse_port("70000")
    with pytest.raises(ValueError):
        parse_port("http")


def test_release_database_url_guardrails(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("ENV", "development")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        release_database_url()

    monkeypatch.setenv("DATABASE_URL", "sqlite:///release.db")
    assert release_database_url() == "sqlite:///release.db"

    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-long-random-secret")
    with pytest.raises(RuntimeError, match="Postgres"):
        release_database_url()
