from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from app.cms import create_app
from app.cms.constants import PERMISSIONS
from app.cms.db import session_scope
from app.cms.models import Base, Permission, Role, User
from app.cms.modules.analytics.models import AnalyticsEvent
from app.cms.modules.analytics.service import parse_range
from app.cms.modules.pages.models import Page
from app.cms.modules.pages.service import empty_content
from app.cms.utils import ValidationError


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USE_MOCK_DATA"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key, name in PERMISSIONS.items():
            r.permissions.append(Permission(key=key, name=name))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u])

    return app.test_client()


def _login(client) -> dict:
    r = client.post("/api/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _seed_events(app) -> int:
    with session_scope(app) as s:
        page = Page(title="Home", slug="home", content=empty_content(), is_published=True)
        s.add(page)
        s.flush()
        s.add_all(
            [
                AnalyticsEvent(event="view", page_id=page.id, created_at=datetime(2025, 3, 1, 9, 0)),
                AnalyticsEvent(event="view", page_id=page.id, created_at=datetime(2025, 3, 1, 23, 30)),
                AnalyticsEvent(event="cta_click", page_id=page.id, created_at=datetime(2025, 3, 2, 12, 0)),
                AnalyticsEvent(event="view", page_id=page.id, created_at=datetime(2025, 4, 1, 8, 0)),
            ]
        )
        return page.id


def test_parse_range_bare_end_date_covers_day():
    start, end = parse_range("2025-03-01", "2025-03-01")
    assert start == datetime(2025, 3, 1)
    assert end.date() == start.date()
    assert end.hour == 23 and end.minute == 59

    assert parse_range(None, None) == (None, None)

    with pytest.raises(ValidationError):
        parse_range("2025-03-02", "2025-03-01")
    with pytest.raises(ValidationError):
        parse_range("yesterday", None)


def test_public_event_tracking(client):
    page_id = _seed_events(client.application)

    r = client.post(
        "/api/analytics/events",
        json={"event": "cta_click", "page_id": page_id, "data": {"button": "book"}},
        headers={"User-Agent": "pytest-agent", "Referer": "https://example.com/"},
    )
    assert r.status_code == 201

    with session_scope(client.application) as s:
        ev = s.get(AnalyticsEvent, r.json["id"])
        assert ev.data == {"button": "book"}
        assert ev.user_agent == "pytest-agent"
        assert ev.referrer == "https://example.com/"
        assert ev.ip_address == "127.0.0.1"


def test_public_event_validation(client):
    assert client.post("/api/analytics/events", json={"event": "consultation_booked"}).status_code == 400
    assert client.post("/api/analytics/events", json={"event": "view", "page_id": 999}).status_code == 400
    assert client.post("/api/analytics/events", json={"event": "view", "post_id": "abc"}).status_code == 400
    assert client.post("/api/analytics/events", json={"event": "view", "data": [1, 2]}).status_code == 400


def test_admin_events_range(client):
    _seed_events(client.application)
    _login(client)

    r = client.get("/api/admin/analytics?startDate=2025-03-01&endDate=2025-03-01")
    assert r.status_code == 200
    assert len(r.json) == 2
    assert all(e["event"] == "view" for e in r.json)
    # Newest first.
    assert r.json[0]["created_at"] > r.json[1]["created_at"]

    r = client.get("/api/admin/analytics?start_date=2025-03-01&end_date=2025-03-31&event=cta_click")
    assert [e["event"] for e in r.json] == ["cta_click"]

    assert len(client.get("/api/admin/analytics").json) == 4
    assert client.get("/api/admin/analytics?startDate=2025-05-01&endDate=2025-04-01").status_code == 400


def test_admin_summary(client):
    page_id = _seed_events(client.application)
    _login(client)

    r = client.get("/api/admin/analytics/summary?startDate=2025-03-01&endDate=2025-03-31")
    assert r.status_code == 200
    assert r.json["total"] == 3
    assert r.json["by_event"] == {"view": 2, "cta_click": 1}
    assert r.json["top_pages"] == [{"id": page_id, "title": "Home", "slug": "home", "views": 2}]
    assert r.json["top_posts"] == []


def test_admin_analytics_requires_login(client):
    assert client.get("/api/admin/analytics").status_code == 401
