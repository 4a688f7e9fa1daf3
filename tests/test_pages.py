import pytest
from werkzeug.security import generate_password_hash

from app.cms import create_app
from app.cms.constants import PERMISSIONS
from app.cms.db import session_scope
from app.cms.models import AuditEvent, Base, Permission, Role, User
from app.cms.modules.analytics.models import AnalyticsEvent
from app.cms.modules.pages.service import normalize_content
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


HERO = {"type": "hero", "title": "Grow on marketplaces", "subtitle": "Unit economics audit"}


def test_normalize_content_defaults_and_ids():
    assert normalize_content(None) == {"sections": [], "metadata": {"seo": {"title": "", "description": ""}}}

    content = normalize_content('{"sections": [{"type": "hero", "title": "Hi"}]}')
    assert content["sections"][0]["id"].startswith("section-")

    with pytest.raises(ValidationError) as exc:
        normalize_content({"sections": [{"type": "marquee"}]})
    assert "unknown type" in exc.value.errors[0]


def test_create_page_derives_slug(client):
    headers = _login(client)
    r = client.post(
        "/api/admin/pages",
        json={"title": "Our Services!", "content": {"sections": [HERO]}},
        headers=headers,
    )
    assert r.status_code == 201
    page = r.json
    assert page["slug"] == "our-services"
    assert page["template"] == "landing"
    assert page["is_published"] is False
    assert page["published_at"] is None
    assert page["content"]["sections"][0]["type"] == "hero"

    with session_scope(client.application) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "page.create").one()
        assert ev.entity_id == str(page["id"])


def test_create_page_validation(client):
    headers = _login(client)
    r = client.post("/api/admin/pages", json={"title": ""}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Invalid data"
    assert "Title is required." in r.json["errors"]

    r = client.post("/api/admin/pages", json={"title": "X", "template": "blog"}, headers=headers)
    assert r.status_code == 400

    r = client.post(
        "/api/admin/pages",
        json={"title": "X", "content": {"sections": [{"type": "carousel"}]}},
        headers=headers,
    )
    assert r.status_code == 400


def test_duplicate_slug_conflict(client):
    headers = _login(client)
    assert client.post("/api/admin/pages", json={"title": "About"}, headers=headers).status_code == 201
    r = client.post("/api/admin/pages", json={"title": "Another", "slug": "about"}, headers=headers)
    assert r.status_code == 409

    other = client.post("/api/admin/pages", json={"title": "Team"}, headers=headers).json
    r = client.patch(f"/api/admin/pages/{other['id']}", json={"slug": "About"}, headers=headers)
    assert r.status_code == 409


def test_publish_unpublish_and_public_lookup(client):
    headers = _login(client)
    page = client.post("/api/admin/pages", json={"title": "Pricing"}, headers=headers).json

    assert client.get("/api/pages/slug/pricing").status_code == 404
    assert client.get("/api/pages/published").json == []

    r = client.post(f"/api/admin/pages/{page['id']}/publish", headers=headers)
    assert r.status_code == 200
    assert r.json["is_published"] is True
    assert r.json["published_at"]

    r = client.get("/api/pages/slug/pricing")
    assert r.status_code == 200
    assert r.json["title"] == "Pricing"
    assert [p["slug"] for p in client.get("/api/pages/published").json] == ["pricing"]

    with session_scope(client.application) as s:
        views = s.query(AnalyticsEvent).filter(AnalyticsEvent.page_id == page["id"], AnalyticsEvent.event == "view")
        assert views.count() == 1

    r = client.post(f"/api/admin/pages/{page['id']}/unpublish", headers=headers)
    assert r.json["is_published"] is False
    assert r.json["published_at"] is None
    assert client.get("/api/pages/slug/pricing").status_code == 404


def test_partial_update_keeps_other_fields(client):
    headers = _login(client)
    page = client.post(
        "/api/admin/pages",
        json={"title": "Audit", "template": "service", "meta_title": "Audit | Agency"},
        headers=headers,
    ).json

    r = client.put(f"/api/admin/pages/{page['id']}", json={"title": "Marketplace audit"}, headers=headers)
    assert r.status_code == 200
    assert r.json["title"] == "Marketplace audit"
    assert r.json["slug"] == "audit"
    assert r.json["template"] == "service"
    assert r.json["meta_title"] == "Audit | Agency"

    r = client.patch(f"/api/admin/pages/{page['id']}", json={"is_published": True}, headers=headers)
    assert r.json["is_published"] is True


def test_update_rejects_blank_template(client):
    headers = _login(client)
    page = client.post("/api/admin/pages", json={"title": "Team", "template": "about"}, headers=headers).json

    for bad in ("", None, "blog"):
        r = client.patch(f"/api/admin/pages/{page['id']}", json={"template": bad}, headers=headers)
        assert r.status_code == 400
        assert any(e.startswith("Invalid template") for e in r.json["errors"])

    assert client.get(f"/api/admin/pages/{page['id']}").json["template"] == "about"


def test_delete_page(client):
    headers = _login(client)
    page = client.post("/api/admin/pages", json={"title": "Old"}, headers=headers).json
    r = client.delete(f"/api/admin/pages/{page['id']}", headers=headers)
    assert r.status_code == 204
    assert client.get(f"/api/admin/pages/{page['id']}").status_code == 404
