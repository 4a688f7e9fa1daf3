from datetime import datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.cms import create_app
from app.cms.constants import PERMISSIONS
from app.cms.db import session_scope
from app.cms.models import AuditEvent, Base, Permission, Role, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USE_MOCK_DATA"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key, name in PERMISSIONS.items():
            r.permissions.append(Permission(key=key, name=name))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        # Signed in but holds no roles at all.
        nobody = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([r, u, nobody])

    return app.test_client()


def _login(client, email="admin@example.com", password="pw") -> dict:
    r = client.post("/api/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["mock_data"] is False


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_request_id_header(client):
    r = client.get("/api/pages/published")
    assert r.status_code == 200
    assert r.headers.get("X-Request-ID")


def test_unknown_route_is_json_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert "message" in r.json


def test_admin_requires_login(client):
    r = client.get("/api/admin/pages")
    assert r.status_code == 401
    assert r.json["message"] == "Authentication required."

    r = client.get("/api/auth/user")
    assert r.status_code == 401


def test_login_and_admin_access(client):
    r = client.post("/api/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["success"] is True
    assert r.json["user"]["email"] == "admin@example.com"
    assert r.json["user"]["roles"] == ["admin"]
    assert r.json["csrf_token"]

    r = client.get("/api/auth/user")
    assert r.status_code == 200
    assert r.json["email"] == "admin@example.com"

    r = client.get("/api/admin/pages")
    assert r.status_code == 200
    assert r.json == []


def test_login_accepts_form_post(client):
    r = client.post("/api/login", data={"email": "ADMIN@example.com ", "password": "pw"})
    assert r.status_code == 200


def test_bad_password_rejected_and_audited(client):
    r = client.post("/api/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid credentials."

    with session_scope(client.application) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert ev.entity_id == "admin@example.com"
        assert ev.client_ip == "127.0.0.1"


def test_login_rate_limited(client):
    for _ in range(5):
        r = client.post("/api/login", json={"email": "admin@example.com", "password": "nope"})
        assert r.status_code == 401
    r = client.post("/api/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 429


def test_login_attempts_forget_idle_clients(client):
    attempts = client.application.extensions.setdefault("login_attempts", {})
    attempts["10.0.0.9"] = [datetime.utcnow() - timedelta(hours=1)]

    r = client.post("/api/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    attempts = client.application.extensions["login_attempts"]
    assert "10.0.0.9" not in attempts
    assert len(attempts["127.0.0.1"]) == 1

    _login(client)
    assert "127.0.0.1" not in attempts


def test_logout_clears_session(client):
    _login(client)
    r = client.get("/api/logout")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert client.get("/api/auth/user").status_code == 401


def test_missing_permission_is_403(client):
    _login(client, email="viewer@example.com")
    r = client.get("/api/admin/pages")
    assert r.status_code == 403
    assert "pages.view" in r.json["message"]


def test_admin_mutation_requires_csrf(client):
    headers = _login(client)
    r = client.post("/api/admin/pages", json={"title": "About"})
    assert r.status_code == 400
    assert "CSRF" in r.json["message"]

    r = client.post("/api/admin/pages", json={"title": "About"}, headers={"X-CSRF-Token": "wrong"})
    assert r.status_code == 400

    r = client.post("/api/admin/pages", json={"title": "About"}, headers=headers)
    assert r.status_code == 201


def test_malformed_json_is_400(client):
    headers = _login(client)
    r = client.post(
        "/api/admin/pages",
        data="{not json",
        headers={**headers, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json["errors"] == ["Malformed JSON body."]
