import io
import re

import pytest
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.cms import create_app
from app.cms.constants import PERMISSIONS
from app.cms.db import session_scope
from app.cms.models import AuditEvent, Base, Permission, Role, User
from app.cms.modules.media_library.models import Media
from app.cms.modules.media_library.service import format_file_size, stored_filename, validate_upload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USE_MOCK_DATA"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.delenv("MEDIA_MAX_BYTES", raising=False)
    # Local storage lives under ./storage.
    monkeypatch.chdir(tmp_path)

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


def _upload(client, headers, data=PNG_BYTES, filename="logo.png", mimetype="image/png", alt="Agency logo"):
    return client.post(
        "/api/admin/media/upload",
        data={"file": (io.BytesIO(data), filename, mimetype), "alt": alt},
        content_type="multipart/form-data",
        headers=headers,
    )


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(1023) == "1023 Bytes"
    assert format_file_size(1024) == "1 KB"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(10 * 1024 * 1024) == "10 MB"
    assert format_file_size(1024**3) == "1 GB"


def test_stored_filename_is_sanitized():
    assert stored_filename("My Photo.PNG", now_ms=123) == "123-My_Photo.PNG"
    assert stored_filename("../../etc/passwd.png", now_ms=5) == "5-etc_passwd.png"


def test_validate_upload():
    assert validate_upload("brief.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", 10) == []
    assert validate_upload("brief.doc", "application/msword", 10) == []
    assert validate_upload("run.exe", "application/octet-stream", 10)
    # Extension allowed, declared type is not.
    assert validate_upload("photo.png", "text/html", 10)
    assert validate_upload("photo.png", "image/png", 0) == ["File is empty."]


def test_upload_serve_and_delete(client, tmp_path):
    headers = _login(client)
    r = _upload(client, headers)
    assert r.status_code == 201
    media = r.json
    assert re.fullmatch(r"\d+-logo\.png", media["filename"])
    assert media["url"] == f"/uploads/{media['filename']}"
    assert media["original_name"] == "logo.png"
    assert media["mime_type"] == "image/png"
    assert media["size"] == len(PNG_BYTES)
    assert media["alt"] == "Agency logo"

    blob = tmp_path / "storage" / "media" / media["filename"]
    assert blob.read_bytes() == PNG_BYTES

    r = client.get(media["url"])
    assert r.status_code == 200
    assert r.data == PNG_BYTES
    assert r.mimetype == "image/png"

    r = client.delete(f"/api/admin/media/{media['id']}", headers=headers)
    assert r.status_code == 204
    assert not blob.exists()
    assert client.get(media["url"]).status_code == 404

    with session_scope(client.application) as s:
        actions = [e.action for e in s.query(AuditEvent).filter(AuditEvent.entity_type == "Media").order_by(AuditEvent.id)]
        assert actions == ["media.upload", "media.delete"]


def test_upload_rejects_bad_type(client):
    headers = _login(client)
    r = _upload(client, headers, filename="run.exe", mimetype="application/octet-stream")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid data"

    r = client.post("/api/admin/media/upload", data={}, content_type="multipart/form-data", headers=headers)
    assert r.status_code == 400


def test_upload_too_large(client, tmp_path):
    client.application.config["MEDIA_MAX_BYTES"] = 32
    headers = _login(client)
    r = _upload(client, headers)
    assert r.status_code == 413
    assert "too large" in r.json["message"]
    assert not (tmp_path / "storage" / "media").exists()


def test_list_search_and_alt_edit(client):
    headers = _login(client)
    logo = _upload(client, headers).json
    _upload(client, headers, filename="brief.pdf", mimetype="application/pdf", alt="Service brief")

    r = client.get("/api/admin/media")
    assert len(r.json) == 2

    r = client.get("/api/admin/media?q=brief")
    assert [m["original_name"] for m in r.json] == ["brief.pdf"]

    r = client.patch(f"/api/admin/media/{logo['id']}", json={"alt": "New alt"}, headers=headers)
    assert r.status_code == 200
    assert r.json["alt"] == "New alt"


def test_unknown_upload_is_404(client):
    r = client.get("/uploads/nothing-here.png")
    assert r.status_code == 404
    assert r.json["message"] == "File not found"


def _failing_commit(self):
    raise RuntimeError("database went away")


def test_same_millisecond_uploads_keep_separate_blobs(client, tmp_path, monkeypatch):
    headers = _login(client)
    monkeypatch.setattr("app.cms.modules.media_library.service.time.time", lambda: 1700000000.0)

    first = _upload(client, headers, data=PNG_BYTES + b"first")
    second = _upload(client, headers, data=PNG_BYTES + b"second")
    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json["filename"] == "1700000000000-logo.png"
    assert re.fullmatch(r"1700000000000-[0-9a-f]{8}-logo\.png", second.json["filename"])

    media_dir = tmp_path / "storage" / "media"
    assert (media_dir / first.json["filename"]).read_bytes() == PNG_BYTES + b"first"
    assert (media_dir / second.json["filename"]).read_bytes() == PNG_BYTES + b"second"


def test_failed_delete_commit_keeps_blob(client, tmp_path, monkeypatch):
    headers = _login(client)
    media = _upload(client, headers).json
    blob = tmp_path / "storage" / "media" / media["filename"]

    original_commit = Session.commit
    monkeypatch.setattr(Session, "commit", _failing_commit)
    r = client.delete(f"/api/admin/media/{media['id']}", headers=headers)
    assert r.status_code == 500
    monkeypatch.setattr(Session, "commit", original_commit)

    assert blob.read_bytes() == PNG_BYTES
    assert client.get(media["url"]).status_code == 200
    with session_scope(client.application) as s:
        assert s.get(Media, media["id"]) is not None


def test_failed_upload_commit_discards_blob(client, tmp_path, monkeypatch):
    headers = _login(client)
    monkeypatch.setattr(Session, "commit", _failing_commit)
    r = _upload(client, headers)
    assert r.status_code == 500

    media_dir = tmp_path / "storage" / "media"
    assert not media_dir.exists() or list(media_dir.iterdir()) == []
