from datetime import datetime

import pytest

from app.cms import create_app
from app.cms.mock_data import build_catalogue


@pytest.fixture()
def dev_client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("USE_MOCK_DATA", "1")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    return app.test_client()


@pytest.fixture()
def test_env_client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("USE_MOCK_DATA", "1")
    monkeypatch.setenv("STORAGE_BACKEND", "local")

    app = create_app()
    return app.test_client()


def test_build_catalogue():
    cat = build_catalogue(datetime(2025, 3, 14, 12, 0))
    assert [c["name"] for c in cat.categories] == sorted(c["name"] for c in cat.categories)

    result = cat.published_posts()
    assert result["total"] == 2
    assert all(p["is_published"] for p in result["posts"])
    # Newest publication first.
    assert result["posts"][0]["published_at"] > result["posts"][1]["published_at"]

    assert cat.published_posts(category_slug="marketplaces")["total"] == 1
    assert cat.published_posts(tag_slug="kpi")["posts"][0]["slug"] == "improve-unit-economics-marketplace"
    assert cat.published_posts(tag_slug="no-such-tag")["total"] == 0

    paged = cat.published_posts(limit=1, page=2)
    assert paged["pages"] == 2
    assert len(paged["posts"]) == 1

    assert cat.post_by_slug("wildberries-fulfillment-costs") is None
    assert cat.page_by_slug("home")["template"] == "landing"


def test_mock_endpoints_in_development(dev_client):
    r = dev_client.get("/health")
    assert r.json["mock_data"] is True

    r = dev_client.get("/api/mock-posts/published?limit=1")
    assert r.status_code == 200
    assert r.json["total"] == 2
    assert r.json["pages"] == 2
    assert set(r.json["posts"][0]) >= {"slug", "category", "tags", "reading_time", "published_at"}

    assert len(dev_client.get("/api/mock-posts").json) == 3
    assert [t["name"] for t in dev_client.get("/api/mock-tags").json] == sorted(
        t["name"] for t in dev_client.get("/api/mock-tags").json
    )
    assert len(dev_client.get("/api/mock-categories").json) == 3

    r = dev_client.get("/api/mock-posts/slug/key-metrics-ozon-monitoring")
    assert r.status_code == 200
    assert [t["slug"] for t in r.json["tags"]] == ["audit", "ozon"]
    assert dev_client.get("/api/mock-posts/slug/missing").status_code == 404

    assert {p["slug"] for p in dev_client.get("/api/mock-pages/published").json} == {"home", "services"}
    assert dev_client.get("/api/mock-pages/slug/services").json["template"] == "service"
    assert dev_client.get("/api/mock-pages/slug/missing").status_code == 404


def test_mock_endpoints_absent_outside_development(test_env_client):
    assert test_env_client.get("/api/mock-posts").status_code == 404
    assert test_env_client.get("/health").json["mock_data"] is False
