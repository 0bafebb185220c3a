"""
Tests for the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import FEED_NOT_FOUND, create_app, resolve_favicon


@pytest.fixture
def feed_file(tmp_path):
    return tmp_path / "feed.xml"


@pytest.fixture
def favicon_file(tmp_path):
    path = tmp_path / "favicon.svg"
    path.write_text("<svg xmlns='http://www.w3.org/2000/svg'/>", encoding="utf-8")
    return path


@pytest.fixture
def client(feed_file, favicon_file):
    """Create test client."""
    config = APIConfig(feed_file=str(feed_file), favicon_path=str(favicon_file))
    return TestClient(create_app(config))


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"
    assert response.headers["content-type"].startswith("text/plain")


def test_feed_missing_before_first_fetch(client):
    response = client.get("/feed.xml")
    assert response.status_code == 404
    assert response.text == FEED_NOT_FOUND


def test_feed_served_after_write(client, feed_file):
    feed_file.write_text('<?xml version="1.0" encoding="utf-8"?>\n<rss version="2.0"/>', encoding="utf-8")

    response = client.get("/feed.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/rss+xml")
    assert "<rss" in response.text


def test_favicon_served(client):
    response = client.get("/favicon.svg")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")


def test_missing_favicon(tmp_path):
    config = APIConfig(feed_file=str(tmp_path / "feed.xml"), favicon_path=str(tmp_path / "missing.svg"))
    response = TestClient(create_app(config)).get("/missing.svg")
    assert response.status_code == 404
    assert response.text == "Favicon not found."


def test_unknown_path_not_found(client):
    response = client.get("/books")
    assert response.status_code == 404
    assert response.text == "Not Found"


def test_relative_favicon_resolved_from_project_root():
    path = resolve_favicon("favicon.svg")
    assert path.is_absolute()
    assert path.name == "favicon.svg"
    assert path.exists()
