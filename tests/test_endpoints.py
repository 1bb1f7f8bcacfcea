from __future__ import annotations

import os
from typing import Dict
import sys
from pathlib import Path

# Ensure project root is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from fastapi.testclient import TestClient

from frontdesk.main import app
from frontdesk.config import get_settings
from frontdesk.rate_limit import _window_counts as _rate_counts
from frontdesk.database import Base, engine


API_TOKEN = os.getenv("FRONTDESK_API_TOKEN", "dev-token")


@pytest.fixture(scope="module")
def client() -> TestClient:
    # Ensure schema exists when tests run standalone
    Base.metadata.create_all(bind=engine)
    return TestClient(app)


def _auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}


def test_health_open(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_auth_required_on_api(client: TestClient) -> None:
    r = client.get("/api/customers.list")
    assert r.status_code == 401


def test_customers_list_authorized(client: TestClient) -> None:
    r = client.get("/api/customers.list", headers=_auth_headers())
    assert r.status_code == 200
    data = r.json()
    assert "items" in data
    assert isinstance(data["items"], list)


def test_observability_headers_and_errors(client: TestClient) -> None:
    r = client.get("/health")
    assert "X-Process-Time-Ms" in r.headers

    r2 = client.get("/api/check_ins.active")  # missing token
    assert r2.status_code == 401
    data = r2.json()
    assert data.get("ok") is False
    assert "error" in data and "status" in data["error"] and "path" in data["error"]


def test_rate_limit_toggle(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    # Ensure rate limit disabled by default (per settings)
    r = client.get("/api/customers.list", headers=_auth_headers())
    assert r.status_code == 200

    # Enable rate limit and set low threshold
    monkeypatch.setenv("FRONTDESK_RATE_LIMIT_ENABLED", "true")
    monkeypatch.setenv("FRONTDESK_RATE_LIMIT_PER_MINUTE", "3")
    # Reset cached settings and counters
    get_settings.cache_clear()  # type: ignore[attr-defined]
    _rate_counts.clear()

    try:
        # First 3 pass
        for _ in range(3):
            ok = client.get("/api/customers.list", headers=_auth_headers())
            assert ok.status_code == 200
        # 4th should hit 429
        blocked = client.get("/api/customers.list", headers=_auth_headers())
        assert blocked.status_code == 429
    finally:
        get_settings.cache_clear()  # type: ignore[attr-defined]
        _rate_counts.clear()
