from __future__ import annotations

import base64
import sys
from pathlib import Path
from typing import Dict

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from frontdesk.main import app
from frontdesk.clock import FixedClock
from frontdesk.config import Settings
from frontdesk.errors import RenderFailure
from frontdesk.issuer import CodeIssuer


API_TOKEN = "dev-token"
W = 300_000


def _auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}


class FlakyRenderer:
    def __init__(self) -> None:
        self.fail = False

    def __call__(self, payload: str) -> bytes:
        if self.fail:
            raise RenderFailure("boom")
        return b"\x89PNG fake " + payload.encode()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(5_666_666 * W + 10_000)


@pytest.fixture()
def renderer() -> FlakyRenderer:
    return FlakyRenderer()


@pytest.fixture()
def client(clock: FixedClock, renderer: FlakyRenderer):
    settings = Settings(public_origin="https://desk.example.com", admission_window_ms=W)
    app.state.issuer = CodeIssuer(settings, clock, renderer)
    yield TestClient(app)
    app.state.issuer = None


def test_qr_requires_token(client: TestClient) -> None:
    assert client.get("/api/qr.current").status_code == 401


def test_current_code_payload(client: TestClient) -> None:
    r = client.get("/api/qr.current", headers=_auth_headers())
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["state"] == "ready"
    assert data["token"] == 5_666_666
    assert data["url"] == "https://desk.example.com/checkin?t=5666666"
    assert data["countdown"] == "4:50"
    assert data["data_url"].startswith("data:image/png;base64,")
    assert base64.b64decode(data["data_url"].split(",", 1)[1]).endswith(data["url"].encode())


def test_code_follows_clock_without_manual_refresh(client: TestClient, clock: FixedClock) -> None:
    first = client.get("/api/qr.current", headers=_auth_headers()).json()
    clock.advance(W)
    second = client.get("/api/qr.current", headers=_auth_headers()).json()
    assert second["token"] == first["token"] + 1


def test_png_download(client: TestClient) -> None:
    r = client.get("/api/qr.png", headers=_auth_headers())
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert "checkin-qr-code-5666666.png" in r.headers["content-disposition"]


def test_render_failure_never_serves_stale_code(client: TestClient, clock: FixedClock, renderer: FlakyRenderer) -> None:
    assert client.get("/api/qr.png", headers=_auth_headers()).status_code == 200
    renderer.fail = True
    clock.advance(W)
    r = client.get("/api/qr.png", headers=_auth_headers())
    assert r.status_code == 503

    snap = client.get("/api/qr.current", headers=_auth_headers()).json()
    assert snap["state"] == "error"
    assert snap["token"] is None

    renderer.fail = False
    r = client.post("/api/qr.refresh", headers=_auth_headers())
    assert r.json()["state"] == "ready"
    assert r.json()["token"] == 5_666_667
