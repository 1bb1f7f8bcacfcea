from __future__ import annotations

import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from frontdesk.main import app
from frontdesk.admission import bucket
from frontdesk.clock import Clock, FixedClock
from frontdesk.config import get_settings
from frontdesk.database import Base, engine
from frontdesk.deps import get_clock
from frontdesk.errors import MSG_RESCAN
from frontdesk.rate_limit import _window_counts as _rate_counts


W = 300_000


@pytest.fixture()
def clock() -> FixedClock:
    # start mid-window so a one-minute advance stays in the same bucket
    now = Clock().now_ms()
    return FixedClock(now - now % W + W // 2)


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, clock: FixedClock):
    monkeypatch.setenv("FRONTDESK_ADMISSION_WINDOW_MS", str(W))
    monkeypatch.setenv("FRONTDESK_RATE_LIMIT_ENABLED", "false")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    _rate_counts.clear()
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.pop(get_clock, None)
    get_settings.cache_clear()  # type: ignore[attr-defined]


def _token(clock: FixedClock) -> str:
    return str(bucket(clock.now_ms(), W))


def _visitor() -> dict:
    tag = uuid.uuid4().hex[:8]
    return {"first_name": "Pat", "last_name": f"Visitor{tag}", "email": f"pat_{tag}@example.com"}


def test_page_without_token_is_locked(client: TestClient) -> None:
    r = client.get("/checkin")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "missing"
    assert data["form_enabled"] is False
    assert data["message"] == MSG_RESCAN


def test_page_with_malformed_token_is_locked(client: TestClient) -> None:
    data = client.get("/checkin", params={"t": "abc"}).json()
    assert data["status"] == "malformed"
    assert data["form_enabled"] is False


def test_overlong_token_is_malformed_not_an_error(client: TestClient) -> None:
    r = client.get("/checkin", params={"t": "9" * 5000})
    assert r.status_code == 200
    assert r.json()["status"] == "malformed"

    r = client.post("/checkin", params={"t": "9" * 5000}, json=_visitor())
    assert r.status_code == 403
    assert r.json()["error"]["admission"] == "malformed"


def test_page_with_current_token_unlocks(client: TestClient, clock: FixedClock) -> None:
    data = client.get("/checkin", params={"t": _token(clock)}).json()
    assert data["status"] == "valid"
    assert data["form_enabled"] is True
    assert data["message"] is None
    assert data["max_stay_time"] > 0


def test_page_with_previous_token_expired(client: TestClient, clock: FixedClock) -> None:
    stale = str(bucket(clock.now_ms(), W) - 1)
    data = client.get("/checkin", params={"t": stale}).json()
    assert data["status"] == "expired"
    assert data["form_enabled"] is False


@pytest.mark.parametrize("params", [{}, {"t": "abc"}, {"t": "1"}])
def test_submit_rejected_without_valid_token(client: TestClient, params: dict) -> None:
    visitor = _visitor()
    r = client.post("/checkin", params=params, json=visitor)
    assert r.status_code == 403
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["message"] == MSG_RESCAN
    # nothing was written
    status = client.get("/checkin/status", params={"email": visitor["email"]}).json()
    assert status["checked_in"] is False


def test_photographed_code_stops_working_after_rollover(client: TestClient, clock: FixedClock) -> None:
    token = _token(clock)
    clock.advance(W)
    r = client.post("/checkin", params={"t": token}, json=_visitor())
    assert r.status_code == 403
    assert r.json()["error"]["admission"] == "expired"


def test_check_in_status_and_check_out(client: TestClient, clock: FixedClock) -> None:
    visitor = _visitor()
    r = client.post("/checkin", params={"t": _token(clock)}, json=visitor)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["outcome"] == "checked_in"
    assert data["is_new"] is True
    assert data["message"].startswith("Welcome ")

    clock.advance(65_000)
    status = client.get("/checkin/status", params={"email": visitor["email"]}).json()
    assert status["checked_in"] is True
    assert status["stay"] == "0h 1m 5s"
    assert status["overtime"] is False

    again = client.post("/checkin", params={"t": _token(clock)}, json=visitor).json()
    assert again["outcome"] == "already_checked_in"
    assert again["message"].endswith("You are already checked in.")

    out = client.post("/checkout", json={"email": visitor["email"]})
    assert out.status_code == 200
    assert "checked out" in out.json()["message"]
    assert client.get("/checkin/status", params={"email": visitor["email"]}).json()["checked_in"] is False

    # second checkout has nothing to close
    assert client.post("/checkout", json={"email": visitor["email"]}).status_code == 404


def test_name_mismatch_requires_confirmation(client: TestClient, clock: FixedClock) -> None:
    visitor = _visitor()
    first = client.post("/checkin", params={"t": _token(clock)}, json=visitor).json()
    client.post("/checkout", json={"email": visitor["email"]})

    other = {**visitor, "first_name": "Patricia"}
    r = client.post("/checkin", params={"t": _token(clock)}, json=other).json()
    assert r["outcome"] == "needs_confirmation"
    assert r["customer"]["id"] == first["customer"]["id"]

    denied = client.post("/checkin/confirm", json={"customer_id": r["customer"]["id"]})
    assert denied.status_code == 403

    ok = client.post("/checkin/confirm", params={"t": _token(clock)}, json={"customer_id": r["customer"]["id"]})
    assert ok.status_code == 200
    assert ok.json()["outcome"] == "checked_in"
    client.post("/checkout", json={"email": visitor["email"]})


def test_confirm_unknown_customer_404(client: TestClient, clock: FixedClock) -> None:
    r = client.post("/checkin/confirm", params={"t": _token(clock)}, json={"customer_id": "missing"})
    assert r.status_code == 404


def test_invalid_email_rejected(client: TestClient, clock: FixedClock) -> None:
    r = client.post(
        "/checkin",
        params={"t": _token(clock)},
        json={"first_name": "A", "last_name": "B", "email": "not-an-email"},
    )
    assert r.status_code == 422


def test_blank_names_rejected(client: TestClient, clock: FixedClock) -> None:
    visitor = _visitor()
    visitor.update(first_name=" ", last_name="   ")
    r = client.post("/checkin", params={"t": _token(clock)}, json=visitor)
    assert r.status_code == 422
    status = client.get("/checkin/status", params={"email": visitor["email"]}).json()
    assert status["checked_in"] is False
