"""Panic button HTTP and WebSocket API tests."""

import time

import httpx

from conftest import FakeLocation
from panic_button.services.auth_service import TokenStore


def _wait_for_phase(client, phase, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        state = client.get("/button").json()["state"]
        if state["phase"] == phase:
            return state
        time.sleep(0.02)
    raise AssertionError(f"button never reached {phase}")


def test_button_status_reports_location_readiness(client):
    r = client.get("/button")

    assert r.status_code == 200
    data = r.json()
    assert data["state"] == {"phase": "idle"}
    assert data["has_permission"] is True
    assert data["location_status"] == "Ready (accurate GPS: ±30m)"
    assert data["accuracy_degraded"] is False


def test_full_alert_flow(client, backend):
    """Two presses, consent, countdown, one POST, cached last alert."""
    first = client.post("/button/press").json()
    second = client.post("/button/press").json()
    assert first["outcome"] == "confirming"
    assert second["outcome"] == "terms_opened"
    assert second["state"]["phase"] == "terms_pending"

    refused = client.post("/button/terms", json={"consent": False}).json()
    assert refused["changed"] is False
    assert refused["state"]["phase"] == "terms_pending"

    started = client.post("/button/terms", json={"consent": True}).json()
    assert started["changed"] is True
    assert started["state"] == {"phase": "counting", "remaining": 3, "cancellable": False}

    state = _wait_for_phase(client, "success")
    assert state["alert"]["id"] == 42
    assert len(backend.calls) == 1

    last = client.get("/alerts/last")
    assert last.status_code == 200
    assert last.json()["id"] == 42
    assert last.json()["location"]["latitude"] == -7.05

    ack = client.post("/button/acknowledge").json()
    assert ack["state"] == {"phase": "idle"}


def test_cancel_before_countdown(client, backend):
    client.post("/button/press")
    client.post("/button/press")

    r = client.post("/button/cancel")

    assert r.status_code == 200
    assert r.json()["state"] == {"phase": "idle"}
    assert backend.calls == []


def test_cancel_during_countdown_is_conflict(client, make_machine):
    client.app.state.machine = make_machine(tick_seconds=60)
    client.post("/button/press")
    client.post("/button/press")
    client.post("/button/terms", json={"consent": True})

    r = client.post("/button/cancel")

    assert r.status_code == 409
    assert "cannot be cancelled" in r.json()["detail"]


def test_press_without_permission_prompts(client, make_machine, backend):
    location = FakeLocation(has_permission=False)
    client.app.state.location = location
    client.app.state.machine = make_machine(location=location)

    r = client.post("/button/press")

    assert r.json()["outcome"] == "permission_required"
    assert r.json()["state"] == {"phase": "idle"}
    assert location.permission_requests == 1
    assert backend.calls == []


def test_request_location_permission(client):
    location = FakeLocation(has_permission=False, grant_on_request=True)
    client.app.state.location = location

    r = client.post("/location/permission")

    assert r.json() == {"granted": True, "error": None}


def test_last_alert_404_before_any_alert(client):
    r = client.get("/alerts/last")
    assert r.status_code == 404


def test_status_update_requires_session(client):
    r = client.put("/alerts/5/status", json={"status": "handling"})
    assert r.status_code == 401


def test_status_update_is_forwarded(client):
    calls = []

    class Backend:
        async def update_status(self, panic_id, update, token):
            calls.append((panic_id, update.status, token))
            return {"success": True, "message": "Status updated"}

    class Tokens:
        async def get_access_token(self):
            return "tok"

    client.app.state.backend = Backend()
    client.app.state.tokens = Tokens()

    r = client.put("/alerts/5/status", json={"status": "resolved", "notes": "ok"})

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert calls == [(5, "resolved", "tok")]


def test_status_update_rejects_unknown_status(client):
    r = client.put("/alerts/5/status", json={"status": "pending"})
    assert r.status_code == 422


def test_websocket_streams_phases(client, make_machine):
    from panic_button.main import _broadcast_state

    machine = make_machine(confirm_window=5)
    machine.subscribe(_broadcast_state)
    client.app.state.machine = machine
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"event": "button.phase", "data": {"phase": "idle"}}
        client.post("/button/press")
        assert ws.receive_json() == {"event": "button.phase", "data": {"phase": "confirming"}}
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}


def _token_store(store, handler):
    return TokenStore(store, "https://alerts.test/api", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _login_ok(request):
    return httpx.Response(200, json={"access_token": "a1", "refresh_token": "r1", "expires_in": 3600})


def test_login_then_alert_uses_stored_session(client, make_machine, store, backend):
    """Signing in is what lets the countdown end in a sent alert."""
    tokens = _token_store(store, _login_ok)
    client.app.state.tokens = tokens
    client.app.state.machine = make_machine(credentials=tokens)
    assert client.get("/auth/status").json()["authenticated"] is False

    r = client.post("/auth/login", json={"email": "siti@campus.ac.id", "password": "secret"})

    assert r.status_code == 200
    assert r.json()["authenticated"] is True
    assert "access_token" not in r.json()

    client.post("/button/press")
    client.post("/button/press")
    client.post("/button/terms", json={"consent": True})
    state = _wait_for_phase(client, "success")

    assert state["alert"]["id"] == 42
    assert [token for _, token in backend.calls] == ["a1"]


def test_login_rejected_is_unauthorized(client, store):
    client.app.state.tokens = _token_store(store, lambda r: httpx.Response(401, json={"message": "Invalid credentials"}))

    r = client.post("/auth/login", json={"email": "siti@campus.ac.id", "password": "wrong"})

    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"
    assert client.get("/auth/status").json() == {"authenticated": False, "expires_at": None}


def test_login_backend_down_is_bad_gateway(client, store):
    client.app.state.tokens = _token_store(store, lambda r: httpx.Response(503, text="Service Unavailable"))

    r = client.post("/auth/login", json={"email": "siti@campus.ac.id", "password": "secret"})

    assert r.status_code == 502


def test_login_requires_valid_email(client):
    r = client.post("/auth/login", json={"email": "not-an-email", "password": "secret"})
    assert r.status_code == 422


def test_logout_clears_session(client, store):
    client.app.state.tokens = _token_store(store, _login_ok)
    client.post("/auth/login", json={"email": "siti@campus.ac.id", "password": "secret"})

    r = client.post("/auth/logout")

    assert r.json() == {"authenticated": False, "expires_at": None}
