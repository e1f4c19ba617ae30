"""Tests for ui/app.py — web API over the focus controller."""

import pytest
from fastapi.testclient import TestClient

from ui.app import app


@pytest.fixture
def client(workspace, monkeypatch):
    monkeypatch.setenv("EGGFOCUS_TICK_SECONDS", "0")
    monkeypatch.delenv("EGGFOCUS_USERNAME", raising=False)
    monkeypatch.delenv("EGGFOCUS_PASSWORD", raising=False)
    with TestClient(app) as c:
        yield c


def _finish_session(client, name="Math", minutes=0.5):
    r = client.post("/api/session", json={"taskName": name, "minutes": minutes})
    assert r.status_code == 200
    for _ in range(1000):
        state = client.post("/api/tick").json()["state"]
        if state["phase"] == "settlement":
            return state
    raise AssertionError("session never settled")


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_initial_state(client):
    state = client.get("/api/state").json()
    assert state["phase"] == "idle"
    assert state["prompt"] is None
    assert state["lastTransition"] is None


def test_start_session_validation(client):
    r = client.post("/api/session", json={"taskName": "", "minutes": 10})
    assert r.status_code == 422
    r = client.post("/api/session", json={"taskName": "Math", "minutes": 0})
    assert r.status_code == 422


def test_start_session_uses_round_override(client):
    r = client.post("/api/session", json={"taskName": "Math", "minutes": 30})
    body = r.json()
    assert body["transition"]["kind"] == "round_started"
    assert body["state"]["plan"]["totalRounds"] == 3
    assert body["state"]["timer"]["timeLeft"] == 599


def test_full_session_to_ledger(client):
    state = _finish_session(client)
    assert state["rewards"]["settled"] is True

    r = client.post("/api/settlement/ack")
    assert r.status_code == 200
    record = r.json()["record"]
    assert record["status"] == "pending"

    ledger = client.get("/api/ledger").json()
    assert ledger["balance"] == 0
    assert ledger["pendingTotal"] == record["amount"]
    assert ledger["days"][0]["records"][0]["id"] == record["id"]

    r = client.post(f"/api/ledger/{record['id']}/confirm")
    assert r.json()["balance"] == record["amount"]


def test_ack_without_settlement(client):
    assert client.post("/api/settlement/ack").status_code == 409


def test_cancel_prompt_flow(client):
    client.post("/api/session", json={"taskName": "Math", "minutes": 10})
    client.post("/api/tick")

    state = client.post("/api/session/cancel").json()
    assert state["prompt"]["title"] == "Give up?"
    assert state["timer"]["isActive"] is False
    assert client.get("/api/prompt").json()["prompt"]["confirmLabel"] == "Give up"

    state = client.post("/api/prompt/confirm").json()
    assert state["phase"] == "idle"
    assert state["prompt"] is None
    assert state["lastTransition"]["forfeited"] is True


def test_cancel_prompt_declined(client):
    client.post("/api/session", json={"taskName": "Math", "minutes": 10})
    client.post("/api/session/cancel")
    state = client.post("/api/prompt/cancel").json()
    assert state["phase"] == "round"
    assert state["timer"]["isActive"] is True


def test_actions_without_session(client):
    assert client.post("/api/session/cancel").status_code == 409
    assert client.post("/api/session/finish").status_code == 409
    assert client.post("/api/rest/skip").status_code == 409
    assert client.post("/api/prompt/confirm").status_code == 409
    assert client.post("/api/prompt/cancel").status_code == 409


def test_finish_early_flow(client):
    client.post("/api/session", json={"taskName": "Essay", "minutes": 10})
    for _ in range(12):
        client.post("/api/tick")
    client.post("/api/session/finish")
    state = client.post("/api/prompt/confirm").json()
    assert state["phase"] == "settlement"
    assert state["rewards"]["baseCoins"] == 1


def test_ledger_confirm_behind_pin(client):
    assert client.put("/api/pin", json={"pin": "12"}).status_code == 422
    assert client.put("/api/pin", json={"pin": "2468"}).status_code == 200
    assert client.put("/api/pin", json={"pin": "1357", "currentPin": "0000"}).status_code == 403

    _finish_session(client)
    record = client.post("/api/settlement/ack").json()["record"]

    body = client.post(f"/api/ledger/{record['id']}/confirm").json()
    assert body["state"]["prompt"]["kind"] == "pin"
    client.post("/api/prompt/confirm", json={"pin": "2468"})
    assert client.get("/api/ledger").json()["balance"] == record["amount"]

    assert client.request("DELETE", "/api/pin", json={"currentPin": "2468"}).status_code == 200


def test_ledger_unknown_record(client):
    assert client.post("/api/ledger/nope/confirm").status_code == 404
    assert client.delete("/api/ledger/nope").status_code == 404


def test_redeem_insufficient(client):
    r = client.post("/api/ledger/redeem", json={"item": "Toy", "cost": 5})
    assert r.status_code == 409


def test_settings_update(client):
    assert client.get("/api/settings").json()["timerOverride"] == 10

    r = client.put("/api/settings", json={"restDuration": -1})
    assert r.status_code == 422
    assert any("restDuration" in e for e in r.json()["detail"])

    r = client.put("/api/settings", json={"taskOptions": [5, 15], "timerOverride": 0})
    assert r.status_code == 200
    assert r.json()["taskOptions"] == [5, 15]

    client.post("/api/settings/reset")
    client.post("/api/prompt/confirm")
    assert client.get("/api/settings").json()["taskOptions"] == [10, 20, 30, 40]


def test_tick_rejected_with_server_driver(workspace, monkeypatch):
    monkeypatch.setenv("EGGFOCUS_TICK_SECONDS", "60")
    monkeypatch.delenv("EGGFOCUS_USERNAME", raising=False)
    monkeypatch.delenv("EGGFOCUS_PASSWORD", raising=False)
    with TestClient(app) as c:
        assert c.post("/api/tick").status_code == 409


def test_basic_auth(workspace, monkeypatch):
    monkeypatch.setenv("EGGFOCUS_TICK_SECONDS", "0")
    monkeypatch.setenv("EGGFOCUS_USERNAME", "parent")
    monkeypatch.setenv("EGGFOCUS_PASSWORD", "secret")
    with TestClient(app) as c:
        assert c.get("/api/state").status_code == 401
        assert c.get("/api/state", auth=("parent", "wrong")).status_code == 401
        assert c.get("/api/state", auth=("parent", "secret")).status_code == 200
        assert c.get("/healthz").status_code == 200


def test_new_session_while_cancel_prompt_pending(client):
    client.post("/api/session", json={"taskName": "Math", "minutes": 10})
    client.post("/api/session/cancel")

    state = client.post("/api/session", json={"taskName": "Reading", "minutes": 10}).json()["state"]
    assert state["prompt"] is None
    assert state["timer"]["isActive"] is True

    assert client.post("/api/prompt/cancel").status_code == 409
    for _ in range(3):
        state = client.post("/api/tick").json()["state"]
    assert state["phase"] == "round"
    assert state["plan"]["taskName"] == "Reading"
    assert state["plan"]["totalFocusedSeconds"] == 3
