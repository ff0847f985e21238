from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from startrail.config.settings import settings
from startrail.main import app
from startrail.routes import games
from startrail.services.session_store import clear_sessions, get_session

client = TestClient(app)


@pytest.fixture(autouse=True)
def quiet_runner(monkeypatch):
    """Pas de timers asyncio ni de diffusion WS pendant les tests de routes."""
    stub = SimpleNamespace(sync=AsyncMock(), broadcast=AsyncMock(return_value=0), cancel=Mock())
    monkeypatch.setattr(games, "RUNNER", stub)
    monkeypatch.setattr(settings, "LLM_PROVIDER", "builtin")
    yield stub
    clear_sessions()


def _create(**overrides):
    body = {"human_player_count": 2, "automated_player_count": 0, "selected_categories": ["science"]}
    body.update(overrides)
    response = client.post("/games", json=body)
    assert response.status_code == 200
    return response.json()


def test_create_and_read_game(quiet_runner):
    created = _create(human_player_names=["Ada", ""])
    session_id = created["session_id"]
    snapshot = created["snapshot"]

    assert snapshot["phase"] == "spinning"
    assert [p["name"] for p in snapshot["players"]] == ["Ada", "Player 2"]
    assert snapshot["categories"] == ["science"]
    assert all(s["value"] is None for s in snapshot["stars"])
    quiet_runner.sync.assert_awaited_once()

    read = client.get(f"/games/{session_id}", params={"viewer_id": "human-0"})
    assert read.status_code == 200
    assert read.json()["current_player_id"] == "human-0"

    listing = client.get("/games").json()
    assert [g["session_id"] for g in listing] == [session_id]
    assert listing[0]["players"] == 2


def test_malformed_settings_fall_back_to_defaults():
    response = client.post("/games", json={"human_player_count": "many"})
    players = response.json()["snapshot"]["players"]

    assert response.status_code == 200
    assert [p["kind"] for p in players] == ["human", "automated"]


def test_unknown_session_and_player():
    assert client.get("/games/nope").json()["detail"] == "session_not_found"
    assert client.post("/games/nope/spin", json={"player_id": "human-0"}).status_code == 404

    session_id = _create()["session_id"]
    response = client.post(f"/games/{session_id}/spin", json={"player_id": "ghost"})
    assert response.status_code == 404
    assert response.json()["detail"] == "player_not_found"


def test_intents_out_of_turn_are_conflicts():
    session_id = _create()["session_id"]

    assert client.post(f"/games/{session_id}/spin", json={"player_id": "human-1"}).status_code == 409
    assert client.post(f"/games/{session_id}/proceed").status_code == 409
    assert client.post(f"/games/{session_id}/twist/confirm", json={"player_id": "human-0"}).status_code == 409
    assert client.post(f"/games/{session_id}/twist/choice", json={"player_id": "human-0", "gate": 5}).status_code == 409
    assert client.post(f"/games/{session_id}/stars/select", json={"player_id": "human-0", "star_id": 0}).status_code == 409


def test_spin_and_answer(monkeypatch):
    session_id = _create()["session_id"]
    session = get_session(session_id)
    monkeypatch.setattr(session, "_roll_wheel", lambda: 2)

    spun = client.post(f"/games/{session_id}/spin", json={"player_id": "human-0"})
    assert spun.status_code == 200
    assert spun.json()["result"] == 2
    question = spun.json()["snapshot"]["question"]
    assert question["difficulty"] == 2
    assert all(a["is_correct"] is None for a in question["answers"])

    bad = client.post(f"/games/{session_id}/answer", json={"player_id": "human-0", "answer_id": "nope"})
    assert bad.status_code == 400

    answer_id = question["answers"][0]["id"]
    ok = client.post(f"/games/{session_id}/answer", json={"player_id": "human-0", "answer_id": answer_id})
    assert ok.status_code == 200
    assert ok.json()["answered"]["human-0"] is True


def test_events_mute_and_delete(quiet_runner):
    session_id = _create()["session_id"]

    events = client.get(f"/games/{session_id}/events").json()
    assert [e["kind"] for e in events] == ["game_created", "turn_started"]
    assert len(client.get(f"/games/{session_id}/events", params={"limit": 1}).json()) == 1

    assert client.post(f"/games/{session_id}/mute").json() == {"muted": True}
    quiet_runner.broadcast.assert_awaited_once()

    deleted = client.delete(f"/games/{session_id}")
    assert deleted.status_code == 200
    quiet_runner.cancel.assert_called_once_with(session_id)
    assert client.get(f"/games/{session_id}").status_code == 404
    assert client.delete(f"/games/{session_id}").status_code == 404


def test_health():
    body = client.get("/health").json()

    assert body["ok"] is True
    assert body["question_provider"] == "builtin"
    assert body["ws_clients"] == 0


def test_websocket_stream():
    session_id = _create()["session_id"]

    with client.websocket_connect(f"/ws/games/{session_id}?viewer_id=human-0") as ws:
        first = ws.receive_json()
        assert first["type"] == "state"
        assert first["snapshot"]["session_id"] == session_id
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        ws.send_json({"type": "sync"})
        assert ws.receive_json()["type"] == "state"


def test_websocket_unknown_session_is_closed():
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/games/nope") as ws:
            ws.receive_json()
