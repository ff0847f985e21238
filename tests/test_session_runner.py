import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from startrail.config.settings import settings
from startrail.models.game import GamePhase
from startrail.services.session_runner import SessionRunner, session_message


@pytest.fixture
def ws_stub():
    return SimpleNamespace(broadcast_session=AsyncMock(return_value=1))


def test_session_message_carries_snapshot_and_events(new_game):
    game = new_game(humans=1)
    message = session_message(game, "human-0", None)

    assert message["type"] == "state"
    assert message["session_id"] == "test-session"
    assert message["snapshot"]["phase"] == "spinning"
    assert [e["kind"] for e in message["events"]] == ["game_created", "turn_started"]


def test_sync_without_timer_only_broadcasts(new_game, ws_stub):
    game = new_game(humans=2)
    runner = SessionRunner(ws=ws_stub)

    asyncio.run(runner.sync(game))

    assert runner.armed_token("test-session") is None
    ws_stub.broadcast_session.assert_awaited_once()
    session_id, build = ws_stub.broadcast_session.await_args.args
    assert session_id == "test-session"
    assert build("human-0")["snapshot"]["current_player_id"] == "human-0"


def test_timer_fires_and_rearms(monkeypatch, new_game, ws_stub):
    monkeypatch.setattr(settings, "AUTO_SPIN_SECONDS", 0.0)
    game = new_game(humans=0, bots=2)
    runner = SessionRunner(ws=ws_stub)

    async def scenario():
        await runner.sync(game)
        first = runner.armed_token("test-session")
        assert first == game.pending_timer.token
        await asyncio.sleep(0.05)
        assert game.phase is not GamePhase.SPINNING
        assert runner.armed_token("test-session") == game.pending_timer.token != first
        runner.cancel("test-session")
        assert runner.armed_token("test-session") is None

    asyncio.run(scenario())
    assert ws_stub.broadcast_session.await_count >= 2


def test_resync_replaces_stale_task(new_game, ws_stub):
    game = new_game(humans=0, bots=2)
    runner = SessionRunner(ws=ws_stub)

    async def scenario():
        await runner.sync(game)
        stale = runner.armed_token("test-session")
        game.run_pending()
        await runner.sync(game)
        assert runner.armed_token("test-session") == game.pending_timer.token
        assert game.fire(stale) is False
        runner.cancel("test-session")

    asyncio.run(scenario())
