"""
Service: session_runner.py
Rôle:
- Armer sur la boucle asyncio le timer en attente de chaque partie (un seul par partie).
- À l'échéance : `session.fire(token)` puis diffusion WS du snapshot et des nouveaux événements.
- Un jeton périmé (phase quittée entre-temps) ne produit aucune mutation.

API interne exposée aux routes:
- RUNNER.sync(session): à appeler après chaque intention (arme / réarme / annule).
- RUNNER.cancel(session_id): arrêt des timers d'une partie supprimée.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .game_session import GameSession
from .ws_manager import WS, WSManager

logger = logging.getLogger(__name__)


def session_message(session: GameSession, viewer_id: Optional[str], since_ts: Optional[float]) -> dict:
    """Charge WS standard : snapshot pour ce viewer + événements du journal depuis `since_ts`."""
    return {
        "type": "state",
        "session_id": session.session_id,
        "snapshot": session.snapshot(viewer_id).model_dump(mode="json"),
        "events": [e.model_dump(mode="json") for e in session.events_since(since_ts)],
    }


@dataclass
class SessionRunner:
    ws: WSManager = field(default_factory=lambda: WS)
    # session_id -> (token, task)
    _tasks: Dict[str, Tuple[int, asyncio.Task]] = field(default_factory=dict, init=False, repr=False)
    # session_id -> ts du dernier événement diffusé
    _last_ts: Dict[str, float] = field(default_factory=dict, init=False, repr=False)

    async def sync(self, session: GameSession) -> None:
        """Aligne la tâche asyncio sur le timer en attente puis diffuse l'état."""
        self._arm(session)
        await self.broadcast(session)

    def _arm(self, session: GameSession) -> None:
        timer = session.pending_timer
        current = self._tasks.get(session.session_id)
        if current is not None:
            token, task = current
            if timer is not None and timer.token == token and not task.done():
                return
            task.cancel()
            self._tasks.pop(session.session_id, None)
        if timer is None:
            return
        task = asyncio.create_task(self._run(session, timer.token, timer.delay))
        self._tasks[session.session_id] = (timer.token, task)

    async def _run(self, session: GameSession, token: int, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        current = self._tasks.get(session.session_id)
        if current is not None and current[0] == token:
            self._tasks.pop(session.session_id, None)
        try:
            fired = session.fire(token)
        except Exception:
            logger.exception("Timer action failed", extra={"session_id": session.session_id, "token": token})
            return
        if fired:
            await self.sync(session)

    async def broadcast(self, session: GameSession) -> int:
        since = self._last_ts.get(session.session_id)
        events = session.events_since(since)
        if events:
            self._last_ts[session.session_id] = events[-1].ts
        return await self.ws.broadcast_session(
            session.session_id,
            lambda viewer_id: session_message(session, viewer_id, since),
        )

    def cancel(self, session_id: str) -> None:
        current = self._tasks.pop(session_id, None)
        if current is not None:
            current[1].cancel()
        self._last_ts.pop(session_id, None)

    def armed_token(self, session_id: str) -> Optional[int]:
        current = self._tasks.get(session_id)
        return current[0] if current else None


RUNNER = SessionRunner()
