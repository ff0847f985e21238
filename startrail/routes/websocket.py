"""
WebSocket endpoint.

- /ws/games/{session_id}?viewer_id=... : flux d'une partie (snapshot + événements du journal).
  Le journal sert aussi d'indices pour la couche audio/notifications de la présentation.
- Messages client : {"type":"ping"} → pong ; {"type":"sync"} → renvoi du snapshot courant.
"""
from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from startrail.services.session_runner import session_message
from startrail.services.session_store import get_session
from startrail.services.ws_manager import WS

router = APIRouter()


@router.websocket("/ws/games/{session_id}")
async def game_stream(ws: WebSocket, session_id: str, viewer_id: Optional[str] = None):
    session = get_session(session_id)
    if session is None:
        await ws.close(code=4404)
        return

    await WS.connect(ws, session.session_id, viewer_id)
    await WS.send_json(ws, session_message(session, viewer_id, None))
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                # Message non JSON -> ignore
                continue

            mtype = msg.get("type") if isinstance(msg, dict) else None
            if mtype == "ping":
                await WS.send_json(ws, {"type": "pong"})
            elif mtype == "sync":
                await WS.send_json(ws, session_message(session, viewer_id, None))
            else:
                await WS.send_json(ws, {"type": "ack", "received": msg})
    except WebSocketDisconnect:
        pass
    finally:
        await WS.disconnect(ws)
