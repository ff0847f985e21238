"""
Service: ws_manager.py
- Mapping session_id -> sockets ET socket -> viewer_id (joueur qui regarde, optionnel).
- Snapshots immuables pour éviter "set changed size during iteration".
- Envoi par socket d'une charge construite pour son viewer (l'étoile espionnée n'est visible
  que du joueur actif).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

PayloadBuilder = Callable[[Optional[str]], Any]


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # session_id -> set(WebSocket)
    clients_by_session: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # reverse map: socket -> (session_id, viewer_id)
    ws_meta: Dict[WebSocket, Tuple[str, Optional[str]]] = field(default_factory=dict)

    async def connect(self, ws: WebSocket, session_id: str, viewer_id: Optional[str] = None) -> None:
        """Accepte la connexion WS et l'abonne au flux de la partie."""
        await ws.accept()
        with self._lock:
            self.clients_by_session.setdefault(session_id, set()).add(ws)
            self.ws_meta[ws] = (session_id, viewer_id)

    def _unlink(self, ws: WebSocket) -> None:
        with self._lock:
            meta = self.ws_meta.pop(ws, None)
            if meta is None:
                return
            bucket = self.clients_by_session.get(meta[0])
            if bucket is not None:
                bucket.discard(ws)
                if not bucket:
                    self.clients_by_session.pop(meta[0], None)

    async def disconnect(self, ws: WebSocket) -> None:
        """Ferme proprement la connexion et nettoie les registres."""
        self._unlink(ws)
        try:
            await ws.close()
        except RuntimeError:
            # socket déjà fermée côté client
            pass

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        """Envoie à un WS; renvoie True si succès, sinon False (et retire le WS mort)."""
        try:
            data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            await ws.send_text(data)
            return True
        except Exception:
            logger.debug("WS send failed, dropping socket", exc_info=True)
            self._unlink(ws)
            return False

    def _snapshot_session(self, session_id: str) -> List[Tuple[WebSocket, Optional[str]]]:
        with self._lock:
            return [(ws, self.ws_meta.get(ws, (session_id, None))[1]) for ws in self.clients_by_session.get(session_id, set())]

    async def broadcast_session(self, session_id: str, build: PayloadBuilder) -> int:
        """Diffuse à tous les abonnés d'une partie ; `build(viewer_id)` produit la charge de chaque socket."""
        success = 0
        for ws, viewer_id in self._snapshot_session(session_id):
            if await self.send_json(ws, build(viewer_id)):
                success += 1
        return success

    async def close_session(self, session_id: str) -> int:
        """Ferme toutes les sockets d'une partie (suppression)."""
        conns = self._snapshot_session(session_id)
        for ws, _ in conns:
            await self.disconnect(ws)
        return len(conns)

    def stats(self) -> dict:
        with self._lock:
            per_session = {sid: len(conns) for sid, conns in self.clients_by_session.items()}
            return {"sessions": per_session, "total": sum(per_session.values())}


WS = WSManager()
