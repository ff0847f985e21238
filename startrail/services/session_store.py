"""
Session store registry
======================

Registre en mémoire des parties en cours (`GameSession` par session_id).
Aucune persistance : un redémarrage du process efface toutes les parties.
"""
from __future__ import annotations

from threading import RLock
from typing import Dict, List, Optional

from .game_session import GameSession

_SESSIONS: Dict[str, GameSession] = {}
_LOCK = RLock()


def register_session(session: GameSession) -> GameSession:
    """Ajoute (ou remplace) une partie dans le registre."""
    with _LOCK:
        _SESSIONS[session.session_id] = session
        return session


def get_session(session_id: str) -> Optional[GameSession]:
    with _LOCK:
        return _SESSIONS.get((session_id or "").strip())


def drop_session(session_id: str) -> Optional[GameSession]:
    """Retire une partie du registre (retourne l'instance retirée, ou None)."""
    with _LOCK:
        return _SESSIONS.pop(session_id, None)


def list_session_ids() -> List[str]:
    """Identifiants des parties chargées, de la plus ancienne à la plus récente."""
    with _LOCK:
        return [s.session_id for s in sorted(_SESSIONS.values(), key=lambda s: s.created_at)]


def clear_sessions() -> None:
    with _LOCK:
        _SESSIONS.clear()
