"""
Routes de gestion des parties (frontière présentation).

Objectifs :
- Création d'une partie à partir de l'écran de préparation, liste, snapshot, journal, suppression.
- Réception des intentions des joueurs humains (spin, réponse, résultats, twist, étoile, mute).

Chaque intention est appliquée sous le verrou de la partie, puis le `SessionRunner`
réarme le timer éventuel et diffuse le nouvel état en WS.
Les erreurs métier sont traduites en HTTPException :
- InvalidIntent → 409, InvalidTarget → 400, UnknownPlayer / partie inconnue → 404.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import anyio
from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel, Field

from startrail.engine.errors import GameError, InvalidIntent, InvalidTarget, UnknownPlayer
from startrail.engine.twists import ChoiceTarget
from startrail.models.event import GameEvent
from startrail.models.game import GamePhase, GameSnapshot
from startrail.services.game_session import GameSession, create_game, normalize_settings
from startrail.services.question_provider import fetch_questions
from startrail.services.session_runner import RUNNER
from startrail.services.session_store import drop_session, get_session, list_session_ids, register_session
from startrail.services.ws_manager import WS

router = APIRouter(prefix="/games", tags=["games"])


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class GameCreateResponse(BaseModel):
    session_id: str
    snapshot: GameSnapshot


class GameSummary(BaseModel):
    session_id: str
    phase: GamePhase
    turn: int
    players: int


class PlayerIntent(BaseModel):
    player_id: str


class AnswerPayload(PlayerIntent):
    answer_id: str


class StarSelectPayload(PlayerIntent):
    star_id: int


class TwistChoicePayload(PlayerIntent):
    target_player_id: Optional[str] = Field(None, description="Joueur ciblé (vol, échange, gel...)")
    gate: Optional[int] = Field(None, description="Porte de téléportation")
    difficulty: Optional[int] = Field(None, description="Difficulté imposée au prochain spin")
    category: Optional[str] = Field(None, description="Catégorie imposée (category_master)")
    star_id: Optional[int] = Field(None, description="Étoile offerte ou espionnée")

    def to_target(self) -> ChoiceTarget:
        return ChoiceTarget(
            player_id=self.target_player_id,
            gate=self.gate,
            difficulty=self.difficulty,
            category=self.category,
            star_id=self.star_id,
        )


class SpinResponse(BaseModel):
    result: Any
    snapshot: GameSnapshot


class MuteResponse(BaseModel):
    muted: bool


# ---------------------------------------------------------------------------
# Helpers internes
# ---------------------------------------------------------------------------
def _get_or_404(session_id: str) -> GameSession:
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="session_not_found")
    return session


def _http_error(exc: GameError) -> HTTPException:
    if isinstance(exc, UnknownPlayer):
        return HTTPException(status_code=404, detail="player_not_found")
    if isinstance(exc, InvalidTarget):
        return HTTPException(status_code=400, detail=str(exc) or "invalid_target")
    if isinstance(exc, InvalidIntent):
        return HTTPException(status_code=409, detail=str(exc) or "invalid_intent")
    return HTTPException(status_code=400, detail=str(exc))


async def _after_intent(session: GameSession, viewer_id: Optional[str] = None) -> GameSnapshot:
    await RUNNER.sync(session)
    return session.snapshot(viewer_id)


# ---------------------------------------------------------------------------
# Cycle de vie des parties
# ---------------------------------------------------------------------------
@router.post("", response_model=GameCreateResponse)
async def create_game_endpoint(payload: Any = Body(default=None)) -> GameCreateResponse:
    """
    Crée une partie à partir de la configuration de préparation.
    Configuration invalide ou absente → configuration par défaut (1 humain, 1 robot, toutes catégories).
    Le stock de questions est récupéré hors boucle (appel LLM bloquant possible).
    """
    game_settings = normalize_settings(payload)
    questions = await anyio.to_thread.run_sync(
        fetch_questions,
        game_settings.selected_categories,
        game_settings.custom_category_text,
    )
    session = register_session(create_game(game_settings, questions))
    snapshot = await _after_intent(session)
    return GameCreateResponse(session_id=session.session_id, snapshot=snapshot)


@router.get("", response_model=List[GameSummary])
async def list_games() -> List[GameSummary]:
    summaries: List[GameSummary] = []
    for sid in list_session_ids():
        session = get_session(sid)
        if session is None:
            continue
        summaries.append(
            GameSummary(session_id=sid, phase=session.phase, turn=session.turn, players=len(session.players))
        )
    return summaries


@router.get("/{session_id}", response_model=GameSnapshot)
async def game_snapshot(
    session_id: str,
    viewer_id: Optional[str] = Query(default=None, description="Joueur qui regarde (étoile espionnée)"),
) -> GameSnapshot:
    return _get_or_404(session_id).snapshot(viewer_id)


@router.get("/{session_id}/events", response_model=List[GameEvent])
async def game_events(
    session_id: str,
    since_ts: Optional[float] = Query(default=None, description="Événements strictement postérieurs"),
    limit: Optional[int] = Query(default=None, ge=0, le=1000),
) -> List[GameEvent]:
    return _get_or_404(session_id).events_since(since_ts, limit)


@router.delete("/{session_id}")
async def delete_game(session_id: str) -> Dict[str, Any]:
    session = drop_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="session_not_found")
    RUNNER.cancel(session_id)
    await WS.close_session(session_id)
    return {"ok": True, "session_id": session_id}


# ---------------------------------------------------------------------------
# Intentions des joueurs
# ---------------------------------------------------------------------------
@router.post("/{session_id}/spin", response_model=SpinResponse)
async def spin(session_id: str, payload: PlayerIntent) -> SpinResponse:
    session = _get_or_404(session_id)
    try:
        result = session.spin(payload.player_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return SpinResponse(result=result, snapshot=await _after_intent(session, payload.player_id))


@router.post("/{session_id}/answer", response_model=GameSnapshot)
async def answer(session_id: str, payload: AnswerPayload) -> GameSnapshot:
    session = _get_or_404(session_id)
    try:
        session.answer(payload.player_id, payload.answer_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return await _after_intent(session, payload.player_id)


@router.post("/{session_id}/proceed", response_model=GameSnapshot)
async def proceed(session_id: str) -> GameSnapshot:
    session = _get_or_404(session_id)
    try:
        session.proceed()
    except GameError as exc:
        raise _http_error(exc) from exc
    return await _after_intent(session)


@router.post("/{session_id}/twist/confirm", response_model=GameSnapshot)
async def confirm_twist(session_id: str, payload: PlayerIntent) -> GameSnapshot:
    session = _get_or_404(session_id)
    try:
        session.confirm_twist(payload.player_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return await _after_intent(session, payload.player_id)


@router.post("/{session_id}/twist/choice", response_model=GameSnapshot)
async def choose_twist_target(session_id: str, payload: TwistChoicePayload) -> GameSnapshot:
    session = _get_or_404(session_id)
    try:
        session.choose_twist_target(payload.player_id, payload.to_target())
    except GameError as exc:
        raise _http_error(exc) from exc
    return await _after_intent(session, payload.player_id)


@router.post("/{session_id}/stars/select", response_model=GameSnapshot)
async def select_star(session_id: str, payload: StarSelectPayload) -> GameSnapshot:
    session = _get_or_404(session_id)
    try:
        session.select_star(payload.player_id, payload.star_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return await _after_intent(session, payload.player_id)


@router.post("/{session_id}/mute", response_model=MuteResponse)
async def toggle_mute(session_id: str) -> MuteResponse:
    session = _get_or_404(session_id)
    muted = session.toggle_mute()
    await RUNNER.broadcast(session)
    return MuteResponse(muted=muted)
