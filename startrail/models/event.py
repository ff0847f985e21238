"""
Models / event.py
Rôle:
- Définir l'entrée standard du journal d'une partie (timeline, flux WS, indices sonores).

Notes:
- `kind` restreint à un jeu de valeurs (Literal) pour éviter les fautes de frappe.
- `payload` est libre (clé/valeur) afin d'embarquer le contexte spécifique.
- `ts` est un timestamp epoch (float), comme le journal des sessions.
"""
from pydantic import BaseModel, Field
from typing import Literal, Dict, Any

# Typage strict des catégories d'événements supportées par le moteur
EventKind = Literal[
    "game_created",
    "turn_started",
    "spin",
    "question_asked",
    "answer_submitted",
    "steps_awarded",
    "player_moved",
    "star_selected",
    "star_awarded",
    "twist_drawn",
    "twist_applied",
    "twist_skipped",
    "star_peeked",
    "turn_skipped",
    "modifier_expired",
    "game_finished",
]


class GameEvent(BaseModel):
    """Entrée du journal d'une partie (et message diffusé en WS)."""
    id: str
    kind: EventKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    ts: float
