"""
Models / game.py
Rôle:
- Définir la configuration de démarrage d'une partie (`GameSettings`) et ses valeurs par défaut.
- Définir l'énumération des phases et le snapshot typé exposé à la présentation.

Champs clés du snapshot:
- phase / current_player_id: où en est la machine à états.
- players / stars: état vivant (valeurs d'étoiles masquées tant qu'elles ne sont pas gagnées).
- question / answered: question en cours et drapeaux "a répondu" par joueur.
- round_steps / movement: résumé des pas gagnés et indice d'animation du déplacement courant.
- pending_choice: ce que le joueur actif doit choisir après une carte twist.
- winner_id / ranking / end_reason: renseignés en phase `finished`.
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from .player import Player
from .question import ALL_CATEGORIES, QuestionView
from .star import StarView
from .twist import PlayerModifier, TwistCard


class GamePhase(str, Enum):
    SPINNING = "spinning"
    TWIST = "twist"
    TWIST_CHOICE = "twist_choice"
    TWIST_BONUS_QUESTION = "twist_bonus_question"
    QUESTION = "question"
    COUNTDOWN = "countdown"
    RESULTS = "results"
    MOVING = "moving"
    SELECT_STAR = "select_star"
    REVEALING_STAR = "revealing_star"
    FINISHED = "finished"


class GameSettings(BaseModel):
    """Configuration produite par l'écran de préparation, consommée une seule fois au démarrage."""
    human_player_count: int = Field(1, ge=0, le=8)
    human_player_names: List[str] = Field(default_factory=lambda: [""])
    automated_player_count: int = Field(1, ge=0, le=6)
    selected_categories: List[str] = Field(default_factory=lambda: list(ALL_CATEGORIES))
    custom_category_text: str = ""


DEFAULT_GAME_SETTINGS = GameSettings()


class RoundStep(BaseModel):
    """Ligne du résumé de points après le compte à rebours."""
    player_id: str
    is_correct: bool
    is_acting: bool
    steps: int


class MovementCue(BaseModel):
    """Indice d'animation : déplacement d'un joueur et portes franchies."""
    player_id: str
    from_position: int
    to_position: int
    gates: List[int] = Field(default_factory=list)


class PendingChoice(BaseModel):
    """Choix attendu après une carte twist (cibles proposables)."""
    kind: str
    options: List[Any] = Field(default_factory=list)


class RankingEntry(BaseModel):
    player_id: str
    name: str
    score: int
    stars_collected: int


class GameSnapshot(BaseModel):
    session_id: str
    phase: GamePhase
    turn: int
    current_player_id: Optional[str] = None
    players: List[Player]
    stars: List[StarView]
    modifiers: List[PlayerModifier] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    wheel_result: Optional[Any] = None
    question: Optional[QuestionView] = None
    answered: Dict[str, bool] = Field(default_factory=dict)
    round_steps: List[RoundStep] = Field(default_factory=list)
    movement: Optional[MovementCue] = None
    gates_pending: List[int] = Field(default_factory=list)
    selecting_star_player_id: Optional[str] = None
    revealing_star_id: Optional[int] = None
    active_twist: Optional[TwistCard] = None
    pending_choice: Optional[PendingChoice] = None
    peeked_star_id: Optional[int] = None
    chosen_difficulty: Optional[int] = None
    extra_turn_pending: bool = False
    order_reversed: bool = False
    reverse_turns_remaining: int = 0
    last_message: Optional[str] = None
    muted: bool = False
    questions_remaining: int = 0
    winner_id: Optional[str] = None
    ranking: List[RankingEntry] = Field(default_factory=list)
    end_reason: Optional[str] = None
