"""
Models / twist.py
Rôle:
- Définir les cartes twist (catalogue statique de 30 cartes, 20 effets) et les modificateurs joueurs.

Notes:
- `TwistEffect` est un ensemble fermé : le moteur de résolution associe un handler à chaque membre
  et vérifie cette couverture au chargement du module.
- `PlayerModifier.value` porte la catégorie (category_master) ou le multiplicateur (double_next).
"""
from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional, Union

TargetScope = Literal["self", "others", "choose", "all", "random"]
ModifierType = Literal["double_next", "shield", "frozen", "category_master"]


class TwistEffect(str, Enum):
    MOVE_BACK_GATE = "move_back_gate"
    OTHERS_BACK_GATE = "others_back_gate"
    FREE_STAR = "free_star"
    STEAL_STAR = "steal_star"
    BONUS_QUESTION = "bonus_question"
    INSTANT_POINTS = "instant_points"
    UPGRADE_ZERO_STAR = "upgrade_zero_star"
    EXTRA_TURN = "extra_turn"
    SWAP_POSITIONS = "swap_positions"
    DOUBLE_NEXT = "double_next"
    TELEPORT_GATE = "teleport_gate"
    FREEZE_PLAYER = "freeze_player"
    REVERSE_ORDER = "reverse_order"
    STAR_PEEK = "star_peek"
    SHIELD = "shield"
    EVERYONE_MOVES = "everyone_moves"
    RANDOM_TELEPORT = "random_teleport"
    CATEGORY_MASTER = "category_master"
    DIFFICULTY_CHOICE = "difficulty_choice"
    POINTS_SWAP = "points_swap"


class ChoiceKind(str, Enum):
    """Type de cible demandé à la présentation pour une carte `requires_choice`."""
    PLAYER = "player"
    GATE = "gate"
    DIFFICULTY = "difficulty"
    CATEGORY = "category"
    STAR = "star"
    STAR_PEEK = "star_peek"


class TwistCard(BaseModel):
    """Carte twist (contenu statique, chargé depuis data/twists.json)."""
    id: str
    title: str
    description: str = ""
    emoji: str = ""
    effect: TwistEffect
    value: Optional[int] = None
    target: TargetScope = "self"
    positive: bool = True
    requires_choice: bool = False
    requires_question: bool = False

    model_config = ConfigDict(frozen=True)


class PlayerModifier(BaseModel):
    """Effet temporisé sur un joueur (au plus un par couple joueur/type)."""
    player_id: str
    type: ModifierType
    turns_remaining: int
    value: Optional[Union[int, str]] = None
