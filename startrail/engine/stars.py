"""
Star set.
Builds the shuffled ten-star board and applies the award mutation shared by the
normal reveal and the free-star twist.
"""
from __future__ import annotations

import random
from typing import Iterable, List, Optional

from startrail.models.player import Player
from startrail.models.star import Star, StarView

STAR_POINT_VALUES = (0, 50, 50, 100, 100, 150, 150, 200, 200, 250)
UPGRADED_ZERO_VALUE = 250


def create_initial_stars(rng: Optional[random.Random] = None) -> List[Star]:
    """Mélange les valeurs puis numérote les étoiles 0..9 (valeurs inconnues des joueurs)."""
    values = list(STAR_POINT_VALUES)
    (rng or random).shuffle(values)
    return [Star(id=index, value=value) for index, value in enumerate(values)]


def unearned(stars: Iterable[Star]) -> List[Star]:
    return [s for s in stars if not s.earned]


def owned_by(stars: Iterable[Star], player_id: str) -> List[Star]:
    return [s for s in stars if s.earned and s.owner_id == player_id]


def award_star(star: Star, player: Player) -> None:
    """Attribue une étoile non gagnée : score += valeur, compteur += 1, propriétaire fixé."""
    if star.earned:
        raise ValueError(f"star {star.id} already earned")
    star.earned = True
    star.owner_id = player.id
    player.score += star.value
    player.stars_collected += 1


def star_view(star: Star, reveal: bool = False) -> StarView:
    """Vue publique : la valeur n'apparaît que pour une étoile gagnée ou explicitement révélée."""
    return StarView(
        id=star.id,
        earned=star.earned,
        owner_id=star.owner_id,
        value=star.value if (star.earned or reveal) else None,
    )
