"""
Service: twist_deck.py
Rôle:
- Charger en mémoire le catalogue statique des cartes twist (data/twists.json).
- Fournir une pioche par partie : tirage uniforme parmi les cartes non utilisées,
  remélange silencieux quand toutes ont été utilisées.

Fichier source:
- startrail/data/twists.json → {"twists":[{id,title,description,emoji,effect,value,target,positive,requires_choice,requires_question}]}
"""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import List, Optional, Set

from startrail.config.settings import settings
from startrail.models.twist import TwistCard
from .io_utils import read_json

logger = logging.getLogger(__name__)

TWISTS_FILENAME = "twists.json"


def load_twist_catalog(path: Optional[Path] = None) -> List[TwistCard]:
    """Charge et valide le catalogue (liste vide si fichier absent)."""
    source = path or Path(settings.DATA_DIR) / TWISTS_FILENAME
    raw = read_json(source, {"twists": []})
    cards = [TwistCard.model_validate(item) for item in raw.get("twists", [])]
    logger.debug("Twist catalog loaded", extra={"twist_count": len(cards), "twist_path": str(source)})
    return cards


class TwistDeck:
    """Pioche de cartes twist d'une partie (copie mélangée + ensemble des ids utilisés)."""

    def __init__(self, cards: List[TwistCard], rng: Optional[random.Random] = None):
        if not cards:
            raise ValueError("twist deck needs at least one card")
        self._catalog = list(cards)
        self._rng = rng or random.Random()
        self._cards: List[TwistCard] = []
        self.used: Set[str] = set()
        self.reset()

    def reset(self) -> None:
        """Nouvelle copie mélangée du catalogue, aucun id utilisé."""
        self._cards = list(self._catalog)
        self._rng.shuffle(self._cards)
        self.used.clear()

    def draw(self) -> TwistCard:
        """Tire une carte non utilisée (remélange d'abord si la pioche est épuisée)."""
        if self.remaining == 0:
            logger.info("Twist deck exhausted, reshuffling", extra={"deck_size": len(self._catalog)})
            self.reset()
        available = [c for c in self._cards if c.id not in self.used]
        return self._rng.choice(available)

    def mark_used(self, twist_id: str) -> None:
        self.used.add(twist_id)

    @property
    def remaining(self) -> int:
        return sum(1 for c in self._cards if c.id not in self.used)

    def __len__(self) -> int:
        return len(self._catalog)
