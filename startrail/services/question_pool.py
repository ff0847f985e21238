"""
Service: question_pool.py
Rôle:
- Servir les questions d'une partie, chacune au plus une fois.
- Sélection par difficulté avec repli en cascade :
  1. difficulté exacte (+ catégorie imposée éventuelle),
  2. difficultés voisines [d-1, d+1, d-2, d+2] bornées à [1, 5],
  3. n'importe quelle question restante de la catégorie imposée,
  4. n'importe quelle question restante.
- `None` uniquement quand tout le stock est consommé.
"""
from __future__ import annotations

import random
from typing import Callable, Iterable, List, Optional, Set

from startrail.models.question import Question

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5


def fallback_difficulties(difficulty: int) -> List[int]:
    """Ordre de repli des difficultés voisines (hors bornes filtrées)."""
    order = [difficulty - 1, difficulty + 1, difficulty - 2, difficulty + 2]
    return [d for d in order if MIN_DIFFICULTY <= d <= MAX_DIFFICULTY]


class QuestionPool:
    def __init__(self, questions: Iterable[Question], rng: Optional[random.Random] = None):
        self.questions: List[Question] = list(questions)
        self.used: Set[str] = set()
        self._rng = rng or random.Random()

    def _unused(self, predicate: Callable[[Question], bool]) -> List[Question]:
        return [q for q in self.questions if q.id not in self.used and predicate(q)]

    def select_by_difficulty(self, difficulty: int, forced_category: Optional[str] = None) -> Optional[Question]:
        """Choisit, marque comme utilisée et retourne une question (ou None si stock épuisé)."""

        def in_category(q: Question) -> bool:
            return forced_category is None or q.category == forced_category

        candidates = self._unused(lambda q: q.difficulty == difficulty and in_category(q))
        if not candidates:
            for alt in fallback_difficulties(difficulty):
                candidates = self._unused(lambda q, d=alt: q.difficulty == d and in_category(q))
                if candidates:
                    break
        if not candidates:
            candidates = self._unused(in_category)
        if not candidates and forced_category is not None:
            candidates = self._unused(lambda q: True)
        if not candidates:
            return None

        question = self._rng.choice(candidates)
        self.mark_used(question.id)
        return question

    def mark_used(self, question_id: str) -> None:
        self.used.add(question_id)

    @property
    def remaining(self) -> int:
        return sum(1 for q in self.questions if q.id not in self.used)

    def has_more(self) -> bool:
        return self.remaining > 0
