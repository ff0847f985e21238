import random

import pytest

from startrail.models.question import AnswerOption, Question
from startrail.models.twist import TwistCard, TwistEffect
from startrail.services.game_session import create_game


def _question(qid: str, difficulty: int = 1, category: str = "history") -> Question:
    return Question(
        id=qid,
        text=f"Question {qid}?",
        answers=[
            AnswerOption(id=f"{qid}-a", text="Right", is_correct=True),
            AnswerOption(id=f"{qid}-b", text="Wrong 1"),
            AnswerOption(id=f"{qid}-c", text="Wrong 2"),
            AnswerOption(id=f"{qid}-d", text="Wrong 3"),
        ],
        difficulty=difficulty,
        category=category,
    )


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def questions():
    """4 questions par difficulté et par catégorie (history, science)."""
    return [
        _question(f"{cat}-{d}-{i}", difficulty=d, category=cat)
        for cat in ("history", "science")
        for d in range(1, 6)
        for i in range(4)
    ]


@pytest.fixture
def make_card():
    def _factory(effect: TwistEffect, value=None, *, positive=True, target="self", requires_choice=False):
        return TwistCard(
            id=f"test-{effect.value}",
            title=effect.value.replace("_", " ").title(),
            effect=effect,
            value=value,
            target=target,
            positive=positive,
            requires_choice=requires_choice,
            requires_question=effect is TwistEffect.BONUS_QUESTION,
        )

    return _factory


@pytest.fixture
def new_game(questions):
    """Fabrique de parties déterministes (rng initialisé) ; humains d'abord, robots ensuite."""

    def _factory(humans: int = 2, bots: int = 0, seed: int = 7, pool=None, categories=None):
        raw = {
            "human_player_count": humans,
            "human_player_names": [],
            "automated_player_count": bots,
        }
        if categories is not None:
            raw["selected_categories"] = categories
        return create_game(
            raw,
            questions if pool is None else pool,
            session_id="test-session",
            rng=random.Random(seed),
        )

    return _factory
