import json
import random
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from startrail.config.settings import settings
from startrail.services import question_provider
from startrail.services.question_provider import QuestionServiceError

BANK = {
    "history": [
        {"text": "H1?", "correct": "a", "wrong": ["b", "c", "d"], "difficulty": 1},
        {"text": "H2?", "correct": "a", "wrong": ["b", "c", "d"], "difficulty": 2},
    ],
    "science": [
        {"text": "S1?", "correct": "a", "wrong": ["b", "c", "d"], "difficulty": 3},
    ],
}


def _llm_item(text="Q?", difficulty=2, category="science", correct=1):
    return {
        "text": text,
        "answers": [{"text": f"A{i}", "is_correct": i < correct} for i in range(4)],
        "difficulty": difficulty,
        "category": category,
    }


@pytest.fixture
def client_stub(monkeypatch):
    stub = SimpleNamespace(chat=Mock())
    monkeypatch.setattr(question_provider, "CLIENT", stub)
    return stub


def test_builtin_questions_clone_up_to_count():
    questions = question_provider.builtin_questions(["history"], 5, rng=random.Random(1), bank=BANK)

    assert len(questions) == 5
    assert len({q.id for q in questions}) == 5
    assert {q.category for q in questions} == {"history"}
    assert {q.text for q in questions} == {"H1?", "H2?"}
    for q in questions:
        assert sum(a.is_correct for a in q.answers) == 1
        assert len({a.id for a in q.answers}) == 4


def test_builtin_questions_unknown_categories_use_whole_bank():
    questions = question_provider.builtin_questions(["bible"], 3, rng=random.Random(1), bank=BANK)

    assert {q.text for q in questions} == {"H1?", "H2?", "S1?"}


def test_shipped_bank_covers_every_category_and_difficulty():
    bank = question_provider.load_bank()

    for category in ("history", "sport", "bible", "culture", "geography", "science", "other"):
        assert {t["difficulty"] for t in bank[category]} == {1, 2, 3, 4, 5}


def test_generate_questions_drops_invalid_items(client_stub):
    payload = {"questions": [_llm_item("ok?"), _llm_item("two right?", correct=2), _llm_item("bad level?", difficulty=9)]}
    client_stub.chat.return_value = {"message": {"content": json.dumps(payload)}}

    questions = question_provider.generate_questions(["science"], "", 10, rng=random.Random(2))

    assert [q.text for q in questions] == ["ok?"]
    client_stub.chat.assert_called_once()
    sent = client_stub.chat.call_args.args[0]
    assert sent["format"] == "json"
    assert "science" in sent["messages"][1]["content"]


def test_generate_questions_raises_without_valid_item(client_stub):
    client_stub.chat.return_value = {"message": {"content": "not json at all"}}

    with pytest.raises(QuestionServiceError):
        question_provider.generate_questions(["science"], "", 10)


def test_fetch_questions_falls_back_to_bank(client_stub, monkeypatch):
    monkeypatch.setattr(settings, "LLM_PROVIDER", "ollama")
    monkeypatch.setattr(question_provider, "load_bank", lambda path=None: BANK)
    client_stub.chat.side_effect = QuestionServiceError("service down")

    questions = question_provider.fetch_questions(["science"], "dinosaurs", 4, rng=random.Random(3))

    assert len(questions) == 4
    assert {q.category for q in questions} == {"science"}
    client_stub.chat.assert_called_once()


def test_fetch_questions_builtin_provider_skips_llm(client_stub, monkeypatch):
    monkeypatch.setattr(settings, "LLM_PROVIDER", "builtin")

    questions = question_provider.fetch_questions(["history", "sport"], "", 30, rng=random.Random(4))

    assert len(questions) == 30
    assert {q.category for q in questions} <= {"history", "sport"}
    client_stub.chat.assert_not_called()
