"""
Service: question_provider.py
- Fournit le stock de questions d'une partie (catégories choisies, indice libre, nombre voulu).
- Génération via LLM (Ollama /api/chat, sortie JSON) si `LLM_PROVIDER == "ollama"`.
- Repli sur la banque embarquée (data/questions.json) en cas d'échec ou de configuration absente.

Fonctions principales:
- generate_questions(categories, custom_text, count): appel LLM + validation, sans boucle de retry.
- builtin_questions(categories, count, rng): banque statique, clonée avec de nouveaux ids jusqu'à `count`.
- fetch_questions(...): point d'entrée utilisé au démarrage d'une partie (jamais d'exception).
"""
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from startrail.config.settings import settings
from startrail.models.question import ALL_CATEGORIES, AnswerOption, Question
from .io_utils import read_json

logger = logging.getLogger(__name__)

QUESTIONS_FILENAME = "questions.json"


class QuestionServiceError(RuntimeError):
    """Erreur encapsulant un échec de génération des questions."""


class QuestionClient:
    """
    Client HTTP pour le LLM générateur de questions.
    - Aucune relance automatique : un échec bascule directement sur la banque embarquée.
    - Journalise chaque requête avec un identifiant de corrélation.
    """

    def __init__(
        self,
        chat_endpoint: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[Tuple[float, float]] = None,
    ) -> None:
        self.chat_endpoint = chat_endpoint
        self.session = session or self._build_session()
        self.timeout = timeout or (5.0, settings.LLM_TIMEOUT_SECONDS)

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=Retry(total=0))
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def chat(self, payload: Dict[str, Any], *, request_id: str) -> Dict[str, Any]:
        try:
            logger.debug(
                "Question request start",
                extra={"llm_url": self.chat_endpoint, "llm_request_id": request_id},
            )
            response = self.session.post(self.chat_endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout as exc:
            logger.warning(
                "Question request timeout",
                extra={"llm_url": self.chat_endpoint, "llm_request_id": request_id},
            )
            raise QuestionServiceError("question request timed out") from exc
        except requests.RequestException as exc:
            logger.warning(
                "Question request failed",
                exc_info=True,
                extra={"llm_url": self.chat_endpoint, "llm_request_id": request_id},
            )
            raise QuestionServiceError("question request failed") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise QuestionServiceError("invalid JSON payload from question service") from exc


CLIENT = QuestionClient(settings.LLM_ENDPOINT)

SYSTEM_PROMPT = (
    "You write family-friendly trivia questions for players aged 8 to 14. "
    "Questions must be clear, accurate and varied. "
    "Answer with JSON only, no extra text."
)


def _build_prompt(categories: Sequence[str], custom_text: str, count: int) -> str:
    topics = ", ".join(categories)
    if custom_text:
        topics += f", {custom_text}"
    return (
        f"Write {count} trivia questions about: {topics}.\n"
        "Each question has a text, exactly 4 answers (one correct, three plausible but wrong), "
        "a difficulty from 1 (very easy) to 5 (very hard) and a category among: "
        f"{', '.join(categories)}.\n"
        "Spread the questions evenly across difficulties.\n"
        'Format: {"questions":[{"text":"...","answers":[{"text":"...","is_correct":true},'
        '{"text":"...","is_correct":false},{"text":"...","is_correct":false},'
        '{"text":"...","is_correct":false}],"difficulty":1,"category":"history"}]}'
    )


def _parse_item(item: Dict[str, Any], rng: random.Random) -> Optional[Question]:
    """Transforme une entrée LLM en Question (None si invalide)."""
    try:
        answers = [
            AnswerOption(id=uuid4().hex, text=str(a["text"]), is_correct=bool(a.get("is_correct")))
            for a in item.get("answers") or []
        ]
        rng.shuffle(answers)
        return Question(
            id=uuid4().hex,
            text=str(item.get("text") or item.get("question") or ""),
            answers=answers,
            difficulty=int(item.get("difficulty", 0)),
            category=item.get("category"),
        )
    except (KeyError, TypeError, ValueError, ValidationError):
        return None


def generate_questions(
    categories: Sequence[str],
    custom_text: str = "",
    count: int = 100,
    *,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """
    Demande `count` questions au LLM et retourne celles qui passent la validation.
    Lève QuestionServiceError si la réponse est inexploitable (aucune question valide).
    """
    rng = rng or random.Random()
    request_id = f"questions-{uuid4().hex}"
    data = CLIENT.chat(
        {
            "model": settings.LLM_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _build_prompt(categories, custom_text, count)},
            ],
            "format": "json",
            "options": {"temperature": 0.8},
            "stream": False,
        },
        request_id=request_id,
    )
    # Ollama /api/chat renvoie {"message":{"content":"<json>"}}
    content = (data.get("message") or {}).get("content") or data.get("response") or ""
    try:
        parsed = json.loads(content) if isinstance(content, str) else content
    except json.JSONDecodeError as exc:
        raise QuestionServiceError("question payload is not JSON") from exc

    items = parsed.get("questions") if isinstance(parsed, dict) else None
    questions = [q for q in (_parse_item(i, rng) for i in items or []) if q is not None]
    if not questions:
        raise QuestionServiceError("no valid question in payload")

    dropped = len(items or []) - len(questions)
    logger.info(
        "Questions generated",
        extra={"llm_request_id": request_id, "question_count": len(questions), "dropped": dropped},
    )
    rng.shuffle(questions)
    return questions[:count]


def load_bank(path: Optional[Path] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Banque embarquée : {category: [{text, correct, wrong[3], difficulty}]}."""
    source = path or Path(settings.DATA_DIR) / QUESTIONS_FILENAME
    raw = read_json(source, {})
    return raw.get("categories", {})


def _from_template(template: Dict[str, Any], category: str, rng: random.Random) -> Question:
    answers = [AnswerOption(id=uuid4().hex, text=template["correct"], is_correct=True)]
    answers += [AnswerOption(id=uuid4().hex, text=w) for w in template["wrong"]]
    rng.shuffle(answers)
    return Question(
        id=uuid4().hex,
        text=template["text"],
        answers=answers,
        difficulty=template["difficulty"],
        category=category,
    )


def _clone(question: Question, rng: random.Random) -> Question:
    answers = [a.model_copy(update={"id": uuid4().hex}) for a in question.answers]
    rng.shuffle(answers)
    return question.model_copy(update={"id": uuid4().hex, "answers": answers})


def builtin_questions(
    categories: Sequence[str],
    count: int,
    *,
    rng: Optional[random.Random] = None,
    bank: Optional[Dict[str, List[Dict[str, Any]]]] = None,
) -> List[Question]:
    """
    Questions de la banque embarquée pour les catégories demandées (toutes si aucune ne correspond).
    Si la banque est plus petite que `count`, les questions sont clonées (nouveaux ids, réponses remélangées).
    """
    rng = rng or random.Random()
    bank = bank if bank is not None else load_bank()
    selected = [c for c in categories if bank.get(c)] or [c for c in ALL_CATEGORIES if bank.get(c)]

    questions = [_from_template(t, c, rng) for c in selected for t in bank[c]]
    if not questions:
        return []
    rng.shuffle(questions)

    base = len(questions)
    index = 0
    while len(questions) < count:
        questions.append(_clone(questions[index % base], rng))
        index += 1
    return questions[:count]


def fetch_questions(
    categories: Sequence[str],
    custom_text: str = "",
    count: Optional[int] = None,
    *,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """
    Stock de questions pour une nouvelle partie.
    - provider "ollama" : tentative unique via LLM, repli sur la banque en cas d'échec.
    - autre provider : banque embarquée directement.
    """
    wanted = count or settings.QUESTION_COUNT
    if settings.LLM_PROVIDER == "ollama":
        try:
            return generate_questions(categories, custom_text, wanted, rng=rng)
        except QuestionServiceError as exc:
            logger.warning(
                "Question generation failed, using built-in bank",
                extra={"error": str(exc), "categories": list(categories)},
            )
    return builtin_questions(categories, wanted, rng=rng)
