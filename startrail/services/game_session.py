"""
Service: game_session.py
Rôle :
- Porter l'état complet d'une partie (joueurs, étoiles, modificateurs, pioche, questions)
  et la machine à états tour/phase qui le fait évoluer.
- Accepter les intentions de la présentation (spin, réponse, validation, choix de cible, étoile)
  et exposer des snapshots en lecture seule.

Phases :
  spinning → {twist | question} → countdown → results → moving → [select_star → revealing_star]*
  → spinning (joueur suivant) | finished
  twist → twist_choice → tour suivant
  twist → twist_bonus_question → (moving | tour suivant)

Timers :
- Au plus un timer en attente (`pending_timer`), identifié par un jeton croissant.
- Toute entrée de phase annule le timer en attente ; `fire(token)` sur un jeton périmé ne fait rien.
- Le `SessionRunner` (asyncio) arme le timer ; les tests appellent `run_pending()` directement.

Journal :
- `log_event` ajoute une entrée `GameEvent` au journal borné (MAX_EVENTS), rediffusé en WS
  (indices sonores / timeline de la présentation).
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from pydantic import ValidationError

from startrail.config.settings import settings
from startrail.engine import board
from startrail.engine.errors import InvalidIntent, InvalidTarget, UnknownPlayer
from startrail.engine.stars import award_star, create_initial_stars, star_view, unearned
from startrail.engine.twists import (
    ChoiceTarget,
    Directive,
    TwistContext,
    TwistOutcome,
    auto_target,
    choice_kind_for,
    resolve_choice,
    resolve_immediate,
    valid_targets,
)
from startrail.models.event import GameEvent
from startrail.models.game import (
    DEFAULT_GAME_SETTINGS,
    GamePhase,
    GameSettings,
    GameSnapshot,
    MovementCue,
    PendingChoice,
    RankingEntry,
    RoundStep,
)
from startrail.models.player import AUTOMATED_AVATARS, HUMAN_AVATARS, Player
from startrail.models.question import ALL_CATEGORIES, PublicAnswer, Question, QuestionView
from startrail.models.star import Star
from startrail.models.twist import TwistCard
from .modifier_store import ModifierStore
from .question_pool import QuestionPool
from .twist_deck import TwistDeck, load_twist_catalog

logger = logging.getLogger(__name__)

TWIST_FACE = "twist"
WHEEL_FACES: Tuple[Union[int, str], ...] = (1, TWIST_FACE, 2, 3, TWIST_FACE, 4, 5)

END_ALL_STARS = "all_stars_earned"
END_QUESTIONS = "questions_exhausted"

WheelFace = Union[int, str]


class TimerAction(str, Enum):
    """Actions différées de la machine à états (une méthode `_on_<valeur>` par membre)."""
    AUTO_SPIN = "auto_spin"
    BOT_ANSWER = "bot_answer"
    START_COUNTDOWN = "start_countdown"
    COMPUTE_RESULTS = "compute_results"
    AUTO_PROCEED = "auto_proceed"
    MOVE_NEXT = "move_next"
    AUTO_SELECT_STAR = "auto_select_star"
    COMMIT_STAR = "commit_star"
    AUTO_CONFIRM_TWIST = "auto_confirm_twist"
    AUTO_CHOOSE_TARGET = "auto_choose_target"
    END_PEEK = "end_peek"
    BOT_BONUS_ANSWER = "bot_bonus_answer"
    BONUS_FEEDBACK_DONE = "bonus_feedback_done"


@dataclass
class PendingTimer:
    token: int
    delay: float
    action: TimerAction


def normalize_settings(raw: Any) -> GameSettings:
    """
    Valide la configuration de démarrage.
    Toute configuration invalide (ou sans joueur) retombe sur la configuration par défaut ;
    les catégories inconnues sont ignorées, une liste vide vaut "toutes".
    """
    if isinstance(raw, GameSettings):
        candidate = raw
    else:
        try:
            candidate = GameSettings.model_validate(raw or {})
        except ValidationError:
            logger.warning("Invalid game settings, using defaults")
            return DEFAULT_GAME_SETTINGS.model_copy(deep=True)

    if candidate.human_player_count + candidate.automated_player_count == 0:
        logger.warning("Game settings without players, using defaults")
        return DEFAULT_GAME_SETTINGS.model_copy(deep=True)

    categories = [c for c in candidate.selected_categories if c in ALL_CATEGORIES]
    return candidate.model_copy(update={"selected_categories": categories or list(ALL_CATEGORIES)})


def build_players(game_settings: GameSettings) -> List[Player]:
    """Humains d'abord puis automatiques, placés sur les portes à tour de rôle selon leur rang."""
    players: List[Player] = []
    names = game_settings.human_player_names
    for i in range(game_settings.human_player_count):
        name = (names[i] if i < len(names) else "").strip() or f"Player {i + 1}"
        players.append(
            Player(
                id=f"human-{i}",
                name=name,
                kind="human",
                position=board.start_gate(len(players)),
                avatar=HUMAN_AVATARS[i % len(HUMAN_AVATARS)],
            )
        )
    for i in range(game_settings.automated_player_count):
        players.append(
            Player(
                id=f"bot-{i}",
                name=f"Robot {i + 1}",
                kind="automated",
                position=board.start_gate(len(players)),
                avatar=AUTOMATED_AVATARS[i % len(AUTOMATED_AVATARS)],
            )
        )
    return players


@dataclass
class GameSession:
    session_id: str
    players: List[Player]
    stars: List[Star]
    pool: QuestionPool
    deck: TwistDeck
    categories: List[str] = field(default_factory=lambda: list(ALL_CATEGORIES))
    rng: random.Random = field(default_factory=random.Random)
    max_events: int = field(default_factory=lambda: settings.MAX_EVENTS)

    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    modifiers: ModifierStore = field(default_factory=ModifierStore, init=False)
    events: List[GameEvent] = field(default_factory=list, init=False, repr=False)
    created_at: float = field(default_factory=time.time, init=False)

    phase: GamePhase = field(default=GamePhase.SPINNING, init=False)
    current_index: int = field(default=0, init=False)
    turn: int = field(default=1, init=False)
    wheel_result: Optional[WheelFace] = field(default=None, init=False)
    question: Optional[Question] = field(default=None, init=False)
    answers: Dict[str, str] = field(default_factory=dict, init=False)
    results_revealed: bool = field(default=False, init=False)
    round_steps: List[RoundStep] = field(default_factory=list, init=False)
    movement_queue: List[Tuple[str, int]] = field(default_factory=list, init=False)
    movement: Optional[MovementCue] = field(default=None, init=False)
    gates_pending: List[int] = field(default_factory=list, init=False)
    selecting_star_player_id: Optional[str] = field(default=None, init=False)
    revealing_star_id: Optional[int] = field(default=None, init=False)
    active_twist: Optional[TwistCard] = field(default=None, init=False)
    pending_choice: Optional[PendingChoice] = field(default=None, init=False)
    peeked_star_id: Optional[int] = field(default=None, init=False)
    bonus_steps: int = field(default=0, init=False)
    chosen_difficulty: Optional[int] = field(default=None, init=False)
    extra_turn_pending: bool = field(default=False, init=False)
    order_reversed: bool = field(default=False, init=False)
    reverse_turns_remaining: int = field(default=0, init=False)
    last_message: Optional[str] = field(default=None, init=False)
    muted: bool = field(default=False, init=False)
    winner_id: Optional[str] = field(default=None, init=False)
    ranking: List[RankingEntry] = field(default_factory=list, init=False)
    end_reason: Optional[str] = field(default=None, init=False)

    pending_timer: Optional[PendingTimer] = field(default=None, init=False)
    _token: int = field(default=0, init=False, repr=False)

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------
    def log_event(self, kind: str, payload: Optional[Dict[str, Any]] = None) -> GameEvent:
        """Ajoute une entrée au journal borné (les plus anciennes sont évincées)."""
        with self._lock:
            entry = GameEvent(id=uuid4().hex, kind=kind, payload=payload or {}, ts=time.time())
            self.events.append(entry)
            overflow = len(self.events) - self.max_events
            if overflow > 0:
                del self.events[:overflow]
            return entry

    def events_since(self, since_ts: Optional[float] = None, limit: Optional[int] = None) -> List[GameEvent]:
        with self._lock:
            items = [e for e in self.events if since_ts is None or e.ts > since_ts]
        if limit is not None and limit >= 0:
            items = items[-limit:] if limit else []
        return items

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _schedule(self, action: TimerAction, delay: float) -> PendingTimer:
        self._token += 1
        self.pending_timer = PendingTimer(token=self._token, delay=max(0.0, delay), action=action)
        return self.pending_timer

    def _cancel_timer(self) -> None:
        self.pending_timer = None

    def _think_delay(self, low: float, high: float) -> float:
        return self.rng.uniform(low, high)

    def fire(self, token: int) -> bool:
        """Exécute l'action du timer si `token` est encore le jeton courant (sinon no-op)."""
        with self._lock:
            timer = self.pending_timer
            if timer is None or timer.token != token:
                return False
            self.pending_timer = None
            _TIMER_HANDLERS[timer.action](self)
            return True

    def run_pending(self) -> Optional[TimerAction]:
        """Déclenche immédiatement le timer en attente (tests / outils). Retourne l'action exécutée."""
        with self._lock:
            timer = self.pending_timer
            if timer is None:
                return None
            self.fire(timer.token)
            return timer.action

    def _enter(self, phase: GamePhase) -> None:
        self._cancel_timer()
        self.phase = phase

    # ------------------------------------------------------------------
    # Accès
    # ------------------------------------------------------------------
    @property
    def current_player(self) -> Player:
        return self.players[self.current_index]

    def player(self, player_id: Optional[str]) -> Player:
        for p in self.players:
            if p.id == player_id:
                return p
        raise UnknownPlayer(f"unknown player {player_id!r}")

    def _star(self, star_id: Optional[int]) -> Star:
        for s in self.stars:
            if s.id == star_id:
                return s
        raise InvalidTarget(f"unknown star {star_id!r}")

    def _active_question(self) -> Question:
        if self.question is None:
            raise InvalidIntent("no active question")
        return self.question

    def _active_twist(self) -> TwistCard:
        if self.active_twist is None:
            raise InvalidIntent("no active twist")
        return self.active_twist

    def _require_phase(self, *phases: GamePhase) -> None:
        if self.phase not in phases:
            raise InvalidIntent(f"not allowed during phase {self.phase.value}")

    def _require_human(self, player: Player) -> None:
        if player.is_automated:
            raise InvalidIntent("automated players act on their own")

    def _require_current(self, player_id: Optional[str]) -> Player:
        player = self.player(player_id)
        if player.id != self.current_player.id:
            raise InvalidIntent("not this player's turn")
        self._require_human(player)
        return player

    def _all_stars_earned(self) -> bool:
        return not unearned(self.stars)

    # ------------------------------------------------------------------
    # Démarrage / tour
    # ------------------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            self.log_event(
                "game_created",
                {"players": [p.id for p in self.players], "categories": list(self.categories)},
            )
            self._start_turn()

    def _clear_turn_state(self) -> None:
        self.wheel_result = None
        self.question = None
        self.answers = {}
        self.results_revealed = False
        self.round_steps = []
        self.movement_queue = []
        self.movement = None
        self.gates_pending = []
        self.selecting_star_player_id = None
        self.revealing_star_id = None
        self.active_twist = None
        self.pending_choice = None
        self.peeked_star_id = None
        self.bonus_steps = 0

    def _start_turn(self) -> None:
        self._enter(GamePhase.SPINNING)
        acting = self.current_player
        self.log_event("turn_started", {"turn": self.turn, "player_id": acting.id})
        if acting.is_automated:
            self._schedule(TimerAction.AUTO_SPIN, settings.AUTO_SPIN_SECONDS)

    def _advance_turn(self) -> None:
        """
        Passage au tour suivant :
        - tour supplémentaire : même joueur, ni tick ni décompte d'inversion ;
        - sinon décompte de l'inversion (le tour qui ramène le compteur à 0 reste inversé),
          index suivant, saut des joueurs gelés (borné par le nombre de joueurs : si tous sont
          gelés, le joueur suivant joue une fois dégelé), tick unique.
        """
        if self.phase is GamePhase.FINISHED:
            return
        self._clear_turn_state()
        self.turn += 1

        if self.extra_turn_pending:
            self.extra_turn_pending = False
            self._start_turn()
            return

        step = -1 if self.order_reversed else 1
        if self.reverse_turns_remaining > 0:
            self.reverse_turns_remaining -= 1
            if self.reverse_turns_remaining == 0:
                self.order_reversed = False

        count = len(self.players)
        index = (self.current_index + step) % count
        skips = 0
        while skips < count and self.modifiers.is_frozen(self.players[index].id):
            skipped = self.players[index]
            self.modifiers.remove(skipped.id, "frozen")
            self.log_event("turn_skipped", {"player_id": skipped.id, "reason": "frozen"})
            index = (index + step) % count
            skips += 1

        for expired in self.modifiers.tick():
            self.log_event("modifier_expired", {"player_id": expired.player_id, "type": expired.type})
        self.current_index = index
        self._start_turn()

    def _finish(self, reason: str) -> None:
        self._enter(GamePhase.FINISHED)
        order = sorted(
            range(len(self.players)),
            key=lambda i: (-self.players[i].score, -self.players[i].stars_collected, i),
        )
        self.ranking = [
            RankingEntry(
                player_id=self.players[i].id,
                name=self.players[i].name,
                score=self.players[i].score,
                stars_collected=self.players[i].stars_collected,
            )
            for i in order
        ]
        self.winner_id = self.ranking[0].player_id if self.ranking else None
        self.end_reason = reason
        self.log_event("game_finished", {"winner_id": self.winner_id, "reason": reason})
        logger.info(
            "Game finished",
            extra={"session_id": self.session_id, "winner_id": self.winner_id, "end_reason": reason},
        )

    # ------------------------------------------------------------------
    # Roue
    # ------------------------------------------------------------------
    def _roll_wheel(self) -> WheelFace:
        return self.rng.choice(WHEEL_FACES)

    def spin(self, player_id: str) -> WheelFace:
        """Intention humaine : lancer la roue pour son propre tour."""
        with self._lock:
            self._require_phase(GamePhase.SPINNING)
            self._require_current(player_id)
            return self._spin()

    def _on_auto_spin(self) -> None:
        if self.phase is GamePhase.SPINNING:
            self._spin()

    def _spin(self) -> WheelFace:
        acting = self.current_player
        face = self._roll_wheel()
        self.wheel_result = face
        self.log_event("spin", {"player_id": acting.id, "result": face})

        if face == TWIST_FACE:
            self._draw_twist()
            return face

        difficulty = int(face)
        if self.chosen_difficulty is not None:
            difficulty = self.chosen_difficulty
            self.chosen_difficulty = None
        self._ask_question(difficulty)
        return face

    # ------------------------------------------------------------------
    # Question
    # ------------------------------------------------------------------
    def _select_question(self, difficulty: int) -> Optional[Question]:
        forced = self.modifiers.forced_category_for(self.current_player.id)
        question = self.pool.select_by_difficulty(difficulty, forced)
        if question is None:
            self._finish(END_QUESTIONS)
        return question

    def _ask_question(self, difficulty: int) -> None:
        question = self._select_question(difficulty)
        if question is None:
            return
        self._enter(GamePhase.QUESTION)
        self.question = question
        self.answers = {}
        self.log_event(
            "question_asked",
            {"question_id": question.id, "difficulty": question.difficulty, "category": question.category},
        )
        self._schedule_next_bot_answer()

    def _schedule_next_bot_answer(self) -> None:
        if any(p.is_automated and p.id not in self.answers for p in self.players):
            self._schedule(
                TimerAction.BOT_ANSWER,
                self._think_delay(settings.BOT_THINK_MIN_SECONDS, settings.BOT_THINK_MAX_SECONDS),
            )

    def answer(self, player_id: str, answer_id: str) -> None:
        """Intention humaine : réponse à la question (tous joueurs) ou à la question bonus (joueur actif)."""
        with self._lock:
            self._require_phase(GamePhase.QUESTION, GamePhase.TWIST_BONUS_QUESTION)
            player = self.player(player_id)
            self._require_human(player)
            if self.phase is GamePhase.TWIST_BONUS_QUESTION:
                if player.id != self.current_player.id:
                    raise InvalidIntent("only the acting player answers the bonus question")
                self._record_bonus_answer(answer_id)
                return
            self._record_answer(player, answer_id)
            if self._everyone_answered():
                self._schedule(TimerAction.START_COUNTDOWN, settings.ANSWER_SETTLE_SECONDS)

    def _validate_answer_id(self, answer_id: str) -> None:
        question = self._active_question()
        if all(a.id != answer_id for a in question.answers):
            raise InvalidTarget(f"unknown answer {answer_id!r}")

    def _record_answer(self, player: Player, answer_id: str) -> None:
        if player.id in self.answers:
            raise InvalidIntent("player already answered")
        self._validate_answer_id(answer_id)
        self.answers[player.id] = answer_id
        self.log_event("answer_submitted", {"player_id": player.id})

    def _everyone_answered(self) -> bool:
        return all(p.id in self.answers for p in self.players)

    def _on_bot_answer(self) -> None:
        if self.phase is not GamePhase.QUESTION or self.question is None:
            return
        bot = next((p for p in self.players if p.is_automated and p.id not in self.answers), None)
        if bot is not None:
            self._record_answer(bot, self.rng.choice(self.question.answers).id)
        if self._everyone_answered():
            self._schedule(TimerAction.START_COUNTDOWN, settings.ANSWER_SETTLE_SECONDS)
        else:
            self._schedule_next_bot_answer()

    def _on_start_countdown(self) -> None:
        self._enter(GamePhase.COUNTDOWN)
        self._schedule(TimerAction.COMPUTE_RESULTS, settings.COUNTDOWN_SECONDS)

    def _on_compute_results(self) -> None:
        """Fin du compte à rebours : pas gagnés par joueur, consommation de double_next si utilisé."""
        question = self._active_question()
        correct_id = question.correct_answer_id()
        acting = self.current_player
        steps: List[RoundStep] = []
        for p in self.players:
            is_correct = self.answers.get(p.id) == correct_id
            is_acting = p.id == acting.id
            earned = 0
            if is_correct:
                base = question.difficulty if is_acting else 1
                multiplier = self.modifiers.multiplier_for(p.id)
                earned = base * multiplier
                if multiplier > 1:
                    self.modifiers.remove(p.id, "double_next")
            steps.append(RoundStep(player_id=p.id, is_correct=is_correct, is_acting=is_acting, steps=earned))

        self._enter(GamePhase.RESULTS)
        self.round_steps = steps
        self.results_revealed = True
        self.log_event(
            "steps_awarded",
            {"correct_answer_id": correct_id, "steps": {s.player_id: s.steps for s in steps}},
        )
        if acting.is_automated:
            self._schedule(TimerAction.AUTO_PROCEED, settings.RESULTS_AUTO_SECONDS)

    def proceed(self) -> None:
        """Intention : quitter l'écran de résultats (déplacements dans l'ordre des joueurs)."""
        with self._lock:
            self._require_phase(GamePhase.RESULTS)
            self._proceed()

    def _on_auto_proceed(self) -> None:
        if self.phase is GamePhase.RESULTS:
            self._proceed()

    def _proceed(self) -> None:
        queue = [(s.player_id, s.steps) for s in self.round_steps if s.steps > 0]
        if not queue:
            self._advance_turn()
            return
        self.movement_queue = queue
        self._enter(GamePhase.MOVING)
        self._move_next()

    # ------------------------------------------------------------------
    # Déplacements / étoiles
    # ------------------------------------------------------------------
    def _move_next(self) -> None:
        """Traite la prochaine entrée de la file (une à la fois) ; sélection d'étoile si porte franchie."""
        if not self.movement_queue:
            self._end_movement()
            return
        self._enter(GamePhase.MOVING)
        player_id, steps = self.movement_queue.pop(0)
        mover = self.player(player_id)
        start = mover.position
        mover.position = board.move(start, steps)
        crossed = board.gates_crossed(start, steps)
        self.movement = MovementCue(player_id=mover.id, from_position=start, to_position=mover.position, gates=crossed)
        self.log_event(
            "player_moved",
            {"player_id": mover.id, "from": start, "to": mover.position, "gates": crossed},
        )
        if crossed and unearned(self.stars):
            self.gates_pending = list(crossed)
            self._open_star_selection(mover)
            return
        self._schedule(TimerAction.MOVE_NEXT, settings.MOVE_STEP_SECONDS)

    def _on_move_next(self) -> None:
        if self.phase is GamePhase.MOVING:
            self._move_next()

    def _end_movement(self) -> None:
        if self._all_stars_earned():
            self._finish(END_ALL_STARS)
            return
        self._advance_turn()

    def _open_star_selection(self, player: Player) -> None:
        self._enter(GamePhase.SELECT_STAR)
        self.selecting_star_player_id = player.id
        self.revealing_star_id = None
        if player.is_automated:
            self._schedule(
                TimerAction.AUTO_SELECT_STAR,
                self._think_delay(settings.STAR_PICK_MIN_SECONDS, settings.STAR_PICK_MAX_SECONDS),
            )

    def select_star(self, player_id: str, star_id: int) -> None:
        """Intention humaine : choix d'une étoile non gagnée après une porte franchie."""
        with self._lock:
            self._require_phase(GamePhase.SELECT_STAR)
            player = self.player(player_id)
            if player.id != self.selecting_star_player_id:
                raise InvalidIntent("this player is not selecting a star")
            self._require_human(player)
            star = self._star(star_id)
            if star.earned:
                raise InvalidTarget("star already earned")
            self._reveal_star(player, star)

    def _on_auto_select_star(self) -> None:
        if self.phase is not GamePhase.SELECT_STAR:
            return
        choices = unearned(self.stars)
        if not choices:
            self._finish(END_ALL_STARS)
            return
        self._reveal_star(self.player(self.selecting_star_player_id), self.rng.choice(choices))

    def _reveal_star(self, player: Player, star: Star) -> None:
        self._enter(GamePhase.REVEALING_STAR)
        self.revealing_star_id = star.id
        self.log_event("star_selected", {"player_id": player.id, "star_id": star.id})
        self._schedule(TimerAction.COMMIT_STAR, settings.STAR_REVEAL_SECONDS)

    def _on_commit_star(self) -> None:
        """Fin du suspense : l'étoile est attribuée puis porte suivante, reprise de la file ou fin."""
        if self.phase is not GamePhase.REVEALING_STAR:
            return
        player = self.player(self.selecting_star_player_id)
        star = self._star(self.revealing_star_id)
        award_star(star, player)
        self.log_event("star_awarded", {"player_id": player.id, "star_id": star.id, "value": star.value})
        if self.gates_pending:
            self.gates_pending.pop(0)

        if self._all_stars_earned():
            self._finish(END_ALL_STARS)
            return
        if self.gates_pending:
            self._open_star_selection(player)
            return
        self.selecting_star_player_id = None
        self.revealing_star_id = None
        self._move_next()

    # ------------------------------------------------------------------
    # Twists
    # ------------------------------------------------------------------
    def _twist_context(self) -> TwistContext:
        return TwistContext(
            acting=self.current_player,
            players=self.players,
            stars=self.stars,
            shielded=self.modifiers.shielded_ids(),
            categories=self.categories,
            rng=self.rng,
        )

    def _draw_twist(self) -> None:
        card = self.deck.draw()
        self.deck.mark_used(card.id)
        self._enter(GamePhase.TWIST)
        self.active_twist = card
        self.last_message = None
        self.log_event("twist_drawn", {"player_id": self.current_player.id, "twist_id": card.id, "effect": card.effect.value})
        if self.current_player.is_automated:
            self._schedule(TimerAction.AUTO_CONFIRM_TWIST, settings.TWIST_AUTO_CONFIRM_SECONDS)

    def confirm_twist(self, player_id: str) -> None:
        """Intention humaine : valider la carte twist tirée."""
        with self._lock:
            self._require_phase(GamePhase.TWIST)
            self._require_current(player_id)
            self._apply_twist()

    def _on_auto_confirm_twist(self) -> None:
        if self.phase is GamePhase.TWIST:
            self._apply_twist()

    def _apply_twist(self) -> None:
        card = self._active_twist()
        ctx = self._twist_context()
        outcome = resolve_immediate(card, ctx)
        if outcome.directive is Directive.AWAIT_CHOICE:
            options = valid_targets(card, ctx)
            if not options:
                self._skip_twist(card, "no valid target")
                return
            kind = choice_kind_for(card.effect)
            self._enter(GamePhase.TWIST_CHOICE)
            self.pending_choice = PendingChoice(kind=kind.value if kind else "", options=options)
            if self.current_player.is_automated:
                self._schedule(
                    TimerAction.AUTO_CHOOSE_TARGET,
                    self._think_delay(settings.TWIST_CHOICE_MIN_SECONDS, settings.TWIST_CHOICE_MAX_SECONDS),
                )
            return
        self._complete_twist(card, outcome)

    def _skip_twist(self, card: TwistCard, reason: str) -> None:
        self.last_message = f"{card.title}: nothing happens."
        self.log_event("twist_skipped", {"twist_id": card.id, "reason": reason})
        self._advance_turn()

    def choose_twist_target(self, player_id: str, target: ChoiceTarget) -> None:
        """Intention humaine : cible d'une carte à choix (joueur, porte, difficulté, catégorie, étoile)."""
        with self._lock:
            self._require_phase(GamePhase.TWIST_CHOICE)
            self._require_current(player_id)
            if self.pending_choice is None:
                raise InvalidIntent("no pending twist choice")
            card = self._active_twist()
            outcome = resolve_choice(card, self._twist_context(), target)
            self._complete_twist(card, outcome)

    def _on_auto_choose_target(self) -> None:
        if self.phase is not GamePhase.TWIST_CHOICE or self.pending_choice is None:
            return
        card = self._active_twist()
        ctx = self._twist_context()
        target = auto_target(card, ctx)
        if target is None:
            self._skip_twist(card, "no valid target")
            return
        self._complete_twist(card, resolve_choice(card, ctx, target))

    def _apply_outcome(self, outcome: TwistOutcome) -> None:
        """Applique le delta calculé par le moteur de twists."""
        for pid, position in outcome.positions.items():
            self.player(pid).position = position % board.TRACK_LENGTH
        for pid, delta in outcome.score_deltas.items():
            self.player(pid).score += delta
        for pid, delta in outcome.star_count_deltas.items():
            self.player(pid).stars_collected += delta
        for star_id, value in outcome.star_values.items():
            self._star(star_id).value = value
        for star_id, owner_id in outcome.star_owners.items():
            self._star(star_id).owner_id = owner_id
        if outcome.awarded_star_id is not None:
            star = self._star(outcome.awarded_star_id)
            award_star(star, self.current_player)
            self.log_event(
                "star_awarded",
                {"player_id": self.current_player.id, "star_id": star.id, "value": star.value},
            )
        if outcome.add_modifier is not None:
            self.modifiers.add(outcome.add_modifier)
        if outcome.extra_turn:
            self.extra_turn_pending = True
        if outcome.reverse_turns:
            self.order_reversed = True
            self.reverse_turns_remaining = outcome.reverse_turns
        if outcome.chosen_difficulty is not None:
            self.chosen_difficulty = outcome.chosen_difficulty

    def _complete_twist(self, card: TwistCard, outcome: TwistOutcome) -> None:
        self._apply_outcome(outcome)
        self.pending_choice = None
        self.last_message = outcome.message or None
        self.log_event(
            "twist_skipped" if outcome.skipped else "twist_applied",
            {"twist_id": card.id, "effect": card.effect.value, "message": outcome.message},
        )

        if self._all_stars_earned():
            self._finish(END_ALL_STARS)
            return

        if outcome.directive is Directive.BONUS_QUESTION:
            self._ask_bonus_question(outcome.bonus_steps)
        elif outcome.directive is Directive.RESPIN:
            self.active_twist = None
            self.wheel_result = None
            self._enter(GamePhase.SPINNING)
            if self.current_player.is_automated:
                self._schedule(TimerAction.AUTO_SPIN, settings.AUTO_SPIN_SECONDS)
        elif outcome.directive is Directive.PEEK:
            self._enter(GamePhase.TWIST_CHOICE)
            self.peeked_star_id = outcome.peek_star_id
            self.log_event("star_peeked", {"player_id": self.current_player.id, "star_id": outcome.peek_star_id})
            self._schedule(TimerAction.END_PEEK, settings.STAR_PEEK_SECONDS)
        else:
            self._advance_turn()

    def _on_end_peek(self) -> None:
        if self.phase is GamePhase.TWIST_CHOICE:
            self._advance_turn()

    # ------------------------------------------------------------------
    # Question bonus
    # ------------------------------------------------------------------
    def _ask_bonus_question(self, steps: int) -> None:
        question = self._select_question(self.rng.randint(1, 5))
        if question is None:
            return
        self._enter(GamePhase.TWIST_BONUS_QUESTION)
        self.question = question
        self.answers = {}
        self.bonus_steps = steps
        self.log_event(
            "question_asked",
            {"question_id": question.id, "difficulty": question.difficulty, "category": question.category, "bonus": True},
        )
        if self.current_player.is_automated:
            self._schedule(
                TimerAction.BOT_BONUS_ANSWER,
                self._think_delay(settings.BOT_THINK_MIN_SECONDS, settings.BOT_THINK_MAX_SECONDS),
            )

    def _record_bonus_answer(self, answer_id: str) -> None:
        acting = self.current_player
        if acting.id in self.answers:
            raise InvalidIntent("bonus question already answered")
        self._validate_answer_id(answer_id)
        self.answers[acting.id] = answer_id
        self.results_revealed = True
        self.log_event("answer_submitted", {"player_id": acting.id, "bonus": True})
        self._schedule(TimerAction.BONUS_FEEDBACK_DONE, settings.BONUS_FEEDBACK_SECONDS)

    def _on_bot_bonus_answer(self) -> None:
        if self.phase is GamePhase.TWIST_BONUS_QUESTION and self.question is not None:
            self._record_bonus_answer(self.rng.choice(self.question.answers).id)

    def _on_bonus_feedback_done(self) -> None:
        question = self._active_question()
        acting = self.current_player
        if self.answers.get(acting.id) == question.correct_answer_id():
            self.round_steps = [RoundStep(player_id=acting.id, is_correct=True, is_acting=True, steps=self.bonus_steps)]
            self.movement_queue = [(acting.id, self.bonus_steps)]
            self._enter(GamePhase.MOVING)
            self._move_next()
            return
        self._advance_turn()

    # ------------------------------------------------------------------
    # Divers
    # ------------------------------------------------------------------
    def toggle_mute(self) -> bool:
        with self._lock:
            self.muted = not self.muted
            return self.muted

    def _question_view(self) -> Optional[QuestionView]:
        if self.question is None:
            return None
        q = self.question
        return QuestionView(
            id=q.id,
            text=q.text,
            difficulty=q.difficulty,
            category=q.category,
            answers=[
                PublicAnswer(id=a.id, text=a.text, is_correct=a.is_correct if self.results_revealed else None)
                for a in q.answers
            ],
        )

    def snapshot(self, viewer_id: Optional[str] = None) -> GameSnapshot:
        """Vue en lecture seule ; la valeur d'une étoile espionnée n'est visible que du joueur actif."""
        with self._lock:
            peek_visible = self.peeked_star_id is not None and viewer_id == self.current_player.id
            return GameSnapshot(
                session_id=self.session_id,
                phase=self.phase,
                turn=self.turn,
                current_player_id=self.current_player.id if self.players else None,
                players=[p.model_copy() for p in self.players],
                stars=[star_view(s, reveal=peek_visible and s.id == self.peeked_star_id) for s in self.stars],
                modifiers=self.modifiers.snapshot(),
                categories=list(self.categories),
                wheel_result=self.wheel_result,
                question=self._question_view(),
                answered={p.id: p.id in self.answers for p in self.players},
                round_steps=list(self.round_steps),
                movement=self.movement,
                gates_pending=list(self.gates_pending),
                selecting_star_player_id=self.selecting_star_player_id,
                revealing_star_id=self.revealing_star_id,
                active_twist=self.active_twist,
                pending_choice=self.pending_choice,
                peeked_star_id=self.peeked_star_id,
                chosen_difficulty=self.chosen_difficulty,
                extra_turn_pending=self.extra_turn_pending,
                order_reversed=self.order_reversed,
                reverse_turns_remaining=self.reverse_turns_remaining,
                last_message=self.last_message,
                muted=self.muted,
                questions_remaining=self.pool.remaining,
                winner_id=self.winner_id,
                ranking=list(self.ranking),
                end_reason=self.end_reason,
            )


_TIMER_HANDLERS: Dict[TimerAction, Callable[[GameSession], None]] = {
    TimerAction.AUTO_SPIN: GameSession._on_auto_spin,
    TimerAction.BOT_ANSWER: GameSession._on_bot_answer,
    TimerAction.START_COUNTDOWN: GameSession._on_start_countdown,
    TimerAction.COMPUTE_RESULTS: GameSession._on_compute_results,
    TimerAction.AUTO_PROCEED: GameSession._on_auto_proceed,
    TimerAction.MOVE_NEXT: GameSession._on_move_next,
    TimerAction.AUTO_SELECT_STAR: GameSession._on_auto_select_star,
    TimerAction.COMMIT_STAR: GameSession._on_commit_star,
    TimerAction.AUTO_CONFIRM_TWIST: GameSession._on_auto_confirm_twist,
    TimerAction.AUTO_CHOOSE_TARGET: GameSession._on_auto_choose_target,
    TimerAction.END_PEEK: GameSession._on_end_peek,
    TimerAction.BOT_BONUS_ANSWER: GameSession._on_bot_bonus_answer,
    TimerAction.BONUS_FEEDBACK_DONE: GameSession._on_bonus_feedback_done,
}

if set(_TIMER_HANDLERS) != set(TimerAction):
    raise RuntimeError("every timer action needs exactly one handler")


def create_game(
    raw_settings: Any,
    questions: Sequence[Question],
    *,
    session_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
    cards: Optional[List[TwistCard]] = None,
) -> GameSession:
    """Construit et démarre une partie (joueurs, étoiles mélangées, pioche, stock de questions)."""
    game_settings = normalize_settings(raw_settings)
    rng = rng or random.Random()
    session = GameSession(
        session_id=session_id or uuid4().hex,
        players=build_players(game_settings),
        stars=create_initial_stars(rng),
        pool=QuestionPool(questions, rng=rng),
        deck=TwistDeck(cards if cards is not None else load_twist_catalog(), rng=rng),
        categories=list(game_settings.selected_categories),
        rng=rng,
    )
    session.start()
    logger.info(
        "Game created",
        extra={
            "session_id": session.session_id,
            "player_count": len(session.players),
            "question_count": len(questions),
        },
    )
    return session
