"""
Twist resolution engine.
Turns a drawn twist card into an outcome: either an immediate delta on the
players/stars, a request for a player choice, or a bonus-question sub-phase.
Choice cards are resolved in a second call once the presentation supplies a
target. Nothing here mutates the session: the caller applies the returned
`TwistOutcome`.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from startrail.engine import board
from startrail.engine.errors import InvalidTarget
from startrail.engine.stars import UPGRADED_ZERO_VALUE, owned_by, unearned
from startrail.models.player import Player
from startrail.models.star import Star
from startrail.models.twist import ChoiceKind, PlayerModifier, TwistCard, TwistEffect

DEFAULT_EVERYONE_STEPS = 2
DEFAULT_INSTANT_POINTS = 50
DEFAULT_BONUS_STEPS = 5
DEFAULT_REVERSE_TURNS = 3
DEFAULT_SHIELD_TURNS = 2
DEFAULT_CATEGORY_TURNS = 3
DOUBLE_NEXT_TURNS = 2
DOUBLE_NEXT_MULTIPLIER = 2
FREEZE_TURNS = 1
DIFFICULTIES = (1, 2, 3, 4, 5)


class Directive(str, Enum):
    """Suite à donner par la machine à états une fois l'outcome appliqué."""
    NEXT_TURN = "next_turn"
    AWAIT_CHOICE = "await_choice"
    BONUS_QUESTION = "bonus_question"
    RESPIN = "respin"
    PEEK = "peek"


@dataclass
class TwistContext:
    """Lecture de l'état nécessaire à la résolution (aucune mutation)."""
    acting: Player
    players: Sequence[Player]
    stars: Sequence[Star]
    shielded: FrozenSet[str] = frozenset()
    categories: Sequence[str] = ()
    rng: random.Random = field(default_factory=random.Random)

    def others(self) -> List[Player]:
        return [p for p in self.players if p.id != self.acting.id]

    def find_player(self, player_id: Optional[str]) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)


@dataclass
class TwistOutcome:
    directive: Directive = Directive.NEXT_TURN
    message: str = ""
    positions: Dict[str, int] = field(default_factory=dict)
    score_deltas: Dict[str, int] = field(default_factory=dict)
    star_count_deltas: Dict[str, int] = field(default_factory=dict)
    star_values: Dict[int, int] = field(default_factory=dict)
    star_owners: Dict[int, str] = field(default_factory=dict)
    awarded_star_id: Optional[int] = None
    add_modifier: Optional[PlayerModifier] = None
    extra_turn: bool = False
    reverse_turns: int = 0
    chosen_difficulty: Optional[int] = None
    peek_star_id: Optional[int] = None
    bonus_steps: int = 0
    skipped: bool = False


@dataclass
class ChoiceTarget:
    """Cible fournie par la présentation (un seul champ utile selon le ChoiceKind)."""
    player_id: Optional[str] = None
    gate: Optional[int] = None
    difficulty: Optional[int] = None
    category: Optional[str] = None
    star_id: Optional[int] = None


CHOICE_KINDS: Dict[TwistEffect, ChoiceKind] = {
    TwistEffect.STEAL_STAR: ChoiceKind.PLAYER,
    TwistEffect.SWAP_POSITIONS: ChoiceKind.PLAYER,
    TwistEffect.FREEZE_PLAYER: ChoiceKind.PLAYER,
    TwistEffect.POINTS_SWAP: ChoiceKind.PLAYER,
    TwistEffect.TELEPORT_GATE: ChoiceKind.GATE,
    TwistEffect.DIFFICULTY_CHOICE: ChoiceKind.DIFFICULTY,
    TwistEffect.CATEGORY_MASTER: ChoiceKind.CATEGORY,
    TwistEffect.FREE_STAR: ChoiceKind.STAR,
    TwistEffect.STAR_PEEK: ChoiceKind.STAR_PEEK,
}


def choice_kind_for(effect: TwistEffect) -> Optional[ChoiceKind]:
    return CHOICE_KINDS.get(effect)


# ---------------------------------------------------------------------------
# Effets immédiats
# ---------------------------------------------------------------------------
def _move_back_gate(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    acting = ctx.acting
    if twist.value:
        target = board.move_back(acting.position, twist.value)
        message = f"{acting.name} moves back {twist.value} steps!"
    else:
        target = board.previous_gate(acting.position)
        message = f"{acting.name} goes back to the previous gate!"
    return TwistOutcome(positions={acting.id: target}, message=message)


def _others_back_gate(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    positions = {
        p.id: board.previous_gate(p.position)
        for p in ctx.others()
        if p.id not in ctx.shielded
    }
    return TwistOutcome(positions=positions, message="All other players go back to their previous gate!")


def _random_teleport(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    target = ctx.rng.randrange(board.TRACK_LENGTH)
    return TwistOutcome(
        positions={ctx.acting.id: target},
        message=f"{ctx.acting.name} teleports to square {target}!",
    )


def _everyone_moves(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    # Déplacement de masse : aucune sélection d'étoile, même en franchissant une porte.
    steps = twist.value or DEFAULT_EVERYONE_STEPS
    positions = {p.id: board.move(p.position, steps) for p in ctx.players}
    return TwistOutcome(positions=positions, message=f"Everyone moves {steps} steps forward!")


def _upgrade_zero_star(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    zero = next((s for s in owned_by(ctx.stars, ctx.acting.id) if s.value == 0), None)
    if zero is None:
        return TwistOutcome(message=f"{ctx.acting.name} has no 0-point star to upgrade.")
    return TwistOutcome(
        star_values={zero.id: UPGRADED_ZERO_VALUE},
        score_deltas={ctx.acting.id: UPGRADED_ZERO_VALUE},
        message=f"{ctx.acting.name}'s 0-point star is now worth {UPGRADED_ZERO_VALUE}!",
    )


def _instant_points(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    points = twist.value or DEFAULT_INSTANT_POINTS
    return TwistOutcome(
        score_deltas={ctx.acting.id: points},
        message=f"{ctx.acting.name} gets {points} points!",
    )


def _double_next(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    # 2 tours : le tour courant + le suivant (le tick de fin de tour en consomme un).
    modifier = PlayerModifier(
        player_id=ctx.acting.id,
        type="double_next",
        turns_remaining=DOUBLE_NEXT_TURNS,
        value=DOUBLE_NEXT_MULTIPLIER,
    )
    return TwistOutcome(add_modifier=modifier, message=f"{ctx.acting.name}'s next correct answer counts double!")


def _bonus_question(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    steps = twist.value or DEFAULT_BONUS_STEPS
    return TwistOutcome(
        directive=Directive.BONUS_QUESTION,
        bonus_steps=steps,
        message=f"Bonus question! Answer correctly to advance {steps} steps!",
    )


def _extra_turn(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    return TwistOutcome(extra_turn=True, message=f"{ctx.acting.name} gets an extra turn!")


def _reverse_order(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    turns = twist.value or DEFAULT_REVERSE_TURNS
    return TwistOutcome(reverse_turns=turns, message=f"Play order is reversed for {turns} turns!")


def _shield(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    turns = twist.value or DEFAULT_SHIELD_TURNS
    modifier = PlayerModifier(player_id=ctx.acting.id, type="shield", turns_remaining=turns)
    return TwistOutcome(add_modifier=modifier, message=f"{ctx.acting.name} is shielded for {turns} turns!")


def _noop(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    return TwistOutcome()


ImmediateHandler = Callable[[TwistCard, TwistContext], TwistOutcome]

_IMMEDIATE_HANDLERS: Dict[TwistEffect, ImmediateHandler] = {
    TwistEffect.MOVE_BACK_GATE: _move_back_gate,
    TwistEffect.OTHERS_BACK_GATE: _others_back_gate,
    TwistEffect.RANDOM_TELEPORT: _random_teleport,
    TwistEffect.EVERYONE_MOVES: _everyone_moves,
    TwistEffect.UPGRADE_ZERO_STAR: _upgrade_zero_star,
    TwistEffect.INSTANT_POINTS: _instant_points,
    TwistEffect.DOUBLE_NEXT: _double_next,
    TwistEffect.BONUS_QUESTION: _bonus_question,
    TwistEffect.EXTRA_TURN: _extra_turn,
    TwistEffect.REVERSE_ORDER: _reverse_order,
    TwistEffect.SHIELD: _shield,
}


def resolve_immediate(twist: TwistCard, ctx: TwistContext) -> TwistOutcome:
    """
    Première étape de résolution d'une carte.
    - carte à choix : AWAIT_CHOICE, aucune mutation ;
    - carte négative visant le joueur actif protégé par un bouclier : effet annulé ;
    - sinon : handler de l'effet.
    """
    if twist.requires_choice:
        return TwistOutcome(directive=Directive.AWAIT_CHOICE)
    if not twist.positive and twist.target == "self" and ctx.acting.id in ctx.shielded:
        return TwistOutcome(skipped=True, message=f"{ctx.acting.name}'s shield blocks the twist!")
    handler = _IMMEDIATE_HANDLERS.get(twist.effect, _noop)
    return handler(twist, ctx)


# ---------------------------------------------------------------------------
# Effets à choix
# ---------------------------------------------------------------------------
def valid_targets(twist: TwistCard, ctx: TwistContext) -> List[Any]:
    """Cibles proposables pour une carte à choix (liste vide => effet ignoré)."""
    kind = choice_kind_for(twist.effect)
    if kind is ChoiceKind.PLAYER:
        candidates = [p for p in ctx.others() if p.id not in ctx.shielded]
        if twist.effect is TwistEffect.STEAL_STAR:
            candidates = [p for p in candidates if owned_by(ctx.stars, p.id)]
        return [p.id for p in candidates]
    if kind is ChoiceKind.GATE:
        return list(board.GATES)
    if kind is ChoiceKind.DIFFICULTY:
        return list(DIFFICULTIES)
    if kind is ChoiceKind.CATEGORY:
        return list(ctx.categories)
    if kind in (ChoiceKind.STAR, ChoiceKind.STAR_PEEK):
        return [s.id for s in unearned(ctx.stars)]
    return []


def _target_player(ctx: TwistContext, target: ChoiceTarget) -> Player:
    player = ctx.find_player(target.player_id)
    if player is None or player.id == ctx.acting.id:
        raise InvalidTarget("target must be another player")
    if player.id in ctx.shielded:
        raise InvalidTarget("target player is shielded")
    return player


def _target_star(ctx: TwistContext, target: ChoiceTarget) -> Star:
    star = next((s for s in ctx.stars if s.id == target.star_id), None)
    if star is None or star.earned:
        raise InvalidTarget("target must be an unearned star")
    return star


def _steal_star(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    victim = _target_player(ctx, target)
    candidates = owned_by(ctx.stars, victim.id)
    if not candidates:
        return TwistOutcome(skipped=True, message=f"{victim.name} has no star to steal.")
    star = ctx.rng.choice(candidates)
    acting = ctx.acting
    return TwistOutcome(
        star_owners={star.id: acting.id},
        score_deltas={victim.id: -star.value, acting.id: star.value},
        star_count_deltas={victim.id: -1, acting.id: 1},
        message=f"{acting.name} steals a {star.value}-point star from {victim.name}!",
    )


def _swap_positions(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    other = _target_player(ctx, target)
    acting = ctx.acting
    return TwistOutcome(
        positions={acting.id: other.position, other.id: acting.position},
        message=f"{acting.name} swaps places with {other.name}!",
    )


def _freeze_player(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    other = _target_player(ctx, target)
    modifier = PlayerModifier(player_id=other.id, type="frozen", turns_remaining=FREEZE_TURNS)
    return TwistOutcome(add_modifier=modifier, message=f"{other.name} is frozen and skips their next turn!")


def _points_swap(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    other = _target_player(ctx, target)
    acting = ctx.acting
    if acting.score >= other.score:
        return TwistOutcome(skipped=True, message=f"{acting.name} does not have fewer points than {other.name}.")
    diff = other.score - acting.score
    return TwistOutcome(
        score_deltas={acting.id: diff, other.id: -diff},
        message=f"{acting.name} swaps points with {other.name}!",
    )


def _teleport_gate(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    if target.gate not in board.GATES:
        raise InvalidTarget("target must be a gate position")
    return TwistOutcome(
        positions={ctx.acting.id: target.gate},
        message=f"{ctx.acting.name} jumps to gate {target.gate}!",
    )


def _difficulty_choice(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    if target.difficulty not in DIFFICULTIES:
        raise InvalidTarget("difficulty must be between 1 and 5")
    return TwistOutcome(
        directive=Directive.RESPIN,
        chosen_difficulty=target.difficulty,
        message=f"{ctx.acting.name} picks difficulty {target.difficulty} for the next question!",
    )


def _category_master(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    if not target.category or target.category not in ctx.categories:
        raise InvalidTarget("unknown category")
    turns = twist.value or DEFAULT_CATEGORY_TURNS
    modifier = PlayerModifier(
        player_id=ctx.acting.id,
        type="category_master",
        turns_remaining=turns,
        value=target.category,
    )
    return TwistOutcome(
        add_modifier=modifier,
        message=f"{ctx.acting.name} picks {target.category} for the next {turns} questions!",
    )


def _free_star(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    star = _target_star(ctx, target)
    return TwistOutcome(awarded_star_id=star.id, message=f"{ctx.acting.name} takes a free star!")


def _star_peek(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    star = _target_star(ctx, target)
    return TwistOutcome(
        directive=Directive.PEEK,
        peek_star_id=star.id,
        message=f"{ctx.acting.name} peeks at a hidden star.",
    )


ChoiceHandler = Callable[[TwistCard, TwistContext, ChoiceTarget], TwistOutcome]

_CHOICE_HANDLERS: Dict[TwistEffect, ChoiceHandler] = {
    TwistEffect.STEAL_STAR: _steal_star,
    TwistEffect.SWAP_POSITIONS: _swap_positions,
    TwistEffect.FREEZE_PLAYER: _freeze_player,
    TwistEffect.POINTS_SWAP: _points_swap,
    TwistEffect.TELEPORT_GATE: _teleport_gate,
    TwistEffect.DIFFICULTY_CHOICE: _difficulty_choice,
    TwistEffect.CATEGORY_MASTER: _category_master,
    TwistEffect.FREE_STAR: _free_star,
    TwistEffect.STAR_PEEK: _star_peek,
}


def resolve_choice(twist: TwistCard, ctx: TwistContext, target: ChoiceTarget) -> TwistOutcome:
    """Deuxième étape d'une carte à choix, une fois la cible fournie. Lève InvalidTarget si refusée."""
    handler = _CHOICE_HANDLERS.get(twist.effect)
    if handler is None:
        return TwistOutcome()
    return handler(twist, ctx, target)


def auto_target(twist: TwistCard, ctx: TwistContext) -> Optional[ChoiceTarget]:
    """Choix aléatoire d'un joueur automatique parmi les cibles proposables (None si aucune)."""
    options = valid_targets(twist, ctx)
    if not options:
        return None
    pick = ctx.rng.choice(options)
    kind = choice_kind_for(twist.effect)
    if kind is ChoiceKind.PLAYER:
        return ChoiceTarget(player_id=pick)
    if kind is ChoiceKind.GATE:
        return ChoiceTarget(gate=pick)
    if kind is ChoiceKind.DIFFICULTY:
        return ChoiceTarget(difficulty=pick)
    if kind is ChoiceKind.CATEGORY:
        return ChoiceTarget(category=pick)
    return ChoiceTarget(star_id=pick)


# Chaque effet a exactement un handler (immédiat ou à choix).
if set(_IMMEDIATE_HANDLERS) | set(_CHOICE_HANDLERS) != set(TwistEffect):
    raise RuntimeError("every twist effect needs a handler")
if set(_IMMEDIATE_HANDLERS) & set(_CHOICE_HANDLERS):
    raise RuntimeError("a twist effect cannot be both immediate and a choice")
if set(_CHOICE_HANDLERS) != set(CHOICE_KINDS):
    raise RuntimeError("every choice effect needs a choice kind")
