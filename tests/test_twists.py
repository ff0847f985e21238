import random

import pytest

from startrail.engine import twists
from startrail.engine.errors import InvalidTarget
from startrail.engine.stars import award_star, create_initial_stars
from startrail.engine.twists import ChoiceTarget, Directive, TwistContext
from startrail.models.player import Player
from startrail.models.twist import ChoiceKind, TwistEffect


@pytest.fixture
def players():
    return [
        Player(id="a", name="Ada", position=7, score=100),
        Player(id="b", name="Bob", position=12, score=300),
        Player(id="c", name="Cy", position=3, score=0),
    ]


@pytest.fixture
def stars():
    return create_initial_stars(random.Random(5))


def _ctx(players, stars, shielded=(), categories=("history", "science")):
    return TwistContext(
        acting=players[0],
        players=players,
        stars=stars,
        shielded=frozenset(shielded),
        categories=list(categories),
        rng=random.Random(11),
    )


def test_every_effect_has_exactly_one_handler():
    assert set(twists._IMMEDIATE_HANDLERS) | set(twists._CHOICE_HANDLERS) == set(TwistEffect)
    for effect in twists._CHOICE_HANDLERS:
        assert isinstance(twists.choice_kind_for(effect), ChoiceKind)


def test_choice_card_awaits_choice_without_delta(players, stars, make_card):
    card = make_card(TwistEffect.STEAL_STAR, requires_choice=True, target="choose")
    outcome = twists.resolve_immediate(card, _ctx(players, stars))

    assert outcome.directive is Directive.AWAIT_CHOICE
    assert outcome.positions == {} and outcome.score_deltas == {}


def test_move_back_gate_snaps_or_steps_back(players, stars, make_card):
    ctx = _ctx(players, stars)
    snap = twists.resolve_immediate(make_card(TwistEffect.MOVE_BACK_GATE, positive=False), ctx)
    steps = twists.resolve_immediate(make_card(TwistEffect.MOVE_BACK_GATE, 3, positive=False), ctx)

    assert snap.positions == {"a": 5}
    assert steps.positions == {"a": 4}
    assert snap.directive is Directive.NEXT_TURN


def test_shield_blocks_negative_self_twist(players, stars, make_card):
    card = make_card(TwistEffect.RANDOM_TELEPORT, positive=False)
    outcome = twists.resolve_immediate(card, _ctx(players, stars, shielded={"a"}))

    assert outcome.skipped
    assert outcome.positions == {}


def test_others_back_gate_spares_shielded_players(players, stars, make_card):
    card = make_card(TwistEffect.OTHERS_BACK_GATE, target="others")
    outcome = twists.resolve_immediate(card, _ctx(players, stars, shielded={"b"}))

    assert outcome.positions == {"c": 0}


def test_everyone_moves_defaults_to_two(players, stars, make_card):
    outcome = twists.resolve_immediate(make_card(TwistEffect.EVERYONE_MOVES, target="all"), _ctx(players, stars))

    assert outcome.positions == {"a": 9, "b": 14, "c": 5}


def test_upgrade_zero_star(players, stars, make_card):
    card = make_card(TwistEffect.UPGRADE_ZERO_STAR)
    assert twists.resolve_immediate(card, _ctx(players, stars)).star_values == {}

    zero = next(s for s in stars if s.value == 0)
    award_star(zero, players[0])
    outcome = twists.resolve_immediate(card, _ctx(players, stars))

    assert outcome.star_values == {zero.id: 250}
    assert outcome.score_deltas == {"a": 250}


@pytest.mark.parametrize(
    "effect, value, check",
    [
        (TwistEffect.INSTANT_POINTS, None, lambda o: o.score_deltas == {"a": 50}),
        (TwistEffect.INSTANT_POINTS, 150, lambda o: o.score_deltas == {"a": 150}),
        (TwistEffect.DOUBLE_NEXT, None, lambda o: (o.add_modifier.type, o.add_modifier.turns_remaining, o.add_modifier.value) == ("double_next", 2, 2)),
        (TwistEffect.SHIELD, None, lambda o: (o.add_modifier.type, o.add_modifier.turns_remaining) == ("shield", 2)),
        (TwistEffect.EXTRA_TURN, None, lambda o: o.extra_turn),
        (TwistEffect.REVERSE_ORDER, None, lambda o: o.reverse_turns == 3),
        (TwistEffect.BONUS_QUESTION, None, lambda o: o.directive is Directive.BONUS_QUESTION and o.bonus_steps == 5),
    ],
)
def test_immediate_effect_defaults(players, stars, make_card, effect, value, check):
    outcome = twists.resolve_immediate(make_card(effect, value), _ctx(players, stars))
    assert check(outcome)


def test_valid_targets(players, stars, make_card):
    steal = make_card(TwistEffect.STEAL_STAR, requires_choice=True, target="choose")
    swap = make_card(TwistEffect.SWAP_POSITIONS, requires_choice=True, target="choose")
    award_star(stars[0], players[2])

    assert twists.valid_targets(steal, _ctx(players, stars)) == ["c"]
    assert twists.valid_targets(swap, _ctx(players, stars, shielded={"b"})) == ["c"]
    assert twists.valid_targets(make_card(TwistEffect.TELEPORT_GATE, requires_choice=True), _ctx(players, stars)) == [0, 5, 10, 15, 20]
    assert len(twists.valid_targets(make_card(TwistEffect.FREE_STAR, requires_choice=True), _ctx(players, stars))) == 9


def test_steal_star_transfers_one_star(players, stars, make_card):
    card = make_card(TwistEffect.STEAL_STAR, requires_choice=True, target="choose")
    award_star(stars[0], players[1])
    award_star(stars[1], players[1])

    outcome = twists.resolve_choice(card, _ctx(players, stars), ChoiceTarget(player_id="b"))

    (star_id, owner), = outcome.star_owners.items()
    value = next(s.value for s in stars if s.id == star_id)
    assert owner == "a"
    assert star_id in (stars[0].id, stars[1].id)
    assert outcome.score_deltas == {"b": -value, "a": value}
    assert outcome.star_count_deltas == {"b": -1, "a": 1}


def test_steal_star_from_empty_handed_player_is_noop(players, stars, make_card):
    card = make_card(TwistEffect.STEAL_STAR, requires_choice=True, target="choose")
    outcome = twists.resolve_choice(card, _ctx(players, stars), ChoiceTarget(player_id="c"))

    assert outcome.skipped
    assert outcome.star_owners == {}


def test_points_swap_only_when_strictly_lower(players, stars, make_card):
    card = make_card(TwistEffect.POINTS_SWAP, requires_choice=True, target="choose")

    up = twists.resolve_choice(card, _ctx(players, stars), ChoiceTarget(player_id="b"))
    down = twists.resolve_choice(card, _ctx(players, stars), ChoiceTarget(player_id="c"))

    assert up.score_deltas == {"a": 200, "b": -200}
    assert down.skipped and down.score_deltas == {}


def test_choice_rejects_bad_targets(players, stars, make_card):
    ctx = _ctx(players, stars, shielded={"b"})
    with pytest.raises(InvalidTarget):
        twists.resolve_choice(make_card(TwistEffect.FREEZE_PLAYER, requires_choice=True), ctx, ChoiceTarget(player_id="b"))
    with pytest.raises(InvalidTarget):
        twists.resolve_choice(make_card(TwistEffect.SWAP_POSITIONS, requires_choice=True), ctx, ChoiceTarget(player_id="a"))
    with pytest.raises(InvalidTarget):
        twists.resolve_choice(make_card(TwistEffect.TELEPORT_GATE, requires_choice=True), ctx, ChoiceTarget(gate=7))
    with pytest.raises(InvalidTarget):
        twists.resolve_choice(make_card(TwistEffect.DIFFICULTY_CHOICE, requires_choice=True), ctx, ChoiceTarget(difficulty=6))
    with pytest.raises(InvalidTarget):
        twists.resolve_choice(make_card(TwistEffect.CATEGORY_MASTER, requires_choice=True), ctx, ChoiceTarget(category="bible"))


def test_choice_resolutions(players, stars, make_card):
    ctx = _ctx(players, stars)

    swap = twists.resolve_choice(make_card(TwistEffect.SWAP_POSITIONS, requires_choice=True), ctx, ChoiceTarget(player_id="b"))
    assert swap.positions == {"a": 12, "b": 7}

    freeze = twists.resolve_choice(make_card(TwistEffect.FREEZE_PLAYER, requires_choice=True), ctx, ChoiceTarget(player_id="c"))
    assert (freeze.add_modifier.player_id, freeze.add_modifier.type, freeze.add_modifier.turns_remaining) == ("c", "frozen", 1)

    gate = twists.resolve_choice(make_card(TwistEffect.TELEPORT_GATE, requires_choice=True), ctx, ChoiceTarget(gate=15))
    assert gate.positions == {"a": 15}

    level = twists.resolve_choice(make_card(TwistEffect.DIFFICULTY_CHOICE, requires_choice=True), ctx, ChoiceTarget(difficulty=4))
    assert level.directive is Directive.RESPIN and level.chosen_difficulty == 4

    master = twists.resolve_choice(make_card(TwistEffect.CATEGORY_MASTER, 3, requires_choice=True), ctx, ChoiceTarget(category="science"))
    assert (master.add_modifier.type, master.add_modifier.value, master.add_modifier.turns_remaining) == ("category_master", "science", 3)

    free = twists.resolve_choice(make_card(TwistEffect.FREE_STAR, requires_choice=True), ctx, ChoiceTarget(star_id=stars[2].id))
    assert free.awarded_star_id == stars[2].id

    peek = twists.resolve_choice(make_card(TwistEffect.STAR_PEEK, requires_choice=True), ctx, ChoiceTarget(star_id=stars[3].id))
    assert peek.directive is Directive.PEEK and peek.peek_star_id == stars[3].id


def test_auto_target_picks_an_offered_option(players, stars, make_card):
    card = make_card(TwistEffect.SWAP_POSITIONS, requires_choice=True, target="choose")
    target = twists.auto_target(card, _ctx(players, stars))

    assert target.player_id in ("b", "c")
    assert twists.auto_target(card, _ctx(players, stars, shielded={"b", "c"})) is None
