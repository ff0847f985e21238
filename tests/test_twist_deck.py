import random

from startrail.models.twist import TwistEffect
from startrail.services.twist_deck import TwistDeck, load_twist_catalog


def test_catalog_has_thirty_cards_covering_every_effect():
    cards = load_twist_catalog()

    assert len(cards) == 30
    assert len({c.id for c in cards}) == 30
    assert {c.effect for c in cards} == set(TwistEffect)


def test_choice_flags_are_consistent():
    for card in load_twist_catalog():
        if card.target == "choose":
            assert card.requires_choice
        assert card.requires_question == (card.effect is TwistEffect.BONUS_QUESTION)


def test_draw_never_repeats_until_exhausted_then_reshuffles():
    cards = load_twist_catalog()
    deck = TwistDeck(cards, rng=random.Random(3))

    seen = []
    for _ in range(len(cards)):
        card = deck.draw()
        assert card.id not in deck.used
        deck.mark_used(card.id)
        seen.append(card.id)

    assert len(set(seen)) == len(cards)
    assert deck.remaining == 0

    again = deck.draw()
    assert again.id in {c.id for c in cards}
    assert deck.used == set()
    assert deck.remaining == len(cards)
