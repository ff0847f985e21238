from startrail.models.twist import PlayerModifier
from startrail.services.modifier_store import ModifierStore


def test_add_replaces_same_player_and_type():
    store = ModifierStore()
    store.add(PlayerModifier(player_id="p1", type="shield", turns_remaining=2))
    store.add(PlayerModifier(player_id="p1", type="shield", turns_remaining=5))
    store.add(PlayerModifier(player_id="p2", type="shield", turns_remaining=1))

    assert len(store) == 2
    assert store.get("p1", "shield").turns_remaining == 5


def test_tick_decrements_and_drops_expired_but_keeps_frozen():
    store = ModifierStore()
    store.add(PlayerModifier(player_id="p1", type="shield", turns_remaining=2))
    store.add(PlayerModifier(player_id="p1", type="double_next", turns_remaining=1, value=2))
    store.add(PlayerModifier(player_id="p2", type="frozen", turns_remaining=1))

    expired = store.tick()

    assert [m.type for m in expired] == ["double_next"]
    assert store.get("p1", "shield").turns_remaining == 1
    assert store.is_frozen("p2")
    assert store.get("p2", "frozen").turns_remaining == 1


def test_queries():
    store = ModifierStore()
    assert store.multiplier_for("p1") == 1
    assert store.forced_category_for("p1") is None

    store.add(PlayerModifier(player_id="p1", type="double_next", turns_remaining=2))
    store.add(PlayerModifier(player_id="p1", type="category_master", turns_remaining=3, value="science"))
    store.add(PlayerModifier(player_id="p2", type="shield", turns_remaining=2))

    assert store.multiplier_for("p1") == 2
    assert store.forced_category_for("p1") == "science"
    assert store.has_shield("p2") and not store.has_shield("p1")
    assert store.shielded_ids() == frozenset({"p2"})
    assert {m.type for m in store.for_player("p1")} == {"double_next", "category_master"}

    removed = store.remove("p1", "double_next")
    assert removed is not None
    assert store.multiplier_for("p1") == 1


def test_snapshot_is_a_copy():
    store = ModifierStore()
    store.add(PlayerModifier(player_id="p1", type="shield", turns_remaining=2))

    snap = store.snapshot()
    snap[0].turns_remaining = 99

    assert store.get("p1", "shield").turns_remaining == 2
