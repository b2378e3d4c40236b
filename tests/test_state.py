import logging

from syndicate.models import UnitRank

from tests.factories import StubRandom, add_unit, make_store, make_unit


def test_update_unit_merges_fields() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1"))

    updated = store.update_unit(unit.id, heat=30, nickname="Ice")

    assert updated.heat == 30
    assert updated.nickname == "Ice"
    assert store.get_unit(unit.id) is updated
    assert updated.loyalty == unit.loyalty


def test_update_unknown_unit_is_logged_and_ignored(caplog) -> None:
    store = make_store()

    with caplog.at_level(logging.WARNING):
        assert store.update_unit("missing", heat=10) is None
        assert store.update_territory("99-99", owner_id="p1") is None

    assert "unknown unit missing" in caplog.text
    assert "unknown territory 99-99" in caplog.text


def test_level_up_cascade_consumes_experience() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1", level=5))
    skill_total = sum(unit.skills.values())

    updated = store.update_unit(unit.id, experience=250)

    assert updated.level == 7
    assert updated.experience == 50
    # two distinct attributes gain a point per level
    assert sum(updated.skills.values()) == skill_total + 4
    assert updated.cut == 15 + 2 * 7


def test_level_up_stops_at_cap() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1", level=9))

    updated = store.update_unit(unit.id, experience=250)

    assert updated.level == 10
    assert updated.experience == 150


def test_rank_change_recomputes_cut() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1", level=3))

    updated = store.update_unit(unit.id, rank=UnitRank.CAPO)

    assert updated.cut == 20 + 2 * 3


def test_loyalty_at_zero_defects_unit() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1", loyalty=5))

    updated = store.update_unit(unit.id, loyalty=-5)

    assert updated.owner_id is None
    assert updated.loyalty == 0
    assert unit.id not in store.get_player("p1").units


def test_loyalty_is_capped() -> None:
    store = make_store()
    unit = add_unit(store, make_unit(owner_id="p1", loyalty=95))

    assert store.update_unit(unit.id, loyalty=120).loyalty == 100


def test_update_resources_keeps_other_fields() -> None:
    store = make_store()
    store.update_resources("p1", heat=12.5)
    store.update_resources("p1", money=500)

    resources = store.get_player("p1").resources
    assert resources.money == 500
    assert resources.heat == 12.5


def test_family_heat_is_roster_mean() -> None:
    store = make_store()
    assert store.family_heat("p1") == 0.0

    add_unit(store, make_unit(owner_id="p1", heat=10))
    add_unit(store, make_unit(owner_id="p1", heat=30))
    store.refresh_family_heat("p1")

    assert store.family_heat("p1") == 20.0
    assert store.get_player("p1").resources.heat == 20.0


def test_observers_receive_updates_until_unsubscribed(caplog) -> None:
    store = make_store()
    seen = []
    unsubscribe = store.subscribe(lambda kind, eid: seen.append((kind, eid)))

    def broken(kind, eid):
        raise RuntimeError("boom")

    store.subscribe(broken)
    with caplog.at_level(logging.ERROR):
        store.update_territory("0-0", income=5)
    unsubscribe()
    store.update_territory("0-0", income=6)

    assert seen == [("territory", "0-0")]
    assert "observer failed" in caplog.text
    assert store.get_territory("0-0").income == 6


def test_advance_clock_moves_date_by_hours_per_tick() -> None:
    store = make_store()
    assert store.formatted_date() == "1960-01-01 00:00"

    assert store.advance_clock() == 1
    store.advance_clock()

    assert store.tick_count == 2
    assert store.formatted_date() == "1960-01-01 04:00"


def test_initialize_world_sets_up_families() -> None:
    store = make_store(players=(), rng=StubRandom(seed=3))
    slots = {
        "player1": {"controller": "HUMAN", "name": "Don", "color": "#f00"},
        "player2": {"controller": "NONE", "name": "Empty", "color": "#00f"},
        "player3": {"controller": "AI", "name": "Rivals", "color": "#0f0"},
    }

    store.initialize_world(slots)

    assert set(store.players) == {"player1", "player3"}
    assert store.get_territory("0-0").owner_id == "player1"
    assert store.get_territory("0-9").owner_id == "player3"
    assert store.get_territory("9-0").owner_id is None
    family = store.get_player_units("player1")
    assert [u.rank for u in family] == [UnitRank.CAPO, UnitRank.SOLDIER, UnitRank.SOLDIER]
    assert all(not any(u.mask.values()) for u in family)
    pool = [u for u in store.units.values() if u.owner_id is None]
    assert len(pool) == 15
    assert all(u.rank == UnitRank.ASSOCIATE and all(u.mask.values()) for u in pool)
    assert store.get_player("player1").resources.money == 10500
