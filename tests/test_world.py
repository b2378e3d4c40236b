import random
from collections import deque

import pytest

from syndicate.helper import (
    apply_level_ups,
    border_flags,
    build_map,
    capture_progress_increment,
    generate_region_grid,
    generate_unit,
    make_rng,
    manager_multiplier,
    normalize_seed,
    promoted_rank,
    region_control,
    reveal_attribute,
)
from syndicate.models import GAME_CONFIG, CoreAttribute, UnitRank

from tests.factories import give_territory, make_store, make_unit


def _connected(grid, region: int) -> bool:
    cells = {(x, y) for y, row in enumerate(grid) for x, r in enumerate(row) if r == region}
    start = next(iter(cells))
    seen = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for nxt in ((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)):
            if nxt in cells and nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen == cells


@pytest.mark.parametrize("randomness", [0, 100])
def test_region_grid_covers_map_with_connected_regions(randomness: int) -> None:
    grid = generate_region_grid(10, 10, 7, randomness, random.Random(4))

    regions = {r for row in grid for r in row}
    assert regions == set(range(7))
    assert all(_connected(grid, r) for r in regions)


def test_region_grid_rejects_too_many_regions() -> None:
    with pytest.raises(ValueError, match="cannot fit 5 regions"):
        generate_region_grid(2, 2, 5, 50, random.Random(0))


def test_border_flags_mark_region_edges() -> None:
    grid = [[0, 0, 1]]

    first = border_flags(grid, 0, 0)
    middle = border_flags(grid, 1, 0)

    assert (first.top, first.right, first.bottom, first.left) == (True, False, True, True)
    assert middle.right is True
    assert middle.left is False


def test_build_map_is_deterministic_per_seed() -> None:
    first, regions = build_map(GAME_CONFIG, random.Random(11))
    second, _ = build_map(GAME_CONFIG, random.Random(11))

    assert len(first) == 100
    assert [t.income for t in first.values()] == [t.income for t in second.values()]
    assert all(500 <= t.income <= 1400 for t in first.values())
    assert sum(len(r.territory_ids) for r in regions.values()) == 100
    assert regions["region-0"].name == "Downtown Financial District"


def test_seeds_normalize_to_integers() -> None:
    assert normalize_seed(None) is None
    assert normalize_seed(42) == 42
    assert normalize_seed("0x10") == 16
    assert normalize_seed("family") == normalize_seed("family")
    rng, seed = make_rng("family")
    assert seed == normalize_seed("family")
    assert rng.random() == random.Random(seed).random()


def test_generated_associate_is_masked() -> None:
    unit = generate_unit(UnitRank.ASSOCIATE, 1, random.Random(2))

    assert unit.owner_id is None
    assert all(unit.mask.values())
    assert all(1 <= v <= 10 for v in unit.skills.values())
    assert unit.loyalty == 50
    assert unit.crew is None


def test_tiered_unit_skills_stay_in_band() -> None:
    unit = generate_unit(UnitRank.CAPO, 3, random.Random(2), tier=3)

    assert all(3 <= v <= 7 for v in unit.skills.values())
    assert unit.crew == []
    assert unit.cut == 20 + 2 * 3


def test_apply_level_ups_leaves_input_untouched() -> None:
    unit = make_unit(experience=120)

    leveled = apply_level_ups(unit, random.Random(0))

    assert unit.level == 1 and unit.experience == 120
    assert leveled.level == 2 and leveled.experience == 20


def test_promotion_ladder() -> None:
    assert promoted_rank(UnitRank.SOLDIER) == UnitRank.CAPO
    assert promoted_rank(UnitRank.CAPO) == UnitRank.UNDERBOSS
    assert promoted_rank(UnitRank.ASSOCIATE) == UnitRank.SOLDIER


def test_reveal_attribute_shows_one_hidden_attribute() -> None:
    unit = make_unit(mask={a: True for a in CoreAttribute})

    mask = reveal_attribute(unit, random.Random(0))

    assert sum(mask.values()) == 3
    assert all(unit.mask.values())
    assert reveal_attribute(make_unit(), random.Random(0)) == make_unit().mask


def test_capture_increment_neighbour_bonus() -> None:
    unit = make_unit(skills={CoreAttribute.MUSCLE: 5})

    assert capture_progress_increment(unit, 1) == 10
    assert capture_progress_increment(unit, 3) == pytest.approx(15)


def test_manager_multiplier() -> None:
    assert manager_multiplier(None) == 1.0
    assert manager_multiplier(make_unit(skill=10)) == pytest.approx(1.2)


def test_region_control_percent() -> None:
    store = make_store()
    give_territory(store, "p1", "0-0")
    give_territory(store, "p1", "1-0")
    region = store.get_region("region-0")

    assert region_control(region, "p1", store.territories) == pytest.approx(200 / 9)
    assert region_control(region, "p2", store.territories) == 0
