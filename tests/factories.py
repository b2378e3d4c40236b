import random
from typing import Iterable, Optional, Sequence

from syndicate.helper import new_id
from syndicate.models import (
    ATTRIBUTES,
    GAME_CONFIG,
    CoreAttribute,
    GameSettings,
    Mission,
    MissionInfo,
    Player,
    Region,
    Resources,
    Territory,
    Unit,
    UnitRank,
)
from syndicate.state import GameStateStore, empty_state


class StubRandom(random.Random):
    """Seeded Random whose randint answers are scripted until the script runs out."""

    def __init__(self, randints: Iterable[int] = (), seed: int = 0) -> None:
        super().__init__(seed)
        self.randints = list(randints)

    def randint(self, a: int, b: int) -> int:
        if self.randints:
            return self.randints.pop(0)
        return super().randint(a, b)


def settings_with(**sections: dict) -> GameSettings:
    update = {
        name: getattr(GAME_CONFIG, name).model_copy(update=values)
        for name, values in sections.items()
    }
    return GAME_CONFIG.model_copy(update=update)


def make_unit(
    rank: UnitRank = UnitRank.SOLDIER,
    owner_id: Optional[str] = None,
    skill: int = 5,
    **fields,
) -> Unit:
    skills = {attr: skill for attr in ATTRIBUTES}
    skills.update(fields.pop("skills", {}))
    values = dict(
        id=new_id(),
        name="Test Unit",
        rank=rank,
        skills=skills,
        mask={attr: False for attr in ATTRIBUTES},
        owner_id=owner_id,
        cut=15,
        heat=0,
        crew=[] if rank == UnitRank.CAPO else None,
    )
    values.update(fields)
    return Unit(**values)


def make_store(
    width: int = 3,
    height: int = 3,
    players: Sequence[str] = ("p1", "p2"),
    rng: Optional[random.Random] = None,
    settings: GameSettings = GAME_CONFIG,
    money: int = 10000,
) -> GameStateStore:
    """Small hand-built world: one region, flat 1000 income, no units."""
    state = empty_state(settings)
    for y in range(height):
        for x in range(width):
            tid = f"{x}-{y}"
            state.territories[tid] = Territory(
                id=tid, name=f"T{tid}", x=x, y=y, region_id="region-0", income=1000
            )
    state.regions["region-0"] = Region(
        id="region-0",
        name="Little Italy",
        territory_ids=list(state.territories),
        color="hsl(0, 70%, 60%)",
        control_bonus=50,
    )
    for pid in players:
        state.players[pid] = Player(
            id=pid, name=pid.upper(), color="#ffffff", resources=Resources(money=money)
        )
    return GameStateStore(state=state, settings=settings, rng=rng or random.Random(1))


def add_unit(store: GameStateStore, unit: Unit) -> Unit:
    store.add_unit(unit)
    if unit.owner_id is not None:
        player = store.get_player(unit.owner_id)
        store.update_player(player.id, units=player.units + [unit.id])
    return unit


def give_territory(store: GameStateStore, player_id: str, territory_id: str) -> None:
    previous = store.get_territory(territory_id).owner_id
    if previous is not None:
        loser = store.get_player(previous)
        store.update_player(
            previous, territories=[t for t in loser.territories if t != territory_id]
        )
    store.update_territory(territory_id, owner_id=player_id)
    player = store.get_player(player_id)
    store.update_player(player_id, territories=player.territories + [territory_id])


def make_mission(
    player_id: str,
    difficulty: Optional[dict] = None,
    reward: int = 1000,
    tip_expires: int = 48,
    duration_ticks: int = 12,
    heat: int = 5,
) -> Mission:
    requirements = {attr: 0 for attr in ATTRIBUTES}
    requirements.update(difficulty or {CoreAttribute.MUSCLE: 5})
    return Mission(
        id=new_id(),
        player_id=player_id,
        info=MissionInfo(
            name="Shakedown Local Shop",
            reward=reward,
            difficulty=requirements,
            duration_ticks=duration_ticks,
            heat=heat,
        ),
        tip_expires=tip_expires,
    )
