#!/usr/bin/env python3
from __future__ import annotations

import random
from dataclasses import replace
from typing import Dict, Optional

from syndicate.models import GAME_CONFIG, GameSettings
from syndicate.models import ATTRIBUTES, CoreAttribute, Unit, UnitRank, UnitStatus

from .world_helpers import new_id

# Promotion ladder; anything not listed falls back to Soldier
_PROMOTIONS: Dict[UnitRank, UnitRank] = {
    UnitRank.SOLDIER: UnitRank.CAPO,
    UnitRank.CAPO: UnitRank.UNDERBOSS,
}


def unit_cut(rank: UnitRank, level: int, settings: GameSettings = GAME_CONFIG) -> int:
    base = settings.units.base_cut.get(rank, 0)
    return base + level * settings.units.cut_per_level


def unit_salary(rank: UnitRank, settings: GameSettings = GAME_CONFIG) -> int:
    return settings.units.salary.get(rank, 0)


def promoted_rank(rank: UnitRank) -> UnitRank:
    return _PROMOTIONS.get(rank, UnitRank.SOLDIER)


def total_skill(unit: Unit) -> int:
    return sum(unit.skills.values())


def generate_unit(
    rank: UnitRank,
    level: int,
    rng: random.Random,
    settings: GameSettings = GAME_CONFIG,
    tier: Optional[int] = None,
) -> Unit:
    """
    Roll a fresh unaffiliated unit. Tiered units (starting families) draw each
    skill from [tier, tier + 4]; everyone else from 1..10. Associates start
    with every attribute hidden.
    """
    cfg = settings.units

    def roll() -> int:
        if tier is None:
            return rng.randint(1, 10)
        return rng.randint(tier, min(10, tier + 4))

    nickname = rng.choice(cfg.nicknames) if cfg.nicknames else None
    hidden = rank == UnitRank.ASSOCIATE
    return Unit(
        id=new_id(),
        name=f"{rng.choice(cfg.first_names)} {rng.choice(cfg.last_names)}",
        nickname=nickname,
        rank=rank,
        skills={attr: roll() for attr in ATTRIBUTES},
        mask={attr: hidden for attr in ATTRIBUTES},
        experience=0,
        level=level,
        loyalty=cfg.starting_loyalty,
        heat=cfg.starting_heat,
        cut=unit_cut(rank, level, settings),
        status=UnitStatus.IDLE,
        crew=[] if rank == UnitRank.CAPO else None,
    )


def apply_level_ups(
    unit: Unit, rng: random.Random, settings: GameSettings = GAME_CONFIG
) -> Unit:
    """
    Return a new unit with every pending level-up applied. Each level consumes
    100 experience and adds a point to two random attributes. The input unit
    is never modified.
    """
    cap = settings.units.level_cap
    experience = unit.experience
    level = unit.level
    skills = dict(unit.skills)
    while experience >= 100 and level < cap:
        experience -= 100
        level += 1
        for attr in rng.sample(ATTRIBUTES, 2):
            skills[attr] = skills.get(attr, 0) + 1
    if level == unit.level:
        return unit
    return replace(
        unit,
        experience=experience,
        level=level,
        skills=skills,
        cut=unit_cut(unit.rank, level, settings),
    )


def reveal_attribute(unit: Unit, rng: random.Random) -> Dict[CoreAttribute, bool]:
    """Return a copy of the unit's mask with one random hidden attribute shown."""
    mask = dict(unit.mask)
    hidden = [attr for attr in ATTRIBUTES if mask.get(attr, False)]
    if hidden:
        mask[rng.choice(hidden)] = False
    return mask
