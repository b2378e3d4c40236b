#!/usr/bin/env python3
from __future__ import annotations

import random
from typing import Dict, Iterable, List, Sequence, Tuple

from syndicate.models import GAME_CONFIG, GameSettings
from syndicate.models import ATTRIBUTES, CoreAttribute, Mission, MissionInfo, Unit
from syndicate.models.sim_config import MissionPrototype

from .world_helpers import new_id

Stats = Dict[CoreAttribute, int]


def build_mission(
    player_id: str,
    prototype: MissionPrototype,
    current_tick: int,
    rng: random.Random,
    settings: GameSettings = GAME_CONFIG,
) -> Mission:
    """Create a live Available mission from a prototype with light randomisation."""
    cfg = settings.missions
    reward_var = int(prototype.reward * cfg.reward_variance)
    reward = prototype.reward + rng.randint(-reward_var, reward_var)

    difficulty: Stats = {}
    for attr in ATTRIBUTES:
        value = prototype.difficulty.get(attr, 0)
        diff_var = int(value * cfg.difficulty_variance)
        difficulty[attr] = max(0, round(value + rng.randint(-diff_var, diff_var)))

    return Mission(
        id=new_id(),
        player_id=player_id,
        info=MissionInfo(
            name=prototype.name,
            reward=reward,
            difficulty=difficulty,
            duration_ticks=prototype.duration_ticks,
            heat=prototype.heat,
            repeatable=prototype.repeatable,
        ),
        tip_expires=current_tick + settings.rates.tip_lifespan,
    )


def team_stats(units: Iterable[Unit]) -> Stats:
    stats: Stats = {attr: 0 for attr in ATTRIBUTES}
    for unit in units:
        for attr in ATTRIBUTES:
            stats[attr] += unit.skills.get(attr, 0)
    return stats


def success_chance(
    requirements: Stats, team: Stats, max_chance: float = 95
) -> float:
    """
    Weakest-link chance in percent. Each attribute scores
    min(max_chance, team / requirement * 100); a zero requirement counts as a
    flat 100. The overall chance is the lowest attribute score.
    """
    scores: List[float] = []
    for attr in ATTRIBUTES:
        required = requirements.get(attr, 0)
        if required <= 0:
            scores.append(100.0)
            continue
        scores.append(min(max_chance, team.get(attr, 0) / required * 100))
    return min(scores)


def mission_succeeds(chance: float, roll: int) -> bool:
    """`roll` is a uniform integer in [1, 100]."""
    return roll <= chance


def net_reward(reward: int, cuts: Iterable[int]) -> int:
    return round(reward * (1 - sum(cuts) / 100))


def heat_level(heat: float, thresholds: Sequence[int]) -> int:
    """Index of the highest tier whose threshold the heat has reached."""
    level = 0
    for index, threshold in enumerate(thresholds):
        if heat >= threshold:
            level = index
    return level


def chance_to_be_caught(
    player_heat: float, unit_heat: float, settings: GameSettings = GAME_CONFIG
) -> float:
    chances = settings.heat.caught_chance
    level = min(heat_level(player_heat, settings.heat.thresholds), len(chances) - 1)
    return chances[level] * (100 + unit_heat) / 100


def pick_team(
    requirements: Stats, candidates: Iterable[Unit], max_size: int = 4
) -> Tuple[List[Unit], Stats]:
    """
    Greedy team builder: strongest units first, stop once every requirement is
    met or the team is full. Returns the team and its summed stats.
    """
    ordered = sorted(candidates, key=lambda u: sum(u.skills.values()), reverse=True)
    team: List[Unit] = []
    stats: Stats = {attr: 0 for attr in ATTRIBUTES}
    for unit in ordered:
        if len(team) >= max_size:
            break
        team.append(unit)
        for attr in ATTRIBUTES:
            stats[attr] += unit.skills.get(attr, 0)
        if all(stats[attr] >= requirements.get(attr, 0) for attr in ATTRIBUTES):
            break
    return team, stats


def suitability(requirements: Stats, stats: Stats) -> float:
    """
    Average over attributes of min(stats / requirement, 2), with a 0.3 penalty
    when any requirement is still unmet.
    """
    ratios: List[float] = []
    short = False
    for attr in ATTRIBUTES:
        required = requirements.get(attr, 0)
        have = stats.get(attr, 0)
        ratios.append(min(have / max(required, 1), 2))
        if have < required:
            short = True
    score = sum(ratios) / len(ratios)
    return score * 0.3 if short else score
