from typing import Dict, List, Optional

from syndicate.models import GAME_CONFIG, GameSettings
from syndicate.models import CoreAttribute, Region, Territory, Unit

_OFFSETS = ((0, -1), (1, 0), (0, 1), (-1, 0))


def neighbour_ids(territory: Territory, territories: Dict[str, Territory]) -> List[str]:
    """4-neighbour territory ids that exist on the map."""
    out: List[str] = []
    for dx, dy in _OFFSETS:
        tid = f"{territory.x + dx}-{territory.y + dy}"
        if tid in territories:
            out.append(tid)
    return out


def get_neighbours(
    territory: Territory, territories: Dict[str, Territory]
) -> List[Territory]:
    return [territories[tid] for tid in neighbour_ids(territory, territories)]


def owned_neighbour_count(
    territory: Territory, player_id: str, territories: Dict[str, Territory]
) -> int:
    return sum(
        1 for n in get_neighbours(territory, territories) if n.owner_id == player_id
    )


def is_neighbouring_player_territory(
    territory: Territory, player_id: str, territories: Dict[str, Territory]
) -> bool:
    return owned_neighbour_count(territory, player_id, territories) > 0


def capture_progress_increment(
    unit: Unit, owned_neighbours: int, settings: GameSettings = GAME_CONFIG
) -> float:
    """
    Progress added per capture cycle: a base amount plus a bonus per Muscle
    point above the baseline, scaled up by 25% for every owned neighbour
    beyond the first.
    """
    cfg = settings.territory
    muscle = unit.skills.get(CoreAttribute.MUSCLE, 0)
    base = cfg.base_capture_progress + max(0, muscle - cfg.muscle_baseline) * cfg.progress_per_muscle
    multiplier = 1 + cfg.neighbour_bonus * max(0, owned_neighbours - 1)
    return base * multiplier


def manager_multiplier(manager: Optional[Unit]) -> float:
    if manager is None:
        return 1.0
    brains = manager.skills.get(CoreAttribute.BRAINS, 0)
    influence = manager.skills.get(CoreAttribute.INFLUENCE, 0)
    return (100 + brains + influence) / 100


def region_control(
    region: Region, player_id: str, territories: Dict[str, Territory]
) -> float:
    """Share (0..100) of the region's territories owned by the player."""
    if not region.territory_ids:
        return 0.0
    owned = sum(
        1
        for tid in region.territory_ids
        if tid in territories and territories[tid].owner_id == player_id
    )
    return owned * 100 / len(region.territory_ids)
