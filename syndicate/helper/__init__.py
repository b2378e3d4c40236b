from syndicate.helper.world_helpers import (
    new_id,
    normalize_seed,
    make_rng,
    generate_region_grid,
    border_flags,
    build_map,
)
from syndicate.helper.unit_helpers import (
    unit_cut,
    unit_salary,
    promoted_rank,
    generate_unit,
    apply_level_ups,
    reveal_attribute,
    total_skill,
)
from syndicate.helper.map_helpers import (
    neighbour_ids,
    get_neighbours,
    owned_neighbour_count,
    is_neighbouring_player_territory,
    capture_progress_increment,
    manager_multiplier,
    region_control,
)
from syndicate.helper.mission_helpers import (
    build_mission,
    team_stats,
    success_chance,
    mission_succeeds,
    net_reward,
    heat_level,
    chance_to_be_caught,
    pick_team,
    suitability,
)
from syndicate.helper.players_helper import load_player_slots


__all__ = [
    "new_id",
    "normalize_seed",
    "make_rng",
    "generate_region_grid",
    "border_flags",
    "build_map",
    "unit_cut",
    "unit_salary",
    "promoted_rank",
    "generate_unit",
    "apply_level_ups",
    "reveal_attribute",
    "total_skill",
    "neighbour_ids",
    "get_neighbours",
    "owned_neighbour_count",
    "is_neighbouring_player_territory",
    "capture_progress_increment",
    "manager_multiplier",
    "region_control",
    "build_mission",
    "team_stats",
    "success_chance",
    "mission_succeeds",
    "net_reward",
    "heat_level",
    "chance_to_be_caught",
    "pick_team",
    "suitability",
    "load_player_slots",
]
