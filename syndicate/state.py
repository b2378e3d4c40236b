#!/usr/bin/env python3
"""
The game state store: sole owner of the entity collections.

All mutation goes through the update methods below so that cross-entity
consequences (level-ups, defection, roster bookkeeping) are applied in one
place. Updates on unknown ids are logged and ignored.
"""
from __future__ import annotations

import logging
import random
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from syndicate.helper import apply_level_ups, build_map, generate_unit, unit_cut
from syndicate.models import GAME_CONFIG, GameSettings
from syndicate.models import (
    GameState,
    Mission,
    Player,
    PlayerController,
    Region,
    Resources,
    Territory,
    Unit,
    UnitRank,
)

logger = logging.getLogger(__name__)

Observer = Callable[[str, str], None]

DATE_FORMAT = "%Y-%m-%d %H:00"


def empty_state(settings: GameSettings = GAME_CONFIG) -> GameState:
    return GameState(
        players={},
        units={},
        territories={},
        regions={},
        missions={},
        current_date=settings.calendar.start_date,
    )


class GameStateStore:
    def __init__(
        self,
        state: Optional[GameState] = None,
        settings: GameSettings = GAME_CONFIG,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.rng = rng or random.Random()
        self.state = state or empty_state(settings)
        self._observers: List[Observer] = []

    # ---------- Read accessors ----------

    @property
    def players(self) -> Dict[str, Player]:
        return self.state.players

    @property
    def units(self) -> Dict[str, Unit]:
        return self.state.units

    @property
    def territories(self) -> Dict[str, Territory]:
        return self.state.territories

    @property
    def regions(self) -> Dict[str, Region]:
        return self.state.regions

    @property
    def missions(self) -> Dict[str, Mission]:
        return self.state.missions

    @property
    def tick_count(self) -> int:
        return self.state.tick_count

    @property
    def current_date(self) -> datetime:
        return self.state.current_date

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        return self.state.players.get(player_id)

    def get_unit(self, unit_id: Optional[str]) -> Optional[Unit]:
        if unit_id is None:
            return None
        return self.state.units.get(unit_id)

    def get_territory(self, territory_id: Optional[str]) -> Optional[Territory]:
        if territory_id is None:
            return None
        return self.state.territories.get(territory_id)

    def get_region(self, region_id: Optional[str]) -> Optional[Region]:
        if region_id is None:
            return None
        return self.state.regions.get(region_id)

    def get_mission(self, mission_id: Optional[str]) -> Optional[Mission]:
        if mission_id is None:
            return None
        return self.state.missions.get(mission_id)

    def get_player_missions(self, player_id: str) -> List[Mission]:
        return [m for m in self.state.missions.values() if m.player_id == player_id]

    def get_player_units(self, player_id: str) -> List[Unit]:
        player = self.get_player(player_id)
        if player is None:
            return []
        return [self.state.units[uid] for uid in player.units if uid in self.state.units]

    def get_player_territories(self, player_id: str) -> List[Territory]:
        player = self.get_player(player_id)
        if player is None:
            return []
        return [
            self.state.territories[tid]
            for tid in player.territories
            if tid in self.state.territories
        ]

    def family_heat(self, player_id: str) -> float:
        """Mean heat of the player's roster (0 for an empty roster)."""
        units = self.get_player_units(player_id)
        if not units:
            return 0.0
        return sum(u.heat for u in units) / len(units)

    def formatted_date(self) -> str:
        return self.state.current_date.strftime(DATE_FORMAT)

    # ---------- Observers ----------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register `callback(kind, entity_id)`; returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, kind: str, entity_id: str) -> None:
        for callback in list(self._observers):
            try:
                callback(kind, entity_id)
            except Exception:
                logger.exception("observer failed for %s %s", kind, entity_id)

    # ---------- Mutation ----------

    def update_unit(self, unit_id: str, **fields: Any) -> Optional[Unit]:
        """
        Merge fields into a unit, then apply consequences: a rank change
        recomputes the cut, pending experience is turned into level-ups, and
        loyalty at or below zero makes the unit defect (owner cleared, removed
        from the former owner's roster). Returns the stored unit, or None when
        the id is unknown.
        """
        unit = self.state.units.get(unit_id)
        if unit is None:
            logger.warning("update_unit: unknown unit %s", unit_id)
            return None

        merged = replace(unit, **fields)
        if merged.rank != unit.rank and "cut" not in fields:
            merged = replace(merged, cut=unit_cut(merged.rank, merged.level, self.settings))
        merged = apply_level_ups(merged, self.rng, self.settings)
        if merged.loyalty > 100:
            merged = replace(merged, loyalty=100)

        former_owner = None
        if merged.loyalty <= 0:
            former_owner = merged.owner_id
            merged = replace(merged, loyalty=0, owner_id=None)

        self.state.units[unit_id] = merged
        if former_owner is not None:
            logger.info("unit %s (%s) defected from %s", unit_id, merged.name, former_owner)
            self.remove_unit_from_player(former_owner, unit_id)
        self._notify("unit", unit_id)
        return merged

    def update_territory(self, territory_id: str, **fields: Any) -> Optional[Territory]:
        territory = self.state.territories.get(territory_id)
        if territory is None:
            logger.warning("update_territory: unknown territory %s", territory_id)
            return None
        merged = replace(territory, **fields)
        self.state.territories[territory_id] = merged
        self._notify("territory", territory_id)
        return merged

    def update_player(self, player_id: str, **fields: Any) -> Optional[Player]:
        player = self.state.players.get(player_id)
        if player is None:
            logger.warning("update_player: unknown player %s", player_id)
            return None
        merged = replace(player, **fields)
        self.state.players[player_id] = merged
        self._notify("player", player_id)
        return merged

    def update_resources(self, player_id: str, **fields: Any) -> Optional[Player]:
        player = self.state.players.get(player_id)
        if player is None:
            logger.warning("update_resources: unknown player %s", player_id)
            return None
        return self.update_player(player_id, resources=replace(player.resources, **fields))

    def update_mission(self, mission_id: str, **fields: Any) -> Optional[Mission]:
        mission = self.state.missions.get(mission_id)
        if mission is None:
            logger.warning("update_mission: unknown mission %s", mission_id)
            return None
        merged = replace(mission, **fields)
        self.state.missions[mission_id] = merged
        self._notify("mission", mission_id)
        return merged

    def remove_unit_from_player(self, player_id: str, unit_id: str) -> None:
        player = self.state.players.get(player_id)
        if player is None:
            logger.warning("remove_unit_from_player: unknown player %s", player_id)
            return
        self.update_player(player_id, units=[uid for uid in player.units if uid != unit_id])

    def add_unit(self, unit: Unit) -> None:
        self.state.units[unit.id] = unit
        self._notify("unit", unit.id)

    def add_mission(self, mission: Mission) -> None:
        self.state.missions[mission.id] = mission
        self._notify("mission", mission.id)

    def remove_mission(self, mission_id: str) -> Optional[Mission]:
        mission = self.state.missions.pop(mission_id, None)
        if mission is not None:
            self._notify("mission", mission_id)
        return mission

    def refresh_family_heat(self, player_id: str) -> None:
        if player_id in self.state.players:
            self.update_resources(player_id, heat=self.family_heat(player_id))

    # ---------- Clock ----------

    def advance_clock(self) -> int:
        self.state.tick_count += 1
        self.state.current_date += timedelta(hours=self.settings.calendar.hours_per_tick)
        return self.state.tick_count

    # ---------- World initialization ----------

    def starting_corners(self) -> List[str]:
        w = self.settings.map.width
        h = self.settings.map.height
        return ["0-0", f"{w - 1}-0", f"0-{h - 1}", f"{w - 1}-{h - 1}"]

    def initialize_world(self, slots: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Build a fresh world: map, associate pool, and one family per active
        slot. `slots` maps slot id (player1..player4) to a dict with
        `controller`, `name` and `color`, as produced by load_player_slots.
        Each active slot takes the corner matching its slot position.
        """
        cfg = self.settings
        corners = self.starting_corners()
        if len(slots) > len(corners):
            raise ValueError(f"at most {len(corners)} player slots are supported")

        territories, regions = build_map(cfg, self.rng)
        self.state = empty_state(cfg)
        self.state.territories = territories
        self.state.regions = regions

        for _ in range(cfg.units.starting_associates):
            self.add_unit(generate_unit(UnitRank.ASSOCIATE, 1, self.rng, cfg))

        for index, (slot_id, slot) in enumerate(slots.items()):
            if PlayerController(slot["controller"]) == PlayerController.NONE:
                continue
            corner_id = corners[index]
            unit_ids: List[str] = []
            for template in cfg.units.starting_composition:
                unit = generate_unit(
                    template.rank, template.level, self.rng, cfg, tier=template.tier
                )
                unit = replace(
                    unit,
                    owner_id=slot_id,
                    mask={attr: False for attr in unit.mask},
                )
                self.add_unit(unit)
                unit_ids.append(unit.id)

            self.state.players[slot_id] = Player(
                id=slot_id,
                name=slot["name"],
                color=slot["color"],
                resources=Resources(money=cfg.players.starting_money),
                territories=[corner_id],
                units=unit_ids,
            )
            self.update_territory(corner_id, owner_id=slot_id)
            self.refresh_family_heat(slot_id)

        logger.info(
            "world initialized: %d territories, %d regions, %d players",
            len(self.state.territories),
            len(self.state.regions),
            len(self.state.players),
        )
