#!/usr/bin/env python3
"""
Query and command surface for presentation layers. Queries read the store;
commands build Actions and queue them, returning the validation result.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from syndicate.actions import is_family_full
from syndicate.game import GameService
from syndicate.helper import is_neighbouring_player_territory, region_control
from syndicate.models import (
    Action,
    ActionType,
    AssignToCrew,
    AssignToTerritory,
    CommandIn,
    HireUnit,
    LaunchMission,
    Mission,
    MissionStatus,
    Player,
    PromoteUnit,
    Region,
    RemoveFromTerritory,
    StartCapture,
    Territory,
    Unit,
    UnitRank,
    ValidationResult,
)


def action_from_command(command: CommandIn) -> Action:
    """Turn a wire command into an Action; missing payload fields raise ValueError."""

    def need(value, name: str):
        if value is None:
            raise ValueError(f"{command.type.value} requires {name}")
        return value

    pid = command.player_id
    if command.type == ActionType.HIRE_UNIT:
        return HireUnit(player_id=pid, unit_id=need(command.unit_id, "unit_id"))
    if command.type == ActionType.PROMOTE_UNIT:
        return PromoteUnit(player_id=pid, unit_id=need(command.unit_id, "unit_id"))
    if command.type == ActionType.ASSIGN_TO_CREW:
        return AssignToCrew(
            player_id=pid,
            unit_id=need(command.unit_id, "unit_id"),
            captain_id=need(command.captain_id, "captain_id"),
            index=need(command.index, "index"),
        )
    if command.type == ActionType.START_CAPTURE:
        return StartCapture(
            player_id=pid,
            unit_id=need(command.unit_id, "unit_id"),
            territory_id=need(command.territory_id, "territory_id"),
        )
    if command.type == ActionType.ASSIGN_TO_TERRITORY:
        return AssignToTerritory(
            player_id=pid,
            unit_id=need(command.unit_id, "unit_id"),
            territory_id=need(command.territory_id, "territory_id"),
        )
    if command.type == ActionType.REMOVE_FROM_TERRITORY:
        return RemoveFromTerritory(
            player_id=pid,
            unit_id=need(command.unit_id, "unit_id"),
            territory_id=need(command.territory_id, "territory_id"),
        )
    if command.type == ActionType.LAUNCH_MISSION:
        return LaunchMission(
            player_id=pid,
            mission_id=need(command.mission_id, "mission_id"),
            unit_ids=list(command.unit_ids),
        )
    raise ValueError(f"unsupported command type {command.type}")


class GameController:
    def __init__(self, game: GameService) -> None:
        self.game = game

    @property
    def store(self):
        return self.game.store

    # ---------- Territories ----------

    def all_territories(self) -> List[Territory]:
        return list(self.store.territories.values())

    def owned_territories(self, player_id: str) -> List[Territory]:
        return [t for t in self.store.territories.values() if t.owner_id == player_id]

    def neutral_territories(self) -> List[Territory]:
        return [t for t in self.store.territories.values() if t.owner_id is None]

    def capturable_territories(self, player_id: str) -> List[Territory]:
        return [
            t
            for t in self.store.territories.values()
            if t.owner_id != player_id
            and is_neighbouring_player_territory(t, player_id, self.store.territories)
        ]

    # ---------- Units ----------

    def all_units(self) -> List[Unit]:
        return list(self.store.units.values())

    def units_by_owner(self, player_id: str) -> List[Unit]:
        return self.store.get_player_units(player_id)

    def associates(self) -> List[Unit]:
        return [
            u
            for u in self.store.units.values()
            if u.owner_id is None and u.rank == UnitRank.ASSOCIATE
        ]

    # ---------- Missions ----------

    def _missions(self, player_id: Optional[str], *statuses: MissionStatus) -> List[Mission]:
        return [
            m
            for m in self.store.missions.values()
            if m.status in statuses and (player_id is None or m.player_id == player_id)
        ]

    def available_missions(self, player_id: Optional[str] = None) -> List[Mission]:
        return self._missions(player_id, MissionStatus.AVAILABLE)

    def active_missions(self, player_id: Optional[str] = None) -> List[Mission]:
        return self._missions(player_id, MissionStatus.ACTIVE)

    def finished_missions(self, player_id: Optional[str] = None) -> List[Mission]:
        return self._missions(player_id, MissionStatus.SUCCEEDED, MissionStatus.FAILED)

    def mission(self, mission_id: str) -> Optional[Mission]:
        return self.store.get_mission(mission_id)

    def missions_by_ids(self, mission_ids: Iterable[str]) -> List[Mission]:
        return [m for m in (self.store.get_mission(mid) for mid in mission_ids) if m is not None]

    # ---------- Players / regions ----------

    def regions(self) -> List[Region]:
        return list(self.store.regions.values())

    def players(self) -> List[Player]:
        return list(self.store.players.values())

    def current_date(self) -> str:
        return self.store.formatted_date()

    def is_ai(self, player_id: str) -> bool:
        return self.game.players.is_ai(player_id)

    def is_human(self, player_id: str) -> bool:
        return self.game.players.is_human(player_id)

    def is_family_full(self, player_id: str) -> bool:
        return is_family_full(self.store, player_id)

    def region_ownership(self, region_id: str, player_id: str) -> float:
        region = self.store.get_region(region_id)
        if region is None:
            return 0.0
        return region_control(region, player_id, self.store.territories)

    def family_heat(self, player_id: str) -> float:
        return self.store.family_heat(player_id)

    # ---------- Commands ----------

    def submit(self, action: Action) -> ValidationResult:
        return self.game.actions.queue_action(action)

    def submit_command(self, command: CommandIn) -> ValidationResult:
        try:
            action = action_from_command(command)
        except ValueError as exc:
            return ValidationResult.fail(str(exc))
        return self.submit(action)

    def hire_unit(self, player_id: str, unit_id: str) -> ValidationResult:
        return self.submit(HireUnit(player_id=player_id, unit_id=unit_id))

    def promote_unit(self, player_id: str, unit_id: str) -> ValidationResult:
        return self.submit(PromoteUnit(player_id=player_id, unit_id=unit_id))

    def assign_to_crew(
        self, player_id: str, unit_id: str, captain_id: str, index: int
    ) -> ValidationResult:
        return self.submit(
            AssignToCrew(player_id=player_id, unit_id=unit_id, captain_id=captain_id, index=index)
        )

    def start_capture(self, player_id: str, unit_id: str, territory_id: str) -> ValidationResult:
        return self.submit(
            StartCapture(player_id=player_id, unit_id=unit_id, territory_id=territory_id)
        )

    def assign_to_territory(
        self, player_id: str, unit_id: str, territory_id: str
    ) -> ValidationResult:
        return self.submit(
            AssignToTerritory(player_id=player_id, unit_id=unit_id, territory_id=territory_id)
        )

    def remove_from_territory(
        self, player_id: str, unit_id: str, territory_id: str
    ) -> ValidationResult:
        return self.submit(
            RemoveFromTerritory(player_id=player_id, unit_id=unit_id, territory_id=territory_id)
        )

    def launch_mission(
        self, player_id: str, mission_id: str, unit_ids: List[str]
    ) -> ValidationResult:
        return self.submit(
            LaunchMission(player_id=player_id, mission_id=mission_id, unit_ids=list(unit_ids))
        )
