#!/usr/bin/env python3
"""
Command pipeline: validation, queueing and per-tick processing of Actions.

Every state-changing intent (from a human or the AI) is an Action. It is
validated when queued and again right before it is applied, because earlier
actions in the same batch may have changed the state it depends on.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, TYPE_CHECKING, Union

from syndicate.helper import (
    chance_to_be_caught,
    is_neighbouring_player_territory,
    mission_succeeds,
    net_reward,
    new_id,
    promoted_rank,
    reveal_attribute,
    success_chance,
    team_stats,
)
from syndicate.models import (
    TERMINAL_RANKS,
    Action,
    ActionStatus,
    ActionType,
    AssignToCrew,
    AssignToTerritory,
    HireUnit,
    LaunchMission,
    MissionStatus,
    PromoteUnit,
    RemoveFromTerritory,
    ScheduledAction,
    ScheduledActionType,
    StartCapture,
    Unit,
    UnitRank,
    UnitStatus,
    ValidationResult,
)
from syndicate.state import GameStateStore

if TYPE_CHECKING:
    from syndicate.scheduler import ScheduledActionManager

logger = logging.getLogger(__name__)


class SyndicateError(Exception):
    """Base class for simulation errors."""


class ActionProcessingError(SyndicateError):
    """Raised by a processor when the state no longer supports the action."""


# ---------- Shared checks ----------


def is_family_full(store: GameStateStore, player_id: str) -> bool:
    """A family holds at most max_crew_size units per Capo."""
    units = store.get_player_units(player_id)
    capos = sum(1 for u in units if u.rank == UnitRank.CAPO)
    return len(units) >= store.settings.units.max_crew_size * capos


def _owned_unit(
    store: GameStateStore, player_id: str, unit_id: str
) -> Union[Unit, ValidationResult]:
    """The player's unit, or the failed result explaining why it is not."""
    unit = store.get_unit(unit_id)
    if unit is None:
        return ValidationResult.fail(f"unit {unit_id} does not exist")
    if unit.owner_id != player_id:
        return ValidationResult.fail(f"unit {unit_id} is not owned by {player_id}")
    return unit


# ---------- Validators ----------


def validate_hire_unit(action: HireUnit, store: GameStateStore) -> ValidationResult:
    if store.get_player(action.player_id) is None:
        return ValidationResult.fail(f"player {action.player_id} does not exist")
    unit = store.get_unit(action.unit_id)
    if unit is None:
        return ValidationResult.fail(f"unit {action.unit_id} does not exist")
    if unit.owner_id is not None:
        return ValidationResult.fail("unit is already owned")
    if unit.rank != UnitRank.ASSOCIATE:
        return ValidationResult.fail("only associates can be hired")
    if is_family_full(store, action.player_id):
        return ValidationResult.fail("family is full")
    return ValidationResult.ok()


def validate_promote_unit(action: PromoteUnit, store: GameStateStore) -> ValidationResult:
    unit = _owned_unit(store, action.player_id, action.unit_id)
    if isinstance(unit, ValidationResult):
        return unit
    if unit.rank in TERMINAL_RANKS:
        return ValidationResult.fail(f"{unit.rank.value} cannot be promoted further")
    return ValidationResult.ok()


def validate_assign_to_crew(action: AssignToCrew, store: GameStateStore) -> ValidationResult:
    unit = _owned_unit(store, action.player_id, action.unit_id)
    if isinstance(unit, ValidationResult):
        return unit
    captain = _owned_unit(store, action.player_id, action.captain_id)
    if isinstance(captain, ValidationResult):
        return captain
    if unit.rank != UnitRank.SOLDIER:
        return ValidationResult.fail("only soldiers can join a crew")
    if captain.rank != UnitRank.CAPO:
        return ValidationResult.fail("crews are led by a Capo")
    if action.unit_id in (captain.crew or []):
        return ValidationResult.fail("unit is already in this crew")
    if not 0 <= action.index < store.settings.units.max_crew_size:
        return ValidationResult.fail(f"crew slot {action.index} is out of range")
    return ValidationResult.ok()


def validate_start_capture(action: StartCapture, store: GameStateStore) -> ValidationResult:
    unit = _owned_unit(store, action.player_id, action.unit_id)
    if isinstance(unit, ValidationResult):
        return unit
    if unit.rank == UnitRank.ASSOCIATE:
        return ValidationResult.fail("associates cannot capture territory")
    if unit.status == UnitStatus.EXPAND:
        return ValidationResult.fail("unit is already capturing a territory")
    territory = store.get_territory(action.territory_id)
    if territory is None:
        return ValidationResult.fail(f"territory {action.territory_id} does not exist")
    if territory.owner_id == action.player_id:
        return ValidationResult.fail("territory is already owned")
    if not is_neighbouring_player_territory(territory, action.player_id, store.territories):
        return ValidationResult.fail("territory is not adjacent to the family's turf")
    return ValidationResult.ok()


def validate_assign_to_territory(
    action: AssignToTerritory, store: GameStateStore
) -> ValidationResult:
    unit = _owned_unit(store, action.player_id, action.unit_id)
    if isinstance(unit, ValidationResult):
        return unit
    if unit.rank == UnitRank.ASSOCIATE:
        return ValidationResult.fail("associates cannot manage territory")
    territory = store.get_territory(action.territory_id)
    if territory is None:
        return ValidationResult.fail(f"territory {action.territory_id} does not exist")
    if territory.owner_id != action.player_id:
        return ValidationResult.fail("territory is not owned by the family")
    if territory.manager_id == action.unit_id:
        return ValidationResult.fail("unit already manages this territory")
    return ValidationResult.ok()


def validate_remove_from_territory(
    action: RemoveFromTerritory, store: GameStateStore
) -> ValidationResult:
    unit = _owned_unit(store, action.player_id, action.unit_id)
    if isinstance(unit, ValidationResult):
        return unit
    territory = store.get_territory(action.territory_id)
    if territory is None:
        return ValidationResult.fail(f"territory {action.territory_id} does not exist")
    if territory.owner_id != action.player_id:
        return ValidationResult.fail("territory is not owned by the family")
    if territory.manager_id != action.unit_id:
        return ValidationResult.fail("unit is not the manager of this territory")
    return ValidationResult.ok()


def validate_launch_mission(action: LaunchMission, store: GameStateStore) -> ValidationResult:
    mission = store.get_mission(action.mission_id)
    if mission is None:
        return ValidationResult.fail(f"mission {action.mission_id} does not exist")
    if mission.player_id != action.player_id:
        return ValidationResult.fail("mission belongs to another family")
    if mission.status != MissionStatus.AVAILABLE:
        return ValidationResult.fail(f"mission is {mission.status.value}")
    if store.tick_count >= mission.tip_expires:
        return ValidationResult.fail("the tip has expired")
    max_team = store.settings.missions.max_team_size
    if not 1 <= len(action.unit_ids) <= max_team:
        return ValidationResult.fail(f"a mission needs 1-{max_team} units")
    if len(set(action.unit_ids)) != len(action.unit_ids):
        return ValidationResult.fail("a unit is listed twice")
    for uid in action.unit_ids:
        unit = store.get_unit(uid)
        if unit is None:
            return ValidationResult.fail(f"unit {uid} does not exist")
        if unit.owner_id != action.player_id and unit.rank != UnitRank.ASSOCIATE:
            return ValidationResult.fail(f"unit {uid} is not available to the family")
        if unit.status != UnitStatus.IDLE:
            return ValidationResult.fail(f"unit {uid} is not idle (status: {unit.status.value})")
    return ValidationResult.ok()


Validator = Callable[..., ValidationResult]

_VALIDATORS: Dict[ActionType, Validator] = {
    ActionType.HIRE_UNIT: validate_hire_unit,
    ActionType.PROMOTE_UNIT: validate_promote_unit,
    ActionType.ASSIGN_TO_CREW: validate_assign_to_crew,
    ActionType.START_CAPTURE: validate_start_capture,
    ActionType.ASSIGN_TO_TERRITORY: validate_assign_to_territory,
    ActionType.REMOVE_FROM_TERRITORY: validate_remove_from_territory,
    ActionType.LAUNCH_MISSION: validate_launch_mission,
}


def validate_action(action: Action, store: GameStateStore) -> ValidationResult:
    """Pure check of an action against the current state. Never raises."""
    validator = _VALIDATORS.get(getattr(action, "type", None))  # type: ignore[arg-type]
    if validator is None:
        return ValidationResult.fail(f"unknown action type {type(action).__name__}")
    return validator(action, store)


# ---------- Processors ----------


def _require_unit(store: GameStateStore, unit_id: str) -> Unit:
    unit = store.get_unit(unit_id)
    if unit is None:
        raise ActionProcessingError(f"unit {unit_id} vanished")
    return unit


def process_hire_unit(action: HireUnit, store: GameStateStore, scheduler) -> None:
    player = store.get_player(action.player_id)
    if player is None:
        raise ActionProcessingError(f"player {action.player_id} vanished")
    unit = _require_unit(store, action.unit_id)
    # a fresh hire starts with at least the default loyalty
    hired = store.update_unit(
        action.unit_id,
        rank=UnitRank.SOLDIER,
        owner_id=action.player_id,
        loyalty=max(unit.loyalty, store.settings.units.starting_loyalty),
    )
    if hired is None or hired.owner_id != action.player_id:
        raise ActionProcessingError(f"unit {action.unit_id} did not join {action.player_id}")
    store.update_player(action.player_id, units=player.units + [action.unit_id])


def process_promote_unit(action: PromoteUnit, store: GameStateStore, scheduler) -> None:
    unit = _require_unit(store, action.unit_id)
    new_rank = promoted_rank(unit.rank)
    fields: dict = {"rank": new_rank}
    if new_rank == UnitRank.CAPO:
        fields["crew"] = []
        if unit.captain_id:
            captain = store.get_unit(unit.captain_id)
            if captain is not None and captain.crew:
                store.update_unit(
                    captain.id,
                    crew=[None if uid == unit.id else uid for uid in captain.crew],
                )
            fields["captain_id"] = None
    store.update_unit(action.unit_id, **fields)


def process_assign_to_crew(action: AssignToCrew, store: GameStateStore, scheduler) -> None:
    """
    Put the unit into slot `index` of the captain's crew. Whoever held that
    slot takes the unit's old place (its previous captain and slot), or
    becomes crew-less when the unit had none.
    """
    unit = _require_unit(store, action.unit_id)
    captain = _require_unit(store, action.captain_id)

    crew: List[Optional[str]] = list(captain.crew or [])
    while len(crew) <= action.index:
        crew.append(None)
    evicted_id = crew[action.index]
    previous_captain_id = unit.captain_id

    if previous_captain_id and previous_captain_id != captain.id:
        previous_captain = store.get_unit(previous_captain_id)
        if previous_captain is not None:
            store.update_unit(
                previous_captain_id,
                crew=[evicted_id if uid == unit.id else uid for uid in previous_captain.crew or []],
            )
    if evicted_id:
        store.update_unit(
            evicted_id,
            captain_id=previous_captain_id if previous_captain_id != captain.id else None,
        )

    crew[action.index] = unit.id
    store.update_unit(captain.id, crew=crew)
    store.update_unit(unit.id, captain_id=captain.id)


def process_start_capture(action: StartCapture, store: GameStateStore, scheduler) -> None:
    territory = store.get_territory(action.territory_id)
    if territory is None:
        raise ActionProcessingError(f"territory {action.territory_id} vanished")
    _require_unit(store, action.unit_id)

    # A besieging unit stops managing its territory
    for other in list(store.territories.values()):
        if other.manager_id == action.unit_id:
            store.update_territory(other.id, manager_id=None)

    previous = territory.capturing_unit_id
    if previous and previous != action.unit_id:
        store.update_unit(previous, status=UnitStatus.IDLE)
    progress = territory.capture_progress
    if territory.capture_initiator != action.player_id:
        progress = 0.0

    store.update_territory(
        action.territory_id,
        is_being_captured=True,
        capture_progress=progress,
        capture_initiator=action.player_id,
        capturing_unit_id=action.unit_id,
    )
    store.update_unit(action.unit_id, status=UnitStatus.EXPAND)


def process_assign_to_territory(
    action: AssignToTerritory, store: GameStateStore, scheduler
) -> None:
    territory = store.get_territory(action.territory_id)
    if territory is None:
        raise ActionProcessingError(f"territory {action.territory_id} vanished")
    _require_unit(store, action.unit_id)

    if territory.manager_id and territory.manager_id != action.unit_id:
        store.update_unit(territory.manager_id, status=UnitStatus.IDLE)
    # A unit manages one territory at a time
    for other in list(store.territories.values()):
        if other.id != territory.id and other.manager_id == action.unit_id:
            store.update_territory(other.id, manager_id=None)

    store.update_unit(action.unit_id, status=UnitStatus.TERRITORY)
    store.update_territory(action.territory_id, manager_id=action.unit_id)


def process_remove_from_territory(
    action: RemoveFromTerritory, store: GameStateStore, scheduler
) -> None:
    _require_unit(store, action.unit_id)
    store.update_unit(action.unit_id, status=UnitStatus.IDLE)
    store.update_territory(action.territory_id, manager_id=None)


def process_launch_mission(
    action: LaunchMission, store: GameStateStore, scheduler: "ScheduledActionManager"
) -> None:
    mission = store.get_mission(action.mission_id)
    if mission is None:
        raise ActionProcessingError(f"mission {action.mission_id} vanished")
    units = [_require_unit(store, uid) for uid in action.unit_ids]

    tick = store.tick_count
    end_tick = tick + mission.info.duration_ticks
    for unit in units:
        store.update_unit(
            unit.id, status=UnitStatus.MISSION, missions=unit.missions + [mission.id]
        )
    store.update_mission(
        mission.id,
        unit_ids=list(action.unit_ids),
        start_tick=tick,
        end_tick=end_tick,
        status=MissionStatus.ACTIVE,
    )

    mission_id = mission.id
    scheduler.add_scheduled_action(
        ScheduledAction(
            type=ScheduledActionType.MISSION_COMPLETE,
            interval=mission.info.duration_ticks,
            next_execution_tick=end_tick,
            is_recurring=False,
            execute=lambda _tick: resolve_mission(store, mission_id),
        )
    )
    logger.info(
        "player %s launched mission %r with %d unit(s), due at tick %d",
        action.player_id,
        mission.info.name,
        len(units),
        end_tick,
    )


Processor = Callable[..., None]

_PROCESSORS: Dict[ActionType, Processor] = {
    ActionType.HIRE_UNIT: process_hire_unit,
    ActionType.PROMOTE_UNIT: process_promote_unit,
    ActionType.ASSIGN_TO_CREW: process_assign_to_crew,
    ActionType.START_CAPTURE: process_start_capture,
    ActionType.ASSIGN_TO_TERRITORY: process_assign_to_territory,
    ActionType.REMOVE_FROM_TERRITORY: process_remove_from_territory,
    ActionType.LAUNCH_MISSION: process_launch_mission,
}


# ---------- Mission resolution ----------


def resolve_mission(store: GameStateStore, mission_id: str) -> Optional[bool]:
    """
    Settle an Active mission: roll against the team's weakest-link chance,
    pay out net of cuts on success, then update every assigned unit (loyalty,
    experience, heat, caught check, one attribute revealed). Returns whether
    the mission succeeded, or None when there was nothing to resolve.
    """
    mission = store.get_mission(mission_id)
    if mission is None or mission.status != MissionStatus.ACTIVE:
        logger.warning("resolve_mission: mission %s is not active", mission_id)
        return None

    cfg = store.settings.missions
    rng = store.rng
    units = [u for u in (store.get_unit(uid) for uid in mission.unit_ids) if u is not None]
    chance = success_chance(mission.info.difficulty, team_stats(units), cfg.max_success_chance)
    roll = rng.randint(1, 100)
    success = mission_succeeds(chance, roll)

    player = store.get_player(mission.player_id)
    player_heat = player.resources.heat if player else 0.0

    reward = 0
    if success and player is not None:
        reward = net_reward(mission.info.reward, (u.cut for u in units))
        store.update_resources(player.id, money=player.resources.money + reward)

    loyalty_delta = cfg.loyalty_reward if success else -(cfg.loyalty_reward // 2)
    experience = cfg.experience if success else 0
    for unit in units:
        caught_chance = chance_to_be_caught(player_heat, unit.heat, store.settings)
        caught = rng.randint(0, 100) < caught_chance
        store.update_unit(
            unit.id,
            status=UnitStatus.PRISON if caught else UnitStatus.IDLE,
            loyalty=unit.loyalty + loyalty_delta,
            heat=unit.heat + mission.info.heat,
            experience=unit.experience + experience,
            mask=reveal_attribute(unit, rng),
        )
        if caught:
            logger.info("unit %s (%s) was caught and sent to prison", unit.id, unit.name)

    store.update_mission(
        mission_id,
        status=MissionStatus.SUCCEEDED if success else MissionStatus.FAILED,
        results={"money": reward} if success else None,
    )
    if player is not None:
        store.refresh_family_heat(player.id)
    logger.info(
        "mission %r %s for player %s (chance %.0f%%, roll %d)",
        mission.info.name,
        "succeeded" if success else "failed",
        mission.player_id,
        chance,
        roll,
    )
    return success


# ---------- Queue ----------


class ActionManager:
    """FIFO action queue plus history of every action that reached a terminal state."""

    def __init__(self, store: GameStateStore, scheduler: "ScheduledActionManager") -> None:
        self.store = store
        self.scheduler = scheduler
        self.queue: List[Action] = []
        self.history: List[Action] = []

    def queue_action(self, action: Action) -> ValidationResult:
        if not action.id:
            action.id = new_id()
        if not action.timestamp:
            action.timestamp = time.time()

        result = validate_action(action, self.store)
        if not result.valid:
            action.status = ActionStatus.FAILED
            action.reason = result.reason
            self.history.append(action)
            logger.info(
                "rejected %s from %s: %s",
                getattr(action, "type", type(action).__name__),
                action.player_id,
                result.reason,
            )
            return result

        action.status = ActionStatus.PENDING
        self.queue.append(action)
        return result

    def process_actions(self) -> List[Action]:
        """Drain pending actions in enqueue order. Returns the processed batch."""
        batch = [a for a in self.queue if a.status == ActionStatus.PENDING]
        if not batch:
            return []
        for action in batch:
            action.status = ActionStatus.PROCESSING

        for action in batch:
            try:
                result = validate_action(action, self.store)
                if not result.valid:
                    action.status = ActionStatus.FAILED
                    action.reason = result.reason
                    logger.info("action %s no longer valid: %s", action.id, result.reason)
                    continue
                processor = _PROCESSORS.get(action.type)
                if processor is None:
                    action.status = ActionStatus.FAILED
                    action.reason = f"no processor for {action.type}"
                    logger.warning("action %s: no processor for %s", action.id, action.type)
                    continue
                processor(action, self.store, self.scheduler)
            except Exception as exc:
                logger.exception("action %s (%s) failed", action.id, action.type)
                action.status = ActionStatus.FAILED
                action.reason = str(exc)
                continue
            if action.status == ActionStatus.PROCESSING:
                action.status = ActionStatus.COMPLETED

        processed = {id(a) for a in batch}
        self.queue = [a for a in self.queue if id(a) not in processed]
        self.history.extend(batch)
        return batch

    def pending(self) -> List[Action]:
        return [a for a in self.queue if a.status == ActionStatus.PENDING]

    def clear(self) -> None:
        self.queue.clear()
        self.history.clear()
