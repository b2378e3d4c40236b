#!/usr/bin/env python3
"""
Timer-like world processes: recurring jobs (income, capture progress,
mission supply) and one-shot entries (tip expiry, mission resolution).
"""
from __future__ import annotations

import logging
from typing import List

from syndicate.helper import (
    build_mission,
    capture_progress_increment,
    manager_multiplier,
    new_id,
    owned_neighbour_count,
    region_control,
    unit_salary,
)
from syndicate.models import (
    MissionStatus,
    ScheduledAction,
    ScheduledActionType,
    Territory,
    Unit,
    UnitStatus,
)
from syndicate.state import GameStateStore

logger = logging.getLogger(__name__)


class ScheduledActionManager:
    """
    Holds timer entries and fires the due ones. Entries due on the same tick
    fire in registration order, but handlers must not rely on that.
    """

    def __init__(self) -> None:
        self.entries: List[ScheduledAction] = []

    def add_scheduled_action(self, entry: ScheduledAction) -> ScheduledAction:
        if not entry.id:
            entry.id = new_id()
        self.entries.append(entry)
        return entry

    def remove_scheduled_action(self, entry_id: str) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != entry_id]
        return len(self.entries) != before

    def due(self, current_tick: int) -> List[ScheduledAction]:
        return [e for e in self.entries if e.next_execution_tick <= current_tick]

    def process_scheduled_actions(self, current_tick: int) -> List[ScheduledAction]:
        """
        Fire every entry due at or before current_tick. A failing entry is
        logged and still rescheduled (recurring) or dropped (one-shot).
        """
        fired = self.due(current_tick)
        for entry in fired:
            try:
                entry.execute(current_tick)
            except Exception:
                logger.exception(
                    "scheduled action %s (%s) failed at tick %d",
                    entry.id,
                    entry.type.value,
                    current_tick,
                )
            if entry.is_recurring:
                entry.next_execution_tick += entry.interval
            else:
                self.entries = [e for e in self.entries if e is not entry]
        return fired

    def clear(self) -> None:
        self.entries.clear()


# ---------- Income ----------


def generate_income(store: GameStateStore) -> None:
    """
    Pay every family: territory income times the manager multiplier and, for
    regions the family controls, the region bonus; minus unit salaries.
    Managers earn a little experience per cycle.
    """
    cfg = store.settings.territory
    for player_id in list(store.players):
        gross = 0.0
        for territory in store.get_player_territories(player_id):
            if territory.owner_id != player_id:
                continue
            manager = store.get_unit(territory.manager_id)
            if manager is not None and manager.owner_id != player_id:
                manager = None

            bonus = 1.0
            region = store.get_region(territory.region_id)
            if region is not None:
                control = region_control(region, player_id, store.territories)
                if control > cfg.region_control_threshold:
                    bonus = (100 + region.control_bonus) / 100

            gross += territory.income * manager_multiplier(manager) * bonus
            if manager is not None:
                store.update_unit(
                    manager.id, experience=manager.experience + cfg.manager_experience
                )

        salaries = sum(
            unit_salary(u.rank, store.settings) for u in store.get_player_units(player_id)
        )
        net = round(gross) - salaries
        player = store.get_player(player_id)
        if player is None:
            continue
        store.update_resources(
            player_id, money=player.resources.money + net, last_income=net
        )
        store.refresh_family_heat(player_id)
        logger.debug("income for %s: %d (gross %.0f, salaries %d)", player_id, net, gross, salaries)


# ---------- Capture ----------


def _reset_capture(store: GameStateStore, territory_id: str) -> None:
    store.update_territory(
        territory_id,
        is_being_captured=False,
        capture_progress=0.0,
        capture_initiator=None,
        capturing_unit_id=None,
    )


def _complete_capture(store: GameStateStore, territory: Territory, unit: Unit) -> None:
    new_owner = territory.capture_initiator
    previous_owner = territory.owner_id
    if territory.manager_id and territory.manager_id != unit.id:
        store.update_unit(territory.manager_id, status=UnitStatus.IDLE)

    store.update_territory(
        territory.id,
        owner_id=new_owner,
        is_being_captured=False,
        capture_progress=0.0,
        capture_initiator=None,
        capturing_unit_id=None,
        manager_id=unit.id,
    )
    store.update_unit(
        unit.id,
        status=UnitStatus.TERRITORY,
        experience=unit.experience + store.settings.territory.capture_experience,
    )

    player = store.get_player(new_owner)
    if player is not None and territory.id not in player.territories:
        store.update_player(player.id, territories=player.territories + [territory.id])
    loser = store.get_player(previous_owner)
    if loser is not None:
        store.update_player(
            loser.id, territories=[t for t in loser.territories if t != territory.id]
        )
    logger.info(
        "territory %s captured by %s (previous owner: %s)",
        territory.id,
        new_owner,
        previous_owner,
    )


def advance_captures(store: GameStateStore) -> None:
    """
    Move every running capture forward. A capture whose unit is gone, changed
    hands or left Expand status is aborted instead.
    """
    for territory in list(store.territories.values()):
        if not territory.is_being_captured:
            continue
        initiator = territory.capture_initiator
        unit = store.get_unit(territory.capturing_unit_id)
        if (
            unit is None
            or initiator is None
            or unit.owner_id != initiator
            or unit.status != UnitStatus.EXPAND
        ):
            logger.info("capture of %s aborted: capturing unit is no longer valid", territory.id)
            _reset_capture(store, territory.id)
            continue

        neighbours = owned_neighbour_count(territory, initiator, store.territories)
        progress = territory.capture_progress + capture_progress_increment(
            unit, neighbours, store.settings
        )
        if progress >= 100:
            _complete_capture(store, territory, unit)
        else:
            store.update_territory(territory.id, capture_progress=progress)


# ---------- Mission supply ----------


def expire_tip(store: GameStateStore, mission_id: str) -> bool:
    """Remove the mission if it is still Available. Returns True when removed."""
    mission = store.get_mission(mission_id)
    if mission is None or mission.status != MissionStatus.AVAILABLE:
        return False
    store.remove_mission(mission_id)
    logger.debug("tip for %r expired for %s", mission.info.name, mission.player_id)
    return True


def supply_missions(
    store: GameStateStore, scheduler: ScheduledActionManager, current_tick: int
) -> None:
    """Give every family one fresh tip and schedule its expiry."""
    prototypes = store.settings.missions.prototypes
    for player_id in list(store.players):
        prototype = store.rng.choice(prototypes)
        mission = build_mission(player_id, prototype, current_tick, store.rng, store.settings)
        store.add_mission(mission)
        mission_id = mission.id
        scheduler.add_scheduled_action(
            ScheduledAction(
                type=ScheduledActionType.TIP_EXPIRED,
                interval=store.settings.rates.tip_lifespan,
                next_execution_tick=mission.tip_expires,
                is_recurring=False,
                execute=lambda _tick, mid=mission_id: expire_tip(store, mid),
            )
        )


# ---------- Standing entries ----------


def setup_standing_jobs(store: GameStateStore, scheduler: ScheduledActionManager) -> None:
    rates = store.settings.rates
    now = store.tick_count
    scheduler.add_scheduled_action(
        ScheduledAction(
            type=ScheduledActionType.GENERATE_INCOME,
            interval=rates.income_rate,
            next_execution_tick=now + rates.income_rate,
            is_recurring=True,
            execute=lambda _tick: generate_income(store),
        )
    )
    scheduler.add_scheduled_action(
        ScheduledAction(
            type=ScheduledActionType.INCREASE_CAPTURE_PROGRESS,
            interval=rates.capture_rate,
            next_execution_tick=now + rates.capture_rate,
            is_recurring=True,
            execute=lambda _tick: advance_captures(store),
        )
    )
    scheduler.add_scheduled_action(
        ScheduledAction(
            type=ScheduledActionType.GENERATE_MISSIONS,
            interval=rates.tip_rate,
            next_execution_tick=now + rates.tip_rate,
            is_recurring=True,
            execute=lambda tick: supply_missions(store, scheduler, tick),
        )
    )
