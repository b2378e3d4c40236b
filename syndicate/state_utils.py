#!/usr/bin/env python3
"""
Helpers for building public-facing snapshots from the in-memory game.
"""
from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, List

from syndicate.game import GameService
from syndicate.models import Action, Mission, Territory, Unit


def _attr_map(values: Dict[Any, Any]) -> Dict[str, Any]:
    return {getattr(k, "value", k): v for k, v in values.items()}


def unit_payload(unit: Unit) -> dict:
    return {
        "id": unit.id,
        "name": unit.name,
        "nickname": unit.nickname,
        "rank": unit.rank.value,
        "owner_id": unit.owner_id,
        "skills": _attr_map(unit.skills),
        "mask": _attr_map(unit.mask),
        "experience": unit.experience,
        "level": unit.level,
        "loyalty": unit.loyalty,
        "heat": unit.heat,
        "cut": unit.cut,
        "status": unit.status.value,
        "missions": list(unit.missions),
        "crew": list(unit.crew) if unit.crew is not None else None,
        "captain_id": unit.captain_id,
    }


def territory_payload(territory: Territory) -> dict:
    return {
        "id": territory.id,
        "name": territory.name,
        "x": territory.x,
        "y": territory.y,
        "region_id": territory.region_id,
        "income": territory.income,
        "owner_id": territory.owner_id,
        "is_being_captured": territory.is_being_captured,
        "capture_progress": territory.capture_progress,
        "capture_initiator": territory.capture_initiator,
        "capturing_unit_id": territory.capturing_unit_id,
        "manager_id": territory.manager_id,
        "borders": {
            "top": territory.borders.top,
            "right": territory.borders.right,
            "bottom": territory.borders.bottom,
            "left": territory.borders.left,
        },
    }


def mission_payload(mission: Mission) -> dict:
    return {
        "id": mission.id,
        "player_id": mission.player_id,
        "name": mission.info.name,
        "reward": mission.info.reward,
        "difficulty": _attr_map(mission.info.difficulty),
        "duration_ticks": mission.info.duration_ticks,
        "heat": mission.info.heat,
        "tip_expires": mission.tip_expires,
        "unit_ids": list(mission.unit_ids),
        "start_tick": mission.start_tick,
        "end_tick": mission.end_tick,
        "status": mission.status.value,
        "results": mission.results,
    }


def action_payload(action: Action) -> dict:
    # payload fields differ per command; copy whatever the dataclass carries
    out: Dict[str, Any] = {"type": action.type.value}
    for f in fields(action):
        value = getattr(action, f.name)
        out[f.name] = getattr(value, "value", value)
    return out


def snapshot_from_state(
    game: GameService,
    tick_delay: float,
    include_ai_state: bool = False,
    history_tail: int = 40,
) -> dict:
    """
    Generate a snapshot payload suitable for API/stream consumers.
    """
    store = game.store
    state = store.state

    players_payload: List[dict] = []
    for player in store.players.values():
        players_payload.append(
            {
                "id": player.id,
                "name": player.name,
                "color": player.color,
                "controller": game.players.controller(player.id).value,
                "money": player.resources.money,
                "heat": player.resources.heat,
                "awareness": player.resources.awareness,
                "last_income": player.resources.last_income,
                "territories": list(player.territories),
                "units": list(player.units),
            }
        )

    regions_payload = [
        {
            "id": region.id,
            "name": region.name,
            "color": region.color,
            "control_bonus": region.control_bonus,
            "territory_ids": list(region.territory_ids),
        }
        for region in store.regions.values()
    ]

    snapshot = {
        "tick_delay": tick_delay,
        "tick_delay_ms": int(tick_delay * 1000),
        "tick": state.tick_count,
        "date": store.formatted_date(),
        "generator_seed": state.generator_seed,
        "is_running": state.is_running,
        "has_ended": state.has_ended,
        "winner_id": state.winner_id,
        "viewing_player_id": game.players.viewing_player_id,
        "players": players_payload,
        "regions": regions_payload,
        "territories": [territory_payload(t) for t in store.territories.values()],
        "units": [unit_payload(u) for u in store.units.values()],
        "missions": [mission_payload(m) for m in store.missions.values()],
        "history_tail": [
            action_payload(a) for a in game.actions.history[-history_tail:]
        ]
        if history_tail > 0
        else [],
        "ai_state": game.ai.debug_state() if include_ai_state else None,
    }
    return snapshot
