#!/usr/bin/env python3
from __future__ import annotations

from typing import Any

from syndicate.models.sim_config import GameSettings, PlayerSlotConfig
from syndicate.models.world_config import PlayerController

MAX_SLOTS = 4


def _default_name(controller: PlayerController, index: int) -> str:
    if controller == PlayerController.AI:
        return f"AI Family {index}"
    return f"Player {index + 1}"


def load_player_slots(game_cfg: GameSettings) -> dict[str, dict[str, Any]]:
    """
    Build the slot table (player1..player4) from the validated settings.
    Missing slots are filled as empty; unnamed slots get a default name and
    every slot gets the colour of its starting corner.
    """
    configured = {slot.id: slot for slot in game_cfg.players.slots}
    colors = game_cfg.players.colors

    slots: dict[str, dict[str, Any]] = {}
    for idx in range(MAX_SLOTS):
        slot_id = f"player{idx + 1}"
        slot = configured.get(
            slot_id, PlayerSlotConfig(id=slot_id, controller=PlayerController.NONE)
        )
        slots[slot_id] = {
            "controller": slot.controller,
            "name": slot.name or _default_name(slot.controller, idx),
            "color": colors[idx % len(colors)],
        }
    return slots
