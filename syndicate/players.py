#!/usr/bin/env python3
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from syndicate.helper import load_player_slots
from syndicate.models import GAME_CONFIG, GameSettings, PlayerController

logger = logging.getLogger(__name__)


class PlayerManager:
    """Slot table (player1..player4): who controls each family, and who is watching."""

    def __init__(self, settings: GameSettings = GAME_CONFIG) -> None:
        self.settings = settings
        self.slots: Dict[str, Dict[str, Any]] = load_player_slots(settings)
        self.viewing_player_id: Optional[str] = None
        self._pick_viewing_player()

    def _pick_viewing_player(self) -> None:
        humans = self.human_player_ids()
        active = self.active_player_ids()
        if humans:
            self.viewing_player_id = humans[0]
        elif active:
            self.viewing_player_id = active[0]
        else:
            self.viewing_player_id = None

    def configure(
        self,
        controllers: Mapping[str, PlayerController | str],
        names: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Assign controllers (and optional names) to slots; unknown slots raise KeyError."""
        for slot_id, controller in controllers.items():
            if slot_id not in self.slots:
                raise KeyError(f"unknown player slot {slot_id!r}")
            self.slots[slot_id]["controller"] = PlayerController(controller)
        for slot_id, name in (names or {}).items():
            if slot_id not in self.slots:
                raise KeyError(f"unknown player slot {slot_id!r}")
            self.slots[slot_id]["name"] = name
        self._pick_viewing_player()

    def get_slot(self, player_id: str) -> Optional[Dict[str, Any]]:
        return self.slots.get(player_id)

    def controller(self, player_id: str) -> PlayerController:
        slot = self.slots.get(player_id)
        if slot is None:
            return PlayerController.NONE
        return PlayerController(slot["controller"])

    def is_human(self, player_id: str) -> bool:
        return self.controller(player_id) == PlayerController.HUMAN

    def is_ai(self, player_id: str) -> bool:
        return self.controller(player_id) == PlayerController.AI

    def active_player_ids(self) -> List[str]:
        return [pid for pid in self.slots if self.controller(pid) != PlayerController.NONE]

    def human_player_ids(self) -> List[str]:
        return [pid for pid in self.slots if self.is_human(pid)]

    def ai_player_ids(self) -> List[str]:
        return [pid for pid in self.slots if self.is_ai(pid)]

    def set_viewing_player(self, player_id: str) -> None:
        if player_id not in self.slots:
            logger.warning("set_viewing_player: unknown slot %s", player_id)
            return
        self.viewing_player_id = player_id

    def reset(self) -> None:
        self.slots = load_player_slots(self.settings)
        self._pick_viewing_player()
