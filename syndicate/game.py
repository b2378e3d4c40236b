#!/usr/bin/env python3
"""
Game loop: one object wiring the store, action queue, scheduler, player
slots and AI together, and advancing them one tick at a time.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from syndicate.actions import ActionManager
from syndicate.helper import make_rng
from syndicate.models import AI_DECISIONS, GAME_CONFIG, AIDecisionSet, GameSettings, PlayerController
from syndicate.players import PlayerManager
from syndicate.puppet import AIService
from syndicate.scheduler import ScheduledActionManager, setup_standing_jobs, supply_missions
from syndicate.state import GameStateStore

logger = logging.getLogger(__name__)


class GameService:
    def __init__(
        self,
        settings: GameSettings = GAME_CONFIG,
        seed: Optional[object] = None,
        decisions: AIDecisionSet = AI_DECISIONS,
    ) -> None:
        self.settings = settings
        self.rng, self.seed = make_rng(seed)
        self.store = GameStateStore(settings=settings, rng=self.rng)
        self.scheduler = ScheduledActionManager()
        self.actions = ActionManager(self.store, self.scheduler)
        self.players = PlayerManager(settings)
        self.ai = AIService(self.store, self.actions, decisions, rng=self.rng)

    # ---------- Lifecycle ----------

    def init_game(
        self,
        controllers: Optional[Mapping[str, PlayerController | str]] = None,
        names: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Build a fresh world for the configured slots and arm the standing jobs."""
        if controllers:
            self.players.configure(controllers, names)
        self.scheduler.clear()
        self.actions.clear()
        self.ai.reset()
        self.store.initialize_world(self.players.slots)
        self.store.state.generator_seed = self.seed
        setup_standing_jobs(self.store, self.scheduler)
        # first tips are handed out right away
        supply_missions(self.store, self.scheduler, self.store.tick_count)

    @property
    def is_running(self) -> bool:
        return self.store.state.is_running

    @property
    def has_ended(self) -> bool:
        return self.store.state.has_ended

    def start(self) -> None:
        if self.has_ended:
            logger.info("game has ended; not starting")
            return
        self.store.state.is_running = True

    def stop(self) -> None:
        self.store.state.is_running = False

    def toggle(self) -> bool:
        if self.is_running:
            self.stop()
        else:
            self.start()
        return self.is_running

    def end_game(self) -> None:
        state = self.store.state
        state.is_running = False
        state.has_ended = True
        if state.players:
            winner = max(
                state.players.values(),
                key=lambda p: (p.resources.money, len(p.territories)),
            )
            state.winner_id = winner.id
        logger.info(
            "game ended at %s (tick %d), winner: %s",
            self.store.formatted_date(),
            state.tick_count,
            state.winner_id,
        )

    # ---------- Tick ----------

    def tick(self) -> int:
        """
        Advance one step: clock, AI pass, action queue, then due scheduled
        entries, in that order. Ends the game once the end date is reached.
        """
        if self.has_ended:
            return self.store.tick_count
        tick = self.store.advance_clock()

        ai_ids = [pid for pid in self.players.ai_player_ids() if pid in self.store.players]
        self.ai.tick(ai_ids)
        self.actions.process_actions()
        self.scheduler.process_scheduled_actions(tick)

        if self.store.current_date >= self.settings.calendar.end_date:
            self.end_game()
        return tick

    def run_ticks(self, count: int) -> int:
        for _ in range(count):
            if self.has_ended:
                break
            self.tick()
        return self.store.tick_count

    async def run(self, tick_delay: Optional[float] = None) -> None:
        """Tick on a fixed interval until stopped or the game ends."""
        delay = self.settings.tick_delay if tick_delay is None else tick_delay
        self.start()
        while self.is_running:
            self.tick()
            await asyncio.sleep(delay)

    def status(self) -> Dict[str, Any]:
        state = self.store.state
        return {
            "tick": state.tick_count,
            "date": self.store.formatted_date(),
            "is_running": state.is_running,
            "has_ended": state.has_ended,
            "winner_id": state.winner_id,
        }
