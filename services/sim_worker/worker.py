#!/usr/bin/env python3
"""
Game worker running the syndicate simulation.

This worker owns the in-memory game, consumes player commands from Redis,
advances the game one tick at a time, and publishes snapshots/events back to
Redis. A Redis lease ensures only one worker advances a given game at a time.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import socket
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic import ValidationError

from syndicate.controller import GameController
from syndicate.game import GameService
from syndicate.infra.redis_streams import RedisStreams
from syndicate.models import GAME_CONFIG, CommandIn
from syndicate.state_utils import snapshot_from_state


@dataclass(frozen=True)
class WorkerConfig:
    event_maxlen: int
    snapshot_every: int
    command_block_ms: int
    lease_key: str
    lease_ttl_ms: int
    worker_id: str
    restart_key: str
    command_group: str
    command_consumer: str
    include_ai_state: bool
    log_level: str


def _load_config() -> WorkerConfig:
    return WorkerConfig(
        event_maxlen=int(os.environ.get("EVENT_STREAM_MAXLEN", 5000)),
        snapshot_every=int(os.environ.get("SNAPSHOT_EVERY", 1)),
        command_block_ms=int(
            os.environ.get("COMMAND_BLOCK_MS", GAME_CONFIG.command_block_ms)
        ),
        lease_key=os.environ.get("LEASE_KEY", "syndicate:lease"),
        lease_ttl_ms=int(os.environ.get("LEASE_TTL_MS", GAME_CONFIG.lease_ttl_ms)),
        worker_id=os.environ.get("WORKER_ID", socket.gethostname()),
        restart_key=os.environ.get("RESTART_KEY", "syndicate:restart"),
        command_group=os.environ.get("COMMAND_GROUP", "sim"),
        command_consumer=os.environ.get("COMMAND_CONSUMER", f"sim-{os.getpid()}"),
        include_ai_state=os.environ.get("INCLUDE_AI_STATE", "").lower() == "true",
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


_CONFIG = _load_config()

TICK_DELAY: float = GAME_CONFIG.tick_delay

# entity collections diffed by id between frames
_DIFFED = ("players", "territories", "units", "missions")


def compute_delta(prev: dict, curr: dict) -> dict:
    """
    Compute a simple delta between two frames: per collection, changed
    entities (id + changed fields) and removed ids, plus the scalar header.
    """
    delta: dict = {
        "tick": curr.get("tick"),
        "date": curr.get("date"),
        "tick_delay_ms": curr.get("tick_delay_ms"),
        "is_running": curr.get("is_running"),
        "has_ended": curr.get("has_ended"),
        "winner_id": curr.get("winner_id"),
    }
    if curr.get("generator_seed") != prev.get("generator_seed"):
        delta["generator_seed"] = curr.get("generator_seed")

    for key in _DIFFED:
        prev_items = {item["id"]: item for item in prev.get(key, [])}
        curr_items = {item["id"]: item for item in curr.get(key, [])}
        changed = []
        for item_id, item in curr_items.items():
            old = prev_items.get(item_id, {})
            changes = {k: v for k, v in item.items() if old.get(k) != v}
            if changes:
                changes["id"] = item_id
                changed.append(changes)
        removed = [item_id for item_id in prev_items if item_id not in curr_items]
        if changed:
            delta[f"changed_{key}"] = changed
        if removed:
            delta[f"removed_{key}"] = removed

    delta["history_tail"] = curr.get("history_tail", [])
    if curr.get("ai_state") is not None:
        delta["ai_state"] = curr["ai_state"]
    return delta


class SimulationWorker:
    def __init__(
        self,
        streams: Optional[RedisStreams] = None,
        seed: Optional[object] = None,
    ) -> None:
        self.streams = streams or RedisStreams()
        self.game = self._new_game(GAME_CONFIG.sim_seed if seed is None else seed)
        self.controller = GameController(self.game)
        self.consumer_group = _CONFIG.command_group
        self.consumer_name = _CONFIG.command_consumer
        self._stop = asyncio.Event()
        self.lease_key = _CONFIG.lease_key
        self.lease_ttl_ms = _CONFIG.lease_ttl_ms
        self.worker_id = _CONFIG.worker_id
        self._last_frame: dict | None = None

    @staticmethod
    def _new_game(seed: Optional[object]) -> GameService:
        game = GameService(seed=seed)
        game.init_game()
        game.start()
        return game

    def _frame(self) -> dict:
        return snapshot_from_state(
            self.game, tick_delay=TICK_DELAY, include_ai_state=_CONFIG.include_ai_state
        )

    async def setup(self) -> None:
        await self.streams.ensure_consumer_group(
            self.streams.command_stream, self.consumer_group
        )
        if not await self._acquire_lease():
            raise RuntimeError("lease already held; refusing to start")
        print(f"[sim-worker] lease acquired key={self.lease_key} holder={self.worker_id}")

    async def _publish_snapshot(self, frame: dict) -> None:
        await self.streams.save_snapshot(frame)
        await self.streams.append_event(
            {"type": "snapshot", "data": frame}, maxlen=_CONFIG.event_maxlen
        )
        self._last_frame = frame

    async def _get_external_commands(self) -> Tuple[List[CommandIn], List[str]]:
        """
        Pull commands from the Redis stream. Returns (commands, message_ids_to_ack).
        """
        raw = await self.streams.read_commands(
            group=self.consumer_group,
            consumer=self.consumer_name,
            count=50,
            block_ms=_CONFIG.command_block_ms,
        )
        if not raw:
            return [], []

        commands: List[CommandIn] = []
        ids: List[str] = []
        for msg_id, payload in raw:
            for item in payload.get("commands", []):
                try:
                    commands.append(CommandIn.model_validate(item))
                except ValidationError as exc:
                    # ack anyway so a malformed entry cannot block the stream
                    print(f"[sim-worker] skipping malformed command: {exc.error_count()} error(s)")
            ids.append(msg_id)
        return commands, ids

    def apply_commands(self, commands: List[CommandIn]) -> int:
        """Queue commands for the next tick. Returns how many were accepted."""
        accepted = 0
        for command in commands:
            if self.game.players.is_ai(command.player_id):
                continue
            if self.controller.submit_command(command).valid:
                accepted += 1
        return accepted

    async def tick_once(self) -> None:
        commands, to_ack = await self._get_external_commands()
        accepted = self.apply_commands(commands)
        self.game.tick()

        frame = self._frame()
        frame["commands_accepted"] = accepted
        await self.streams.append_event(self._build_event(frame), maxlen=_CONFIG.event_maxlen)
        if self.game.store.tick_count % _CONFIG.snapshot_every == 0:
            await self.streams.save_snapshot(frame)
        self._last_frame = frame

        if to_ack:
            await self.streams.ack_commands(to_ack, self.consumer_group)

        if self.game.has_ended:
            await self._handle_restart(self.game.store.state.winner_id)

    async def _handle_restart(self, winner: str | None, seed: Optional[str] = None) -> None:
        """
        Emit a run_end event, then start a fresh game.
        """
        winner_player = self.game.store.get_player(winner)
        await self.streams.append_event(
            {
                "type": "run_end",
                "winner": winner,
                "winner_label": winner_player.name if winner_player else "none",
                "tick": self.game.store.tick_count,
                "date": self.game.store.formatted_date(),
            },
            maxlen=_CONFIG.event_maxlen,
        )
        self.game = self._new_game(seed)
        self.controller = GameController(self.game)
        # fresh snapshot so clients can resync immediately
        await self._publish_snapshot(self._frame())

    def _build_event(self, frame: dict) -> dict:
        """
        Build a delta event relative to the previous frame. If no previous
        frame exists, emit a full snapshot event.
        """
        if self._last_frame is None:
            return {"type": "snapshot", "data": frame}
        delta = compute_delta(self._last_frame, frame)
        delta["type"] = "delta"
        return delta

    async def _acquire_lease(self) -> bool:
        return bool(
            await self.streams.client.set(
                name=self.lease_key,
                value=self.worker_id,
                nx=True,
                px=self.lease_ttl_ms,
            )
        )

    async def _renew_lease(self) -> bool:
        script = """
        if redis.call('GET', KEYS[1]) == ARGV[1] then
            return redis.call('PEXPIRE', KEYS[1], ARGV[2])
        else
            return 0
        end
        """
        res = await self.streams.client.eval(
            script, 1, self.lease_key, self.worker_id, self.lease_ttl_ms
        )
        return res == 1

    async def _release_lease(self) -> None:
        script = """
        if redis.call('GET', KEYS[1]) == ARGV[1] then
            return redis.call('DEL', KEYS[1])
        else
            return 0
        end
        """
        await self.streams.client.eval(script, 1, self.lease_key, self.worker_id)

    async def _check_restart(self) -> bool:
        restart_payload = await self.streams.client.get(_CONFIG.restart_key)
        if not restart_payload:
            return False
        await self.streams.client.delete(_CONFIG.restart_key)
        seed = None
        try:
            parsed = json.loads(restart_payload)
            if isinstance(parsed, dict):
                seed = parsed.get("seed")
        except (json.JSONDecodeError, TypeError):
            seed = None
        print(f"[sim-worker] restart requested seed={seed}")
        await self._handle_restart(None, seed=seed)
        return True

    async def run(self) -> None:
        try:
            await self.setup()
        except RuntimeError as exc:
            print(f"[sim-worker] {exc}")
            return

        print(
            f"[sim-worker] starting loop worker_id={self.worker_id} "
            f"tick_delay={TICK_DELAY}s lease_key={self.lease_key} seed={self.game.seed}"
        )
        await self._publish_snapshot(self._frame())
        try:
            while not self._stop.is_set():
                if not await self._renew_lease():
                    if await self._acquire_lease():
                        print("[sim-worker] lease reacquired after early lapse")
                    else:
                        print("[sim-worker] lost lease (pre-tick); stopping")
                        break

                if await self._check_restart():
                    await asyncio.sleep(0.5)
                    continue

                try:
                    await self.tick_once()
                except Exception as exc:  # pragma: no cover - background safety
                    print(f"[sim-worker] error during tick: {exc}")

                ok = await self._renew_lease()
                if not ok:
                    await asyncio.sleep(TICK_DELAY)
                    ok = await self._renew_lease() or await self._acquire_lease()
                if not ok:
                    print("[sim-worker] lost lease after retry; stopping")
                    break

                await asyncio.sleep(TICK_DELAY)
        finally:
            try:
                await self._release_lease()
                await self.streams.close()
            except Exception as exc:
                print(f"[sim-worker] shutdown cleanup failed: {exc}")
            print("[sim-worker] stopping loop")

    def stop(self) -> None:
        self._stop.set()


async def main() -> None:
    logging.basicConfig(
        level=_CONFIG.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    worker = SimulationWorker()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
