#!/usr/bin/env python3
"""
Lightweight Redis Streams helper for the game worker and the API.

Provides a thin wrapper around redis.asyncio for:
- appending snapshot/delta events to an append-only stream
- reading player commands via a consumer group
- storing/loading the latest snapshot in a hash
"""
from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from redis import asyncio as aioredis
from redis.exceptions import ResponseError

from syndicate.models import REDIS_SETTINGS


def _decode(fields: dict) -> dict:
    payload_raw = fields.get("data")
    return json.loads(payload_raw) if payload_raw else {}


class RedisStreams:
    def __init__(
        self,
        url: str | None = None,
        event_stream: str | None = None,
        command_stream: str | None = None,
        snapshot_key: str | None = None,
    ) -> None:
        self.url = url or str(REDIS_SETTINGS.redis_url)
        self.event_stream = event_stream or REDIS_SETTINGS.event_stream
        self.command_stream = command_stream or REDIS_SETTINGS.command_stream
        self.snapshot_key = snapshot_key or REDIS_SETTINGS.snapshot_key
        # decode_responses=True so we deal with str, not bytes
        self._redis = aioredis.from_url(self.url, decode_responses=True)

    @property
    def client(self):
        return self._redis

    async def close(self) -> None:
        await self._redis.aclose()

    # --- Consumer group helpers ---
    async def ensure_consumer_group(self, stream: str, group: str) -> None:
        try:
            await self._redis.xgroup_create(stream, group, id="0", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" in str(exc):
                return
            raise

    async def read_commands(
        self,
        group: str,
        consumer: str,
        count: int = 50,
        block_ms: int = 200,
    ) -> list[tuple[str, dict]]:
        """
        Read command batches via consumer group semantics.
        Returns a list of (message_id, payload_dict).
        """
        entries = await self._redis.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={self.command_stream: ">"},
            count=count,
            block=block_ms,
        )
        if not entries:
            return []
        return [
            (message_id, _decode(fields))
            for _, messages in entries
            for message_id, fields in messages
        ]

    async def ack_commands(self, ids: Iterable[str], group: str) -> None:
        ids = list(ids)
        if not ids:
            return
        await self._redis.xack(self.command_stream, group, *ids)

    async def append_command(self, payload: dict, maxlen: Optional[int] = 5000) -> str:
        return await self._redis.xadd(
            name=self.command_stream,
            fields={"data": json.dumps(payload)},
            maxlen=maxlen,
            approximate=True,
        )

    # --- Event helpers ---
    async def append_event(self, payload: dict, maxlen: Optional[int] = None) -> str:
        """
        Append a payload to the event stream. Uses field name 'data' to store JSON.
        """
        args: dict[str, Any] = {"data": json.dumps(payload)}
        return await self._redis.xadd(
            name=self.event_stream,
            fields=args,
            maxlen=maxlen,
            approximate=True,
        )

    async def read_events(
        self,
        last_id: str = "$",
        count: int = 50,
        block_ms: int | None = None,
    ) -> list[tuple[str, dict]]:
        entries = await self._redis.xread(
            streams={self.event_stream: last_id},
            count=count,
            block=block_ms,
        )
        if not entries:
            return []
        return [
            (message_id, _decode(fields))
            for _, messages in entries
            for message_id, fields in messages
        ]

    # --- Snapshot helpers ---
    async def save_snapshot(self, snapshot: dict) -> None:
        """
        Store the latest snapshot as a hash. The 'data' field holds JSON.
        """
        mapping = {"data": json.dumps(snapshot), "tick": str(snapshot.get("tick", 0))}
        await self._redis.hset(self.snapshot_key, mapping=mapping)

    async def load_snapshot(self) -> Optional[dict]:
        data = await self._redis.hget(self.snapshot_key, "data")
        if not data:
            return None
        return json.loads(data)
