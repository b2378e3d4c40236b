import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import redis
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from syndicate.infra.redis_streams import RedisStreams
from syndicate.models import GAME_CONFIG, CommandsPayload
from syndicate.players import PlayerManager


@dataclass(frozen=True)
class ApiConfig:
    redis_url: str | None
    cors_allow_origins: str
    restart_key: str
    command_maxlen: int
    port: int


def _load_config() -> ApiConfig:
    return ApiConfig(
        redis_url=os.environ.get("REDIS_URL"),
        cors_allow_origins=os.environ.get("CORS_ALLOW_ORIGINS", "*"),
        restart_key=os.environ.get("RESTART_KEY", "syndicate:restart"),
        command_maxlen=int(os.environ.get("COMMAND_STREAM_MAXLEN", "5000")),
        port=int(os.environ.get("PORT", "8000")),
    )


_CONFIG = _load_config()

# Redis streams helper (async), shared with the game worker's key defaults.
streams = RedisStreams(url=_CONFIG.redis_url)

app = FastAPI(title="Syndicate API", version="0.1.0")

cors_origins = _CONFIG.cors_allow_origins
origins = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> Dict[str, str]:
    try:
        await streams.client.ping()
    except redis.exceptions.RedisError as exc:
        raise HTTPException(status_code=503, detail=f"redis error: {exc}") from exc
    return {"status": "ok"}


@app.get("/players")
async def players() -> Dict[str, Any]:
    """
    Configured player slots (controller, name, color) for the lobby screen.
    """
    slots = PlayerManager(GAME_CONFIG).slots
    return {
        "players": [
            {
                "id": slot_id,
                "name": slot["name"],
                "color": slot["color"],
                "controller": slot["controller"].value,
            }
            for slot_id, slot in slots.items()
        ]
    }


@app.get("/snapshot")
async def snapshot() -> Dict[str, Any]:
    """
    Return the latest game snapshot saved by the game worker.
    """
    snap = await streams.load_snapshot()
    if not snap:
        raise HTTPException(status_code=404, detail="no snapshot yet")
    return snap


@app.get("/events")
async def events(after: str = "0-0", count: int = 100) -> List[Dict[str, Any]]:
    """
    Stream events after a given stream id. Events are published as JSON under the
    'data' field by the game worker.
    """
    entries = await streams.read_events(last_id=after, count=count, block_ms=None)
    out: List[Dict[str, Any]] = []
    for entry_id, payload in entries:
        item = dict(payload)
        item["id"] = entry_id
        out.append(item)
    return out


@app.post("/commands")
async def post_commands(payload: CommandsPayload) -> Dict[str, str]:
    """
    Append one or more commands to the Redis command stream.
    The game worker validates and applies them on its next tick.
    """
    if not payload.commands:
        return {"id": "skipped"}
    raw = {"commands": [c.model_dump(mode="json", exclude_none=True) for c in payload.commands]}
    msg_id = await streams.append_command(raw, maxlen=_CONFIG.command_maxlen)
    return {"id": msg_id}


@app.post("/admin/restart")
async def restart_game(seed: Optional[str] = None) -> Dict[str, str]:
    """
    Ask the game worker to start a fresh game, optionally with a fixed seed.
    """
    await streams.client.set(_CONFIG.restart_key, json.dumps({"seed": seed}), ex=30)
    return {"status": "queued", "seed": seed or ""}


if __name__ == "__main__":
    uvicorn.run(
        "services.api.main:app", host="0.0.0.0", port=_CONFIG.port, reload=False
    )
