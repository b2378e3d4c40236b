import asyncio
import json

import pytest
import redis
from fastapi.testclient import TestClient

import services.api.main as api
from services.sim_worker.worker import SimulationWorker, compute_delta
from syndicate.controller import GameController
from syndicate.game import GameService
from syndicate.models import HireUnit
from syndicate.models.sim_config import AIDecisionSet
from syndicate.state_utils import snapshot_from_state


class FakeClient:
    def __init__(self, down: bool = False) -> None:
        self.down = down
        self.values: dict = {}

    async def ping(self) -> bool:
        if self.down:
            raise redis.exceptions.ConnectionError("connection refused")
        return True

    async def set(self, key, value, ex=None, **kwargs) -> bool:
        self.values[key] = value
        return True


class FakeStreams:
    """In-memory stand-in for RedisStreams."""

    command_stream = "test:commands"

    def __init__(self, down: bool = False) -> None:
        self.client = FakeClient(down)
        self.snapshot = None
        self.events: list = []
        self.commands: list = []
        self.batches: list = []
        self.acked: list = []

    async def load_snapshot(self):
        return self.snapshot

    async def save_snapshot(self, snapshot: dict) -> None:
        self.snapshot = snapshot

    async def read_events(self, last_id="$", count=50, block_ms=None):
        return [(f"{i + 1}-0", event) for i, event in enumerate(self.events)][:count]

    async def append_event(self, payload: dict, maxlen=None) -> str:
        self.events.append(payload)
        return f"{len(self.events)}-0"

    async def append_command(self, payload: dict, maxlen=None) -> str:
        self.commands.append(payload)
        return f"{len(self.commands)}-0"

    async def read_commands(self, group, consumer, count=50, block_ms=200):
        batches, self.batches = self.batches, []
        return batches

    async def ack_commands(self, ids, group) -> None:
        self.acked.extend(ids)


@pytest.fixture
def fake_streams(monkeypatch) -> FakeStreams:
    streams = FakeStreams()
    monkeypatch.setattr(api, "streams", streams)
    return streams


# ---------- API ----------


def test_health_ok(fake_streams) -> None:
    client = TestClient(api.app)

    assert client.get("/health").json() == {"status": "ok"}


def test_health_reports_redis_outage(fake_streams) -> None:
    fake_streams.client.down = True
    client = TestClient(api.app)

    response = client.get("/health")

    assert response.status_code == 503
    assert "redis error" in response.json()["detail"]


def test_snapshot_missing_then_present(fake_streams) -> None:
    client = TestClient(api.app)
    assert client.get("/snapshot").status_code == 404

    fake_streams.snapshot = {"tick": 3}
    assert client.get("/snapshot").json() == {"tick": 3}


def test_events_carry_stream_ids(fake_streams) -> None:
    fake_streams.events = [{"type": "snapshot"}, {"type": "delta"}]
    client = TestClient(api.app)

    events = client.get("/events", params={"count": 1}).json()

    assert events == [{"type": "snapshot", "id": "1-0"}]


def test_post_commands_appends_to_stream(fake_streams) -> None:
    client = TestClient(api.app)
    body = {"commands": [{"type": "HIRE_UNIT", "player_id": "player1", "unit_id": "u1"}]}

    response = client.post("/commands", json=body)

    assert response.json() == {"id": "1-0"}
    assert fake_streams.commands == [
        {"commands": [{"type": "HIRE_UNIT", "player_id": "player1", "unit_id": "u1", "unit_ids": []}]}
    ]


def test_post_commands_rejects_unknown_type(fake_streams) -> None:
    client = TestClient(api.app)
    body = {"commands": [{"type": "BRIBE_JUDGE", "player_id": "player1"}]}

    assert client.post("/commands", json=body).status_code == 422
    assert fake_streams.commands == []


def test_restart_is_queued(fake_streams) -> None:
    client = TestClient(api.app)

    response = client.post("/admin/restart", params={"seed": "abc"})

    assert response.json() == {"status": "queued", "seed": "abc"}
    assert json.loads(fake_streams.client.values[api._CONFIG.restart_key]) == {"seed": "abc"}


def test_players_lists_slots(fake_streams) -> None:
    client = TestClient(api.app)

    players = client.get("/players").json()["players"]

    assert [p["controller"] for p in players] == ["HUMAN", "AI", "AI", "NONE"]


# ---------- Worker ----------


def test_compute_delta_reports_changes_and_removals() -> None:
    prev = {"tick": 1, "units": [{"id": "a", "heat": 1}, {"id": "b", "heat": 2}]}
    curr = {"tick": 2, "units": [{"id": "a", "heat": 5}]}

    delta = compute_delta(prev, curr)

    assert delta["tick"] == 2
    assert delta["changed_units"] == [{"heat": 5, "id": "a"}]
    assert delta["removed_units"] == ["b"]
    assert "changed_territories" not in delta


def test_worker_applies_human_commands_and_publishes() -> None:
    streams = FakeStreams()
    worker = SimulationWorker(streams=streams, seed=5)
    # AI families stay idle so the recruit is free for player1
    worker.game = GameService(seed=5, decisions=AIDecisionSet(decisions=[]))
    worker.game.init_game()
    worker.game.start()
    worker.controller = GameController(worker.game)
    recruit = worker.controller.associates()[0].id
    streams.batches = [
        (
            "1-0",
            {
                "commands": [
                    {"type": "HIRE_UNIT", "player_id": "player1", "unit_id": recruit},
                    {"type": "BRIBE_JUDGE", "player_id": "player1"},
                    {"type": "HIRE_UNIT", "player_id": "player2", "unit_id": recruit},
                ]
            },
        )
    ]

    asyncio.run(worker.tick_once())
    asyncio.run(worker.tick_once())

    assert worker.game.store.get_unit(recruit).owner_id == "player1"
    assert streams.acked == ["1-0"]
    first, second = streams.events
    assert first["type"] == "snapshot"
    assert first["data"]["commands_accepted"] == 1
    assert second["type"] == "delta"
    assert second["tick"] == 2
    assert streams.snapshot["tick"] == 2


def test_snapshot_is_json_ready() -> None:
    game = GameService(seed=8)
    game.init_game()
    recruit = next(u for u in game.store.units.values() if u.owner_id is None)
    game.actions.queue_action(HireUnit(player_id="player1", unit_id=recruit.id))
    game.run_ticks(13)

    snapshot = snapshot_from_state(game, tick_delay=0.5, include_ai_state=True)
    decoded = json.loads(json.dumps(snapshot))

    assert decoded["tick"] == 13
    assert decoded["tick_delay_ms"] == 500
    assert len(decoded["territories"]) == 100
    assert {p["id"] for p in decoded["players"]} == {"player1", "player2", "player3"}
    assert decoded["history_tail"]
    assert set(decoded["ai_state"]) == {"player2", "player3"}
