import logging

from syndicate.game import GameService
from syndicate.models import (
    ActionStatus,
    HireUnit,
    MissionStatus,
    PlayerController,
    ScheduledActionType,
)
from syndicate.models.sim_config import AIDecisionSet


def _game(seed: int = 7, **kwargs) -> GameService:
    game = GameService(seed=seed, **kwargs)
    game.init_game()
    return game


def test_init_game_builds_world_and_jobs() -> None:
    game = _game()
    store = game.store

    assert set(store.players) == {"player1", "player2", "player3"}
    assert store.state.generator_seed == 7
    assert len(store.missions) == 3
    assert all(m.status == MissionStatus.AVAILABLE for m in store.missions.values())
    kinds = [e.type for e in game.scheduler.entries]
    assert kinds.count(ScheduledActionType.TIP_EXPIRED) == 3
    assert kinds.count(ScheduledActionType.GENERATE_INCOME) == 1
    assert not game.is_running


def test_same_seed_same_world() -> None:
    first = _game(seed=99).store
    second = _game(seed=99).store

    assert [t.income for t in first.territories.values()] == [
        t.income for t in second.territories.values()
    ]
    assert [r.territory_ids for r in first.regions.values()] == [
        r.territory_ids for r in second.regions.values()
    ]


def test_init_game_respects_controllers() -> None:
    game = GameService(seed=1)
    game.init_game(
        controllers={"player2": "NONE", "player4": PlayerController.AI},
        names={"player4": "Brooklyn"},
    )

    assert set(game.store.players) == {"player1", "player3", "player4"}
    assert game.store.get_player("player4").name == "Brooklyn"
    assert game.store.get_territory("9-9").owner_id == "player4"


def test_tick_advances_clock_then_processes_queue() -> None:
    game = _game(decisions=AIDecisionSet(decisions=[]))
    store = game.store
    recruit = next(u for u in store.units.values() if u.owner_id is None)
    result = game.actions.queue_action(HireUnit(player_id="player1", unit_id=recruit.id))
    assert result.valid

    assert game.tick() == 1

    assert store.formatted_date() == "1960-01-01 02:00"
    assert store.get_unit(recruit.id).owner_id == "player1"
    assert game.actions.history[-1].status == ActionStatus.COMPLETED


def test_income_arrives_on_twelfth_tick() -> None:
    game = _game(decisions=AIDecisionSet(decisions=[]))
    player = game.store.get_player("player1")
    start_money = player.resources.money

    game.run_ticks(11)
    assert game.store.get_player("player1").resources.money == start_money

    game.tick()
    resources = game.store.get_player("player1").resources
    # 1 corner territory minus Capo + 2 Soldier salaries
    assert resources.last_income == resources.money - start_money
    assert resources.last_income < 0


def test_game_ends_on_end_date(caplog) -> None:
    game = _game()
    game.start()

    with caplog.at_level(logging.INFO):
        final_tick = game.run_ticks(1000)

    state = game.store.state
    assert final_tick == 31 * 12
    assert game.store.formatted_date() == "1960-02-01 00:00"
    assert state.has_ended and not state.is_running
    assert state.winner_id in state.players
    winner = game.store.get_player(state.winner_id)
    assert winner.resources.money == max(p.resources.money for p in state.players.values())
    assert "game ended" in caplog.text

    assert game.tick() == final_tick
    game.start()
    assert not game.is_running


def test_ai_families_act_during_a_run() -> None:
    game = _game(seed=3)

    game.run_ticks(48)

    ai_actions = [a for a in game.actions.history if game.players.is_ai(a.player_id)]
    assert ai_actions
    assert set(game.ai.debug_state()) == {"player2", "player3"}


def test_toggle_and_status() -> None:
    game = _game()

    assert game.toggle() is True
    assert game.status()["is_running"] is True
    assert game.toggle() is False
    assert game.status() == {
        "tick": 0,
        "date": "1960-01-01 00:00",
        "is_running": False,
        "has_ended": False,
        "winner_id": None,
    }

