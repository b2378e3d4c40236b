import logging

from syndicate.actions import ActionManager
from syndicate.models import (
    AIDecisionSet,
    HireUnit,
    LaunchMission,
    StartCapture,
    UnitRank,
)
from syndicate.models.sim_config import AICondition, AIDecision
from syndicate.puppet import AIService, best_mission, capture_targets, mission_risk
from syndicate.scheduler import ScheduledActionManager

from tests.factories import (
    StubRandom,
    add_unit,
    give_territory,
    make_mission,
    make_store,
    make_unit,
)


def _decisions(*decisions: dict) -> AIDecisionSet:
    return AIDecisionSet.model_validate({"decisions": list(decisions)})


def _service(decisions: AIDecisionSet, money: int = 10000):
    store = make_store(money=money, rng=StubRandom(seed=5))
    actions = ActionManager(store, ScheduledActionManager())
    return store, actions, AIService(store, actions, decisions)


def test_decision_respects_cooldown() -> None:
    decisions = _decisions({"id": "wait", "name": "Wait", "base_weight": 1, "cooldown": 5})
    store, _, ai = _service(decisions)

    chosen = []
    for tick in range(0, 11):
        store.state.tick_count = tick
        decision = ai.process_player("p1")
        chosen.append(decision.id if decision else None)

    assert chosen == ["wait", None, None, None, None, "wait", None, None, None, None, "wait"]
    assert ai.debug_state()["p1"]["cooldowns"] == {"wait": 15}


def test_triggers_must_all_hold() -> None:
    decisions = _decisions(
        {
            "id": "rich_only",
            "name": "Rich Only",
            "base_weight": 10,
            "triggers": [
                {"type": "has_money", "amount": 50000},
                {"type": "unit_count", "operator": "<", "value": 5},
            ],
        }
    )
    _, _, ai = _service(decisions, money=10000)
    assert ai.process_player("p1") is None

    _, _, rich_ai = _service(decisions, money=60000)
    assert rich_ai.process_player("p1").id == "rich_only"


def test_weight_modifiers_multiply() -> None:
    decision = AIDecision.model_validate(
        {
            "id": "d",
            "name": "D",
            "base_weight": 10,
            "weight_modifiers": [
                {"condition": {"type": "has_money", "amount": 0}, "multiplier": 2.0},
                {"condition": {"type": "has_money", "amount": 10 ** 9}, "multiplier": 5.0},
            ],
        }
    )
    _, _, ai = _service(_decisions())

    weight = ai.effective_weight(decision, "p1")

    assert 16 <= weight <= 24


def test_unknown_condition_is_false_and_logged(caplog) -> None:
    _, _, ai = _service(_decisions())

    with caplog.at_level(logging.WARNING):
        result = ai.evaluate_condition(AICondition(type="moon_phase"), "p1")

    assert result is False
    assert "unknown condition type 'moon_phase'" in caplog.text


def test_unknown_action_kind_is_skipped(caplog) -> None:
    decisions = _decisions(
        {"id": "dance", "name": "Dance", "base_weight": 1, "actions": [{"type": "dance"}]}
    )
    _, actions, ai = _service(decisions)

    with caplog.at_level(logging.WARNING):
        assert ai.process_player("p1").id == "dance"

    assert actions.queue == []
    assert "unknown action type 'dance'" in caplog.text


def test_hire_action_picks_most_skilled_associate() -> None:
    decisions = _decisions(
        {"id": "hire", "name": "Hire", "base_weight": 1, "actions": [{"type": "hire_unit"}]}
    )
    store, actions, ai = _service(decisions)
    add_unit(store, make_unit(UnitRank.CAPO, owner_id="p1"))
    add_unit(store, make_unit(UnitRank.ASSOCIATE, skill=3))
    best = add_unit(store, make_unit(UnitRank.ASSOCIATE, skill=9))

    ai.process_player("p1")

    (queued,) = actions.queue
    assert isinstance(queued, HireUnit)
    assert queued.unit_id == best.id


def test_hire_action_skips_full_family() -> None:
    decisions = _decisions(
        {"id": "hire", "name": "Hire", "base_weight": 1, "actions": [{"type": "hire_unit"}]}
    )
    store, actions, ai = _service(decisions)
    add_unit(store, make_unit(owner_id="p1"))
    add_unit(store, make_unit(UnitRank.ASSOCIATE))

    ai.process_player("p1")

    assert actions.queue == []
    assert actions.history == []


def test_capture_targets_are_adjacent_only() -> None:
    store = make_store()
    give_territory(store, "p1", "0-0")

    targets = {t.id for t in capture_targets(store, "p1")}

    assert targets == {"1-0", "0-1"}


def test_capture_action_uses_strongest_unit_on_richest_target() -> None:
    decisions = _decisions(
        {
            "id": "grab",
            "name": "Grab",
            "base_weight": 1,
            "triggers": [{"type": "capturable_territory_nearby"}],
            "actions": [{"type": "capture_territory"}],
        }
    )
    store, actions, ai = _service(decisions)
    give_territory(store, "p1", "0-0")
    store.update_territory("0-1", income=2500)
    add_unit(store, make_unit(owner_id="p1", skill=3))
    muscle = add_unit(store, make_unit(owner_id="p1", skill=8))

    ai.process_player("p1")

    (queued,) = actions.queue
    assert isinstance(queued, StartCapture)
    assert queued.unit_id == muscle.id
    assert queued.territory_id == "0-1"


def test_best_mission_and_launch() -> None:
    decisions = _decisions(
        {
            "id": "job",
            "name": "Job",
            "base_weight": 1,
            "triggers": [{"type": "suitable_mission_available", "min_suitability": 0.7}],
            "actions": [{"type": "launch_best_mission"}],
        }
    )
    store, actions, ai = _service(decisions)
    unit = add_unit(store, make_unit(owner_id="p1", skill=8))
    easy = make_mission("p1", reward=1000)
    rich = make_mission("p1", reward=5000)
    store.add_mission(easy)
    store.add_mission(rich)

    mission, team, fit = best_mission(store, "p1")
    assert mission.id == rich.id
    assert team == [unit]

    ai.process_player("p1")
    (queued,) = actions.queue
    assert isinstance(queued, LaunchMission)
    assert queued.mission_id == rich.id
    assert queued.unit_ids == [unit.id]


def test_mission_risk_bands() -> None:
    store = make_store()

    assert mission_risk(store, 10, 10) == "low"
    assert mission_risk(store, 40, 10) == "medium"
    assert mission_risk(store, 50, 10) == "high"


def test_tick_reports_choice_per_player() -> None:
    decisions = _decisions({"id": "wait", "name": "Wait", "base_weight": 1, "cooldown": 3})
    _, _, ai = _service(decisions)

    assert ai.tick(["p1", "p2", "ghost"]) == {"p1": "wait", "p2": "wait", "ghost": None}
