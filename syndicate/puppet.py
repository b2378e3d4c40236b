#!/usr/bin/env python3
"""
AI families. Each tick every AI player scores a declarative decision table
(triggers, weight modifiers, cooldowns), picks one decision by weighted
roulette and queues the same Actions a human would.
"""
from __future__ import annotations

import logging
import operator
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from syndicate.actions import ActionManager, is_family_full
from syndicate.helper import (
    is_neighbouring_player_territory,
    pick_team,
    suitability,
    total_skill,
)
from syndicate.models import (
    AI_DECISIONS,
    TERMINAL_RANKS,
    AssignToTerritory,
    CoreAttribute,
    HireUnit,
    LaunchMission,
    Mission,
    MissionStatus,
    PromoteUnit,
    StartCapture,
    Territory,
    Unit,
    UnitRank,
    UnitStatus,
)
from syndicate.models.sim_config import AIActionSpec, AICondition, AIDecision, AIDecisionSet
from syndicate.state import GameStateStore

logger = logging.getLogger(__name__)


class ConditionKind(str, Enum):
    HAS_MONEY = "has_money"
    HEAT_LEVEL = "heat_level"
    AWARENESS_LEVEL = "awareness_level"
    TERRITORY_COUNT = "territory_count"
    UNIT_COUNT = "unit_count"
    UNIT_RANK_COUNT = "unit_rank_count"
    IDLE_UNITS = "idle_units"
    SUITABLE_MISSION_AVAILABLE = "suitable_mission_available"
    CAPTURABLE_TERRITORY_NEARBY = "capturable_territory_nearby"
    UNMANAGED_TERRITORIES = "unmanaged_territories"
    LOW_LOYALTY_UNITS = "low_loyalty_units"
    HIGH_SKILL_UNIT_AVAILABLE = "high_skill_unit_available"
    ACTIVE_MISSIONS = "active_missions"
    CAN_AFFORD_UNIT = "can_afford_unit"
    CAN_AFFORD_CAPTURE = "can_afford_capture"
    MISSION_RISK_ACCEPTABLE = "mission_risk_acceptable"


class AIActionKind(str, Enum):
    HIRE_UNIT = "hire_unit"
    PROMOTE_UNIT = "promote_unit"
    LAUNCH_BEST_MISSION = "launch_best_mission"
    CAPTURE_TERRITORY = "capture_territory"
    ASSIGN_TERRITORY_MANAGER = "assign_territory_manager"


_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

RISK_ORDER = {"low": 0, "medium": 1, "high": 2}


@dataclass
class AIPlayerState:
    player_id: str
    cooldowns: Dict[str, int] = field(default_factory=dict)  # decision id -> tick it unlocks
    last_decision: Optional[str] = None
    last_decision_tick: Optional[int] = None


# ---------- Mission analysis ----------


def idle_units(store: GameStateStore, player_id: str) -> List[Unit]:
    return [u for u in store.get_player_units(player_id) if u.status == UnitStatus.IDLE]


def available_missions(store: GameStateStore, player_id: str) -> List[Mission]:
    tick = store.tick_count
    return [
        m
        for m in store.get_player_missions(player_id)
        if m.status == MissionStatus.AVAILABLE and tick < m.tip_expires
    ]


def mission_fit(
    mission: Mission, candidates: Iterable[Unit], max_team: int = 4
) -> Tuple[List[Unit], float]:
    team, stats = pick_team(mission.info.difficulty, candidates, max_team)
    return team, suitability(mission.info.difficulty, stats)


def mission_risk(store: GameStateStore, player_heat: float, mission_heat: float) -> str:
    cfg = store.settings.ai
    total = player_heat + mission_heat
    if total < cfg.risk_low_below:
        return "low"
    if total < cfg.risk_medium_below:
        return "medium"
    return "high"


def best_mission(
    store: GameStateStore, player_id: str
) -> Optional[Tuple[Mission, List[Unit], float]]:
    """
    Pick the Available mission with the best suitability * reward / heat,
    ignoring missions the idle roster fits below the configured minimum.
    """
    idle = idle_units(store, player_id)
    if not idle:
        return None
    max_team = store.settings.missions.max_team_size
    min_fit = store.settings.ai.best_mission_min_suitability
    best: Optional[Tuple[Mission, List[Unit], float]] = None
    best_score = float("-inf")
    for mission in available_missions(store, player_id):
        team, fit = mission_fit(mission, idle, max_team)
        if fit < min_fit or not team:
            continue
        score = fit * mission.info.reward / max(mission.info.heat, 1)
        if score > best_score:
            best_score = score
            best = (mission, team, fit)
    return best


def capture_targets(store: GameStateStore, player_id: str) -> List[Territory]:
    """Territories next to the family's turf that it neither owns nor is already taking."""
    out: List[Territory] = []
    for territory in store.territories.values():
        if territory.owner_id == player_id:
            continue
        if territory.is_being_captured and territory.capture_initiator == player_id:
            continue
        if is_neighbouring_player_territory(territory, player_id, store.territories):
            out.append(territory)
    return out


# ---------- Engine ----------


class AIService:
    def __init__(
        self,
        store: GameStateStore,
        actions: ActionManager,
        decisions: AIDecisionSet = AI_DECISIONS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.actions = actions
        self.decisions = decisions
        self.rng = rng or store.rng
        self.players: Dict[str, AIPlayerState] = {}
        self._conditions: Dict[ConditionKind, Callable[[AICondition, str], bool]] = {
            ConditionKind.HAS_MONEY: self._has_money,
            ConditionKind.HEAT_LEVEL: self._heat_level,
            ConditionKind.AWARENESS_LEVEL: self._awareness_level,
            ConditionKind.TERRITORY_COUNT: self._territory_count,
            ConditionKind.UNIT_COUNT: self._unit_count,
            ConditionKind.UNIT_RANK_COUNT: self._unit_rank_count,
            ConditionKind.IDLE_UNITS: self._idle_units,
            ConditionKind.SUITABLE_MISSION_AVAILABLE: self._suitable_mission_available,
            ConditionKind.CAPTURABLE_TERRITORY_NEARBY: self._capturable_territory_nearby,
            ConditionKind.UNMANAGED_TERRITORIES: self._unmanaged_territories,
            ConditionKind.LOW_LOYALTY_UNITS: self._low_loyalty_units,
            ConditionKind.HIGH_SKILL_UNIT_AVAILABLE: self._high_skill_unit_available,
            ConditionKind.ACTIVE_MISSIONS: self._active_missions,
            ConditionKind.CAN_AFFORD_UNIT: self._can_afford_unit,
            ConditionKind.CAN_AFFORD_CAPTURE: self._can_afford_capture,
            ConditionKind.MISSION_RISK_ACCEPTABLE: self._mission_risk_acceptable,
        }
        self._actions: Dict[AIActionKind, Callable[[AIActionSpec, str], None]] = {
            AIActionKind.HIRE_UNIT: self._hire_unit,
            AIActionKind.PROMOTE_UNIT: self._promote_unit,
            AIActionKind.LAUNCH_BEST_MISSION: self._launch_best_mission,
            AIActionKind.CAPTURE_TERRITORY: self._capture_territory,
            AIActionKind.ASSIGN_TERRITORY_MANAGER: self._assign_territory_manager,
        }

    def reset(self) -> None:
        self.players.clear()

    def player_state(self, player_id: str) -> AIPlayerState:
        return self.players.setdefault(player_id, AIPlayerState(player_id=player_id))

    # ---------- Per tick ----------

    def tick(self, player_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        """Run one decision pass for each AI player. Returns the chosen decision ids."""
        chosen: Dict[str, Optional[str]] = {}
        for player_id in player_ids:
            decision = self.process_player(player_id)
            chosen[player_id] = decision.id if decision else None
        return chosen

    def process_player(self, player_id: str) -> Optional[AIDecision]:
        if self.store.get_player(player_id) is None:
            return None
        ai_state = self.player_state(player_id)
        tick = self.store.tick_count

        eligible = [
            d
            for d in self.decisions.decisions
            if self.is_off_cooldown(ai_state, d, tick)
            and all(self.evaluate_condition(c, player_id) for c in d.triggers)
        ]
        if not eligible:
            return None

        weights = [self.effective_weight(d, player_id) for d in eligible]
        decision = self.choose(eligible, weights)
        logger.debug("AI %s chose %s at tick %d", player_id, decision.id, tick)
        self.execute_decision(decision, player_id)

        ai_state.cooldowns[decision.id] = tick + decision.cooldown
        ai_state.last_decision = decision.id
        ai_state.last_decision_tick = tick
        return decision

    def is_off_cooldown(self, ai_state: AIPlayerState, decision: AIDecision, tick: int) -> bool:
        unlocks = ai_state.cooldowns.get(decision.id)
        return unlocks is None or tick >= unlocks

    def effective_weight(self, decision: AIDecision, player_id: str) -> float:
        weight = decision.base_weight
        for modifier in decision.weight_modifiers:
            if self.evaluate_condition(modifier.condition, player_id):
                weight *= modifier.multiplier
        cfg = self.store.settings.ai
        return weight * self.rng.uniform(cfg.jitter_min, cfg.jitter_max)

    def choose(self, decisions: List[AIDecision], weights: List[float]) -> AIDecision:
        total = sum(weights)
        pick = self.rng.random() * total
        cumulative = 0.0
        for decision, weight in zip(decisions, weights):
            cumulative += weight
            if pick < cumulative:
                return decision
        return decisions[-1]

    def execute_decision(self, decision: AIDecision, player_id: str) -> None:
        for spec in decision.actions:
            try:
                kind = AIActionKind(spec.type)
            except ValueError:
                logger.warning("AI: unknown action type %r in %s", spec.type, decision.id)
                continue
            try:
                self._actions[kind](spec, player_id)
            except Exception:
                logger.exception("AI %s: action %s of %s failed", player_id, spec.type, decision.id)

    def debug_state(self) -> Dict[str, dict]:
        return {
            pid: {
                "cooldowns": dict(s.cooldowns),
                "last_decision": s.last_decision,
                "last_decision_tick": s.last_decision_tick,
            }
            for pid, s in self.players.items()
        }

    # ---------- Conditions ----------

    def evaluate_condition(self, condition: AICondition, player_id: str) -> bool:
        try:
            kind = ConditionKind(condition.type)
        except ValueError:
            logger.warning("AI: unknown condition type %r", condition.type)
            return False
        return self._conditions[kind](condition, player_id)

    @staticmethod
    def _compare(actual: float, condition: AICondition) -> bool:
        op = _OPERATORS.get(condition.operator or "")
        if op is None or condition.value is None:
            logger.warning("AI: bad comparison in %s condition", condition.type)
            return False
        return op(actual, condition.value)

    def _money(self, player_id: str) -> int:
        player = self.store.get_player(player_id)
        return player.resources.money if player else 0

    def _has_money(self, condition: AICondition, player_id: str) -> bool:
        return self._money(player_id) >= (condition.amount or 0)

    def _heat_level(self, condition: AICondition, player_id: str) -> bool:
        player = self.store.get_player(player_id)
        return player is not None and self._compare(player.resources.heat, condition)

    def _awareness_level(self, condition: AICondition, player_id: str) -> bool:
        player = self.store.get_player(player_id)
        return player is not None and self._compare(player.resources.awareness, condition)

    def _territory_count(self, condition: AICondition, player_id: str) -> bool:
        return self._compare(len(self.store.get_player_territories(player_id)), condition)

    def _unit_count(self, condition: AICondition, player_id: str) -> bool:
        return self._compare(len(self.store.get_player_units(player_id)), condition)

    def _unit_rank_count(self, condition: AICondition, player_id: str) -> bool:
        count = sum(1 for u in self.store.get_player_units(player_id) if u.rank == condition.rank)
        return self._compare(count, condition)

    def _idle_units(self, condition: AICondition, player_id: str) -> bool:
        return self._compare(len(idle_units(self.store, player_id)), condition)

    def _suitable_mission_available(self, condition: AICondition, player_id: str) -> bool:
        minimum = condition.min_suitability if condition.min_suitability is not None else 0.7
        idle = idle_units(self.store, player_id)
        if not idle:
            return False
        max_team = self.store.settings.missions.max_team_size
        return any(
            mission_fit(m, idle, max_team)[1] >= minimum
            for m in available_missions(self.store, player_id)
        )

    def _capturable_territory_nearby(self, condition: AICondition, player_id: str) -> bool:
        return bool(capture_targets(self.store, player_id))

    def _unmanaged_territories(self, condition: AICondition, player_id: str) -> bool:
        unmanaged = [t for t in self.store.get_player_territories(player_id) if not t.manager_id]
        return len(unmanaged) >= (condition.count or 1)

    def _low_loyalty_units(self, condition: AICondition, player_id: str) -> bool:
        threshold = condition.threshold if condition.threshold is not None else 50
        low = [u for u in self.store.get_player_units(player_id) if u.loyalty < threshold]
        return len(low) >= (condition.count or 1)

    def _high_skill_unit_available(self, condition: AICondition, player_id: str) -> bool:
        level = condition.skill_level if condition.skill_level is not None else 20
        return any(
            any(v >= level for v in u.skills.values())
            for u in idle_units(self.store, player_id)
        )

    def _active_missions(self, condition: AICondition, player_id: str) -> bool:
        active = [
            m for m in self.store.get_player_missions(player_id) if m.status == MissionStatus.ACTIVE
        ]
        return self._compare(len(active), condition)

    def _can_afford_unit(self, condition: AICondition, player_id: str) -> bool:
        rank = condition.rank or UnitRank.ASSOCIATE
        cost = self.store.settings.ai.hiring_costs.get(rank, 0)
        return self._money(player_id) >= cost

    def _can_afford_capture(self, condition: AICondition, player_id: str) -> bool:
        return (
            self._money(player_id) >= self.store.settings.ai.capture_cost
            and len(idle_units(self.store, player_id)) > 0
        )

    def _mission_risk_acceptable(self, condition: AICondition, player_id: str) -> bool:
        player = self.store.get_player(player_id)
        if player is None:
            return False
        limit = RISK_ORDER.get(condition.max_risk or "medium", RISK_ORDER["medium"])
        return any(
            RISK_ORDER[mission_risk(self.store, player.resources.heat, m.info.heat)] <= limit
            for m in available_missions(self.store, player_id)
        )

    # ---------- Actions ----------

    def _hire_unit(self, spec: AIActionSpec, player_id: str) -> None:
        if is_family_full(self.store, player_id):
            logger.debug("AI %s: family is full, not hiring", player_id)
            return
        pool = [
            u
            for u in self.store.units.values()
            if u.owner_id is None and u.rank == UnitRank.ASSOCIATE and u.status == UnitStatus.IDLE
        ]
        if not pool:
            return
        recruit = max(pool, key=total_skill)
        self.actions.queue_action(HireUnit(player_id=player_id, unit_id=recruit.id))

    def _promote_unit(self, spec: AIActionSpec, player_id: str) -> None:
        candidates = [
            u
            for u in self.store.get_player_units(player_id)
            if u.loyalty > 70 and u.experience > 50 and u.rank not in TERMINAL_RANKS
        ]
        if not candidates:
            return
        best = max(candidates, key=lambda u: u.loyalty + u.experience)
        self.actions.queue_action(PromoteUnit(player_id=player_id, unit_id=best.id))

    def _launch_best_mission(self, spec: AIActionSpec, player_id: str) -> None:
        picked = best_mission(self.store, player_id)
        if picked is None:
            return
        mission, team, _ = picked
        self.actions.queue_action(
            LaunchMission(
                player_id=player_id,
                mission_id=mission.id,
                unit_ids=[u.id for u in team],
            )
        )

    def _capture_territory(self, spec: AIActionSpec, player_id: str) -> None:
        targets = capture_targets(self.store, player_id)
        units = [u for u in idle_units(self.store, player_id) if u.rank != UnitRank.ASSOCIATE]
        if not targets or not units:
            return
        unit = max(
            units,
            key=lambda u: u.skills.get(CoreAttribute.MUSCLE, 0) + u.skills.get(CoreAttribute.CUNNING, 0),
        )
        target = max(targets, key=lambda t: t.income)
        self.actions.queue_action(
            StartCapture(player_id=player_id, unit_id=unit.id, territory_id=target.id)
        )

    def _assign_territory_manager(self, spec: AIActionSpec, player_id: str) -> None:
        unmanaged = [t for t in self.store.get_player_territories(player_id) if not t.manager_id]
        units = sorted(
            (u for u in idle_units(self.store, player_id) if u.rank != UnitRank.ASSOCIATE),
            key=lambda u: u.skills.get(CoreAttribute.BRAINS, 0) + u.skills.get(CoreAttribute.INFLUENCE, 0),
            reverse=True,
        )
        for territory, unit in zip(unmanaged, units):
            self.actions.queue_action(
                AssignToTerritory(player_id=player_id, unit_id=unit.id, territory_id=territory.id)
            )
