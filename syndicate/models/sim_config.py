import json
from datetime import datetime
from pathlib import Path
from pydantic import BaseModel, PositiveInt, PositiveFloat, NonNegativeInt
from pydantic import Field  # type: ignore
from typing import Annotated, List, Dict, Optional

from .world_config import CoreAttribute, PlayerController, UnitRank

# # NOTE: Each service imports this module in its own process. The loaded config
# # lives in-process only; it is not shared across services or persisted.


class MapModifiers(BaseModel):
    width: PositiveInt
    height: PositiveInt
    region_count: PositiveInt
    border_randomness: Annotated[int, Field(ge=0, le=100)]
    territory_base_income: PositiveInt
    territory_income_step: NonNegativeInt


class CalendarSettings(BaseModel):
    start_date: datetime
    end_date: datetime
    hours_per_tick: PositiveInt


class RateSettings(BaseModel):
    income_rate: PositiveInt
    capture_rate: PositiveInt
    tip_rate: PositiveInt
    tip_lifespan: PositiveInt


class UnitTemplate(BaseModel):
    rank: UnitRank
    level: Annotated[int, Field(ge=1)]
    tier: Annotated[int, Field(ge=1, le=10)]


class UnitSettings(BaseModel):
    starting_associates: NonNegativeInt
    level_cap: PositiveInt
    max_crew_size: PositiveInt
    starting_loyalty: Annotated[int, Field(ge=0, le=100)]
    starting_heat: NonNegativeInt
    cut_per_level: NonNegativeInt
    base_cut: Dict[UnitRank, NonNegativeInt]
    salary: Dict[UnitRank, NonNegativeInt]
    first_names: Annotated[List[str], Field(min_length=1)]
    last_names: Annotated[List[str], Field(min_length=1)]
    nicknames: List[str] = Field(default_factory=list)
    starting_composition: List[UnitTemplate]


class PlayerSlotConfig(BaseModel):
    id: Annotated[str, Field(min_length=1)]
    controller: PlayerController
    name: Optional[str] = None


class PlayerSettings(BaseModel):
    starting_money: NonNegativeInt
    colors: Annotated[List[str], Field(min_length=1)]
    slots: Annotated[List[PlayerSlotConfig], Field(max_length=4)]


class TerritoryModifiers(BaseModel):
    base_capture_progress: PositiveFloat
    muscle_baseline: NonNegativeInt
    progress_per_muscle: float
    neighbour_bonus: float
    capture_experience: NonNegativeInt
    manager_experience: NonNegativeInt
    region_control_threshold: Annotated[float, Field(ge=0, le=100)]


class HeatSettings(BaseModel):
    thresholds: Annotated[List[int], Field(min_length=1)]
    caught_chance: Annotated[List[float], Field(min_length=1)]


class MissionPrototype(BaseModel):
    name: Annotated[str, Field(min_length=1)]
    reward: PositiveInt
    difficulty: Dict[CoreAttribute, NonNegativeInt]
    duration_ticks: PositiveInt
    heat: NonNegativeInt
    repeatable: bool = False


class MissionSettings(BaseModel):
    loyalty_reward: NonNegativeInt
    experience: NonNegativeInt
    reward_variance: Annotated[float, Field(ge=0, le=1)]
    difficulty_variance: Annotated[float, Field(ge=0, le=1)]
    max_team_size: PositiveInt
    max_success_chance: Annotated[float, Field(ge=0, le=100)]
    prototypes: Annotated[List[MissionPrototype], Field(min_length=1)]


class RegionData(BaseModel):
    name: Annotated[str, Field(min_length=1)]
    bonus: NonNegativeInt


class AISettings(BaseModel):
    capture_cost: NonNegativeInt
    jitter_min: PositiveFloat
    jitter_max: PositiveFloat
    best_mission_min_suitability: Annotated[float, Field(ge=0)]
    hiring_costs: Dict[UnitRank, NonNegativeInt]
    risk_low_below: NonNegativeInt
    risk_medium_below: NonNegativeInt


class GameSettings(BaseModel):
    sim_seed: int | str | None
    tick_delay: PositiveFloat
    command_block_ms: PositiveInt
    lease_ttl_ms: PositiveInt

    map: MapModifiers
    calendar: CalendarSettings
    rates: RateSettings
    units: UnitSettings
    players: PlayerSettings
    territory: TerritoryModifiers
    heat: HeatSettings
    missions: MissionSettings
    regions: List[RegionData] = Field(default_factory=list)
    ai: AISettings

    @classmethod
    def load_json(cls, path: str | Path) -> "GameSettings":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)


# ---------- AI decision table ----------


class AICondition(BaseModel):
    """One trigger or modifier condition. `type` stays a plain string so that
    tables naming kinds this build does not know about still load."""

    type: str
    operator: Optional[str] = None
    value: Optional[float] = None
    amount: Optional[float] = None
    rank: Optional[UnitRank] = None
    min_suitability: Optional[float] = None
    max_risk: Optional[str] = None
    count: Optional[int] = None
    threshold: Optional[float] = None
    skill_level: Optional[int] = None


class AIWeightModifier(BaseModel):
    condition: AICondition
    multiplier: PositiveFloat


class AIActionSpec(BaseModel):
    type: str
    rank: Optional[UnitRank] = None


class AIDecision(BaseModel):
    id: Annotated[str, Field(min_length=1)]
    name: str
    triggers: List[AICondition] = Field(default_factory=list)
    base_weight: PositiveFloat
    weight_modifiers: List[AIWeightModifier] = Field(default_factory=list)
    actions: List[AIActionSpec] = Field(default_factory=list)
    cooldown: NonNegativeInt = 0


class AIDecisionSet(BaseModel):
    decisions: List[AIDecision]

    @classmethod
    def load_json(cls, path: str | Path) -> "AIDecisionSet":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)


_BASE_DIR = Path(__file__).resolve().parents[1]
_CONFIG_PATH = _BASE_DIR / "config" / "game_config.json"
_AI_CONFIG_PATH = _BASE_DIR / "config" / "ai_decisions.json"

GAME_CONFIG = GameSettings.model_validate_json(
    _CONFIG_PATH.read_text(encoding="utf-8")
)
AI_DECISIONS = AIDecisionSet.model_validate_json(
    _AI_CONFIG_PATH.read_text(encoding="utf-8")
)
