from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar, List, Optional


class ActionType(str, Enum):
    HIRE_UNIT = "HIRE_UNIT"
    PROMOTE_UNIT = "PROMOTE_UNIT"
    ASSIGN_TO_CREW = "ASSIGN_TO_CREW"
    START_CAPTURE = "START_CAPTURE"
    ASSIGN_TO_TERRITORY = "ASSIGN_TO_TERRITORY"
    REMOVE_FROM_TERRITORY = "REMOVE_FROM_TERRITORY"
    LAUNCH_MISSION = "LAUNCH_MISSION"


class ActionStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ScheduledActionType(str, Enum):
    GENERATE_INCOME = "GENERATE_INCOME"
    INCREASE_CAPTURE_PROGRESS = "INCREASE_CAPTURE_PROGRESS"
    GENERATE_MISSIONS = "GENERATE_MISSIONS"
    TIP_EXPIRED = "TIP_EXPIRED"
    MISSION_COMPLETE = "MISSION_COMPLETE"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(False, reason)


@dataclass(kw_only=True)
class Action:
    """A player or AI command. Subclasses carry the payload and a `type` tag."""

    type: ClassVar[ActionType]

    player_id: str
    id: str = ""  # assigned on enqueue when empty
    timestamp: float = 0.0
    status: ActionStatus = ActionStatus.PENDING
    reason: Optional[str] = None  # failure reason, for diagnostics


@dataclass
class HireUnit(Action):
    type: ClassVar[ActionType] = ActionType.HIRE_UNIT

    unit_id: str


@dataclass
class PromoteUnit(Action):
    type: ClassVar[ActionType] = ActionType.PROMOTE_UNIT

    unit_id: str


@dataclass
class AssignToCrew(Action):
    type: ClassVar[ActionType] = ActionType.ASSIGN_TO_CREW

    unit_id: str
    captain_id: str
    index: int


@dataclass
class StartCapture(Action):
    type: ClassVar[ActionType] = ActionType.START_CAPTURE

    unit_id: str
    territory_id: str


@dataclass
class AssignToTerritory(Action):
    type: ClassVar[ActionType] = ActionType.ASSIGN_TO_TERRITORY

    unit_id: str
    territory_id: str


@dataclass
class RemoveFromTerritory(Action):
    type: ClassVar[ActionType] = ActionType.REMOVE_FROM_TERRITORY

    unit_id: str
    territory_id: str


@dataclass
class LaunchMission(Action):
    type: ClassVar[ActionType] = ActionType.LAUNCH_MISSION

    mission_id: str
    unit_ids: List[str] = field(default_factory=list)


@dataclass
class ScheduledAction:
    """A timer entry. `execute` receives the tick it fires on."""

    type: ScheduledActionType
    interval: int  # ticks
    next_execution_tick: int
    execute: Callable[[int], None]
    is_recurring: bool = False
    id: str = ""  # assigned on registration when empty
