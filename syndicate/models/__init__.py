from .world_config import (
    ATTRIBUTES,
    TERMINAL_RANKS,
    Borders,
    CoreAttribute,
    GameState,
    Mission,
    MissionInfo,
    MissionStatus,
    Player,
    PlayerController,
    Region,
    Resources,
    Territory,
    Unit,
    UnitRank,
    UnitStatus,
)
from .action_config import (
    Action,
    ActionStatus,
    ActionType,
    AssignToCrew,
    AssignToTerritory,
    HireUnit,
    LaunchMission,
    PromoteUnit,
    RemoveFromTerritory,
    ScheduledAction,
    ScheduledActionType,
    StartCapture,
    ValidationResult,
)
from .sim_config import AI_DECISIONS, GAME_CONFIG, AIDecisionSet, GameSettings
from .command_config import CommandIn, CommandsPayload
from .redis_config import REDIS_SETTINGS

__all__ = [
    "ATTRIBUTES",
    "TERMINAL_RANKS",
    "Borders",
    "CoreAttribute",
    "GameState",
    "Mission",
    "MissionInfo",
    "MissionStatus",
    "Player",
    "PlayerController",
    "Region",
    "Resources",
    "Territory",
    "Unit",
    "UnitRank",
    "UnitStatus",
    "Action",
    "ActionStatus",
    "ActionType",
    "AssignToCrew",
    "AssignToTerritory",
    "HireUnit",
    "LaunchMission",
    "PromoteUnit",
    "RemoveFromTerritory",
    "ScheduledAction",
    "ScheduledActionType",
    "StartCapture",
    "ValidationResult",
    "AI_DECISIONS",
    "GAME_CONFIG",
    "AIDecisionSet",
    "GameSettings",
    "CommandIn",
    "CommandsPayload",
    "REDIS_SETTINGS",
]
