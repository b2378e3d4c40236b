from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class UnitRank(str, Enum):
    ASSOCIATE = "Associate"
    SOLDIER = "Soldier"
    CAPO = "Capo"
    UNDERBOSS = "Underboss"
    CONSIGLIERE = "Consigliere"


class CoreAttribute(str, Enum):
    MUSCLE = "Muscle"
    BRAINS = "Brains"
    CUNNING = "Cunning"
    INFLUENCE = "Influence"


class UnitStatus(str, Enum):
    IDLE = "Idle"
    MISSION = "Mission"
    TERRITORY = "Territory"  # managing a territory
    EXPAND = "Expand"  # capturing a territory
    PRISON = "Prison"


class MissionStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ACTIVE = "ACTIVE"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class PlayerController(str, Enum):
    HUMAN = "HUMAN"
    AI = "AI"
    NONE = "NONE"


ATTRIBUTES: List[CoreAttribute] = list(CoreAttribute)
TERMINAL_RANKS = (UnitRank.UNDERBOSS, UnitRank.CONSIGLIERE)


@dataclass
class Resources:
    money: int = 0
    heat: float = 0.0  # mean heat of the family roster
    awareness: float = 0.0  # law-enforcement attention, read by the AI
    last_income: int = 0  # net of the last income cycle


@dataclass
class Player:
    id: str
    name: str
    color: str
    resources: Resources = field(default_factory=Resources)
    territories: List[str] = field(default_factory=list)  # owned territory ids
    units: List[str] = field(default_factory=list)  # owned unit ids


@dataclass
class Unit:
    id: str
    name: str
    rank: UnitRank
    skills: Dict[CoreAttribute, int]
    mask: Dict[CoreAttribute, bool]  # True = attribute still hidden
    nickname: Optional[str] = None
    owner_id: Optional[str] = None  # None = unaffiliated associate pool
    experience: int = 0
    level: int = 1
    loyalty: int = 50  # 0..100, <= 0 means defection
    heat: int = 0
    cut: int = 0  # percent of mission rewards
    status: UnitStatus = UnitStatus.IDLE
    missions: List[str] = field(default_factory=list)  # mission id history
    crew: Optional[List[Optional[str]]] = None  # Capo only, slot -> unit id
    captain_id: Optional[str] = None


@dataclass
class Borders:
    top: bool = False
    right: bool = False
    bottom: bool = False
    left: bool = False


@dataclass
class Territory:
    id: str  # "x-y"
    name: str
    x: int
    y: int
    region_id: Optional[str] = None
    income: int = 0
    owner_id: Optional[str] = None
    is_being_captured: bool = False
    capture_progress: float = 0.0  # 0..100
    capture_initiator: Optional[str] = None  # player id
    capturing_unit_id: Optional[str] = None
    manager_id: Optional[str] = None
    borders: Borders = field(default_factory=Borders)


@dataclass
class Region:
    id: str
    name: str
    territory_ids: List[str]
    color: str
    control_bonus: int  # income percent when controlled
    type: int = 0


@dataclass
class MissionInfo:
    name: str
    reward: int
    difficulty: Dict[CoreAttribute, int]
    duration_ticks: int
    heat: int
    repeatable: bool = False


@dataclass
class Mission:
    id: str
    player_id: str
    info: MissionInfo
    tip_expires: int
    unit_ids: List[str] = field(default_factory=list)  # empty until launch
    start_tick: Optional[int] = None
    end_tick: Optional[int] = None
    status: MissionStatus = MissionStatus.AVAILABLE
    results: Optional[Dict[str, Any]] = None


@dataclass
class GameState:
    players: Dict[str, Player]
    units: Dict[str, Unit]
    territories: Dict[str, Territory]
    regions: Dict[str, Region]
    missions: Dict[str, Mission]
    current_date: datetime
    tick_count: int = 0
    is_running: bool = False
    has_ended: bool = False
    winner_id: Optional[str] = None
    generator_seed: Optional[int] = None
