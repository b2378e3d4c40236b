from typing import List, Optional

from pydantic import BaseModel, Field

from .action_config import ActionType


class CommandIn(BaseModel):
    """A player command as it travels through the command stream."""

    type: ActionType = Field(..., description="Action verb, e.g. 'HIRE_UNIT'")
    player_id: str = Field(..., min_length=1, description="Acting player id")
    unit_id: Optional[str] = Field(None, description="Unit the command acts on")
    captain_id: Optional[str] = Field(None, description="Capo for ASSIGN_TO_CREW")
    index: Optional[int] = Field(None, ge=0, description="Crew slot for ASSIGN_TO_CREW")
    territory_id: Optional[str] = Field(None, description="Territory id, e.g. '3-4'")
    mission_id: Optional[str] = Field(None, description="Mission for LAUNCH_MISSION")
    unit_ids: List[str] = Field(default_factory=list, description="Mission team")


class CommandsPayload(BaseModel):
    """Payload for posting one or more commands to the worker."""

    commands: List[CommandIn]
