from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from oche.models.match import MatchConfig


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    DOUBLE_ELIMINATION = "double_elimination"


class TournamentStatus(str, Enum):
    REGISTRATION = "registration"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SlotStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class BracketSide(str, Enum):
    WINNERS = "winners"
    LOSERS = "losers"
    GRAND_FINALS = "grand_finals"


class Participant(BaseModel):
    id: str
    name: str
    seed_position: int
    eliminated: bool = False
    eliminated_at_round: Optional[int] = None
    final_placement: Optional[int] = None


class BracketSlot(BaseModel):
    id: str
    round: int  # >0 winners / single elimination, <0 losers bracket
    bracket: BracketSide = BracketSide.WINNERS
    match_number: int

    player1_id: Optional[str] = None
    player1_name: Optional[str] = None
    player2_id: Optional[str] = None
    player2_name: Optional[str] = None
    winner_id: Optional[str] = None
    winner_name: Optional[str] = None

    status: SlotStatus = SlotStatus.PENDING
    winner_next_slot_id: Optional[str] = None
    loser_next_slot_id: Optional[str] = None  # double elimination only
    match_id: Optional[str] = None  # spawned Match, by ID only


class Tournament(BaseModel):
    id: str
    name: str
    format: TournamentFormat = TournamentFormat.SINGLE_ELIMINATION
    max_slots: int
    match_config: MatchConfig = Field(default_factory=MatchConfig)
    created_at: datetime
    status: TournamentStatus = TournamentStatus.REGISTRATION
    participants: List[Participant] = Field(default_factory=list)
    slots: List[BracketSlot] = Field(default_factory=list)
    winner_id: Optional[str] = None
    winner_name: Optional[str] = None
