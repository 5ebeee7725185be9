from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from oche.models.match import MatchConfig


class LeagueStatus(str, Enum):
    REGISTRATION = "registration"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FixtureStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class LeagueParticipant(BaseModel):
    id: str
    name: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    points: int = 0
    legs_won: int = 0
    legs_lost: int = 0


class Fixture(BaseModel):
    id: str
    round: int
    match_number: int
    player1_id: str
    player1_name: str
    player2_id: str
    player2_name: str
    winner_id: Optional[str] = None  # None while pending or on a draw
    winner_name: Optional[str] = None
    is_draw: bool = False
    status: FixtureStatus = FixtureStatus.PENDING
    match_id: Optional[str] = None


class League(BaseModel):
    id: str
    name: str
    matches_per_pairing: int = 1  # 1 = single, 2 = home and away
    points_for_win: int = 3
    points_for_draw: int = 1
    points_for_loss: int = 0
    match_config: MatchConfig = Field(default_factory=MatchConfig)
    created_at: datetime
    status: LeagueStatus = LeagueStatus.REGISTRATION
    participants: List[LeagueParticipant] = Field(default_factory=list)
    fixtures: List[Fixture] = Field(default_factory=list)
    winner_id: Optional[str] = None
    winner_name: Optional[str] = None
