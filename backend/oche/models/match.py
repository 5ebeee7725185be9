from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from oche.config import get_settings


class WinRule(str, Enum):
    EXACT_ZERO = "exact_zero"
    ZERO_OR_BELOW = "zero_or_below"


class ScoringUnit(str, Enum):
    PER_DART = "per_dart"
    PER_TURN = "per_turn"


DARTS_PER_VISIT = 3
MAX_DART_VALUE = 180
MAX_TURN_TOTAL = 180


class MatchConfig(BaseModel):
    """Rules shared by every match spawned from the same competition."""

    starting_score: int = 501
    win_rule: WinRule = WinRule.EXACT_ZERO
    scoring_unit: ScoringUnit = ScoringUnit.PER_DART
    min_checkout_remainder: int = 0  # 0 = no restriction

    @classmethod
    def from_settings(cls) -> "MatchConfig":
        settings = get_settings()
        return cls(
            starting_score=settings.starting_score,
            win_rule=WinRule(settings.win_rule),
            scoring_unit=ScoringUnit(settings.scoring_unit),
            min_checkout_remainder=settings.min_checkout_remainder,
        )


class Turn(BaseModel):
    dart_values: List[int]
    total: int
    remaining_after: int
    busted: bool = False
    checkout_attempt: bool = False
    timestamp: datetime


class PlayerAggregates(BaseModel):
    # Counted over non-busted turns; checkout counters include busts
    darts_thrown: int = 0
    total_scored: int = 0
    turns_scored: int = 0
    max_turn_total: int = 0
    max_dart_value: int = 0
    checkout_attempts: int = 0
    checkout_successes: int = 0

    @property
    def average_per_turn(self) -> float:
        if self.turns_scored == 0:
            return 0.0
        return self.total_scored / self.turns_scored

    @property
    def average_per_dart(self) -> float:
        if self.darts_thrown == 0:
            return 0.0
        return self.total_scored / self.darts_thrown


class PlayerEntry(BaseModel):
    id: str
    name: str
    participant_id: Optional[str] = None  # competition participant this seat belongs to
    starting_score: int
    remaining_score: int
    turns: List[Turn] = Field(default_factory=list)
    finished: bool = False
    finish_round_index: Optional[int] = None
    finish_rank: Optional[int] = None
    winner: bool = False
    aggregates: PlayerAggregates = Field(default_factory=PlayerAggregates)


class Match(BaseModel):
    id: str
    starting_score: int
    win_rule: WinRule = WinRule.EXACT_ZERO
    scoring_unit: ScoringUnit = ScoringUnit.PER_DART
    min_checkout_remainder: int = 0
    active: bool = True
    created_at: datetime
    completed_at: Optional[datetime] = None
    current_player_index: int = 0
    turn_counter: int = 0
    players: List[PlayerEntry] = Field(default_factory=list)

    # Weak back references (IDs only) to the competition that spawned this match
    competition_id: Optional[str] = None
    competition_slot_id: Optional[str] = None
