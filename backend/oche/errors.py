"""
Error taxonomy and the Result container returned by every public operation.

Domain conditions (bad dart input, wrong lifecycle state, ...) are returned as
a failed Result, never raised. Callers branch on ``result.ok``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    INVALID_DART_VALUE = "INVALID_DART_VALUE"
    INVALID_TURN_COMPOSITION = "INVALID_TURN_COMPOSITION"
    MATCH_NOT_ACTIVE = "MATCH_NOT_ACTIVE"
    NO_TURNS_TO_UNDO = "NO_TURNS_TO_UNDO"
    TOURNAMENT_NOT_IN_REGISTRATION = "TOURNAMENT_NOT_IN_REGISTRATION"
    LEAGUE_NOT_IN_REGISTRATION = "LEAGUE_NOT_IN_REGISTRATION"
    SLOT_NOT_READY = "SLOT_NOT_READY"
    MATCH_ALREADY_IN_PROGRESS = "MATCH_ALREADY_IN_PROGRESS"
    MATCH_ALREADY_COMPLETED = "MATCH_ALREADY_COMPLETED"
    INSUFFICIENT_PARTICIPANTS = "INSUFFICIENT_PARTICIPANTS"
    SLOT_NOT_FOUND = "SLOT_NOT_FOUND"
    FIXTURE_NOT_FOUND = "FIXTURE_NOT_FOUND"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    DUPLICATE_PARTICIPANT = "DUPLICATE_PARTICIPANT"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    INVALID_BRACKET_SIZE = "INVALID_BRACKET_SIZE"
    INVALID_WINNER = "INVALID_WINNER"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str) -> "Result[T]":
        return cls(ok=False, error=error, message=message)
