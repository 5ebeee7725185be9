from oche.models.league import (
    Fixture,
    FixtureStatus,
    League,
    LeagueParticipant,
    LeagueStatus,
)
from oche.models.match import (
    Match,
    MatchConfig,
    PlayerAggregates,
    PlayerEntry,
    ScoringUnit,
    Turn,
    WinRule,
)
from oche.models.tournament import (
    BracketSide,
    BracketSlot,
    Participant,
    SlotStatus,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)

__all__ = [
    "Match",
    "MatchConfig",
    "PlayerEntry",
    "PlayerAggregates",
    "Turn",
    "WinRule",
    "ScoringUnit",
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "Participant",
    "BracketSlot",
    "BracketSide",
    "SlotStatus",
    "League",
    "LeagueStatus",
    "LeagueParticipant",
    "Fixture",
    "FixtureStatus",
]
