"""
Round-robin league scheduling and result reporting.

Fixtures come from the circle method: entrant 0 stays fixed, the rest
rotate one place per round; an odd field gets a bye position, and pairings
against it are skipped. A double round-robin repeats the schedule with
home and away swapped.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from oche.config import get_settings
from oche.context import EngineContext, resolve_context
from oche.errors import ErrorCode, Result
from oche.models.league import (
    Fixture,
    FixtureStatus,
    League,
    LeagueParticipant,
    LeagueStatus,
)
from oche.models.match import Match, MatchConfig
from oche.services.score_engine import create_match
from oche.services.standings import compute_standings

logger = logging.getLogger(__name__)

VALID_MATCHES_PER_PAIRING = (1, 2)


# =============================================================================
# Scheduling
# =============================================================================

def round_robin_rounds(entrant_count: int) -> List[List[Tuple[int, int]]]:
    """Circle-method pairings over entrant indices, one list per round.

    Returns entrant_count - 1 rounds (entrant_count rounds when odd, each
    with one entrant sitting out).
    """
    if entrant_count < 2:
        return []

    positions: List[Optional[int]] = list(range(entrant_count))
    if entrant_count % 2 == 1:
        positions.append(None)  # bye
    n = len(positions)

    rounds: List[List[Tuple[int, int]]] = []
    for _ in range(n - 1):
        pairs = []
        for i in range(n // 2):
            home, away = positions[i], positions[n - 1 - i]
            if home is None or away is None:
                continue
            pairs.append((home, away))
        rounds.append(pairs)
        positions = [positions[0], positions[-1]] + positions[1:-1]
    return rounds


def generate_fixtures(
    participants: Sequence[LeagueParticipant],
    matches_per_pairing: int = 1,
    context: Optional[EngineContext] = None,
) -> List[Fixture]:
    if matches_per_pairing not in VALID_MATCHES_PER_PAIRING:
        raise ValueError(f"matches_per_pairing must be 1 or 2, got {matches_per_pairing}")

    ctx = resolve_context(context)
    rounds = round_robin_rounds(len(participants))
    fixtures: List[Fixture] = []

    for leg in range(matches_per_pairing):
        for round_index, pairs in enumerate(rounds):
            for match_number, (a, b) in enumerate(pairs, start=1):
                home, away = participants[a], participants[b]
                if leg == 1:
                    home, away = away, home
                fixtures.append(
                    Fixture(
                        id=ctx.new_id(),
                        round=leg * len(rounds) + round_index + 1,
                        match_number=match_number,
                        player1_id=home.id,
                        player1_name=home.name,
                        player2_id=away.id,
                        player2_name=away.name,
                    )
                )
    return fixtures


# =============================================================================
# League lifecycle
# =============================================================================

def _not_in_registration(league: League) -> Result:
    logger.warning("League %s is %s, registration closed", league.id, league.status.value)
    return Result.failure(
        ErrorCode.LEAGUE_NOT_IN_REGISTRATION,
        "Participants can only change before fixtures are scheduled",
    )


def create_league(
    roster: Sequence[str],
    matches_per_pairing: int = 1,
    points_for_win: Optional[int] = None,
    points_for_draw: Optional[int] = None,
    points_for_loss: Optional[int] = None,
    match_config: Optional[MatchConfig] = None,
    name: Optional[str] = None,
    context: Optional[EngineContext] = None,
) -> Result[League]:
    """Register a league. Unset point values come from settings."""
    if matches_per_pairing not in VALID_MATCHES_PER_PAIRING:
        return Result.failure(
            ErrorCode.INVALID_CONFIGURATION,
            f"matches_per_pairing must be 1 or 2, got {matches_per_pairing}",
        )

    names = [(raw or "").strip() or f"Player {i + 1}" for i, raw in enumerate(roster)]
    lowered = [n.lower() for n in names]
    if len(set(lowered)) != len(lowered):
        return Result.failure(ErrorCode.DUPLICATE_PARTICIPANT, "Participant names must be unique")

    settings = get_settings()
    ctx = resolve_context(context)
    league = League(
        id=ctx.new_id(),
        name=name or "League",
        matches_per_pairing=matches_per_pairing,
        points_for_win=settings.points_for_win if points_for_win is None else points_for_win,
        points_for_draw=settings.points_for_draw if points_for_draw is None else points_for_draw,
        points_for_loss=settings.points_for_loss if points_for_loss is None else points_for_loss,
        match_config=match_config or MatchConfig.from_settings(),
        created_at=ctx.now(),
        participants=[LeagueParticipant(id=ctx.new_id(), name=n) for n in names],
    )
    logger.info("Created league %s with %d participants", league.id, len(names))
    return Result.success(league)


def add_participant(
    league: League, name: str, context: Optional[EngineContext] = None
) -> Result[LeagueParticipant]:
    if league.status != LeagueStatus.REGISTRATION:
        return _not_in_registration(league)

    name = (name or "").strip() or f"Player {len(league.participants) + 1}"
    if any(p.name.lower() == name.lower() for p in league.participants):
        return Result.failure(ErrorCode.DUPLICATE_PARTICIPANT, f"{name} is already registered")

    ctx = resolve_context(context)
    participant = LeagueParticipant(id=ctx.new_id(), name=name)
    league.participants.append(participant)
    return Result.success(participant)


def remove_participant(league: League, participant_id: str) -> Result[LeagueParticipant]:
    if league.status != LeagueStatus.REGISTRATION:
        return _not_in_registration(league)

    participant = next((p for p in league.participants if p.id == participant_id), None)
    if participant is None:
        return Result.failure(ErrorCode.PARTICIPANT_NOT_FOUND, f"Participant {participant_id} not found")
    league.participants.remove(participant)
    return Result.success(participant)


def schedule_league(league: League, context: Optional[EngineContext] = None) -> Result[League]:
    if league.status != LeagueStatus.REGISTRATION:
        return _not_in_registration(league)
    if len(league.participants) < 2:
        return Result.failure(
            ErrorCode.INSUFFICIENT_PARTICIPANTS, "At least 2 participants are needed"
        )

    league.fixtures = generate_fixtures(league.participants, league.matches_per_pairing, context)
    league.status = LeagueStatus.IN_PROGRESS
    logger.info(
        "Scheduled league %s: %d fixtures over %d rounds",
        league.id, len(league.fixtures), max(f.round for f in league.fixtures),
    )
    return Result.success(league)


# =============================================================================
# Fixture play
# =============================================================================

def _find_fixture(league: League, fixture_id: str) -> Optional[Fixture]:
    return next((f for f in league.fixtures if f.id == fixture_id), None)


def _find_participant(league: League, participant_id: str) -> Optional[LeagueParticipant]:
    return next((p for p in league.participants if p.id == participant_id), None)


def start_match(
    league: League, fixture_id: str, context: Optional[EngineContext] = None
) -> Result[Match]:
    fixture = _find_fixture(league, fixture_id)
    if fixture is None:
        return Result.failure(ErrorCode.FIXTURE_NOT_FOUND, f"Fixture {fixture_id} not found")
    if fixture.status == FixtureStatus.IN_PROGRESS:
        return Result.failure(ErrorCode.MATCH_ALREADY_IN_PROGRESS, "Fixture match already started")
    if fixture.status == FixtureStatus.COMPLETED:
        return Result.failure(ErrorCode.MATCH_ALREADY_COMPLETED, "Fixture already has a result")

    match = create_match(
        [fixture.player1_name, fixture.player2_name],
        config=league.match_config,
        context=context,
        participant_ids=[fixture.player1_id, fixture.player2_id],
    )
    match.competition_id = league.id
    match.competition_slot_id = fixture.id
    fixture.match_id = match.id
    fixture.status = FixtureStatus.IN_PROGRESS
    logger.info("Started match %s for fixture %s", match.id, fixture.id)
    return Result.success(match)


def record_match_result(
    league: League,
    fixture_id: str,
    winner_id: Optional[str] = None,
    winner_name: Optional[str] = None,
    is_draw: bool = False,
) -> Result[Fixture]:
    """Report a fixture result and update both participants' tallies.

    A decisive result counts as one leg to the winner. The league completes
    when its last fixture is reported.
    """
    fixture = _find_fixture(league, fixture_id)
    if fixture is None:
        return Result.failure(ErrorCode.FIXTURE_NOT_FOUND, f"Fixture {fixture_id} not found")
    if fixture.status == FixtureStatus.COMPLETED:
        logger.warning("Fixture %s already completed", fixture_id)
        return Result.failure(ErrorCode.MATCH_ALREADY_COMPLETED, "Fixture already has a result")

    home = _find_participant(league, fixture.player1_id)
    away = _find_participant(league, fixture.player2_id)
    if home is None or away is None:
        return Result.failure(ErrorCode.PARTICIPANT_NOT_FOUND, "Fixture references an unknown participant")

    if is_draw:
        winner = loser = None
    elif winner_id is not None:
        winner = next((p for p in (home, away) if p.id == winner_id), None)
    else:
        winner = next((p for p in (home, away) if p.name == winner_name), None)
    if not is_draw and winner is None:
        logger.warning("Fixture %s: %s is not a player", fixture_id, winner_id or winner_name)
        return Result.failure(ErrorCode.INVALID_WINNER, "Winner must be one of the fixture's players")

    home.played += 1
    away.played += 1
    if is_draw:
        for participant in (home, away):
            participant.draws += 1
            participant.points += league.points_for_draw
        fixture.is_draw = True
    else:
        loser = away if winner is home else home
        winner.wins += 1
        winner.points += league.points_for_win
        winner.legs_won += 1
        loser.losses += 1
        loser.points += league.points_for_loss
        loser.legs_lost += 1
        fixture.winner_id = winner.id
        fixture.winner_name = winner.name
    fixture.status = FixtureStatus.COMPLETED

    logger.debug(
        "Fixture %s (round %d): %s",
        fixture.id, fixture.round, "draw" if is_draw else f"{winner.name} beat {loser.name}",
    )
    _check_league_completion(league)
    return Result.success(fixture)


def record_match_outcome(league: League, fixture_id: str, match: Match) -> Result[Fixture]:
    """Report a fixture from its completed Match (the rank-1 player wins)."""
    if match.active:
        return Result.failure(ErrorCode.MATCH_ALREADY_IN_PROGRESS, "Match is still being played")
    winner = next((p for p in match.players if p.winner), None)
    if winner is None or winner.participant_id is None:
        return Result.failure(ErrorCode.INVALID_WINNER, "Match has no winner linked to a participant")
    return record_match_result(league, fixture_id, winner_id=winner.participant_id)


def _check_league_completion(league: League) -> bool:
    if league.status == LeagueStatus.COMPLETED:
        return True
    if not league.fixtures or any(f.status != FixtureStatus.COMPLETED for f in league.fixtures):
        return False

    table = compute_standings(league)
    league.status = LeagueStatus.COMPLETED
    league.winner_id = table[0].participant_id
    league.winner_name = table[0].name
    logger.info("League %s completed; winner %s", league.id, league.winner_name)
    return True


# =============================================================================
# Read-only projections
# =============================================================================

def get_fixtures_by_round(league: League) -> Dict[int, List[Fixture]]:
    grouped: Dict[int, List[Fixture]] = defaultdict(list)
    for fixture in sorted(league.fixtures, key=lambda f: (f.round, f.match_number)):
        grouped[fixture.round].append(fixture)
    return dict(grouped)


def get_player_fixtures(league: League, participant_id: str) -> List[Fixture]:
    return [
        f for f in sorted(league.fixtures, key=lambda f: (f.round, f.match_number))
        if participant_id in (f.player1_id, f.player2_id)
    ]


def get_progress(league: League) -> Dict[str, Any]:
    total = len(league.fixtures)
    completed = sum(1 for f in league.fixtures if f.status == FixtureStatus.COMPLETED)
    in_progress = sum(1 for f in league.fixtures if f.status == FixtureStatus.IN_PROGRESS)
    return {
        "total": total,
        "completed": completed,
        "in_progress": in_progress,
        "pending": total - completed - in_progress,
        "percent_complete": round(100 * completed / total, 1) if total else 0.0,
    }
