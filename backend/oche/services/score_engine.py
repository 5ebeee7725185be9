"""
Score engine: per-match countdown state machine.

Handles turn validation, bust and checkout rules, seat rotation, undo by
replay, and match termination. Every public operation validates before it
mutates and returns a Result; a rejected call leaves the match untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from oche.context import EngineContext, resolve_context
from oche.errors import ErrorCode, Result
from oche.models.match import (
    DARTS_PER_VISIT,
    MAX_DART_VALUE,
    MAX_TURN_TOTAL,
    Match,
    MatchConfig,
    PlayerAggregates,
    PlayerEntry,
    ScoringUnit,
    Turn,
    WinRule,
)
from oche.services.ranking import (
    RankingEntry,
    compute_finish_ranks,
    estimate_finish_rank,
    resolve_all,
)

logger = logging.getLogger(__name__)

DartsInput = Union[str, int, List[Union[int, str]], Tuple[Union[int, str], ...]]


@dataclass
class ValidatedTurn:
    dart_values: List[int]
    total: int


@dataclass
class TurnOutcome:
    player_name: str
    total: int
    remaining_score: int
    busted: bool = False
    finished: bool = False
    match_ended: bool = False
    finish_rank: Optional[int] = None  # provisional, only when finished mid-match
    next_player_name: Optional[str] = None
    final_rankings: List[RankingEntry] = field(default_factory=list)


@dataclass
class UndoOutcome:
    player_name: str
    new_remaining: int


# =============================================================================
# Match creation
# =============================================================================

def create_match(
    roster: Sequence[str],
    config: Optional[MatchConfig] = None,
    context: Optional[EngineContext] = None,
    participant_ids: Optional[Sequence[Optional[str]]] = None,
) -> Match:
    """Build an active match with one seat per roster name, in shuffled order.

    Blank names become "Player N" (N = 1-based roster position).
    participant_ids, when given, is parallel to roster and links each seat
    back to a competition participant.
    """
    if not roster:
        raise ValueError("A match needs at least one player")
    if participant_ids is not None and len(participant_ids) != len(roster):
        raise ValueError("participant_ids must be parallel to roster")

    ctx = resolve_context(context)
    config = config or MatchConfig.from_settings()

    players = []
    for i, raw_name in enumerate(roster):
        name = (raw_name or "").strip() or f"Player {i + 1}"
        players.append(
            PlayerEntry(
                id=ctx.new_id(),
                name=name,
                participant_id=participant_ids[i] if participant_ids else None,
                starting_score=config.starting_score,
                remaining_score=config.starting_score,
            )
        )

    match = Match(
        id=ctx.new_id(),
        starting_score=config.starting_score,
        win_rule=config.win_rule,
        scoring_unit=config.scoring_unit,
        min_checkout_remainder=config.min_checkout_remainder,
        created_at=ctx.now(),
        players=list(ctx.shuffle(players)),
    )
    logger.info(
        "Created match %s (%d players, start %d, %s)",
        match.id, len(players), match.starting_score, match.win_rule.value,
    )
    return match


# =============================================================================
# Turn validation
# =============================================================================

def _split_input(darts_input: DartsInput) -> List[Any]:
    if isinstance(darts_input, str):
        return darts_input.replace(",", " ").split()
    if isinstance(darts_input, (list, tuple)):
        return list(darts_input)
    # scalars (int, float, None, ...) are judged as a single dart
    return [darts_input]


def _parse_dart(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def validate_turn(
    darts_input: DartsInput,
    scoring_unit: ScoringUnit = ScoringUnit.PER_DART,
) -> Result[ValidatedTurn]:
    """Validate one visit: 1-3 dart values (one aggregate under per_turn),
    each 0-180, total at most 180.

    Accepts a list of ints/strings or a single "60 40 1" / "60,40,1" string.
    """
    parts = _split_input(darts_input)

    if scoring_unit == ScoringUnit.PER_TURN:
        if len(parts) != 1:
            return Result.failure(
                ErrorCode.INVALID_TURN_COMPOSITION,
                "A per-turn score must be a single value",
            )
    elif not 1 <= len(parts) <= DARTS_PER_VISIT:
        return Result.failure(
            ErrorCode.INVALID_TURN_COMPOSITION, "A turn must have 1-3 darts"
        )

    values: List[int] = []
    for raw in parts:
        value = _parse_dart(raw)
        if value is None or not 0 <= value <= MAX_DART_VALUE:
            return Result.failure(
                ErrorCode.INVALID_DART_VALUE,
                f"Dart must be between 0 and {MAX_DART_VALUE}, got {raw!r}",
            )
        values.append(value)

    total = sum(values)
    if total > MAX_TURN_TOTAL:
        return Result.failure(
            ErrorCode.INVALID_TURN_COMPOSITION,
            f"Turn total cannot exceed {MAX_TURN_TOTAL}, got {total}",
        )
    return Result.success(ValidatedTurn(dart_values=values, total=total))


# =============================================================================
# Turn submission
# =============================================================================

def _record_scoring_turn(
    aggregates: PlayerAggregates, dart_values: List[int], total: int, scoring_unit: ScoringUnit
) -> None:
    if scoring_unit == ScoringUnit.PER_TURN:
        aggregates.darts_thrown += DARTS_PER_VISIT
    else:
        aggregates.darts_thrown += len(dart_values)
        aggregates.max_dart_value = max(aggregates.max_dart_value, max(dart_values))
    aggregates.total_scored += total
    aggregates.turns_scored += 1
    aggregates.max_turn_total = max(aggregates.max_turn_total, total)


def _advance_to_next_unfinished(match: Match) -> None:
    count = len(match.players)
    for step in range(1, count + 1):
        index = (match.current_player_index + step) % count
        if not match.players[index].finished:
            match.current_player_index = index
            return


def _apply_final_ranks(match: Match) -> None:
    ranks = compute_finish_ranks(match)
    for player in match.players:
        player.finish_rank = ranks[player.id]
        player.winner = player.finish_rank == 1


def submit_turn(
    match: Match,
    darts_input: DartsInput,
    context: Optional[EngineContext] = None,
) -> Result[TurnOutcome]:
    """Apply one visit for the current player.

    Branches on the hypothetical remainder: exactly zero (or below zero
    under zero_or_below) finishes the player; below zero under exact_zero,
    or a remainder under min_checkout_remainder, busts; otherwise the score
    is reduced. The match completes when at most one player is left.
    """
    if not match.active:
        return Result.failure(ErrorCode.MATCH_NOT_ACTIVE, "Match is not active")

    validation = validate_turn(darts_input, match.scoring_unit)
    if not validation.ok:
        return Result.failure(validation.error, validation.message)

    ctx = resolve_context(context)
    darts = validation.value
    player = match.players[match.current_player_index]
    before = player.remaining_score
    hypothetical = before - darts.total
    exact = match.win_rule == WinRule.EXACT_ZERO

    busted = exact and (
        hypothetical < 0 or 0 < hypothetical < match.min_checkout_remainder
    )
    finishing = not busted and hypothetical <= 0
    checkout_attempt = busted or hypothetical <= 0

    if checkout_attempt:
        player.aggregates.checkout_attempts += 1

    if busted:
        remaining_after = before
    else:
        remaining_after = max(hypothetical, 0)
        player.remaining_score = remaining_after
        _record_scoring_turn(player.aggregates, darts.dart_values, darts.total, match.scoring_unit)

    player.turns.append(
        Turn(
            dart_values=darts.dart_values,
            total=darts.total,
            remaining_after=remaining_after,
            busted=busted,
            checkout_attempt=checkout_attempt,
            timestamp=ctx.now(),
        )
    )

    if finishing:
        player.finished = True
        # rotation number = the player's own visit count, busts included
        player.finish_round_index = len(player.turns) - 1
        player.aggregates.checkout_successes += 1

    match.turn_counter += 1
    _advance_to_next_unfinished(match)

    logger.debug(
        "Match %s: %s threw %s (total %d) -> %d%s",
        match.id, player.name, darts.dart_values, darts.total, remaining_after,
        " BUST" if busted else "",
    )

    outcome = TurnOutcome(
        player_name=player.name,
        total=darts.total,
        remaining_score=player.remaining_score,
        busted=busted,
        finished=finishing,
    )

    if finishing:
        unfinished = [p for p in match.players if not p.finished]
        if len(unfinished) <= 1:
            _apply_final_ranks(match)
            match.active = False
            match.completed_at = ctx.now()
            outcome.match_ended = True
            outcome.final_rankings = resolve_all(match)
            outcome.finish_rank = player.finish_rank
            logger.info("Match %s completed; winner(s): %s", match.id,
                        ", ".join(p.name for p in match.players if p.winner))
            return Result.success(outcome)
        outcome.finish_rank = estimate_finish_rank(match, player)

    outcome.next_player_name = match.players[match.current_player_index].name
    return Result.success(outcome)


# =============================================================================
# Undo
# =============================================================================

def _replay_player(match: Match, player: PlayerEntry) -> None:
    """Rebuild remaining score and aggregates from the player's turn list."""
    remaining = player.starting_score
    aggregates = PlayerAggregates()
    for turn in player.turns:
        if turn.checkout_attempt:
            aggregates.checkout_attempts += 1
        if turn.busted:
            continue
        remaining = max(remaining - turn.total, 0)
        _record_scoring_turn(aggregates, turn.dart_values, turn.total, match.scoring_unit)
        if remaining == 0:
            aggregates.checkout_successes += 1
    player.remaining_score = remaining
    player.aggregates = aggregates


def undo_last_turn(match: Match) -> Result[UndoOutcome]:
    """Remove the current player's most recent turn and replay the rest."""
    if not match.active:
        return Result.failure(ErrorCode.MATCH_NOT_ACTIVE, "Match is not active")

    player = match.players[match.current_player_index]
    if not player.turns:
        return Result.failure(ErrorCode.NO_TURNS_TO_UNDO, "No turns to undo")

    removed = player.turns.pop()
    _replay_player(match, player)
    match.turn_counter = max(match.turn_counter - 1, 0)

    logger.debug(
        "Match %s: undid %s for %s, remaining %d",
        match.id, removed.dart_values, player.name, player.remaining_score,
    )
    return Result.success(UndoOutcome(player_name=player.name, new_remaining=player.remaining_score))


# =============================================================================
# Termination
# =============================================================================

def end_game(match: Match, context: Optional[EngineContext] = None) -> Result[Match]:
    """Manually terminate a match and settle a ranking.

    Without resolved ranks, players are ordered finished first, then by
    finish round, remaining score, darts thrown and seat order; the single
    rank-1 player is the winner.
    """
    if not match.active:
        return Result.failure(ErrorCode.MATCH_NOT_ACTIVE, "Match is not active")

    ctx = resolve_context(context)
    match.active = False
    match.completed_at = ctx.now()

    if all(p.finish_rank is None for p in match.players):
        ordered = sorted(
            enumerate(match.players),
            key=lambda item: (
                not item[1].finished,
                item[1].finish_round_index if item[1].finish_round_index is not None else float("inf"),
                item[1].remaining_score,
                item[1].aggregates.darts_thrown,
                item[0],
            ),
        )
        for rank, (_, player) in enumerate(ordered, start=1):
            player.finish_rank = rank

    winner: Optional[PlayerEntry] = None
    for player in match.players:
        if winner is None and player.finish_rank == 1:
            winner = player
        player.winner = player is winner

    logger.info("Match %s ended manually; winner %s", match.id, winner.name if winner else None)
    return Result.success(match)


def abandon_game(match: Match, context: Optional[EngineContext] = None) -> Result[Match]:
    """Discard a match: deactivate it without assigning ranks or a winner."""
    if not match.active:
        return Result.failure(ErrorCode.MATCH_NOT_ACTIVE, "Match is not active")

    ctx = resolve_context(context)
    match.active = False
    match.completed_at = ctx.now()
    logger.info("Match %s abandoned", match.id)
    return Result.success(match)


# =============================================================================
# Read-only projections
# =============================================================================

def get_current_player(match: Match) -> PlayerEntry:
    return match.players[match.current_player_index]


def get_turn_history(match: Match, player_index: int) -> List[Dict[str, Any]]:
    player = match.players[player_index]
    return [
        {
            "turn_number": number,
            "darts": list(turn.dart_values),
            "total": turn.total,
            "remaining": turn.remaining_after,
            "busted": turn.busted,
        }
        for number, turn in enumerate(player.turns, start=1)
    ]


def get_match_summary(match: Match) -> Dict[str, Any]:
    duration_minutes = None
    if match.completed_at is not None:
        duration_minutes = round((match.completed_at - match.created_at).total_seconds() / 60, 1)

    return {
        "id": match.id,
        "created_at": match.created_at,
        "completed_at": match.completed_at,
        "starting_score": match.starting_score,
        "scoring_unit": match.scoring_unit.value,
        "players": [
            {
                "name": p.name,
                "winner": p.winner,
                "finish_rank": p.finish_rank,
                "remaining": p.remaining_score,
                "darts": p.aggregates.darts_thrown,
                "average_per_turn": round(p.aggregates.average_per_turn, 2),
                "average_per_dart": round(p.aggregates.average_per_dart, 2),
                "turns": len(p.turns),
            }
            for p in match.players
        ],
        "duration_minutes": duration_minutes,
    }
