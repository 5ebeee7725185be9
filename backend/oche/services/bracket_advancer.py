"""
Bracket advancement: when a slot is decided, move its winner (and, in double
elimination, its loser) into the linked downstream slots.

Byes are settled by the same path: a slot whose feeders are all decided and
which ended up with a single occupant completes with that occupant as winner.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from oche.errors import ErrorCode, Result
from oche.models.match import Match
from oche.models.tournament import (
    BracketSide,
    BracketSlot,
    Participant,
    SlotStatus,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class BracketView:
    """Slots grouped by bracket and round, each round ordered by match number."""
    winners: Dict[int, List[BracketSlot]] = field(default_factory=dict)
    losers: Dict[int, List[BracketSlot]] = field(default_factory=dict)
    grand_finals: Optional[BracketSlot] = None


# =============================================================================
# Lookup helpers
# =============================================================================

def find_slot(tournament: Tournament, slot_id: str) -> Optional[BracketSlot]:
    for slot in tournament.slots:
        if slot.id == slot_id:
            return slot
    return None


def _find_participant(tournament: Tournament, participant_id: str) -> Optional[Participant]:
    for participant in tournament.participants:
        if participant.id == participant_id:
            return participant
    return None


def _occupants(slot: BracketSlot) -> List[tuple]:
    found = []
    if slot.player1_id is not None:
        found.append((slot.player1_id, slot.player1_name))
    if slot.player2_id is not None:
        found.append((slot.player2_id, slot.player2_name))
    return found


def _feeders_by_slot(tournament: Tournament) -> Dict[str, List[BracketSlot]]:
    feeders: Dict[str, List[BracketSlot]] = {slot.id: [] for slot in tournament.slots}
    for slot in tournament.slots:
        if slot.winner_next_slot_id:
            feeders[slot.winner_next_slot_id].append(slot)
        if slot.loser_next_slot_id:
            feeders[slot.loser_next_slot_id].append(slot)
    return feeders


def _terminal_slot(tournament: Tournament) -> Optional[BracketSlot]:
    if not tournament.slots:
        return None
    if tournament.format == TournamentFormat.DOUBLE_ELIMINATION:
        for slot in tournament.slots:
            if slot.bracket == BracketSide.GRAND_FINALS:
                return slot
        return None
    return max(tournament.slots, key=lambda s: s.round)


# =============================================================================
# Propagation
# =============================================================================

def _place(slot: BracketSlot, participant_id: str, name: Optional[str]) -> None:
    """Fill the first open position of a slot."""
    if slot.player1_id is None:
        slot.player1_id = participant_id
        slot.player1_name = name
    elif slot.player2_id is None:
        slot.player2_id = participant_id
        slot.player2_name = name
    else:
        raise RuntimeError(f"Slot {slot.id} is already full, cannot place {name}")


def _complete_slot(
    tournament: Tournament,
    slot: BracketSlot,
    winner: tuple,
    loser: Optional[tuple] = None,
) -> None:
    slot.winner_id, slot.winner_name = winner
    slot.status = SlotStatus.COMPLETED

    if slot.winner_next_slot_id:
        _place(find_slot(tournament, slot.winner_next_slot_id), *winner)

    if loser is None:
        return

    participant = _find_participant(tournament, loser[0])
    double = tournament.format == TournamentFormat.DOUBLE_ELIMINATION
    if double and slot.round > 0:
        # winners-bracket and grand-finals losses are not eliminations
        if slot.loser_next_slot_id:
            _place(find_slot(tournament, slot.loser_next_slot_id), *loser)
    elif participant is not None:
        participant.eliminated = True
        participant.eliminated_at_round = slot.round


def resolve_byes(tournament: Tournament) -> int:
    """Settle every undecided slot whose feeders are all completed.

    One occupant: completes with that occupant as winner and propagates.
    No occupant: completes without a winner. Repeats until nothing changes.
    Returns the number of slots settled.
    """
    feeders = _feeders_by_slot(tournament)
    settled = 0
    changed = True
    while changed:
        changed = False
        for slot in tournament.slots:
            if slot.status in (SlotStatus.COMPLETED, SlotStatus.IN_PROGRESS):
                continue
            if not all(f.status == SlotStatus.COMPLETED for f in feeders[slot.id]):
                continue
            occupants = _occupants(slot)
            if len(occupants) == 2:
                continue
            if occupants:
                _complete_slot(tournament, slot, occupants[0])
                logger.debug("Slot %s: bye for %s", slot.id, occupants[0][1])
            else:
                slot.status = SlotStatus.COMPLETED
            settled += 1
            changed = True
    return settled


def refresh_readiness(tournament: Tournament) -> None:
    for slot in tournament.slots:
        if slot.status in (SlotStatus.COMPLETED, SlotStatus.IN_PROGRESS):
            continue
        both = slot.player1_id is not None and slot.player2_id is not None
        slot.status = SlotStatus.READY if both else SlotStatus.PENDING


# =============================================================================
# Result recording
# =============================================================================

def record_match_result(
    tournament: Tournament,
    slot_id: str,
    winner_id: Optional[str] = None,
    winner_name: Optional[str] = None,
) -> Result[BracketSlot]:
    """Decide a slot and advance both players.

    The winner may be given by participant ID or, failing that, by name.
    """
    slot = find_slot(tournament, slot_id)
    if slot is None:
        return Result.failure(ErrorCode.SLOT_NOT_FOUND, f"Slot {slot_id} not found")
    if slot.status == SlotStatus.COMPLETED:
        logger.warning("Slot %s already completed", slot_id)
        return Result.failure(ErrorCode.MATCH_ALREADY_COMPLETED, "Slot already has a result")

    occupants = _occupants(slot)
    if len(occupants) != 2:
        return Result.failure(ErrorCode.SLOT_NOT_READY, "Slot does not have two players")

    winner = next(
        (o for o in occupants if (winner_id is not None and o[0] == winner_id)
         or (winner_id is None and winner_name is not None and o[1] == winner_name)),
        None,
    )
    if winner is None:
        logger.warning("Slot %s: %s is not an occupant", slot_id, winner_id or winner_name)
        return Result.failure(ErrorCode.INVALID_WINNER, "Winner must be one of the slot's players")
    loser = occupants[1] if winner is occupants[0] else occupants[0]

    _complete_slot(tournament, slot, winner, loser)
    logger.debug("Slot %s (round %d): %s beat %s", slot.id, slot.round, winner[1], loser[1])

    resolve_byes(tournament)
    refresh_readiness(tournament)
    check_completion(tournament)
    return Result.success(slot)


def record_match_outcome(tournament: Tournament, slot_id: str, match: Match) -> Result[BracketSlot]:
    """Record a slot from its completed Match (the rank-1 player wins)."""
    if match.active:
        return Result.failure(ErrorCode.MATCH_ALREADY_IN_PROGRESS, "Match is still being played")
    winner = next((p for p in match.players if p.winner), None)
    if winner is None or winner.participant_id is None:
        return Result.failure(ErrorCode.INVALID_WINNER, "Match has no winner linked to a participant")
    return record_match_result(tournament, slot_id, winner.participant_id, winner.name)


def check_completion(tournament: Tournament) -> bool:
    """Finish the tournament once the terminal slot has a winner.

    Placements: winner 1, then participants not eliminated, then by how
    late they went out (larger round magnitude first), then seed.
    """
    if tournament.status == TournamentStatus.COMPLETED:
        return True

    terminal = _terminal_slot(tournament)
    if terminal is None or terminal.status != SlotStatus.COMPLETED or terminal.winner_id is None:
        return False

    tournament.status = TournamentStatus.COMPLETED
    tournament.winner_id = terminal.winner_id
    tournament.winner_name = terminal.winner_name

    others = sorted(
        (p for p in tournament.participants if p.id != terminal.winner_id),
        key=lambda p: (p.eliminated, -abs(p.eliminated_at_round or 0), p.seed_position),
    )
    winner = _find_participant(tournament, terminal.winner_id)
    if winner is not None:
        winner.final_placement = 1
    for placement, participant in enumerate(others, start=2):
        participant.final_placement = placement

    logger.info("Tournament %s completed; winner %s", tournament.id, tournament.winner_name)
    return True


# =============================================================================
# Read-only projections
# =============================================================================

def get_bracket_view(tournament: Tournament) -> BracketView:
    view = BracketView()
    for slot in sorted(tournament.slots, key=lambda s: (abs(s.round), s.match_number)):
        if slot.bracket == BracketSide.GRAND_FINALS:
            view.grand_finals = slot
        elif slot.bracket == BracketSide.LOSERS:
            view.losers.setdefault(abs(slot.round), []).append(slot)
        else:
            view.winners.setdefault(slot.round, []).append(slot)
    return view


def get_round_name(tournament: Tournament, slot: BracketSlot) -> str:
    if slot.bracket == BracketSide.GRAND_FINALS:
        return "Grand Finals"

    if slot.bracket == BracketSide.LOSERS:
        last_losers = max(abs(s.round) for s in tournament.slots if s.bracket == BracketSide.LOSERS)
        if abs(slot.round) == last_losers:
            return "Losers Final"
        return f"Losers Round {abs(slot.round)}"

    final_round = max(s.round for s in tournament.slots if s.bracket == BracketSide.WINNERS)
    remaining = final_round - slot.round
    if remaining == 0:
        return "Winners Final" if tournament.format == TournamentFormat.DOUBLE_ELIMINATION else "Final"
    if remaining == 1:
        return "Semi-Finals"
    if remaining == 2:
        return "Quarter-Finals"
    return f"Round {slot.round}"


def get_tournament_standings(tournament: Tournament) -> List[Dict[str, Any]]:
    ordered = sorted(
        tournament.participants,
        key=lambda p: (
            p.final_placement is None,
            p.final_placement or 0,
            p.eliminated,
            -abs(p.eliminated_at_round or 0),
            p.seed_position,
        ),
    )
    return [
        {
            "id": p.id,
            "name": p.name,
            "placement": p.final_placement,
            "eliminated": p.eliminated,
            "eliminated_at_round": p.eliminated_at_round,
        }
        for p in ordered
    ]


def get_ready_slots(tournament: Tournament) -> List[BracketSlot]:
    return [s for s in tournament.slots if s.status == SlotStatus.READY]


def get_in_progress_slots(tournament: Tournament) -> List[BracketSlot]:
    return [s for s in tournament.slots if s.status == SlotStatus.IN_PROGRESS]
