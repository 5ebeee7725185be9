"""
Elimination bracket construction.

Single elimination: log2(max_slots) winners rounds, each half the size of
the previous, slot i feeding slot i // 2 of the next round.

Double elimination adds a losers bracket of 2 * (rounds - 1) rounds
(numbered -1, -2, ...) whose size halves every second round, and one
grand-finals slot at round rounds + 1:
  - winners round 1 slot i loser   -> losers round 1 slot i // 2
  - winners round r slot i loser   -> losers round 2(r-1) slot i
  - losers odd round j slot i      -> losers round j+1 slot i
  - losers even round j slot i     -> losers round j+1 slot i // 2
  - winners final, losers final    -> grand finals
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from oche.context import EngineContext, resolve_context
from oche.errors import ErrorCode, Result
from oche.models.match import Match, MatchConfig
from oche.models.tournament import (
    BracketSide,
    BracketSlot,
    Participant,
    SlotStatus,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)
from oche.services.bracket_advancer import find_slot, refresh_readiness, resolve_byes
from oche.services.score_engine import create_match

logger = logging.getLogger(__name__)


def _is_power_of_two(n: int) -> bool:
    return n >= 2 and n & (n - 1) == 0


def _not_in_registration(tournament: Tournament) -> Result:
    logger.warning("Tournament %s is %s, registration closed", tournament.id, tournament.status.value)
    return Result.failure(
        ErrorCode.TOURNAMENT_NOT_IN_REGISTRATION,
        "Participants can only change before the bracket is generated",
    )


# =============================================================================
# Registration
# =============================================================================

def create_tournament(
    tournament_format: TournamentFormat,
    max_slots: int,
    roster: Sequence[str],
    match_config: Optional[MatchConfig] = None,
    name: Optional[str] = None,
    context: Optional[EngineContext] = None,
) -> Result[Tournament]:
    """Register a tournament with participants seeded in roster order."""
    if not _is_power_of_two(max_slots):
        return Result.failure(
            ErrorCode.INVALID_BRACKET_SIZE, f"max_slots must be a power of two >= 2, got {max_slots}"
        )

    names = [(raw or "").strip() or f"Player {i + 1}" for i, raw in enumerate(roster)]
    if len(names) > max_slots:
        return Result.failure(
            ErrorCode.TOURNAMENT_FULL, f"{len(names)} entrants do not fit {max_slots} slots"
        )
    lowered = [n.lower() for n in names]
    if len(set(lowered)) != len(lowered):
        return Result.failure(ErrorCode.DUPLICATE_PARTICIPANT, "Participant names must be unique")

    ctx = resolve_context(context)
    tournament = Tournament(
        id=ctx.new_id(),
        name=name or "Tournament",
        format=tournament_format,
        max_slots=max_slots,
        match_config=match_config or MatchConfig.from_settings(),
        created_at=ctx.now(),
        participants=[
            Participant(id=ctx.new_id(), name=n, seed_position=i + 1)
            for i, n in enumerate(names)
        ],
    )
    logger.info(
        "Created %s tournament %s (%d/%d entrants)",
        tournament_format.value, tournament.id, len(names), max_slots,
    )
    return Result.success(tournament)


def add_participant(
    tournament: Tournament, name: str, context: Optional[EngineContext] = None
) -> Result[Participant]:
    if tournament.status != TournamentStatus.REGISTRATION:
        return _not_in_registration(tournament)

    name = (name or "").strip() or f"Player {len(tournament.participants) + 1}"
    if len(tournament.participants) >= tournament.max_slots:
        return Result.failure(ErrorCode.TOURNAMENT_FULL, "Tournament is full")
    if any(p.name.lower() == name.lower() for p in tournament.participants):
        return Result.failure(ErrorCode.DUPLICATE_PARTICIPANT, f"{name} is already registered")

    ctx = resolve_context(context)
    participant = Participant(
        id=ctx.new_id(), name=name, seed_position=len(tournament.participants) + 1
    )
    tournament.participants.append(participant)
    return Result.success(participant)


def remove_participant(tournament: Tournament, participant_id: str) -> Result[Participant]:
    if tournament.status != TournamentStatus.REGISTRATION:
        return _not_in_registration(tournament)

    participant = next((p for p in tournament.participants if p.id == participant_id), None)
    if participant is None:
        return Result.failure(ErrorCode.PARTICIPANT_NOT_FOUND, f"Participant {participant_id} not found")

    tournament.participants.remove(participant)
    for seed, remaining in enumerate(tournament.participants, start=1):
        remaining.seed_position = seed
    return Result.success(participant)


def shuffle_participants(
    tournament: Tournament, context: Optional[EngineContext] = None
) -> Result[Tournament]:
    """Randomize seed order; seed positions follow the new order."""
    if tournament.status != TournamentStatus.REGISTRATION:
        return _not_in_registration(tournament)

    ctx = resolve_context(context)
    tournament.participants = list(ctx.shuffle(tournament.participants))
    for seed, participant in enumerate(tournament.participants, start=1):
        participant.seed_position = seed
    return Result.success(tournament)


# =============================================================================
# Bracket construction
# =============================================================================

def _build_winners_rounds(max_slots: int, new_id, side: BracketSide) -> List[List[BracketSlot]]:
    rounds: List[List[BracketSlot]] = []
    round_number = 1
    count = max_slots // 2
    while count >= 1:
        rounds.append([
            BracketSlot(id=new_id(), round=round_number, bracket=side, match_number=i + 1)
            for i in range(count)
        ])
        round_number += 1
        count //= 2

    for current, following in zip(rounds, rounds[1:]):
        for i, slot in enumerate(current):
            slot.winner_next_slot_id = following[i // 2].id
    return rounds


def _build_losers_rounds(max_slots: int, winners_round_count: int, new_id) -> List[List[BracketSlot]]:
    rounds: List[List[BracketSlot]] = []
    for j in range(1, 2 * (winners_round_count - 1) + 1):
        count = max_slots >> ((j + 1) // 2 + 1)
        rounds.append([
            BracketSlot(id=new_id(), round=-j, bracket=BracketSide.LOSERS, match_number=i + 1)
            for i in range(count)
        ])

    for j, (current, following) in enumerate(zip(rounds, rounds[1:]), start=1):
        for i, slot in enumerate(current):
            target = i if j % 2 == 1 else i // 2
            slot.winner_next_slot_id = following[target].id
    return rounds


def _build_single_elimination(max_slots: int, new_id) -> List[BracketSlot]:
    rounds = _build_winners_rounds(max_slots, new_id, BracketSide.WINNERS)
    return [slot for round_slots in rounds for slot in round_slots]


def _build_double_elimination(max_slots: int, new_id) -> List[BracketSlot]:
    winners = _build_winners_rounds(max_slots, new_id, BracketSide.WINNERS)
    losers = _build_losers_rounds(max_slots, len(winners), new_id)
    grand_finals = BracketSlot(
        id=new_id(), round=len(winners) + 1, bracket=BracketSide.GRAND_FINALS, match_number=1
    )

    winners[-1][0].winner_next_slot_id = grand_finals.id
    if losers:
        losers[-1][0].winner_next_slot_id = grand_finals.id
        for i, slot in enumerate(winners[0]):
            slot.loser_next_slot_id = losers[0][i // 2].id
        for r in range(2, len(winners) + 1):
            for i, slot in enumerate(winners[r - 1]):
                slot.loser_next_slot_id = losers[2 * (r - 1) - 1][i].id
    else:
        # two-slot bracket: the final is replayed as grand finals
        winners[-1][0].loser_next_slot_id = grand_finals.id

    slots = [slot for round_slots in winners for slot in round_slots]
    slots.extend(slot for round_slots in losers for slot in round_slots)
    slots.append(grand_finals)
    return slots


def generate_bracket(
    tournament: Tournament, context: Optional[EngineContext] = None
) -> Result[Tournament]:
    """Shuffle, build the slot graph, seat round one, settle byes, start play."""
    if tournament.status != TournamentStatus.REGISTRATION:
        return _not_in_registration(tournament)
    if len(tournament.participants) < 2:
        return Result.failure(
            ErrorCode.INSUFFICIENT_PARTICIPANTS, "At least 2 participants are needed"
        )

    ctx = resolve_context(context)
    shuffle_participants(tournament, ctx)

    if tournament.format == TournamentFormat.DOUBLE_ELIMINATION:
        tournament.slots = _build_double_elimination(tournament.max_slots, ctx.new_id)
    else:
        tournament.slots = _build_single_elimination(tournament.max_slots, ctx.new_id)

    first_round = [s for s in tournament.slots if s.round == 1 and s.bracket == BracketSide.WINNERS]
    seeded = sorted(tournament.participants, key=lambda p: p.seed_position)
    for i, participant in enumerate(seeded):
        slot = first_round[i // 2]
        if i % 2 == 0:
            slot.player1_id, slot.player1_name = participant.id, participant.name
        else:
            slot.player2_id, slot.player2_name = participant.id, participant.name

    byes = resolve_byes(tournament)
    refresh_readiness(tournament)
    tournament.status = TournamentStatus.IN_PROGRESS

    logger.info(
        "Generated %s bracket for tournament %s: %d slots, %d settled by bye",
        tournament.format.value, tournament.id, len(tournament.slots), byes,
    )
    return Result.success(tournament)


# =============================================================================
# Match spawning
# =============================================================================

def start_match(
    tournament: Tournament, slot_id: str, context: Optional[EngineContext] = None
) -> Result[Match]:
    slot = find_slot(tournament, slot_id)
    if slot is None:
        return Result.failure(ErrorCode.SLOT_NOT_FOUND, f"Slot {slot_id} not found")
    if slot.status == SlotStatus.IN_PROGRESS:
        return Result.failure(ErrorCode.MATCH_ALREADY_IN_PROGRESS, "Slot match already started")
    if slot.status == SlotStatus.COMPLETED:
        return Result.failure(ErrorCode.MATCH_ALREADY_COMPLETED, "Slot already has a result")
    if slot.status != SlotStatus.READY or not (slot.player1_name and slot.player2_name):
        logger.warning("Slot %s is %s, cannot start", slot.id, slot.status.value)
        return Result.failure(ErrorCode.SLOT_NOT_READY, "Slot is waiting for players")

    match = create_match(
        [slot.player1_name, slot.player2_name],
        config=tournament.match_config,
        context=context,
        participant_ids=[slot.player1_id, slot.player2_id],
    )
    match.competition_id = tournament.id
    match.competition_slot_id = slot.id
    slot.match_id = match.id
    slot.status = SlotStatus.IN_PROGRESS
    logger.info("Started match %s for slot %s", match.id, slot.id)
    return Result.success(match)
