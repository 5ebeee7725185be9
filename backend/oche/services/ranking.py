"""
Finish-order ranking for multi-player matches.

Players who reach zero in the same full rotation (same finish_round_index)
tie. Ranks follow competition ordering: two players tied at rank 1 are
followed by rank 3. Players who never finished share last place.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from oche.models.match import Match, PlayerEntry


@dataclass
class RankingEntry:
    player_id: str
    name: str
    rank: Optional[int]
    remaining_score: int
    darts_thrown: int
    average: float
    finished: bool


def _entry(player: PlayerEntry, rank: Optional[int]) -> RankingEntry:
    return RankingEntry(
        player_id=player.id,
        name=player.name,
        rank=rank,
        remaining_score=player.remaining_score,
        darts_thrown=player.aggregates.darts_thrown,
        average=round(player.aggregates.average_per_turn, 2),
        finished=player.finished,
    )


def compute_finish_ranks(match: Match) -> Dict[str, int]:
    """Map player id -> rank for every player in the match.

    Pure: reads finish_round_index only, never mutates the match.
    """
    finishers = sorted(
        (p for p in match.players if p.finish_round_index is not None),
        key=lambda p: p.finish_round_index,
    )
    ranks: Dict[str, int] = {}
    current_rank = 0
    previous_round: Optional[int] = None
    for position, player in enumerate(finishers, start=1):
        if player.finish_round_index != previous_round:
            # rank jumps by the size of the tie group just closed
            current_rank = position
            previous_round = player.finish_round_index
        ranks[player.id] = current_rank

    stragglers = [p for p in match.players if p.finish_round_index is None]
    if stragglers:
        straggler_rank = len(match.players) - len(stragglers) + 1
        for player in stragglers:
            ranks[player.id] = straggler_rank
    return ranks


def resolve_all(match: Match) -> List[RankingEntry]:
    """Resolve the final ranking of a match.

    Called once the second-to-last player has finished. Idempotent: the
    result depends only on the players' finish rounds and remaining scores.
    """
    ranks = compute_finish_ranks(match)
    ordered = sorted(
        enumerate(match.players),
        key=lambda item: (ranks[item[1].id], item[1].remaining_score, item[0]),
    )
    return [_entry(player, ranks[player.id]) for _, player in ordered]


def estimate_finish_rank(match: Match, player: PlayerEntry) -> int:
    """Provisional rank for a player who just finished mid-match.

    Counts distinct earlier finish rounds, so players finishing in the same
    round share the estimate.
    """
    if player.finish_round_index is None:
        raise ValueError(f"Player {player.name} has not finished")
    earlier_rounds = {
        p.finish_round_index
        for p in match.players
        if p.finish_round_index is not None and p.finish_round_index < player.finish_round_index
    }
    return len(earlier_rounds) + 1


def get_rankings(match: Match) -> List[RankingEntry]:
    """Side-effect-free ranking projection.

    Uses stored finish ranks once the match has been resolved or ended,
    otherwise the live resolution of current finish rounds.
    """
    if any(p.finish_rank is not None for p in match.players):
        ordered = sorted(
            enumerate(match.players),
            key=lambda item: (
                item[1].finish_rank is None,
                item[1].finish_rank or 0,
                item[1].remaining_score,
                item[0],
            ),
        )
        return [_entry(player, player.finish_rank) for _, player in ordered]
    return resolve_all(match)
