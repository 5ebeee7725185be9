"""
League standings.

Ordering: points desc, then head-to-head net wins against the other
participants on the same points, then leg difference, then legs won.
Anything still level (a head-to-head cycle with identical legs) falls back
to name, case-insensitive, then participant id, so the order never depends
on list position.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from oche.models.league import FixtureStatus, League, LeagueParticipant


@dataclass
class StandingRow:
    rank: int
    participant_id: str
    name: str
    played: int
    wins: int
    draws: int
    losses: int
    points: int
    leg_diff: int
    legs_won: int
    legs_lost: int


def _pair_wins(league: League) -> Dict[Tuple[str, str], int]:
    """(winner_id, loser_id) -> number of completed fixtures won."""
    wins: Dict[Tuple[str, str], int] = defaultdict(int)
    for fixture in league.fixtures:
        if fixture.status != FixtureStatus.COMPLETED or fixture.is_draw or fixture.winner_id is None:
            continue
        loser_id = fixture.player2_id if fixture.winner_id == fixture.player1_id else fixture.player1_id
        wins[(fixture.winner_id, loser_id)] += 1
    return wins


def get_head_to_head(league: League, a_id: str, b_id: str) -> Dict[str, int]:
    played = a_wins = b_wins = draws = 0
    for fixture in league.fixtures:
        if fixture.status != FixtureStatus.COMPLETED:
            continue
        if {fixture.player1_id, fixture.player2_id} != {a_id, b_id}:
            continue
        played += 1
        if fixture.is_draw:
            draws += 1
        elif fixture.winner_id == a_id:
            a_wins += 1
        elif fixture.winner_id == b_id:
            b_wins += 1
    return {"played": played, "a_wins": a_wins, "b_wins": b_wins, "draws": draws}


def compute_standings(league: League) -> List[StandingRow]:
    """Ranked table over the league's current tallies; ranks are 1..n."""
    wins = _pair_wins(league)

    by_points: Dict[int, List[LeagueParticipant]] = defaultdict(list)
    for participant in league.participants:
        by_points[participant.points].append(participant)

    def head_to_head_net(participant: LeagueParticipant) -> int:
        net = 0
        for other in by_points[participant.points]:
            if other.id != participant.id:
                net += wins[(participant.id, other.id)] - wins[(other.id, participant.id)]
        return net

    ordered = sorted(
        league.participants,
        key=lambda p: (
            -p.points,
            -head_to_head_net(p),
            -(p.legs_won - p.legs_lost),
            -p.legs_won,
            p.name.lower(),
            p.id,
        ),
    )

    return [
        StandingRow(
            rank=rank,
            participant_id=p.id,
            name=p.name,
            played=p.played,
            wins=p.wins,
            draws=p.draws,
            losses=p.losses,
            points=p.points,
            leg_diff=p.legs_won - p.legs_lost,
            legs_won=p.legs_won,
            legs_lost=p.legs_lost,
        )
        for rank, p in enumerate(ordered, start=1)
    ]


get_standings = compute_standings
