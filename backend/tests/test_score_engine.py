"""
Tests for the score engine: validation, busts, checkouts, rotation, undo and termination.
"""

import pytest

from oche.errors import ErrorCode
from oche.models.match import Match, MatchConfig, ScoringUnit, WinRule
from oche.services.ranking import get_rankings
from oche.services.score_engine import (
    abandon_game,
    create_match,
    end_game,
    get_current_player,
    get_match_summary,
    get_turn_history,
    submit_turn,
    undo_last_turn,
    validate_turn,
)


def _names(match: Match) -> list[str]:
    return [p.name for p in match.players]


class TestCreateMatch:

    def test_seats_follow_shuffle(self, ctx):
        match = create_match(["Ann", "Bob", "Cat"], context=ctx)
        assert _names(match) == ["Ann", "Bob", "Cat"]
        assert match.active is True
        assert match.current_player_index == 0
        assert match.turn_counter == 0

    def test_reversed_shuffle_changes_seat_order(self, reversed_ctx):
        match = create_match(["Ann", "Bob", "Cat"], context=reversed_ctx)
        assert _names(match) == ["Cat", "Bob", "Ann"]

    def test_blank_names_get_default(self, ctx):
        match = create_match(["Ann", "  ", ""], context=ctx)
        assert _names(match) == ["Ann", "Player 2", "Player 3"]

    def test_config_applied_to_every_player(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        assert match.starting_score == 101
        assert all(p.remaining_score == 101 for p in match.players)
        assert all(p.starting_score == 101 for p in match.players)

    def test_default_config_from_settings(self, ctx):
        match = create_match(["Ann"], context=ctx)
        assert match.starting_score == 501
        assert match.win_rule == WinRule.EXACT_ZERO
        assert match.scoring_unit == ScoringUnit.PER_DART

    def test_empty_roster_rejected(self, ctx):
        with pytest.raises(ValueError):
            create_match([], context=ctx)

    def test_participant_ids_linked(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx, participant_ids=["p-a", "p-b"])
        assert [p.participant_id for p in match.players] == ["p-a", "p-b"]

    def test_ids_come_from_context(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        assert [p.id for p in match.players] == ["id-1", "id-2"]
        assert match.id == "id-3"


class TestValidateTurn:

    def test_three_darts(self):
        result = validate_turn([60, 60, 60])
        assert result.ok
        assert result.value.dart_values == [60, 60, 60]
        assert result.value.total == 180

    def test_string_forms(self):
        assert validate_turn("60 40 1").value.dart_values == [60, 40, 1]
        assert validate_turn("60,40,1").value.dart_values == [60, 40, 1]
        assert validate_turn(["20", "5"]).value.total == 25
        assert validate_turn(45).value.dart_values == [45]

    def test_zero_darts_rejected(self):
        result = validate_turn([])
        assert not result.ok
        assert result.error == ErrorCode.INVALID_TURN_COMPOSITION

    def test_four_darts_rejected(self):
        assert validate_turn([1, 2, 3, 4]).error == ErrorCode.INVALID_TURN_COMPOSITION

    def test_total_over_180_rejected(self):
        assert validate_turn([180, 1]).error == ErrorCode.INVALID_TURN_COMPOSITION

    def test_out_of_range_dart(self):
        assert validate_turn([181]).error == ErrorCode.INVALID_DART_VALUE
        assert validate_turn([-1]).error == ErrorCode.INVALID_DART_VALUE

    def test_non_numeric_dart(self):
        assert validate_turn(["treble"]).error == ErrorCode.INVALID_DART_VALUE
        assert validate_turn([2.5]).error == ErrorCode.INVALID_DART_VALUE

    @pytest.mark.parametrize("darts_input", [20.5, None, [20.5], [None]])
    def test_scalar_non_integer_input_is_a_bad_dart(self, ctx, darts_input):
        assert validate_turn(darts_input).error == ErrorCode.INVALID_DART_VALUE

        match = create_match(["Ann", "Bob"], context=ctx)
        result = submit_turn(match, darts_input, context=ctx)
        assert result.error == ErrorCode.INVALID_DART_VALUE
        assert match.turn_counter == 0

    def test_per_turn_single_value(self):
        assert validate_turn([140], ScoringUnit.PER_TURN).ok
        result = validate_turn([100, 40], ScoringUnit.PER_TURN)
        assert result.error == ErrorCode.INVALID_TURN_COMPOSITION


class TestSubmitTurn:

    def test_normal_turn_reduces_score(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        result = submit_turn(match, [60, 60, 60], context=ctx)

        assert result.ok
        outcome = result.value
        assert outcome.player_name == "Ann"
        assert outcome.remaining_score == 321
        assert outcome.busted is False
        assert outcome.next_player_name == "Bob"

        ann = match.players[0]
        assert ann.remaining_score == 321
        assert ann.aggregates.darts_thrown == 3
        assert ann.aggregates.total_scored == 180
        assert ann.aggregates.max_turn_total == 180
        assert ann.aggregates.max_dart_value == 60
        assert match.turn_counter == 1
        assert match.current_player_index == 1

    def test_bust_reverts_score_and_is_recorded(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        submit_turn(match, [60, 1], context=ctx)   # Ann 40
        submit_turn(match, [1], context=ctx)       # Bob 100
        result = submit_turn(match, [60], context=ctx)

        assert result.ok
        assert result.value.busted is True
        ann = match.players[0]
        assert ann.remaining_score == 40
        assert ann.turns[-1].busted is True
        assert ann.turns[-1].remaining_after == 40
        assert ann.aggregates.checkout_attempts == 1
        assert ann.aggregates.darts_thrown == 2
        assert match.turn_counter == 3
        assert get_current_player(match).name == "Bob"

    def test_minimum_checkout_remainder_busts(self, ctx):
        config = MatchConfig(starting_score=101, min_checkout_remainder=2)
        match = create_match(["Ann", "Bob"], config=config, context=ctx)
        result = submit_turn(match, [60, 40], context=ctx)

        assert result.value.busted is True
        assert match.players[0].remaining_score == 101

    def test_zero_or_below_finishes_and_clamps(self, ctx):
        config = MatchConfig(starting_score=101, win_rule=WinRule.ZERO_OR_BELOW)
        match = create_match(["Ann", "Bob"], config=config, context=ctx)
        result = submit_turn(match, [60, 60], context=ctx)

        assert result.value.finished is True
        assert result.value.match_ended is True
        ann, bob = match.players
        assert ann.remaining_score == 0
        assert ann.finish_rank == 1 and ann.winner is True
        assert bob.finish_rank == 2 and bob.winner is False

    def test_checkout_counts_attempt_and_success(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        submit_turn(match, [60, 40], context=ctx)  # Ann 1
        submit_turn(match, [1], context=ctx)
        assert match.players[0].aggregates.checkout_attempts == 0
        submit_turn(match, [1], context=ctx)

        aggregates = match.players[0].aggregates
        assert aggregates.checkout_attempts == 1
        assert aggregates.checkout_successes == 1

    def test_rejected_turn_leaves_match_untouched(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        before = match.model_dump()
        result = submit_turn(match, [200], context=ctx)

        assert result.error == ErrorCode.INVALID_DART_VALUE
        assert match.model_dump() == before

    def test_per_turn_counts_three_darts(self, ctx):
        config = MatchConfig(scoring_unit=ScoringUnit.PER_TURN)
        match = create_match(["Ann", "Bob"], config=config, context=ctx)
        submit_turn(match, [100], context=ctx)

        ann = match.players[0]
        assert ann.remaining_score == 401
        assert ann.aggregates.darts_thrown == 3
        assert submit_turn(match, [60, 40], context=ctx).error == ErrorCode.INVALID_TURN_COMPOSITION

    def test_inactive_match_rejects_turns(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        abandon_game(match, context=ctx)
        assert submit_turn(match, [20], context=ctx).error == ErrorCode.MATCH_NOT_ACTIVE

    def test_single_player_match_completes_on_finish(self, ctx, short_config):
        match = create_match(["Solo"], config=short_config, context=ctx)
        result = submit_turn(match, [60, 41], context=ctx)

        assert result.value.match_ended is True
        assert match.active is False
        assert match.players[0].finish_rank == 1
        assert match.players[0].winner is True


class TestFinishOrder:

    def test_three_player_finish_in_different_rounds(self, ctx, short_config):
        match = create_match(["P1", "P2", "P3"], config=short_config, context=ctx)

        first = submit_turn(match, [60, 40, 1], context=ctx).value
        assert first.finished is True
        assert first.finish_rank == 1
        assert first.match_ended is False
        assert first.next_player_name == "P2"

        submit_turn(match, [20], context=ctx)  # P2 81
        submit_turn(match, [20], context=ctx)  # P3 81
        # P1 is finished and skipped
        assert get_current_player(match).name == "P2"

        last = submit_turn(match, [60, 21], context=ctx).value
        assert last.match_ended is True
        assert last.finish_rank == 2
        assert match.active is False
        assert match.completed_at is not None

        rankings = get_rankings(match)
        assert [(r.name, r.rank) for r in rankings] == [("P1", 1), ("P2", 2), ("P3", 3)]
        assert [p.winner for p in match.players] == [True, False, False]

        # already completed, manual end is rejected
        assert end_game(match, context=ctx).error == ErrorCode.MATCH_NOT_ACTIVE

    def test_same_round_finishers_share_rank(self, ctx, short_config):
        match = create_match(["P1", "P2", "P3", "P4"], config=short_config, context=ctx)
        submit_turn(match, [60, 41], context=ctx)            # P1 round 0
        tied = submit_turn(match, [60, 41], context=ctx).value  # P2 round 0
        assert tied.finish_rank == 1
        submit_turn(match, [1], context=ctx)                 # P3 100
        submit_turn(match, [1], context=ctx)                 # P4 100
        submit_turn(match, [60, 40], context=ctx)            # P3 round 1

        assert match.active is False
        ranks = {p.name: p.finish_rank for p in match.players}
        assert ranks == {"P1": 1, "P2": 1, "P3": 3, "P4": 4}

    def test_finish_round_follows_own_visits_while_seats_are_skipped(self, ctx, short_config):
        match = create_match(["P1", "P2", "P3", "P4"], config=short_config, context=ctx)
        submit_turn(match, [60, 41], context=ctx)   # P1 out on visit 1
        submit_turn(match, [1], context=ctx)        # P2 100
        submit_turn(match, [1], context=ctx)        # P3 100
        submit_turn(match, [1], context=ctx)        # P4 100
        # P1 is skipped from here on, so rotations take three turns
        submit_turn(match, [1], context=ctx)        # P2 99
        submit_turn(match, [60, 40], context=ctx)   # P3 out on visit 2
        submit_turn(match, [1], context=ctx)        # P4 99
        submit_turn(match, [60, 39], context=ctx)   # P2 out on visit 3

        rounds = {p.name: p.finish_round_index for p in match.players}
        assert rounds == {"P1": 0, "P2": 2, "P3": 1, "P4": None}
        assert match.active is False
        ranks = {p.name: p.finish_rank for p in match.players}
        assert ranks == {"P1": 1, "P3": 2, "P2": 3, "P4": 4}

    def test_busts_count_toward_the_finish_round(self, ctx, short_config):
        match = create_match(["P1", "P2", "P3"], config=short_config, context=ctx)
        submit_turn(match, [60, 41], context=ctx)   # P1 out on visit 1
        submit_turn(match, [120], context=ctx)      # P2 bust
        submit_turn(match, [1], context=ctx)        # P3 100
        finished = submit_turn(match, [60, 41], context=ctx).value  # P2 out on visit 2

        assert finished.match_ended is True
        assert match.players[1].finish_round_index == 1
        assert [p.finish_rank for p in match.players] == [1, 2, 3]


class TestUndo:

    def test_undo_is_left_inverse_of_submit(self, ctx):
        match = create_match(["Solo"], context=ctx)
        submit_turn(match, [20, 20, 20], context=ctx)
        player = match.players[0]
        before_remaining = player.remaining_score
        before_aggregates = player.aggregates.model_dump()

        submit_turn(match, [60, 5, 1], context=ctx)
        result = undo_last_turn(match)

        assert result.ok
        assert result.value.player_name == "Solo"
        assert result.value.new_remaining == before_remaining
        assert player.remaining_score == before_remaining
        assert player.aggregates.model_dump() == before_aggregates
        assert len(player.turns) == 1
        assert match.turn_counter == 1

    def test_undo_targets_current_player(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        submit_turn(match, [60, 60, 60], context=ctx)
        submit_turn(match, [20], context=ctx)

        result = undo_last_turn(match)
        assert result.value.player_name == "Ann"
        assert result.value.new_remaining == 501
        assert match.players[0].aggregates.darts_thrown == 0
        assert match.players[1].remaining_score == 481
        assert match.turn_counter == 1

    def test_undo_bust_restores_checkout_counters(self, ctx, short_config):
        match = create_match(["Solo"], config=short_config, context=ctx)
        submit_turn(match, [60], context=ctx)   # 41
        submit_turn(match, [60], context=ctx)   # bust
        assert match.players[0].aggregates.checkout_attempts == 1

        undo_last_turn(match)
        assert match.players[0].aggregates.checkout_attempts == 0
        assert match.players[0].remaining_score == 41

    def test_no_turns_to_undo(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        assert undo_last_turn(match).error == ErrorCode.NO_TURNS_TO_UNDO

    def test_undo_on_completed_match(self, ctx, short_config):
        match = create_match(["Solo"], config=short_config, context=ctx)
        submit_turn(match, [60, 41], context=ctx)
        assert undo_last_turn(match).error == ErrorCode.MATCH_NOT_ACTIVE


class TestTermination:

    def test_end_game_orders_by_remaining_score(self, ctx):
        match = create_match(["Ann", "Bob", "Cat"], context=ctx)
        submit_turn(match, [60], context=ctx)    # Ann 441
        submit_turn(match, [100], context=ctx)   # Bob 401
        submit_turn(match, [20], context=ctx)    # Cat 481

        result = end_game(match, context=ctx)
        assert result.ok
        assert match.active is False
        assert match.completed_at is not None
        ranks = {p.name: p.finish_rank for p in match.players}
        assert ranks == {"Bob": 1, "Ann": 2, "Cat": 3}
        assert [p.name for p in match.players if p.winner] == ["Bob"]
        assert [r.name for r in get_rankings(match)] == ["Bob", "Ann", "Cat"]

    def test_end_game_tie_falls_back_to_seat_order(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        end_game(match, context=ctx)
        assert [p.finish_rank for p in match.players] == [1, 2]
        assert [p.winner for p in match.players] == [True, False]

    def test_end_game_twice_rejected(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        end_game(match, context=ctx)
        assert end_game(match, context=ctx).error == ErrorCode.MATCH_NOT_ACTIVE

    def test_abandon_assigns_no_ranks(self, ctx):
        match = create_match(["Ann", "Bob"], context=ctx)
        submit_turn(match, [60], context=ctx)

        result = abandon_game(match, context=ctx)
        assert result.ok
        assert match.active is False
        assert all(p.finish_rank is None for p in match.players)
        assert not any(p.winner for p in match.players)
        assert abandon_game(match, context=ctx).error == ErrorCode.MATCH_NOT_ACTIVE


class TestProjections:

    def test_turn_history(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        submit_turn(match, [60, 1], context=ctx)
        submit_turn(match, [5], context=ctx)
        submit_turn(match, [50], context=ctx)  # bust at 40

        history = get_turn_history(match, 0)
        assert history == [
            {"turn_number": 1, "darts": [60, 1], "total": 61, "remaining": 40, "busted": False},
            {"turn_number": 2, "darts": [50], "total": 50, "remaining": 40, "busted": True},
        ]

    def test_match_summary(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        # clock: created 12:00, turn 12:01, completion 12:02
        submit_turn(match, [60, 41], context=ctx)

        summary = get_match_summary(match)
        assert summary["id"] == match.id
        assert summary["duration_minutes"] == 2.0
        ann = summary["players"][0]
        assert ann["name"] == "Ann"
        assert ann["winner"] is True
        assert ann["darts"] == 2
        assert ann["average_per_turn"] == 101.0
        assert ann["average_per_dart"] == 50.5

    def test_summary_of_active_match_has_no_duration(self, ctx):
        match = create_match(["Ann"], context=ctx)
        assert get_match_summary(match)["duration_minutes"] is None

    def test_match_snapshot_round_trips(self, ctx, short_config):
        match = create_match(["Ann", "Bob"], config=short_config, context=ctx)
        submit_turn(match, [60, 1], context=ctx)
        restored = Match.model_validate_json(match.model_dump_json())
        assert restored == match
