"""Tests for bet record invariants and lifecycle transitions."""

import pytest
from pydantic import ValidationError

from wager.models import VALID_BET_TRANSITIONS, Bet, BetEvent, BetStatus, EngineState, UserStats


def make_bet(**overrides) -> Bet:
    data = {
        "id": 1,
        "creator": "alice",
        "description": "A beats B",
        "stake": 1000,
        "creator_side": True,
        "created_at": 100,
        "expires_at": 110,
    }
    data.update(overrides)
    return Bet(**data)


class TestBetInvariants:
    def test_open_bet_defaults(self):
        bet = make_bet()
        assert bet.status is BetStatus.OPEN
        assert bet.opponent is None
        assert bet.pot == 2000

    def test_open_bet_cannot_have_opponent(self):
        with pytest.raises(ValidationError):
            make_bet(opponent="bob")

    def test_accepted_bet_requires_opponent(self):
        with pytest.raises(ValidationError):
            make_bet(status=BetStatus.ACCEPTED)

    def test_opponent_must_differ_from_creator(self):
        with pytest.raises(ValidationError):
            make_bet(status=BetStatus.ACCEPTED, opponent="alice")

    def test_resolved_bet_requires_resolution_fields(self):
        with pytest.raises(ValidationError):
            make_bet(status=BetStatus.RESOLVED, opponent="bob", outcome=True)

    def test_winner_must_be_participant(self):
        with pytest.raises(ValidationError):
            make_bet(
                status=BetStatus.RESOLVED,
                opponent="bob",
                outcome=True,
                winner="carol",
                resolved_at=105,
            )

    def test_cancelled_bet_cannot_carry_outcome(self):
        with pytest.raises(ValidationError):
            make_bet(status=BetStatus.CANCELLED, outcome=False)

    @pytest.mark.parametrize("stake", [0, -1])
    def test_stake_must_be_positive(self, stake):
        with pytest.raises(ValidationError):
            make_bet(stake=stake)

    def test_expiry_after_creation(self):
        with pytest.raises(ValidationError):
            make_bet(expires_at=100)

    def test_is_expired_boundary(self):
        bet = make_bet()
        assert not bet.is_expired(109)
        assert bet.is_expired(110)


class TestTransitions:
    def test_open_to_accepted(self):
        accepted = make_bet().transition(BetStatus.ACCEPTED, opponent="bob")
        assert accepted.status is BetStatus.ACCEPTED
        assert accepted.opponent == "bob"

    def test_transition_returns_copy(self):
        bet = make_bet()
        bet.transition(BetStatus.CANCELLED)
        assert bet.status is BetStatus.OPEN

    def test_open_cannot_jump_to_resolved(self):
        with pytest.raises(ValueError, match="Illegal bet transition"):
            make_bet().transition(
                BetStatus.RESOLVED, opponent="bob", outcome=True, winner="alice", resolved_at=105
            )

    @pytest.mark.parametrize("terminal", [BetStatus.RESOLVED, BetStatus.CANCELLED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal.is_terminal
        assert VALID_BET_TRANSITIONS[terminal] == set()

    def test_stake_is_immutable(self):
        with pytest.raises(ValueError, match="immutable"):
            make_bet().transition(BetStatus.ACCEPTED, opponent="bob", stake=5)

    def test_transition_revalidates(self):
        with pytest.raises(ValidationError):
            make_bet().transition(BetStatus.ACCEPTED)


class TestEngineState:
    def test_restore_overwrites_in_place(self):
        state = EngineState()
        snapshot = state.checkpoint()
        state.next_bet_id = 5
        state.stats["alice"] = UserStats(account="alice", total_bets=1)

        state.restore(snapshot)

        assert state.next_bet_id == 1
        assert state.stats == {}

    def test_fee_rate_bounds(self):
        with pytest.raises(ValidationError):
            EngineState(fee_rate_bps=10_001)

    def test_checkpoint_is_independent_of_later_changes(self):
        state = EngineState()
        state.bets[1] = make_bet()
        state.escrow[1] = 10
        checkpoint = state.checkpoint()

        state.bets[2] = make_bet(id=2)
        state.escrow[1] = 20
        state.events.append(BetEvent(kind="created", bet_id=2, actor="alice", height=0))
        state.restore(checkpoint)

        assert list(state.bets) == [1]
        assert state.escrow == {1: 10}
        assert len(state.events) == 1

    def test_events_are_not_dumped(self):
        state = EngineState(events=[BetEvent(kind="created", bet_id=1, actor="alice", height=0)])
        assert "events" not in state.model_dump()


class TestFrozenRecords:
    def test_bet_cannot_be_mutated(self):
        bet = make_bet()
        with pytest.raises(ValidationError):
            bet.status = BetStatus.RESOLVED

    def test_stats_cannot_be_mutated(self):
        stats = UserStats(account="alice")
        with pytest.raises(ValidationError):
            stats.bets_won = 3
