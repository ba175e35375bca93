"""Round lifecycle: start / close / reset and settlement."""
import pytest

from models import Bid, EventLog, Round, RoundStatus, Team
from core.exceptions import ConflictError, InvalidStateTransition, NotFoundError, StorageError
from core.state_machine import RoundStateMachine


def _team(db, team_id):
    db.expire_all()
    return db.query(Team).filter(Team.id == team_id).one()


class TestStartRound:
    def test_start_creates_active_round_with_deadline(self, auction, db, clock):
        auction.start_round(db, "Null Pointer", 90)

        round_obj = db.query(Round).one()
        assert round_obj.status == RoundStatus.ACTIVE
        assert round_obj.item_label == "Null Pointer"
        assert round_obj.start_time == clock.t
        assert round_obj.end_time == clock.t + 90_000

    def test_start_while_active_conflicts(self, auction, db):
        auction.start_round(db, "Bug 1", 60)

        with pytest.raises(ConflictError):
            auction.start_round(db, "Bug 2", 60)

        db.rollback()
        assert db.query(Round).count() == 1

    def test_start_after_close_zeroes_every_bid(self, auction, db, clock, join_team):
        token_a, team_a = join_team("Alpha")
        token_b, team_b = join_team("Beta")
        auction.start_round(db, "Bug 1", 60)
        auction.attempt_bid(db, token_a)
        auction.attempt_bid(db, token_b)
        auction.close_round(db)

        auction.start_round(db, "Bug 2", 60)

        for team_id in (team_a, team_b):
            team = _team(db, team_id)
            assert team.current_bid == 0
            assert team.last_bid_time is None

    def test_start_after_reset_succeeds(self, auction, db):
        auction.start_round(db, "Bug 1", 60)
        auction.reset_round(db)

        auction.start_round(db, "Bug 2", 60)

        statuses = [r.status for r in db.query(Round).order_by(Round.id).all()]
        assert statuses == [RoundStatus.IDLE, RoundStatus.ACTIVE]

    def test_new_round_gets_new_id(self, auction, db):
        auction.start_round(db, "Bug 1", 60)
        auction.close_round(db)
        auction.start_round(db, "Bug 2", 60)

        ids = [r.id for r in db.query(Round).order_by(Round.id).all()]
        assert ids == [1, 2]


class TestCloseRound:
    def test_close_without_active_round(self, auction, db):
        with pytest.raises(NotFoundError):
            auction.close_round(db)

    def test_close_with_no_bids(self, auction, db, join_team):
        _, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 60)

        result = auction.close_round(db)

        assert result.winner is None
        assert result.second_highest is None
        assert result.fastest_bidder is None
        assert _team(db, team_id).wallet == 12000

    def test_early_close_freezes_end_time(self, auction, db, clock):
        auction.start_round(db, "Bug 1", 90)
        clock.advance(10_000)

        auction.close_round(db)

        round_obj = db.query(Round).one()
        assert round_obj.status == RoundStatus.CLOSED
        assert round_obj.end_time == clock.t

    def test_close_settles_winner(self, auction, db, clock, join_team):
        token_a, team_a = join_team("Alpha")
        token_b, team_b = join_team("Beta")
        auction.start_round(db, "Bug 1", 60)

        auction.attempt_bid(db, token_b)          # B 400 (fastest)
        clock.advance(100)
        auction.attempt_bid(db, token_a)          # A 400
        clock.advance(300)
        auction.attempt_bid(db, token_a)          # A 600

        result = auction.close_round(db)

        assert result.winner.team_id == team_a
        assert result.winner.amount == 600
        assert result.second_highest.amount == 400
        assert result.second_highest.team_id == team_b
        assert result.fastest_bidder.team_id == team_b
        assert _team(db, team_a).wallet == 12000 - 600
        assert _team(db, team_b).wallet == 12000

    def test_settlement_floors_wallet_at_zero(self, auction, db, join_team):
        token, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 60)
        auction.attempt_bid(db, token)
        auction.set_wallet(db, team_id, 100)

        auction.close_round(db)

        assert _team(db, team_id).wallet == 0

    def test_bid_after_deadline_still_accepted_until_close(self, auction, db, clock, join_team):
        token, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 1)
        clock.advance(5_000)

        view = auction.attempt_bid(db, token)

        assert view.current_bid == 400

    def test_close_is_logged_with_settlement(self, auction, db, join_team):
        token, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 60)
        auction.attempt_bid(db, token)

        auction.close_round(db)

        event = db.query(EventLog).filter(EventLog.event_type == "round_close").one()
        assert event.data["winners"]["winner"]["team_id"] == team_id
        assert event.data["settlement"]["walletAfter"] == 12000 - 400

    def test_failed_close_keeps_round_open_and_wallets(self, auction, db, join_team, failing_flush):
        token, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 60)
        auction.attempt_bid(db, token)

        with failing_flush(db), pytest.raises(StorageError):
            auction.close_round(db)

        db.expire_all()
        assert db.query(Round).one().status == RoundStatus.ACTIVE
        assert _team(db, team_id).wallet == 12000
        assert db.query(EventLog).filter(EventLog.event_type == "round_close").count() == 0


class TestResetRound:
    def test_reset_clears_bids_and_keeps_wallets_and_history(self, auction, db, join_team):
        token, team_id = join_team("Alpha")
        auction.start_round(db, "Bug 1", 60)
        auction.attempt_bid(db, token)

        auction.reset_round(db)

        team = _team(db, team_id)
        assert team.current_bid == 0
        assert team.last_bid_time is None
        assert team.wallet == 12000
        assert db.query(Bid).count() == 1
        assert db.query(Round).one().status == RoundStatus.IDLE

    def test_reset_is_idempotent(self, auction, db):
        auction.reset_round(db)
        auction.reset_round(db)

        assert db.query(Round).count() == 0

    def test_reset_leaves_closed_round_closed(self, auction, db):
        auction.start_round(db, "Bug 1", 60)
        auction.close_round(db)

        auction.reset_round(db)

        assert db.query(Round).one().status == RoundStatus.CLOSED


class TestRoundStateMachine:
    def test_allowed_transitions(self):
        assert RoundStateMachine.can_transition(RoundStatus.IDLE, RoundStatus.ACTIVE)
        assert RoundStateMachine.can_transition(RoundStatus.ACTIVE, RoundStatus.CLOSED)
        assert RoundStateMachine.can_transition(RoundStatus.ACTIVE, RoundStatus.IDLE)

    def test_closed_is_terminal(self, db):
        round_obj = Round(item_label="x", start_time=0, end_time=0, status=RoundStatus.CLOSED)
        db.add(round_obj)
        db.flush()

        with pytest.raises(InvalidStateTransition):
            RoundStateMachine.transition(round_obj, RoundStatus.ACTIVE, db)
        db.rollback()
