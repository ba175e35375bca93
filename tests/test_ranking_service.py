"""Unit tests for the pure ranking / winner resolution functions."""
from types import SimpleNamespace

from schemas import BidFact
from services.ranking_service import highest_bid, rank_teams, resolve_winners


def _team(name, current_bid=0, last_bid_time=None, wallet=12000, locked=False):
    return SimpleNamespace(
        id=f"id-{name}", name=name, wallet=wallet, current_bid=current_bid,
        last_bid_time=last_bid_time, locked=locked,
    )


def _bid(bid_id, team, amount, timestamp):
    return BidFact(bid_id=bid_id, team_id=f"id-{team}", team_name=team, amount=amount, timestamp=timestamp)


class TestRankTeams:
    def test_orders_by_amount_then_earliest_bid(self):
        teams = [
            _team("A", 800, last_bid_time=10),
            _team("B", 1000, last_bid_time=20),
            _team("C", 1000, last_bid_time=15),
        ]

        standings = rank_teams(teams)

        assert [s.name for s in standings] == ["C", "B", "A"]

    def test_ties_share_rank_and_next_rank_skips(self):
        teams = [
            _team("A", 1000, last_bid_time=1),
            _team("B", 1000, last_bid_time=2),
            _team("C", 800, last_bid_time=3),
            _team("D", 600, last_bid_time=4),
        ]

        ranks = {s.name: s.rank for s in rank_teams(teams)}

        assert ranks == {"A": 1, "B": 1, "C": 3, "D": 4}

    def test_zero_bid_has_no_rank(self):
        teams = [_team("A", 400, last_bid_time=1), _team("B"), _team("C")]

        standings = rank_teams(teams)

        assert standings[0].rank == 1
        assert [s.rank for s in standings[1:]] == [None, None]

    def test_rank_is_total_preorder(self):
        teams = [
            _team("A", 1400, 5), _team("B", 600, 1), _team("C", 1400, 3),
            _team("D", 0), _team("E", 600, 2), _team("F", 2000, 9),
        ]

        standings = rank_teams(teams)
        ranked = [s for s in standings if s.current_bid > 0]

        for x in ranked:
            for y in ranked:
                if x.current_bid == y.current_bid:
                    assert x.rank == y.rank
                elif x.current_bid > y.current_bid:
                    assert x.rank < y.rank
        assert all(s.rank is None for s in standings if s.current_bid == 0)

    def test_no_teams(self):
        assert rank_teams([]) == []
        assert highest_bid([]) == 0

    def test_highest_bid(self):
        assert highest_bid([_team("A", 400, 1), _team("B", 1200, 2), _team("C")]) == 1200


class TestResolveWinners:
    def test_tie_at_top_goes_to_earlier_bid(self):
        bids = [_bid(1, "A", 1000, 5), _bid(2, "B", 1000, 3), _bid(3, "C", 800, 1)]

        result = resolve_winners(bids)

        assert result.winner.team_name == "B"
        assert result.second_highest.team_name == "C"
        assert result.fastest_bidder.team_name == "C"

    def test_second_highest_is_first_strictly_lower_amount(self):
        bids = [
            _bid(1, "A", 1200, 1), _bid(2, "B", 1200, 2), _bid(3, "C", 1200, 3),
            _bid(4, "D", 1000, 4), _bid(5, "E", 1000, 0),
        ]

        result = resolve_winners(bids)

        assert result.winner.team_name == "A"
        assert result.second_highest.amount == 1000
        assert result.second_highest.team_name == "E"

    def test_only_tied_bids_have_no_second(self):
        result = resolve_winners([_bid(1, "A", 400, 1), _bid(2, "B", 400, 2)])

        assert result.winner.team_name == "A"
        assert result.second_highest is None

    def test_fastest_bidder_independent_of_amount(self):
        bids = [_bid(1, "A", 400, 100), _bid(2, "B", 400, 200), _bid(3, "B", 600, 300)]

        result = resolve_winners(bids)

        assert result.winner.team_name == "B"
        assert result.fastest_bidder.team_name == "A"

    def test_no_bids(self):
        result = resolve_winners([])

        assert result.winner is None
        assert result.second_highest is None
        assert result.fastest_bidder is None
