"""
View service.

Builds the three audience-specific snapshots (team, admin, display) from an
AuctionSnapshot. Everything here is recomputed from scratch on every call;
there is no diffing or caching because the audiences are small.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from schemas import AdminView, DisplayView, RoundResult, TeamStanding, TeamView


@dataclass
class AuctionSnapshot:
    """Everything the views need, read once from the ledger."""
    standings: List[TeamStanding]
    highest_bid: int
    round_active: bool = False
    item_label: str = ""
    ends_at: Optional[int] = None
    result: RoundResult = field(default_factory=RoundResult)


def build_team_view(snapshot: AuctionSnapshot, team_id: str) -> Optional[TeamView]:
    """Return the view for one team, or None if the team is not in the snapshot."""
    standing = next((s for s in snapshot.standings if s.id == team_id), None)
    if standing is None:
        return None

    return TeamView(
        team_id=standing.id,
        name=standing.name,
        wallet=standing.wallet,
        current_bid=standing.current_bid,
        highest_bid=snapshot.highest_bid,
        rank=standing.rank,
        round_active=snapshot.round_active,
        locked=standing.locked,
        ends_at=snapshot.ends_at
    )


def build_admin_view(snapshot: AuctionSnapshot) -> AdminView:
    # Winner fields are only filled while the latest round is closed.
    return AdminView(
        round_active=snapshot.round_active,
        item_label=snapshot.item_label,
        ends_at=snapshot.ends_at,
        teams=snapshot.standings,
        winner=snapshot.result.winner,
        second_highest=snapshot.result.second_highest,
        fastest_bidder=snapshot.result.fastest_bidder
    )


def build_display_view(snapshot: AuctionSnapshot) -> DisplayView:
    return DisplayView(
        item_label=snapshot.item_label,
        round_active=snapshot.round_active,
        ends_at=snapshot.ends_at,
        teams=snapshot.standings,
        highest_bid=snapshot.highest_bid
    )
