"""
Pydantic schemas：API request/response 以及三種推播視圖
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============ Ranking / Result ============

class TeamStanding(BaseModel):
    id: str
    name: str
    wallet: int
    current_bid: int
    last_bid_time: Optional[int] = None
    locked: bool = False
    rank: Optional[int] = None


class BidFact(BaseModel):
    bid_id: int
    team_id: str
    team_name: str
    amount: int
    timestamp: int


class RoundResult(BaseModel):
    winner: Optional[BidFact] = None
    second_highest: Optional[BidFact] = None
    fastest_bidder: Optional[BidFact] = None


# ============ Views ============

class TeamView(BaseModel):
    team_id: str
    name: str
    wallet: int
    current_bid: int
    highest_bid: int
    rank: Optional[int] = None
    round_active: bool
    locked: bool
    ends_at: Optional[int] = None


class AdminView(BaseModel):
    round_active: bool
    item_label: str
    ends_at: Optional[int] = None
    teams: List[TeamStanding]
    winner: Optional[BidFact] = None
    second_highest: Optional[BidFact] = None
    fastest_bidder: Optional[BidFact] = None


class DisplayView(BaseModel):
    item_label: str
    round_active: bool
    ends_at: Optional[int] = None
    teams: List[TeamStanding]
    highest_bid: int


# ============ Team endpoints ============

class TeamJoin(BaseModel):
    name: str = ""
    token: Optional[str] = None


class JoinResponse(BaseModel):
    token: str
    state: TeamView


class BidSubmit(BaseModel):
    token: str


# ============ Admin endpoints ============

class AdminLogin(BaseModel):
    password: str


class RoundStart(BaseModel):
    item_label: str = ""
    duration_seconds: Optional[int] = Field(default=None, gt=0)


class WalletUpdate(BaseModel):
    team_id: str
    wallet: int = Field(ge=0)


class LockUpdate(BaseModel):
    team_id: str
    locked: bool


class TeamRef(BaseModel):
    team_id: str


class OkResponse(BaseModel):
    ok: bool = True


class CloseResponse(BaseModel):
    ok: bool = True
    winners: RoundResult


class TeamsResponse(BaseModel):
    teams: List[TeamStanding]


class AuditEvent(BaseModel):
    id: int
    type: str
    timestamp: int
    payload: Dict[str, Any]
