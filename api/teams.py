"""
Team API Endpoints

職責：
1. 隊伍加入 / 重新加入
2. 出價（WebSocket 之外的 HTTP 入口）
3. 查詢自己隊伍的狀態
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas import BidSubmit, JoinResponse, TeamJoin, TeamView
from core.auction_service import AuctionService
from api.deps import get_auction, http_error

router = APIRouter(prefix="/api/team", tags=["teams"])


@router.post("/join", response_model=JoinResponse)
def join_team(
    payload: TeamJoin,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """
    加入（隊伍 endpoint）

    - 帶有效 token：回傳原本的隊伍（冪等）
    - 否則用隊名建立新隊伍，隊名不分大小寫不可重複

    返回：
        - token: 之後所有操作都用這個 token
        - state: 隊伍視圖
    """
    try:
        token, state = auction.join(db, payload.name, payload.token)
        return JoinResponse(token=token, state=state)
    except Exception as e:
        raise http_error("join team", e)


@router.post("/bid", response_model=TeamView)
def place_bid(
    payload: BidSubmit,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """
    出價一次（金額由伺服器決定：下一階）

    拒絕時 detail 是原因，HTTP 狀態碼依拒絕類型而定
    """
    try:
        return auction.attempt_bid(db, payload.token)
    except Exception as e:
        raise http_error("place bid", e)


@router.get("/state", response_model=TeamView)
def get_team_state(
    token: str = Query(...),
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        return auction.team_view_by_token(db, token)
    except Exception as e:
        raise http_error("fetch team state", e)
