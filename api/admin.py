"""
Admin API Endpoints

職責：
1. 回合控制：開始 / 結束（結算）/ 重設
2. 隊伍管理：錢包、鎖定、取消最後一筆出價、移除、重設全部錢包
3. 查詢：隊伍排名、管理員視圖、audit log 匯出

除了 /login 之外都需要 X-Admin-Password header
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from database import get_db, get_settings
from schemas import (
    AdminLogin,
    AdminView,
    AuditEvent,
    CloseResponse,
    LockUpdate,
    OkResponse,
    RoundStart,
    TeamRef,
    TeamsResponse,
    WalletUpdate
)
from core.auction_service import AuctionService
from api.deps import get_auction, http_error, require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login", response_model=OkResponse)
def login(payload: AdminLogin):
    """前端只記住登入成功，之後每個 request 用 header 帶密碼"""
    if payload.password != get_settings().admin_password:
        raise HTTPException(status_code=401, detail="Invalid password")
    return OkResponse()


# ============ 回合 ============

@router.post("/round/start", response_model=OkResponse, dependencies=[Depends(require_admin)])
def start_round(
    payload: RoundStart,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """
    開始回合

    前置條件：
    - 沒有進行中的回合（否則 409）

    沒帶 duration_seconds 時用 DEFAULT_ROUND_SECONDS；
    上限在這裡檢查（MAX_ROUND_SECONDS），核心不限制
    """
    settings = get_settings()
    duration = payload.duration_seconds or settings.default_round_seconds
    max_seconds = settings.max_round_seconds
    if duration > max_seconds:
        raise HTTPException(
            status_code=400,
            detail=f"duration_seconds must be between 1 and {max_seconds}"
        )

    try:
        auction.start_round(db, payload.item_label, duration)
        return OkResponse()
    except Exception as e:
        raise http_error("start round", e)


@router.post("/round/close", response_model=CloseResponse, dependencies=[Depends(require_admin)])
def close_round(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """
    結束回合並結算

    返回：
        winners: winner / second_highest / fastest_bidder（沒有出價時皆為 null）
    """
    try:
        result = auction.close_round(db)
        return CloseResponse(winners=result)
    except Exception as e:
        raise http_error("close round", e)


@router.post("/round/reset", response_model=OkResponse, dependencies=[Depends(require_admin)])
def reset_round(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.reset_round(db)
        return OkResponse()
    except Exception as e:
        raise http_error("reset round", e)


# ============ 隊伍 ============

@router.post("/team/wallet", response_model=OkResponse, dependencies=[Depends(require_admin)])
def edit_wallet(
    payload: WalletUpdate,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.set_wallet(db, payload.team_id, payload.wallet)
        return OkResponse()
    except Exception as e:
        raise http_error("edit wallet", e)


@router.post("/team/lock", response_model=OkResponse, dependencies=[Depends(require_admin)])
def lock_team(
    payload: LockUpdate,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.set_locked(db, payload.team_id, payload.locked)
        return OkResponse()
    except Exception as e:
        raise http_error("lock/unlock team", e)


@router.post("/team/cancel-last-bid", response_model=OkResponse, dependencies=[Depends(require_admin)])
def cancel_last_bid(
    payload: TeamRef,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.cancel_last_bid(db, payload.team_id)
        return OkResponse()
    except Exception as e:
        raise http_error("cancel last bid", e)


@router.post("/team/remove", response_model=OkResponse, dependencies=[Depends(require_admin)])
def remove_team(
    payload: TeamRef,
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.remove_team(db, payload.team_id)
        return OkResponse()
    except Exception as e:
        raise http_error("remove team", e)


@router.post("/wallets/reset", response_model=OkResponse, dependencies=[Depends(require_admin)])
def reset_wallets(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        auction.reset_all_wallets(db)
        return OkResponse()
    except Exception as e:
        raise http_error("reset wallets", e)


# ============ 查詢 ============

@router.get("/teams", response_model=TeamsResponse, dependencies=[Depends(require_admin)])
def list_teams(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        return TeamsResponse(teams=auction.admin_view(db).teams)
    except Exception as e:
        raise http_error("fetch teams", e)


@router.get("/state", response_model=AdminView, dependencies=[Depends(require_admin)])
def get_admin_state(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    try:
        return auction.admin_view(db)
    except Exception as e:
        raise http_error("fetch admin state", e)


@router.get("/export", response_model=List[AuditEvent], dependencies=[Depends(require_admin)])
def export_audit_log(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """匯出 audit log（依 id 排序）；CSV 等格式由外部處理"""
    try:
        return auction.export_audit_log(db)
    except Exception as e:
        raise http_error("export", e)
