"""
Display API Endpoints（公開大螢幕用，不需要驗證）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import DisplayView
from core.auction_service import AuctionService
from api.deps import get_auction

router = APIRouter(prefix="/api/display", tags=["display"])
logger = logging.getLogger(__name__)


@router.get("/state", response_model=DisplayView)
def get_display_state(
    db: Session = Depends(get_db),
    auction: AuctionService = Depends(get_auction)
):
    """
    取得大螢幕視圖

    返回完整排名；只顯示前幾名是前端的事
    """
    try:
        return auction.display_view(db)
    except Exception as e:
        logger.error(f"Failed to get display state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
