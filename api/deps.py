"""
API 共用 dependencies
"""
from typing import Optional
import logging

from fastapi import Header, HTTPException, Request

from core.auction_service import AuctionService
from core.exceptions import AuctionException, StorageError
from database import get_settings

logger = logging.getLogger(__name__)


def get_auction(request: Request) -> AuctionService:
    """取得 main.py 建立並掛在 app.state 上的 AuctionService"""
    return request.app.state.auction


def require_admin(x_admin_password: Optional[str] = Header(default=None)) -> None:
    """
    管理員驗證：每個 admin request 都帶 X-Admin-Password header

    正式部署可以換成 session / JWT，這裡只做最簡單的密碼比對
    """
    if not x_admin_password or x_admin_password != get_settings().admin_password:
        raise HTTPException(status_code=401, detail="Unauthorized")


def http_error(action: str, e: Exception) -> HTTPException:
    """
    把例外轉成 HTTPException

    - 業務規則錯誤：對應的狀態碼 + 原因
    - StorageError 與其他未預期錯誤：記錄 log，回傳 500 + 通用訊息
    """
    if isinstance(e, AuctionException) and not isinstance(e, StorageError):
        return HTTPException(status_code=e.status_code, detail=str(e))
    logger.error(f"Failed to {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed to {action}")
