"""
Team Manager：隊伍加入與管理員對隊伍的操作

職責：
1. 加入（含 token 重新加入）
2. 修改錢包 / 鎖定隊伍 / 重設全部錢包
3. 取消某隊本回合最後一筆出價
4. 移除隊伍

每個操作都在一個 transaction 內完成，並寫入一筆 audit event
"""
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional, Tuple
import logging

from models import Bid, Team
from core.clock import SystemClock
from core.exceptions import (
    InvalidTeamNameError,
    InvalidWalletError,
    NameTakenError,
    NoActiveRoundError,
    NoBidError,
    TeamNotFound
)
from core.locks import active_round_query, with_team_lock
from services.audit_service import log_event
from services.naming_service import (
    generate_session_token,
    generate_team_id,
    normalize_team_name
)
from database import transactional

logger = logging.getLogger(__name__)


class TeamManager:
    """隊伍管理器"""

    def __init__(self, settings, clock=None):
        self.settings = settings
        self.clock = clock or SystemClock()

    # ============ 查詢 ============

    @staticmethod
    def get_team_by_token(db: Session, token: Optional[str]) -> Optional[Team]:
        if not token:
            return None
        return db.query(Team).filter(Team.token == str(token)).first()

    # ============ 加入 ============

    @transactional
    def join(self, db: Session, name: Optional[str], token: Optional[str] = None) -> Tuple[Team, bool]:
        """
        隊伍加入

        流程：
        1. 帶了有效 token -> 直接回傳原本的隊伍（重新整理頁面不會失去座位）
        2. 隊名不可為空
        3. 隊名不分大小寫不可重複
        4. 建立隊伍（新 id + 新 token + 起始錢包）
        5. 記錄事件

        返回：
            (Team, created) - created 為 False 表示是重新加入

        異常：
            InvalidTeamNameError: 隊名為空
            NameTakenError: 隊名已被使用
        """
        # 1. 重新加入
        existing = self.get_team_by_token(db, token)
        if existing:
            logger.info(f"Team {existing.name} rejoined with existing token")
            return existing, False

        # 2. 驗證隊名
        trimmed = normalize_team_name(name)
        if not trimmed:
            raise InvalidTeamNameError()

        # 3. 檢查重複
        taken = db.query(Team).filter(
            func.lower(Team.name) == trimmed.lower()
        ).first()
        if taken:
            raise NameTakenError(trimmed)

        # 4. 建立隊伍
        now = self.clock.now_ms()
        team = Team(
            id=generate_team_id(),
            name=trimmed,
            wallet=self.settings.start_wallet,
            current_bid=0,
            last_bid_time=None,
            locked=False,
            token=generate_session_token()
        )
        db.add(team)
        try:
            db.flush()
        except IntegrityError as e:
            # 同名隊伍在另一個 transaction 搶先建立
            raise NameTakenError(trimmed) from e

        # 5. 記錄事件
        log_event(db, "team_join", {"teamId": team.id, "name": trimmed}, now)

        logger.info(f"Team {team.id} joined as {trimmed!r}")
        return team, True

    # ============ 管理員操作 ============

    @transactional
    def set_wallet(self, db: Session, team_id: str, amount: int) -> Team:
        """
        修改隊伍錢包

        注意：
            改得比已出價金額還小不會取消已成立的出價，
            只會讓該隊下一次出價被錢包檢查擋下
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidWalletError(amount)

        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        previous = team.wallet
        team.wallet = amount
        log_event(db, "wallet_edit", {"teamId": team_id, "wallet": amount}, self.clock.now_ms())

        logger.info(f"Wallet of team {team.name} set {previous} -> {amount}")
        return team

    @transactional
    def set_locked(self, db: Session, team_id: str, locked: bool) -> Team:
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        team.locked = bool(locked)
        log_event(db, "team_lock", {"teamId": team_id, "locked": bool(locked)}, self.clock.now_ms())

        logger.info(f"Team {team.name} {'locked' if locked else 'unlocked'}")
        return team

    @transactional
    def cancel_last_bid(self, db: Session, team_id: str) -> Team:
        """
        取消隊伍在目前回合的最後一筆出價

        流程：
        1. 找到 active 回合與隊伍
        2. 刪除該隊本回合 id 最大的出價
        3. current_bid / last_bid_time 退回上一筆出價（沒有就歸零）
        4. 記錄事件

        這是出價的反操作：取消後狀態和出價前完全一樣

        異常：
            NoActiveRoundError: 沒有進行中的回合
            TeamNotFound: 隊伍不存在
            NoBidError: 這隊本回合沒有出價
        """
        # 1. 回合與隊伍
        round_obj = active_round_query(db, shared=True).first()
        if not round_obj:
            raise NoActiveRoundError("No active round")

        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        # 2. 刪除最後一筆
        last_bid = db.query(Bid).filter(
            Bid.team_id == team_id,
            Bid.round_id == round_obj.id
        ).order_by(Bid.id.desc()).first()
        if not last_bid:
            raise NoBidError(team_id)

        cancelled_amount = last_bid.amount
        db.delete(last_bid)
        db.flush()

        # 3. 退回上一筆
        previous = db.query(Bid).filter(
            Bid.team_id == team_id,
            Bid.round_id == round_obj.id
        ).order_by(Bid.id.desc()).first()
        team.current_bid = previous.amount if previous else 0
        team.last_bid_time = previous.timestamp if previous else None

        # 4. 記錄事件
        log_event(db, "cancel_last_bid", {
            "teamId": team_id,
            "roundId": round_obj.id,
            "amount": cancelled_amount
        }, self.clock.now_ms())

        logger.info(
            f"Cancelled bid {cancelled_amount} of team {team.name}, "
            f"current bid back to {team.current_bid}"
        )
        return team

    @transactional
    def remove_team(self, db: Session, team_id: str) -> None:
        """移除隊伍與它的所有出價紀錄（audit event 保留）"""
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        name = team.name
        removed_bids = db.query(Bid).filter(Bid.team_id == team_id).delete(synchronize_session=False)
        db.delete(team)

        log_event(db, "team_remove", {"teamId": team_id, "name": name}, self.clock.now_ms())

        logger.info(f"Removed team {name} ({team_id}) and {removed_bids} bid(s)")

    @transactional
    def reset_all_wallets(self, db: Session) -> int:
        """所有隊伍錢包回到起始金額"""
        count = db.query(Team).update(
            {Team.wallet: self.settings.start_wallet},
            synchronize_session=False
        )
        log_event(db, "wallets_reset", {"wallet": self.settings.start_wallet}, self.clock.now_ms())

        logger.info(f"Reset wallets of {count} team(s) to {self.settings.start_wallet}")
        return count
