"""
Bid Arbitrator：驗證並提交一次出價

驗證順序（第一個失敗的就是拒絕原因）：
1. token 對應到隊伍            -> UnknownSessionError
2. 有 ACTIVE 回合              -> NoActiveRoundError
3. 隊伍未被鎖定                -> TeamLockedError
4. 冷卻時間已過                -> CooldownError
5. 計算下一階：current_bid == 0 ? START_BID : current_bid + INCREMENT
6. 下一階 <= MAX_BID           -> BidCeilingError
7. 下一階 <= wallet            -> InsufficientFundsError

並發安全：
- 所有讀取都在同一個 transaction 內，隊伍資料用 FOR UPDATE 重新讀取（populate_existing），
  第二個並發出價一定看到第一個已提交的 current_bid，不會重複同一階或跳階
- 回合用 FOR SHARE 讀取：不同隊伍互不阻擋，但 close/reset 會等進行中的出價完成
- SQLite 下由 BEGIN IMMEDIATE 讓所有寫入者排隊
- 出價時間在鎖定隊伍之後才讀取，時間先後等於 commit 先後
- 冷卻時間在 commit 前（持有鎖時）記錄，commit 失敗就 revert；被拒絕的出價不影響冷卻
"""
from sqlalchemy.orm import Session
import logging

from models import Bid
from core.clock import SystemClock
from core.exceptions import (
    AuctionException,
    BidCeilingError,
    InsufficientFundsError,
    NoActiveRoundError,
    StorageError,
    TeamLockedError,
    UnknownSessionError
)
from core.locks import active_round_query, with_team_lock
from services.audit_service import log_event
from database import transactional

logger = logging.getLogger(__name__)

_PENDING_COOLDOWN = "pending_cooldown"


def next_bid_amount(current_bid: int, start_bid: int, increment: int) -> int:
    """出價階梯：0 -> START_BID -> START_BID + INCREMENT -> ..."""
    if current_bid == 0:
        return start_bid
    return current_bid + increment


class BidArbitrator:

    def __init__(self, settings, registry, cooldowns, clock=None):
        self.settings = settings
        self.registry = registry
        self.cooldowns = cooldowns
        self.clock = clock or SystemClock()

    def attempt(self, db: Session, token: str) -> str:
        """
        嘗試出價

        返回：
            出價成功的 team_id

        異常：
            UnknownSessionError / NoActiveRoundError / TeamLockedError /
            CooldownError / BidCeilingError / InsufficientFundsError / StorageError
        """
        try:
            return self._commit_bid(db, token)
        except Exception as e:
            # commit 失敗：撤銷 commit 前記錄的冷卻時間
            pending = db.info.pop(_PENDING_COOLDOWN, None)
            if pending:
                self.cooldowns.revert(*pending)
            if isinstance(e, AuctionException) and not isinstance(e, StorageError):
                logger.info(f"Bid rejected ({e.code}): {e}")
            raise
        finally:
            db.info.pop(_PENDING_COOLDOWN, None)

    @transactional
    def _commit_bid(self, db: Session, token: str) -> str:
        # 1. token
        team_id = self.registry.resolve(db, token)

        # 2. 回合
        round_obj = active_round_query(db, shared=True).first()
        if not round_obj:
            raise NoActiveRoundError()

        # 重新讀取並鎖定隊伍
        team = with_team_lock(team_id, db).first()
        if not team:
            # token 快取還在但隊伍已被移除
            raise UnknownSessionError()

        # 出價時間在拿到鎖之後才讀，last_bid_time 的先後和 commit 順序一致
        now = self.clock.now_ms()

        # 3. 鎖定
        if team.locked:
            raise TeamLockedError(team.id)

        # 4. 冷卻
        self.cooldowns.check(team.id, now)

        # 5. 下一階
        next_bid = next_bid_amount(
            team.current_bid,
            self.settings.start_bid,
            self.settings.bid_increment
        )

        # 6. 上限
        if next_bid > self.settings.max_bid:
            raise BidCeilingError(next_bid, self.settings.max_bid)

        # 7. 錢包
        if next_bid > team.wallet:
            raise InsufficientFundsError(next_bid, team.wallet)

        team.current_bid = next_bid
        team.last_bid_time = now
        db.add(Bid(
            round_id=round_obj.id,
            team_id=team.id,
            amount=next_bid,
            timestamp=now
        ))
        log_event(db, "bid", {
            "roundId": round_obj.id,
            "teamId": team.id,
            "name": team.name,
            "amount": next_bid
        }, now)

        # 還持有寫入鎖時記錄冷卻，下一個拿到鎖的出價一定看得到
        previous = self.cooldowns.record(team.id, now)
        db.info[_PENDING_COOLDOWN] = (team.id, now, previous)

        logger.info(f"Team {team.name} bid {next_bid} in round {round_obj.id}")
        return team.id
