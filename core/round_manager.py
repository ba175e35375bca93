"""
Round Manager：管理回合的完整生命週期

職責：
1. 開始回合（建立新 Round + 清空所有隊伍的出價）
2. 結束回合（結算得標者 + 從得標隊伍錢包扣款）
3. 重設回合（放棄本回合，不結算）
4. 查詢目前回合與回合出價紀錄

倒數計時是「宣告式」的：end_time 在開始時寫入一次，沒有背景工作會在時間到時改狀態。
出價是否被接受只看 status == ACTIVE，不比較 end_time；
時間到了但管理員還沒按結束，出價仍然有效。真正停止出價的是 close()。
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Bid, Round, RoundStatus, Team
from schemas import BidFact, RoundResult
from core.clock import SystemClock
from core.exceptions import ConflictError, NoActiveRoundError
from core.locks import active_round_query, with_team_lock
from core.state_machine import RoundStateMachine
from services.audit_service import log_event
from services.ranking_service import resolve_winners
from database import transactional

logger = logging.getLogger(__name__)


def clear_team_bids(db: Session) -> int:
    """把所有隊伍的 current_bid / last_bid_time 歸零，回傳影響的隊伍數"""
    return db.query(Team).update(
        {Team.current_bid: 0, Team.last_bid_time: None},
        synchronize_session=False
    )


class RoundManager:
    """回合生命週期管理器"""

    def __init__(self, settings, clock=None):
        self.settings = settings
        self.clock = clock or SystemClock()

    # ============ 查詢 ============

    @staticmethod
    def get_active_round(db: Session) -> Optional[Round]:
        return db.query(Round).filter(
            Round.status == RoundStatus.ACTIVE
        ).order_by(Round.id.desc()).first()

    @staticmethod
    def get_current_round(db: Session) -> Optional[Round]:
        """
        取得「目前回合」

        - 有 ACTIVE 回合時就是它
        - 否則若最新的回合是 CLOSED，回傳它（用來顯示結算結果）
        - 其他情況（沒有回合、最新回合被重設成 IDLE）回傳 None
        """
        active = RoundManager.get_active_round(db)
        if active:
            return active

        latest = db.query(Round).order_by(Round.id.desc()).first()
        if latest and latest.status == RoundStatus.CLOSED:
            return latest
        return None

    @staticmethod
    def get_round_bids(db: Session, round_id: int) -> List[BidFact]:
        """取得一個回合的所有出價（含隊名）"""
        rows = (
            db.query(Bid, Team.name)
            .join(Team, Team.id == Bid.team_id)
            .filter(Bid.round_id == round_id)
            .order_by(Bid.id)
            .all()
        )
        return [
            BidFact(
                bid_id=bid.id,
                team_id=bid.team_id,
                team_name=name,
                amount=bid.amount,
                timestamp=bid.timestamp
            )
            for bid, name in rows
        ]

    # ============ 狀態轉換 ============

    @transactional
    def start(self, db: Session, item_label: str, duration_seconds: int) -> Round:
        """
        開始新回合（IDLE -> ACTIVE）

        前置條件：
            目前沒有 ACTIVE 回合

        流程：
        1. 檢查是否已有進行中的回合
        2. 建立新 Round，end_time = now + duration
        3. 所有隊伍出價歸零（上一回合的出價不能影響這回合的排名）
        4. 記錄事件

        異常：
            ConflictError: 已經有進行中的回合

        注意：
            duration 的範圍由 API 層驗證，這裡不限制
        """
        # 1. 檢查是否已有 active 回合
        if active_round_query(db).first():
            raise ConflictError("There is already an active round")

        now = self.clock.now_ms()

        # 2. 建立回合
        round_obj = Round(
            item_label=item_label or "",
            start_time=now,
            end_time=now + int(duration_seconds) * 1000,
            status=RoundStatus.IDLE
        )
        db.add(round_obj)
        try:
            db.flush()  # 取得 round_obj.id
            RoundStateMachine.transition(round_obj, RoundStatus.ACTIVE, db)
        except IntegrityError as e:
            # 另一個 transaction 搶先建立了 active 回合（partial unique index）
            raise ConflictError("There is already an active round") from e

        # 3. 清空出價
        cleared = clear_team_bids(db)

        # 4. 記錄事件
        log_event(db, "round_start", {
            "roundId": round_obj.id,
            "itemLabel": round_obj.item_label,
            "durationSeconds": int(duration_seconds)
        }, now)

        logger.info(
            f"Started round {round_obj.id} ({round_obj.item_label!r}) for {duration_seconds}s, "
            f"cleared bids of {cleared} teams"
        )
        return round_obj

    @transactional
    def close(self, db: Session) -> RoundResult:
        """
        結束回合（ACTIVE -> CLOSED）並結算

        提前結束是正常操作，不是錯誤：end_time 一律改成實際結束時間

        流程：
        1. 鎖定 active 回合（FOR UPDATE，等待進行中的出價完成）
        2. 狀態轉換，end_time = now
        3. 用整個回合的出價紀錄計算 winner / second_highest / fastest_bidder
        4. 從得標隊伍錢包扣除得標金額（最低到 0）
        5. 記錄事件

        返回：
            RoundResult（沒有出價時三者皆為 None，也不扣款）

        異常：
            NoActiveRoundError (NotFoundError): 沒有進行中的回合
        """
        # 1. 鎖定回合
        round_obj = active_round_query(db).first()
        if not round_obj:
            raise NoActiveRoundError("No active round")

        now = self.clock.now_ms()

        # 2. 狀態轉換
        RoundStateMachine.transition(round_obj, RoundStatus.CLOSED, db)
        round_obj.end_time = now

        # 3. 結算
        result = resolve_winners(self.get_round_bids(db, round_obj.id))

        # 4. 扣款
        settlement = None
        if result.winner:
            team = with_team_lock(result.winner.team_id, db).first()
            if team:
                # 錢包可能在回合中被管理員改小，扣到 0 為止
                new_wallet = max(0, team.wallet - result.winner.amount)
                settlement = {
                    "teamId": team.id,
                    "amount": result.winner.amount,
                    "walletBefore": team.wallet,
                    "walletAfter": new_wallet
                }
                team.wallet = new_wallet
                logger.info(
                    f"Round {round_obj.id} settled: team {team.name} pays "
                    f"{result.winner.amount}, wallet {settlement['walletBefore']} -> {new_wallet}"
                )
        else:
            logger.info(f"Round {round_obj.id} closed with no bids")

        # 5. 記錄事件
        log_event(db, "round_close", {
            "roundId": round_obj.id,
            "itemLabel": round_obj.item_label,
            "winners": result.model_dump(),
            "settlement": settlement
        }, now)

        return result

    @transactional
    def reset(self, db: Session) -> None:
        """
        重設回合（ACTIVE -> IDLE），不結算

        冪等：沒有 active 回合時也會成功，一樣把出價歸零
        不動錢包，也不刪除歷史出價和事件
        """
        now = self.clock.now_ms()

        active_rounds = active_round_query(db).all()
        for round_obj in active_rounds:
            RoundStateMachine.transition(round_obj, RoundStatus.IDLE, db)

        clear_team_bids(db)

        log_event(db, "round_reset", {
            "roundIds": [r.id for r in active_rounds]
        }, now)

        logger.info(f"Round reset, {len(active_rounds)} active round(s) returned to idle")
