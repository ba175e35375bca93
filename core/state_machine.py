"""
狀態機：集中管理回合的狀態轉換

合法轉換：
    IDLE   -> ACTIVE   （開始回合）
    ACTIVE -> CLOSED   （管理員結束回合，結算得標者）
    ACTIVE -> IDLE     （管理員重設回合，不結算）

CLOSED 是終點：下一個回合一定是新的 Round row（新的 id）
"""
import logging

from sqlalchemy.orm import Session

from models import Round, RoundStatus
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoundStateMachine:
    TRANSITIONS = {
        RoundStatus.IDLE: {RoundStatus.ACTIVE},
        RoundStatus.ACTIVE: {RoundStatus.CLOSED, RoundStatus.IDLE},
        RoundStatus.CLOSED: set(),
    }

    @classmethod
    def can_transition(cls, current: RoundStatus, target: RoundStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, round_obj: Round, target: RoundStatus, db: Session) -> Round:
        """
        轉換回合狀態

        參數：
            round_obj: 已在 transaction 內鎖定的 Round
            target: 目標狀態
            db: SQLAlchemy Session

        異常：
            InvalidStateTransition: 非法轉換（例如 CLOSED -> ACTIVE）
        """
        current = round_obj.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Round {round_obj.id}: cannot transition {current.value} -> {target.value}"
            )

        round_obj.status = target
        db.flush()

        logger.info(f"Round {round_obj.id} state changed: {current.value} -> {target.value}")
        return round_obj
