"""
AuctionService：對外的操作入口（transport 無關）

每個會改變狀態的操作：
1. 交給對應的 Manager / Arbitrator，在一個 transaction 內完成並 commit
2. commit 後由 ViewPublisher 重新計算並推播三種視圖

讀取操作結束後立刻結束 transaction（SQLite 的 BEGIN IMMEDIATE 會佔住寫入鎖）
"""
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Tuple
import logging

from schemas import AdminView, DisplayView, RoundResult, TeamView
from core.bid_arbitrator import BidArbitrator
from core.clock import SystemClock
from core.exceptions import UnknownSessionError
from core.publisher import ViewPublisher
from core.rate_limiter import CooldownLimiter
from core.round_manager import RoundManager
from core.session_registry import SessionRegistry
from core.team_manager import TeamManager
from services.audit_service import export_events
from services.view_service import build_admin_view, build_display_view, build_team_view

logger = logging.getLogger(__name__)


class AuctionService:

    def __init__(self, settings, registry: SessionRegistry = None, clock=None, cooldowns: CooldownLimiter = None):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.registry = registry or SessionRegistry()
        self.cooldowns = cooldowns or CooldownLimiter(settings.cooldown_ms, self.clock)

        self.rounds = RoundManager(settings, self.clock)
        self.teams = TeamManager(settings, self.clock)
        self.arbitrator = BidArbitrator(settings, self.registry, self.cooldowns, self.clock)
        self.publisher = ViewPublisher(self.registry)

    # ============ 隊伍 ============

    def join(self, db: Session, name: Optional[str], token: Optional[str] = None) -> Tuple[str, TeamView]:
        """
        加入或重新加入

        返回：
            (token, TeamView)
        """
        team, created = self.teams.join(db, name, token)
        team_id, team_token = team.id, team.token
        self.registry.remember(team_token, team_id)

        if created:
            self.publisher.publish(db)

        return team_token, self.team_view(db, team_id)

    def reconnect(self, db: Session, token: Optional[str], subscriber=None) -> TeamView:
        """
        重新連線：token -> 隊伍，並把這條連線訂閱到隊伍頻道

        異常：
            UnknownSessionError: token 失效（例如隊伍已被移除），呼叫端應該當作要重新建立隊伍
        """
        try:
            team_id = self.registry.resolve(db, token)
            view = self.team_view(db, team_id)
        finally:
            db.rollback()

        if subscriber is not None:
            self.registry.subscribe_team(team_id, subscriber)
        return view

    def attempt_bid(self, db: Session, token: Optional[str]) -> TeamView:
        team_id = self.arbitrator.attempt(db, token)
        snapshot = self.publisher.publish(db)

        view = build_team_view(snapshot, team_id)
        if view is None:
            raise UnknownSessionError()
        return view

    def team_view(self, db: Session, team_id: str) -> TeamView:
        try:
            view = build_team_view(self.publisher.snapshot(db), team_id)
        finally:
            db.rollback()
        if view is None:
            raise UnknownSessionError()
        return view

    def team_view_by_token(self, db: Session, token: Optional[str]) -> TeamView:
        try:
            team_id = self.registry.resolve(db, token)
        finally:
            db.rollback()
        return self.team_view(db, team_id)

    # ============ 回合 ============

    def start_round(self, db: Session, item_label: str, duration_seconds: int) -> None:
        self.rounds.start(db, item_label, duration_seconds)
        self.publisher.publish(db)

    def close_round(self, db: Session) -> RoundResult:
        result = self.rounds.close(db)
        self.publisher.publish(db)
        return result

    def reset_round(self, db: Session) -> None:
        self.rounds.reset(db)
        self.publisher.publish(db)

    # ============ 管理員：隊伍 ============

    def set_wallet(self, db: Session, team_id: str, amount: int) -> None:
        self.teams.set_wallet(db, team_id, amount)
        self.publisher.publish(db)

    def set_locked(self, db: Session, team_id: str, locked: bool) -> None:
        self.teams.set_locked(db, team_id, locked)
        self.publisher.publish(db)

    def cancel_last_bid(self, db: Session, team_id: str) -> None:
        self.teams.cancel_last_bid(db, team_id)
        self.publisher.publish(db)

    def remove_team(self, db: Session, team_id: str) -> None:
        self.teams.remove_team(db, team_id)
        self.cooldowns.forget(team_id)

        for subscriber in self.registry.forget_team(team_id):
            try:
                subscriber.push("error:team", {
                    "code": UnknownSessionError.code,
                    "message": "Unknown team session"
                })
            except Exception as e:
                logger.warning(f"Failed to notify removed team {team_id}: {e}")

        self.publisher.publish(db)

    def reset_all_wallets(self, db: Session) -> None:
        self.teams.reset_all_wallets(db)
        self.publisher.publish(db)

    # ============ 讀取 ============

    def admin_view(self, db: Session) -> AdminView:
        try:
            return build_admin_view(self.publisher.snapshot(db))
        finally:
            db.rollback()

    def display_view(self, db: Session) -> DisplayView:
        try:
            return build_display_view(self.publisher.snapshot(db))
        finally:
            db.rollback()

    def export_audit_log(self, db: Session) -> List[Dict[str, Any]]:
        try:
            return export_events(db)
        finally:
            db.rollback()
