"""
View Publisher：每次狀態改變後，重新讀取 ledger 並推播三種視圖

推播對象：
- admin 頻道：admin:state
- display 頻道：display:state
- 每個隊伍自己的頻道：team:state（A 隊永遠收不到 B 隊的錢包）
"""
from sqlalchemy.orm import Session
import logging

from models import RoundStatus, Team
from core.round_manager import RoundManager
from core.session_registry import ADMIN_CHANNEL, DISPLAY_CHANNEL
from services.ranking_service import highest_bid, rank_teams, resolve_winners
from services.view_service import (
    AuctionSnapshot,
    build_admin_view,
    build_display_view,
    build_team_view
)

logger = logging.getLogger(__name__)


class ViewPublisher:

    def __init__(self, registry):
        self.registry = registry

    @staticmethod
    def snapshot(db: Session) -> AuctionSnapshot:
        """
        從 ledger 讀取目前狀態

        - 目前回合：ACTIVE 回合，或剛結束（最新一筆且 CLOSED）的回合
        - ends_at 只有 ACTIVE 時才有值（倒數計時只是顯示用）
        - 最新回合是 CLOSED 時附上結算結果
        """
        teams = db.query(Team).all()
        standings = rank_teams(teams)
        snapshot = AuctionSnapshot(standings=standings, highest_bid=highest_bid(teams))

        round_obj = RoundManager.get_current_round(db)
        if round_obj is None:
            return snapshot

        snapshot.item_label = round_obj.item_label or ""
        if round_obj.status == RoundStatus.ACTIVE:
            snapshot.round_active = True
            snapshot.ends_at = round_obj.end_time
        elif round_obj.status == RoundStatus.CLOSED:
            snapshot.result = resolve_winners(RoundManager.get_round_bids(db, round_obj.id))

        return snapshot

    def publish(self, db: Session) -> AuctionSnapshot:
        """
        推播所有視圖

        必須在 transaction commit 之後呼叫，視圖才會反映已提交的狀態
        """
        snapshot = self.snapshot(db)
        # 讀取用的 transaction 立刻結束，不佔住 SQLite 的寫入鎖
        db.rollback()

        self.registry.push_channel(
            ADMIN_CHANNEL, "admin:state", build_admin_view(snapshot).model_dump(mode="json")
        )
        self.registry.push_channel(
            DISPLAY_CHANNEL, "display:state", build_display_view(snapshot).model_dump(mode="json")
        )

        for team_id in self.registry.subscribed_team_ids():
            view = build_team_view(snapshot, team_id)
            if view is None:
                continue
            self.registry.push_team(team_id, "team:state", view.model_dump(mode="json"))

        logger.debug(f"Published views to {len(self.registry.subscribed_team_ids())} team channel(s)")
        return snapshot
