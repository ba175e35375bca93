"""
Session Registry：Session token 與推播訂閱管理

職責：
1. token -> team_id 對應（資料庫為準，記憶體內快取）
2. team_id -> 訂閱者集合（每隊只收到自己的狀態）
3. admin / display 兩個公開頻道的訂閱者

訂閱者（subscriber）只需要實作 push(event, payload)，必須是執行緒安全的；
推播會從 FastAPI 的 worker thread 呼叫。

不是全域單例：由 main.py 建立一個注入到 AuctionService，測試可以各自建立。
"""
import logging
import threading
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from models import Team
from core.exceptions import UnknownSessionError

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin"
DISPLAY_CHANNEL = "display"


class SessionRegistry:

    def __init__(self):
        self._team_by_token: Dict[str, str] = {}
        self._team_subscribers: Dict[str, Set[object]] = {}
        self._channels: Dict[str, Set[object]] = {
            ADMIN_CHANNEL: set(),
            DISPLAY_CHANNEL: set(),
        }
        self._lock = threading.Lock()

    # ============ Token ============

    def resolve(self, db: Session, token: Optional[str]) -> str:
        """
        把 session token 解析成 team_id

        異常：
            UnknownSessionError: token 為空或找不到對應隊伍
        """
        if not token:
            raise UnknownSessionError("Missing token")

        with self._lock:
            team_id = self._team_by_token.get(token)
        if team_id:
            return team_id

        team = db.query(Team).filter(Team.token == token).first()
        if not team:
            raise UnknownSessionError()

        self.remember(token, team.id)
        return team.id

    def remember(self, token: str, team_id: str) -> None:
        with self._lock:
            self._team_by_token[token] = team_id

    def forget_team(self, team_id: str) -> List[object]:
        """
        隊伍被移除時呼叫：清掉 token 快取並回傳原本的訂閱者，
        讓呼叫端可以通知它們 session 已失效
        """
        with self._lock:
            for token in [t for t, tid in self._team_by_token.items() if tid == team_id]:
                del self._team_by_token[token]
            subscribers = list(self._team_subscribers.pop(team_id, set()))

        logger.info(f"Forgot team {team_id} ({len(subscribers)} subscriber(s) dropped)")
        return subscribers

    # ============ 訂閱 ============

    def subscribe_team(self, team_id: str, subscriber) -> None:
        with self._lock:
            self._team_subscribers.setdefault(team_id, set()).add(subscriber)

    def subscribe_admin(self, subscriber) -> None:
        with self._lock:
            self._channels[ADMIN_CHANNEL].add(subscriber)

    def subscribe_display(self, subscriber) -> None:
        with self._lock:
            self._channels[DISPLAY_CHANNEL].add(subscriber)

    def unsubscribe(self, subscriber) -> None:
        """連線中斷時把 subscriber 從所有頻道移除"""
        with self._lock:
            for subscribers in self._channels.values():
                subscribers.discard(subscriber)
            for team_id in list(self._team_subscribers):
                self._team_subscribers[team_id].discard(subscriber)
                if not self._team_subscribers[team_id]:
                    del self._team_subscribers[team_id]

    def team_subscribers(self, team_id: str) -> List[object]:
        with self._lock:
            return list(self._team_subscribers.get(team_id, set()))

    def subscribed_team_ids(self) -> List[str]:
        with self._lock:
            return list(self._team_subscribers)

    def channel_subscribers(self, channel: str) -> List[object]:
        with self._lock:
            return list(self._channels.get(channel, set()))

    # ============ 推播 ============

    def push_channel(self, channel: str, event: str, payload: dict) -> None:
        for subscriber in self.channel_subscribers(channel):
            self._safe_push(subscriber, event, payload)

    def push_team(self, team_id: str, event: str, payload: dict) -> None:
        for subscriber in self.team_subscribers(team_id):
            self._safe_push(subscriber, event, payload)

    def _safe_push(self, subscriber, event: str, payload: dict) -> None:
        # 單一連線推播失敗不影響其他人，斷線的訂閱者直接移除
        try:
            subscriber.push(event, payload)
        except Exception as e:
            logger.warning(f"Dropping subscriber after push failure ({event}): {e}")
            self.unsubscribe(subscriber)
