"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

PostgreSQL：使用 SELECT ... FOR UPDATE / FOR SHARE 實現悲觀鎖（Pessimistic Locking）
SQLite：FOR UPDATE 會被忽略，改由 database.py 的 BEGIN IMMEDIATE 讓寫入者排隊
"""
from sqlalchemy.orm import Session, Query

from models import Team, Round, RoundStatus


def with_team_lock(team_id: str, db: Session) -> Query:
    """
    鎖定一個 Team（行級鎖）

    使用場景：
    - 出價：讀 current_bid / wallet 後寫回新的 current_bid
    - 管理員修改錢包、鎖定、取消出價

    範例：
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)
        team.current_bid = next_bid

    注意：
        - populate_existing() 確保拿到的是資料庫最新值，
          而不是 session identity map 裡之前讀過的舊物件
        - 必須在 transaction 內使用
    """
    return db.query(Team).filter(
        Team.id == team_id
    ).populate_existing().with_for_update(nowait=False)


def active_round_query(db: Session, shared: bool = False) -> Query:
    """
    取得目前 active 的回合並上鎖

    參數：
        shared: True 時使用 FOR SHARE（出價用），多個隊伍可以同時出價，
                但會擋住同時進行的 close/reset（它們用 FOR UPDATE）

    返回：
        Query object（呼叫 .first() 取得結果）
    """
    return db.query(Round).filter(
        Round.status == RoundStatus.ACTIVE
    ).order_by(Round.id.desc()).populate_existing().with_for_update(read=shared, nowait=False)
