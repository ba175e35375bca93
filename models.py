"""
資料模型（Ledger Store）

所有時間欄位都是毫秒（epoch ms），由 core.clock 提供
"""
import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    func,
    text,
)

from database import Base


class RoundStatus(str, enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    wallet = Column(Integer, nullable=False, default=0)
    current_bid = Column(Integer, nullable=False, default=0)
    last_bid_time = Column(BigInteger, nullable=True)
    locked = Column(Boolean, nullable=False, default=False)
    token = Column(String(36), nullable=False, unique=True)

    def __repr__(self):
        return f"<Team {self.name} bid={self.current_bid} wallet={self.wallet}>"


# 隊名不分大小寫唯一
Index("uq_teams_name_lower", func.lower(Team.name), unique=True)


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = (
        # 同一時間最多只有一個 active 回合
        Index(
            "uq_rounds_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_label = Column(String(200), nullable=False, default="")
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)
    status = Column(
        Enum(
            RoundStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=RoundStatus.IDLE,
    )


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        Index("ix_bids_round_team", "round_id", "team_id"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    timestamp = Column(BigInteger, nullable=False)


class EventLog(Base):
    """Append-only audit log，只供匯出，不參與即時狀態"""
    __tablename__ = "events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    timestamp = Column(BigInteger, nullable=False)
