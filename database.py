from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import AuctionException, StorageError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./bug_auction.db"

    # 競標規則
    start_wallet: int = 12000
    start_bid: int = 400
    bid_increment: int = 200
    max_bid: int = 2000
    cooldown_ms: int = 300

    default_round_seconds: int = 90
    max_round_seconds: int = 3600

    admin_password: str = "bugauction"
    cors_origin: str = "*"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def create_db_engine(database_url: str):
    """
    建立 SQLAlchemy Engine

    SQLite 需要特殊設定：
    - connect_args={"check_same_thread": False}：FastAPI 的 threadpool 會跨執行緒使用連線
    - 關閉 pysqlite 自己的 BEGIN，改由 "begin" 事件送出 BEGIN IMMEDIATE，
      讓每個 transaction 一開始就拿到寫入鎖。讀取和寫入在同一個鎖內完成，
      同一隊伍的並發出價不會讀到舊的 current_bid

    PostgreSQL 則依賴 SELECT ... FOR UPDATE（見 core/locks.py）
    """
    is_sqlite = database_url.startswith("sqlite")
    db_engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30} if is_sqlite else {},
        pool_pre_ping=True
    )

    if is_sqlite:
        @event.listens_for(db_engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(db_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return db_engine


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return kwargs.get('db')


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def start(self, db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            round_obj = Round(...)
            db.add(round_obj)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 業務異常（AuctionException）原樣重新拋出
        - SQLAlchemyError 包成 StorageError 拋出

    注意：
        - 參數中必須有 db: Session（位置參數或 keyword 'db' 皆可，method 也適用）
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except AuctionException:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise StorageError() from e
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
