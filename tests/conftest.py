"""Shared test fixtures."""
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Tuple

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from database import Base, Settings, create_db_engine
from core.auction_service import AuctionService


@dataclass
class FakeClock:
    t: int = 1_700_000_000_000

    def now_ms(self) -> int:
        return self.t

    def advance(self, ms: int) -> None:
        self.t += ms


@dataclass(eq=False)
class RecordingSubscriber:
    """Collects every (event, payload) pushed to it."""
    events: List[Tuple[str, dict]] = field(default_factory=list)

    def push(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def last(self, event: str) -> dict:
        payloads = [p for e, p in self.events if e == event]
        assert payloads, f"no {event} pushed"
        return payloads[-1]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'auction.db'}",
        start_wallet=12000,
        start_bid=400,
        bid_increment=200,
        max_bid=2000,
        cooldown_ms=300,
    )


@pytest.fixture
def db_engine(settings):
    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auction(settings, clock) -> AuctionService:
    return AuctionService(settings, clock=clock)


@pytest.fixture
def join_team(auction, db):
    """Join a team by name and return (token, team_id)."""
    def _join(name: str):
        token, view = auction.join(db, name)
        return token, view.team_id
    return _join


@pytest.fixture
def make_subscriber():
    return RecordingSubscriber


@pytest.fixture
def failing_flush():
    """
    Context manager: while inside, every flush on `target` (a Session or a
    sessionmaker) fails the way a lost database connection would.
    """
    @contextmanager
    def _failing(target):
        def _raise(session, flush_context, instances):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        event.listen(target, "before_flush", _raise)
        try:
            yield
        finally:
            event.remove(target, "before_flush", _raise)
    return _failing
