from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from fantasy_cricket.config import LeagueConfig
from fantasy_cricket.database import create_db_and_tables
from fantasy_cricket.services import ADMIN, Identity, LeagueService

START = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def config():
    return LeagueConfig()


@pytest.fixture
def service(session, clock, config):
    return LeagueService(session, config=config, clock=clock)


@pytest.fixture
def repo(service):
    return service.repo


@pytest.fixture
def admin(service):
    result = service.register_user("admin", "admin@example.com", is_admin=True)
    assert result.ok, result.message
    return Identity(result.data['id'], ADMIN)


@pytest.fixture
def make_user(service):
    def _make(username):
        result = service.register_user(username, f"{username}@example.com")
        assert result.ok, result.message
        return Identity(result.data['id'])
    return _make


@pytest.fixture
def make_player(service, admin):
    def _make(name, position="Batsman", base_price=100_000):
        result = service.create_player(admin, name, position, base_price=base_price)
        assert result.ok, result.message
        return result.data['id']
    return _make


@pytest.fixture
def make_round(service, admin, clock):
    def _make(name, lockout_in=timedelta(days=1), start=True):
        result = service.create_round(admin, name, clock.now + lockout_in)
        assert result.ok, result.message
        round_id = result.data['id']
        if start:
            started = service.start_round(admin, round_id)
            assert started.ok, started.message
        return round_id
    return _make


@pytest.fixture
def open_round(make_round):
    return make_round("Round 1")
