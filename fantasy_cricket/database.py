"""SQLModel engine, sessions and the league transaction boundary."""

import os
import threading
from contextlib import contextmanager

from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  registers tables on SQLModel.metadata

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///fantasy_cricket.db")

engine = create_engine(
    DATABASE_URL,
    echo=os.environ.get("SQL_ECHO", "false").lower() == "true",
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)

# Serializes every write that touches rosters, budgets, points or rounds.
# Round start holds it across the whole player set, so stat insertion and
# roster changes can't interleave with the rollup.
LEAGUE_WRITE_LOCK = threading.RLock()


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def atomic(session: Session):
    """
    One all-or-nothing unit of work.

    Commits when the block exits cleanly, rolls back everything written in
    the block otherwise and re-raises.
    """
    with LEAGUE_WRITE_LOCK:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
