from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Aware UTC view of a timestamp. Naive values are taken to be UTC already;
    some SQLite drivers hand stored values back without their offset.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Position(str, Enum):
    BATSMAN = "Batsman"
    BOWLER = "Bowler"
    ALL_ROUNDER = "All-rounder"
    WICKET_KEEPER = "Wicket-keeper"


ALL_POSITIONS = "All"  # bonus rule sentinel: targets every position
POSITION_NAMES = [p.value for p in Position]


class MatchupStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


# --- Value types (not persisted on their own) ---

class StatLine(BaseModel):
    """One performance record as submitted by an admin."""
    model_config = ConfigDict(extra="forbid")

    runs: int = PydanticField(default=0, ge=0)
    balls_faced: int = PydanticField(default=0, ge=0)
    fours: int = PydanticField(default=0, ge=0)
    sixes: int = PydanticField(default=0, ge=0)
    wickets: int = PydanticField(default=0, ge=0)
    overs_bowled: float = PydanticField(default=0.0, ge=0)
    runs_conceded: int = PydanticField(default=0, ge=0)
    catches: int = PydanticField(default=0, ge=0)
    stumpings: int = PydanticField(default=0, ge=0)
    run_outs: int = PydanticField(default=0, ge=0)


class BonusConditions(BaseModel):
    """
    Sparse threshold set for a custom bonus rule.
    Every omitted key is vacuously satisfied.
    """
    model_config = ConfigDict(extra="forbid")

    min_runs: Optional[int] = PydanticField(default=None, ge=0)
    max_runs: Optional[int] = PydanticField(default=None, ge=0)
    min_wickets: Optional[int] = PydanticField(default=None, ge=0)
    max_wickets: Optional[int] = PydanticField(default=None, ge=0)
    min_catches: Optional[int] = PydanticField(default=None, ge=0)
    min_sixes: Optional[int] = PydanticField(default=None, ge=0)
    min_fours: Optional[int] = PydanticField(default=None, ge=0)

    def is_satisfied_by(self, stats: Mapping[str, Any]) -> bool:
        def stat(key):
            return stats.get(key, 0) or 0

        checks = [
            (self.min_runs, lambda v: stat("runs") >= v),
            (self.max_runs, lambda v: stat("runs") <= v),
            (self.min_wickets, lambda v: stat("wickets") >= v),
            (self.max_wickets, lambda v: stat("wickets") <= v),
            (self.min_catches, lambda v: stat("catches") >= v),
            (self.min_sixes, lambda v: stat("sixes") >= v),
            (self.min_fours, lambda v: stat("fours") >= v),
        ]
        return all(check(threshold) for threshold, check in checks if threshold is not None)

    def as_dict(self) -> Dict[str, int]:
        return self.model_dump(exclude_none=True)


# --- Tables ---

class UserAccount(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    is_admin: bool = Field(default=False)
    budget: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    holdings: List["TeamHolding"] = Relationship(back_populates="user")


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    team: str = Field(default="")  # real-world side
    position: str = Field(index=True)  # one of POSITION_NAMES
    base_price: int
    current_price: int
    total_points: int = Field(default=0)  # frozen at round boundaries
    current_round_points: int = Field(default=0)  # in-progress round accumulator
    matches_played: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    holdings: List["TeamHolding"] = Relationship(back_populates="player")


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    match_name: str
    date: datetime
    team1: str
    team2: str
    created_at: datetime = Field(default_factory=utcnow)


class Round(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    sequence: int = Field(index=True)
    lockout_time: datetime
    is_active: bool = Field(default=False)
    is_locked: bool = Field(default=False)  # cache only, see RoundLifecycle.check_lockout
    started_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)


class StatEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    match_id: Optional[int] = Field(default=None, foreign_key="match.id")

    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    wickets: int = 0
    overs_bowled: float = 0.0
    runs_conceded: int = 0
    catches: int = 0
    stumpings: int = 0
    run_outs: int = 0

    points: int
    created_at: datetime = Field(default_factory=utcnow)
    rolled_up_at: Optional[datetime] = Field(default=None)  # set when folded into total_points


class BonusRule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    name: str
    description: str = Field(default="")
    bonus_points: int
    target_positions: List[str] = Field(default_factory=lambda: [ALL_POSITIONS], sa_column=Column(JSON))
    conditions: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)

    def targets(self, position: str) -> bool:
        positions = self.target_positions or []
        return ALL_POSITIONS in positions or position in positions


class RoundMultiplier(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("round_id", "player_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    player_id: int = Field(foreign_key="player.id")
    multiplier: float


class TeamHolding(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "player_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="useraccount.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    purchase_price: int  # snapshot at buy time
    purchase_date: datetime = Field(default_factory=utcnow)
    is_captain: bool = Field(default=False)
    is_substitute: bool = Field(default=False)  # bench vs playing roster

    user: Optional[UserAccount] = Relationship(back_populates="holdings")
    player: Optional[Player] = Relationship(back_populates="holdings")


class H2HMatchup(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    user1_id: int = Field(foreign_key="useraccount.id")
    user2_id: int = Field(foreign_key="useraccount.id")
    round_id: int = Field(foreign_key="round.id", index=True)
    status: str = Field(default=MatchupStatus.PENDING.value)
    user1_score: int = Field(default=0)
    user2_score: int = Field(default=0)
    winner_id: Optional[int] = Field(default=None, foreign_key="useraccount.id")
    created_at: datetime = Field(default_factory=utcnow)


def as_record(row: SQLModel) -> Dict[str, Any]:
    """Column values of a table row; reads through attributes so expired rows reload."""
    return {name: getattr(row, name) for name in type(row).model_fields}
