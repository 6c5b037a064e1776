"""
Round lifecycle: scheduled -> open -> locked -> settled.

A round is open while it is the active round and its lockout time has not
passed, locked once it has, and settled when a later start_round replaces it.
Lockout is evaluated lazily against the clock; the stored is_locked flag is a
cache refreshed by check_lockout and never trusted on its own.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .database import atomic
from .errors import ConflictError, LockedError, RejectReason, ValidationError
from .logging_config import get_logger
from .models import Round, as_utc, utcnow
from .repository import LeagueRepository

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class RoundState(str, Enum):
    SCHEDULED = "scheduled"
    OPEN = "open"
    LOCKED = "locked"
    SETTLED = "settled"


class RoundLifecycle:
    def __init__(self, repo: LeagueRepository, clock: Clock = utcnow):
        self.repo = repo
        self.clock = clock

    def create(self, name: str, lockout_time: datetime, sequence: Optional[int] = None) -> Round:
        """New rounds start out scheduled; only start_round activates one."""
        name = (name or "").strip()
        if not name:
            raise ValidationError(RejectReason.INVALID_INPUT, "Round name is required")
        with atomic(self.repo.session):
            if self.repo.find_round_by_name(name):
                raise ConflictError(f"A round named '{name}' already exists")
            if sequence is None:
                sequence = self.repo.next_round_sequence()
            round_ = self.repo.add(Round(name=name, sequence=sequence, lockout_time=as_utc(lockout_time)))
        self.repo.refresh(round_)
        logger.info(f"Created round {round_.name} (#{round_.sequence}), lockout at {lockout_time}")
        return round_

    def is_past_lockout(self, round_: Round) -> bool:
        return as_utc(self.clock()) >= as_utc(round_.lockout_time)

    def check_lockout(self, round_: Round) -> bool:
        """Pure answer from the clock; refreshes the cached flag on the way."""
        locked = self.is_past_lockout(round_)
        if locked and not round_.is_locked:
            round_.is_locked = True
            self.repo.add(round_)
        return locked

    def state_of(self, round_: Round) -> RoundState:
        if round_.is_active:
            return RoundState.LOCKED if self.is_past_lockout(round_) else RoundState.OPEN
        if round_.started_at is not None:
            return RoundState.SETTLED
        return RoundState.SCHEDULED

    def ensure_unlocked(self):
        """
        Lockout gate for roster mutations. Runs before the caller writes
        anything, so committing the refreshed flag commits nothing else.
        """
        active = self.repo.active_round()
        if active is not None and self.check_lockout(active):
            self.repo.session.commit()
            raise LockedError()

    def start_round(self, round_id: int) -> Round:
        """
        Settle the current round and activate round_id.

        Folds every player's current_round_points into total_points and
        zeroes them, stamps the folded stat entries, then moves the active
        flag. All of it commits together under the league write lock, so a
        concurrent stat insertion lands either wholly before or wholly after.
        Running it again with no new stats changes no totals.
        """
        with atomic(self.repo.session):
            target = self.repo.require_round(round_id)
            if self.state_of(target) == RoundState.SETTLED:
                raise ConflictError(f"Round {target.name} has already been played")

            now = self.clock()
            rolled = 0
            for player in self.repo.players_with_round_points():
                player.total_points += player.current_round_points
                player.current_round_points = 0
                self.repo.add(player)
                rolled += 1
            for entry in self.repo.unrolled_stat_entries():
                entry.rolled_up_at = now
                self.repo.add(entry)

            for active in self.repo.active_rounds():
                if active.id != target.id:
                    active.is_active = False
                    self.repo.add(active)

            target.is_active = True
            target.is_locked = False
            if target.started_at is None:
                target.started_at = now
            self.repo.add(target)
            self.repo.flush()

            active_ids = [r.id for r in self.repo.active_rounds()]
            if active_ids != [target.id]:
                raise ConflictError(f"Expected only round {target.id} to be active, found {active_ids}")

        self.repo.refresh(target)
        logger.info(f"Started round {target.name}; rolled points for {rolled} players")
        return target

    def current_status(self) -> Optional[dict]:
        active = self.repo.active_round()
        if active is None:
            return None
        with atomic(self.repo.session):
            locked = self.check_lockout(active)
        remaining = (as_utc(active.lockout_time) - as_utc(self.clock())).total_seconds()
        return {
            'id': active.id,
            'name': active.name,
            'sequence': active.sequence,
            'lockout_time': as_utc(active.lockout_time).isoformat(),
            'state': self.state_of(active).value,
            'is_locked': locked,
            'time_until_lockout_ms': 0 if locked else int(remaining * 1000),
        }
