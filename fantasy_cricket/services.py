"""
League operations consumed by the route layer.

Every public method returns an OperationResult; business-rule failures never
escape as exceptions. Callers pass the Identity already established by the
external auth collaborator.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pydantic
from sqlmodel import Session

from .config import LeagueConfig, get_config
from .database import atomic
from .engine import StatsProcessor
from .errors import (
    ConflictError,
    ForbiddenError,
    RejectReason,
    ValidationError,
    as_result,
)
from .leaderboard import H2HResolver, LeaderboardAggregator
from .logging_config import get_logger
from .models import (
    ALL_POSITIONS,
    POSITION_NAMES,
    BonusConditions,
    BonusRule,
    Match,
    Player,
    RoundMultiplier,
    StatLine,
    UserAccount,
    as_record,
    as_utc,
    utcnow,
)
from .repository import LeagueRepository
from .rounds import Clock, RoundLifecycle
from .team import TeamAccount

logger = get_logger(__name__)

ADMIN = "admin"
STANDARD = "standard"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as handed over by the auth layer."""
    user_id: int
    role: str = STANDARD

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def _require_admin(identity: Identity):
    if identity is None or not identity.is_admin:
        raise ForbiddenError()


def _parse(model, data):
    """Validate loose input into a pydantic value type."""
    if isinstance(data, model):
        return data
    try:
        return model(**(data or {}))
    except pydantic.ValidationError as e:
        raise ValidationError(RejectReason.INVALID_INPUT, f"Invalid {model.__name__}: {e}") from e


def _required_text(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(RejectReason.INVALID_INPUT, f"{label} is required")
    return value


class LeagueService:
    def __init__(self, session: Session, config: Optional[LeagueConfig] = None, clock: Clock = utcnow):
        self.config = config or get_config()
        self.repo = LeagueRepository(session)
        self.lifecycle = RoundLifecycle(self.repo, clock)
        self.stats = StatsProcessor(self.repo, self.config)
        self.leaderboard_aggregator = LeaderboardAggregator(self.repo, self.config)
        self.h2h = H2HResolver(self.repo, self.config)

    def team_account(self, identity: Identity) -> TeamAccount:
        return TeamAccount(self.repo, identity.user_id, self.lifecycle, self.config)

    # --- Accounts ---

    @as_result
    def register_user(self, username: str, email: str, is_admin: bool = False):
        username = _required_text(username, "Username")
        email = _required_text(email, "Email")
        with atomic(self.repo.session):
            if self.repo.find_user_by_username(username):
                raise ConflictError(f"Username '{username}' is already taken")
            if self.repo.find_user_by_email(email):
                raise ConflictError(f"Email '{email}' is already registered")
            user = self.repo.add(UserAccount(
                username=username,
                email=email,
                is_admin=is_admin,
                budget=self.config.starting_budget,
            ))
            self.repo.flush()
            record = as_record(user)
        logger.info(f"Registered user {username} with budget {record['budget']}")
        return f"Welcome, {username}", record

    @as_result
    def update_account(self, identity: Identity, username: Optional[str] = None, email: Optional[str] = None):
        with atomic(self.repo.session):
            user = self.repo.require_user(identity.user_id)
            if username is not None:
                username = _required_text(username, "Username")
                other = self.repo.find_user_by_username(username)
                if other and other.id != user.id:
                    raise ConflictError(f"Username '{username}' is already taken")
                user.username = username
            if email is not None:
                email = _required_text(email, "Email")
                other = self.repo.find_user_by_email(email)
                if other and other.id != user.id:
                    raise ConflictError(f"Email '{email}' is already registered")
                user.email = email
            self.repo.add(user)
            self.repo.flush()
            record = as_record(user)
        logger.info(f"Updated account {identity.user_id}")
        return "Account updated", record

    @as_result
    def get_user(self, user_id: int):
        user = self.repo.require_user(user_id)
        return user.username, as_record(user)

    # --- Players and matches ---

    @as_result
    def create_player(
        self,
        identity: Identity,
        name: str,
        position: str,
        team: str = "",
        base_price: Optional[int] = None,
    ):
        _require_admin(identity)
        name = _required_text(name, "Player name")
        try:
            position = self.stats.calculator.normalize_position(position)
        except ValueError as e:
            raise ValidationError(RejectReason.INVALID_INPUT, str(e)) from e
        if base_price is None:
            base_price = self.config.default_player_price
        if base_price < 0:
            raise ValidationError(RejectReason.INVALID_INPUT, "Base price cannot be negative")

        with atomic(self.repo.session):
            player = self.repo.add(Player(
                name=name,
                team=team or "",
                position=position,
                base_price=base_price,
                current_price=max(self.config.min_player_price, base_price),
            ))
            self.repo.flush()
            record = as_record(player)
        logger.info(f"Created player {name} ({position}) at {record['current_price']}")
        return f"Created {name}", record

    @as_result
    def list_players(self, position: Optional[str] = None):
        players = self.repo.list_players(position)
        return f"{len(players)} players", [as_record(p) for p in players]

    @as_result
    def player_stat_history(self, player_id: int):
        player = self.repo.require_player(player_id)
        entries = self.repo.stat_entries_for_player(player.id)
        return f"{len(entries)} entries for {player.name}", [as_record(e) for e in entries]

    @as_result
    def create_match(self, identity: Identity, match_name: str, date: datetime, team1: str, team2: str):
        _require_admin(identity)
        match_name = _required_text(match_name, "Match name")
        team1 = _required_text(team1, "Team 1")
        team2 = _required_text(team2, "Team 2")
        with atomic(self.repo.session):
            match = self.repo.add(Match(match_name=match_name, date=as_utc(date), team1=team1, team2=team2))
            self.repo.flush()
            record = as_record(match)
        logger.info(f"Created match {match_name}")
        return f"Created {match_name}", record

    @as_result
    def list_matches(self):
        matches = self.repo.list_matches()
        return f"{len(matches)} matches", [as_record(m) for m in matches]

    # --- Team ---

    def buy_player(self, identity: Identity, player_id: int, as_substitute: bool = False):
        return self.team_account(identity).buy(player_id, as_substitute)

    def sell_player(self, identity: Identity, player_id: int):
        return self.team_account(identity).sell(player_id)

    def set_captain(self, identity: Identity, player_id: int):
        return self.team_account(identity).set_captain(player_id)

    def substitute(self, identity: Identity, main_player_id: int, sub_player_id: int):
        return self.team_account(identity).substitute(main_player_id, sub_player_id)

    @as_result
    def team_view(self, user_id: int):
        view = TeamAccount(self.repo, user_id, self.lifecycle, self.config).view()
        return f"{len(view['players'])} players", view

    # --- Rounds and stats ---

    @as_result
    def create_round(self, identity: Identity, name: str, lockout_time: datetime, sequence: Optional[int] = None):
        _require_admin(identity)
        round_ = self.lifecycle.create(name, lockout_time, sequence)
        return f"Created round {round_.name}", self._round_record(round_)

    @as_result
    def list_rounds(self):
        rounds = self.repo.list_rounds()
        return f"{len(rounds)} rounds", [self._round_record(r) for r in rounds]

    @as_result
    def start_round(self, identity: Identity, round_id: int):
        _require_admin(identity)
        round_ = self.lifecycle.start_round(round_id)
        return f"Round {round_.name} is now active", self._round_record(round_)

    @as_result
    def current_round_status(self):
        status = self.lifecycle.current_status()
        if status is None:
            return "No active round", None
        return status['name'], status

    @as_result
    def record_stats(self, identity: Identity, player_id: int, round_id: int, stats, match_id: Optional[int] = None):
        _require_admin(identity)
        stat_line = _parse(StatLine, stats)
        entry = self.stats.record_stats(player_id, round_id, stat_line, match_id)
        return f"Recorded {entry.points} points", as_record(entry)

    def _round_record(self, round_) -> dict:
        record = as_record(round_)
        record['state'] = self.lifecycle.state_of(round_).value
        return record

    # --- Bonus rules and multipliers ---

    @as_result
    def create_bonus_rule(
        self,
        identity: Identity,
        round_id: int,
        name: str,
        bonus_points: int,
        target_positions: Optional[List[str]] = None,
        conditions: Optional[dict] = None,
        description: str = "",
    ):
        _require_admin(identity)
        name = _required_text(name, "Rule name")
        targets = self._normalize_targets(target_positions)
        parsed = _parse(BonusConditions, conditions)

        with atomic(self.repo.session):
            round_ = self.repo.require_round(round_id)
            rule = self.repo.add(BonusRule(
                round_id=round_.id,
                name=name,
                description=description or "",
                bonus_points=bonus_points,
                target_positions=targets,
                conditions=parsed.as_dict(),
            ))
            self.repo.flush()
            record = as_record(rule)
        logger.info(f"Added bonus rule '{name}' (+{bonus_points}) to round {round_id}")
        return f"Created bonus rule {name}", record

    @staticmethod
    def _normalize_targets(target_positions: Optional[List[str]]) -> List[str]:
        if target_positions is None:
            return [ALL_POSITIONS]
        targets = list(dict.fromkeys(target_positions))
        if not targets:
            raise ValidationError(RejectReason.INVALID_INPUT, "A bonus rule needs at least one target position")
        for pos in targets:
            if pos != ALL_POSITIONS and pos not in POSITION_NAMES:
                raise ValidationError(RejectReason.INVALID_INPUT, f"Invalid position: {pos}")
        if ALL_POSITIONS in targets:
            return [ALL_POSITIONS]
        return targets

    @as_result
    def list_bonus_rules(self, round_id: int):
        self.repo.require_round(round_id)
        rules = self.repo.bonus_rules_for_round(round_id)
        return f"{len(rules)} bonus rules", [as_record(r) for r in rules]

    @as_result
    def delete_bonus_rule(self, identity: Identity, rule_id: int):
        _require_admin(identity)
        with atomic(self.repo.session):
            rule = self.repo.require_bonus_rule(rule_id)
            name = rule.name
            self.repo.delete(rule)
        logger.info(f"Deleted bonus rule '{name}'")
        return f"Deleted bonus rule {name}", {'id': rule_id}

    @as_result
    def set_round_multiplier(self, identity: Identity, round_id: int, player_id: int, multiplier: float):
        _require_admin(identity)
        low, high = self.config.min_round_multiplier, self.config.max_round_multiplier
        if not (low <= multiplier <= high):
            raise ValidationError(
                RejectReason.INVALID_INPUT,
                f"Multiplier must be between {low} and {high}",
            )
        with atomic(self.repo.session):
            round_ = self.repo.require_round(round_id)
            player = self.repo.require_player(player_id)
            existing = self.repo.multiplier_for(round_.id, player.id)
            if existing:
                existing.multiplier = multiplier
                row = self.repo.add(existing)
            else:
                row = self.repo.add(RoundMultiplier(round_id=round_.id, player_id=player.id, multiplier=multiplier))
            self.repo.flush()
            record = as_record(row)
            name = player.name
        logger.info(f"Set x{multiplier} for {name} in round {round_id}")
        return f"{name} scores x{multiplier} this round", record

    @as_result
    def list_round_multipliers(self, round_id: int):
        self.repo.require_round(round_id)
        rows = self.repo.multipliers_for_round(round_id)
        return f"{len(rows)} multipliers", [as_record(r) for r in rows]

    # --- Standings ---

    @as_result
    def leaderboard(self):
        rows = self.leaderboard_aggregator.standings()
        return f"{len(rows)} teams", rows

    @as_result
    def create_h2h_matchup(
        self,
        identity: Identity,
        user1_id: int,
        user2_id: int,
        round_id: int,
        name: Optional[str] = None,
    ):
        _require_admin(identity)
        with atomic(self.repo.session):
            matchup = self.h2h.create(user1_id, user2_id, round_id, name)
            record = self.h2h.describe(matchup)
        return f"Created matchup {record['name']}", record

    @as_result
    def list_h2h_matchups(self, round_id: Optional[int] = None):
        matchups = self.repo.list_matchups(round_id)
        return f"{len(matchups)} matchups", [self.h2h.describe(m) for m in matchups]
