"""
Data access for the league.
Only reads and writes live here; the rules are in rounds/roster/team/engine.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .errors import NotFoundError
from .models import (
    BonusRule,
    H2HMatchup,
    Match,
    Player,
    Round,
    RoundMultiplier,
    StatEntry,
    TeamHolding,
    UserAccount,
)


class LeagueRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, obj):
        self.session.add(obj)
        return obj

    def delete(self, obj):
        self.session.delete(obj)

    def flush(self):
        self.session.flush()

    def refresh(self, obj):
        self.session.refresh(obj)
        return obj

    def _require(self, model, key, label):
        obj = self.session.get(model, key)
        if obj is None:
            raise NotFoundError(label, key)
        return obj

    # --- Users ---

    def get_user(self, user_id: int) -> Optional[UserAccount]:
        return self.session.get(UserAccount, user_id)

    def require_user(self, user_id: int) -> UserAccount:
        return self._require(UserAccount, user_id, "User")

    def find_user_by_username(self, username: str) -> Optional[UserAccount]:
        return self.session.exec(select(UserAccount).where(UserAccount.username == username)).first()

    def find_user_by_email(self, email: str) -> Optional[UserAccount]:
        return self.session.exec(select(UserAccount).where(UserAccount.email == email)).first()

    def list_users(self) -> List[UserAccount]:
        return list(self.session.exec(select(UserAccount).order_by(UserAccount.id)).all())

    # --- Players ---

    def get_player(self, player_id: int) -> Optional[Player]:
        return self.session.get(Player, player_id)

    def require_player(self, player_id: int) -> Player:
        return self._require(Player, player_id, "Player")

    def list_players(self, position: Optional[str] = None) -> List[Player]:
        query = select(Player)
        if position:
            query = query.where(Player.position == position)
        return list(self.session.exec(query.order_by(Player.id)).all())

    def players_with_round_points(self) -> List[Player]:
        return list(self.session.exec(select(Player).where(Player.current_round_points > 0)).all())

    # --- Matches ---

    def require_match(self, match_id: int) -> Match:
        return self._require(Match, match_id, "Match")

    def list_matches(self) -> List[Match]:
        return list(self.session.exec(select(Match).order_by(Match.date)).all())

    # --- Rounds ---

    def get_round(self, round_id: int) -> Optional[Round]:
        return self.session.get(Round, round_id)

    def require_round(self, round_id: int) -> Round:
        return self._require(Round, round_id, "Round")

    def find_round_by_name(self, name: str) -> Optional[Round]:
        return self.session.exec(select(Round).where(Round.name == name)).first()

    def list_rounds(self) -> List[Round]:
        return list(self.session.exec(select(Round).order_by(Round.sequence, Round.id)).all())

    def active_rounds(self) -> List[Round]:
        return list(self.session.exec(select(Round).where(Round.is_active == True)).all())  # noqa: E712

    def active_round(self) -> Optional[Round]:
        return self.session.exec(select(Round).where(Round.is_active == True)).first()  # noqa: E712

    def next_round_sequence(self) -> int:
        current = self.session.exec(select(func.max(Round.sequence))).one()
        return (current or 0) + 1

    # --- Stat entries ---

    def stat_entries_for(self, player_id: int, round_id: int) -> List[StatEntry]:
        return list(self.session.exec(select(StatEntry).where(
            StatEntry.player_id == player_id,
            StatEntry.round_id == round_id,
        ).order_by(StatEntry.id)).all())

    def stat_entries_for_round(self, round_id: int) -> List[StatEntry]:
        return list(self.session.exec(select(StatEntry).where(StatEntry.round_id == round_id)).all())

    def stat_entries_for_player(self, player_id: int) -> List[StatEntry]:
        return list(self.session.exec(
            select(StatEntry).where(StatEntry.player_id == player_id).order_by(StatEntry.id)
        ).all())

    def unrolled_stat_entries(self) -> List[StatEntry]:
        return list(self.session.exec(select(StatEntry).where(StatEntry.rolled_up_at == None)).all())  # noqa: E711

    def round_has_stats(self, round_id: int) -> bool:
        return self.session.exec(select(StatEntry.id).where(StatEntry.round_id == round_id)).first() is not None

    # --- Bonus rules and multipliers ---

    def require_bonus_rule(self, rule_id: int) -> BonusRule:
        return self._require(BonusRule, rule_id, "Bonus rule")

    def bonus_rules_for_round(self, round_id: int) -> List[BonusRule]:
        return list(self.session.exec(
            select(BonusRule).where(BonusRule.round_id == round_id).order_by(BonusRule.id)
        ).all())

    def multiplier_for(self, round_id: int, player_id: int) -> Optional[RoundMultiplier]:
        return self.session.exec(select(RoundMultiplier).where(
            RoundMultiplier.round_id == round_id,
            RoundMultiplier.player_id == player_id,
        )).first()

    def multipliers_for_round(self, round_id: int) -> List[RoundMultiplier]:
        return list(self.session.exec(
            select(RoundMultiplier).where(RoundMultiplier.round_id == round_id).order_by(RoundMultiplier.id)
        ).all())

    # --- Holdings ---

    def holdings_for_user(self, user_id: int) -> List[TeamHolding]:
        return list(self.session.exec(
            select(TeamHolding).where(TeamHolding.user_id == user_id).order_by(TeamHolding.id)
        ).all())

    def holding_for(self, user_id: int, player_id: int) -> Optional[TeamHolding]:
        return self.session.exec(select(TeamHolding).where(
            TeamHolding.user_id == user_id,
            TeamHolding.player_id == player_id,
        )).first()

    # --- Head-to-head ---

    def require_matchup(self, matchup_id: int) -> H2HMatchup:
        return self._require(H2HMatchup, matchup_id, "Matchup")

    def matchups_for_round(self, round_id: int) -> List[H2HMatchup]:
        return list(self.session.exec(
            select(H2HMatchup).where(H2HMatchup.round_id == round_id).order_by(H2HMatchup.id)
        ).all())

    def list_matchups(self, round_id: Optional[int] = None) -> List[H2HMatchup]:
        query = select(H2HMatchup)
        if round_id is not None:
            query = query.where(H2HMatchup.round_id == round_id)
        return list(self.session.exec(query.order_by(H2HMatchup.id)).all())
