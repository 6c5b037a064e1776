"""
Leaderboard and head-to-head scoring.

Both count main-roster holdings only and double the captain; the leaderboard
uses lifetime points, a matchup uses the points from its own round.
"""

from typing import List, Optional

from .config import LeagueConfig, get_config
from .errors import ConflictError
from .logging_config import get_logger
from .models import H2HMatchup, MatchupStatus, TeamHolding
from .repository import LeagueRepository

logger = get_logger(__name__)


class LeaderboardAggregator:
    def __init__(self, repo: LeagueRepository, config: Optional[LeagueConfig] = None):
        self.repo = repo
        self.config = config or get_config()

    def holding_points(self, holding: TeamHolding) -> int:
        player = holding.player
        points = player.total_points + player.current_round_points
        if holding.is_captain:
            points *= self.config.captain_multiplier
        return points

    def user_total(self, user_id: int) -> int:
        return sum(
            self.holding_points(h)
            for h in self.repo.holdings_for_user(user_id)
            if not h.is_substitute
        )

    def standings(self) -> List[dict]:
        """
        Every user, highest total first. Equal totals are ordered by user id
        so the table is stable between requests.
        """
        rows = [
            {'user_id': user.id, 'username': user.username, 'total_points': self.user_total(user.id)}
            for user in self.repo.list_users()
        ]
        rows.sort(key=lambda r: (-r['total_points'], r['user_id']))
        for rank, row in enumerate(rows, start=1):
            row['rank'] = rank
        return rows


class H2HResolver:
    def __init__(self, repo: LeagueRepository, config: Optional[LeagueConfig] = None):
        self.repo = repo
        self.config = config or get_config()

    def round_points(self, player_id: int, round_id: int) -> int:
        return sum(e.points for e in self.repo.stat_entries_for(player_id, round_id))

    def user_round_score(self, user_id: int, round_id: int) -> int:
        score = 0
        for holding in self.repo.holdings_for_user(user_id):
            if holding.is_substitute:
                continue
            points = self.round_points(holding.player_id, round_id)
            if holding.is_captain:
                points *= self.config.captain_multiplier
            score += points
        return score

    def resolve(self, matchup: H2HMatchup) -> H2HMatchup:
        matchup.user1_score = self.user_round_score(matchup.user1_id, matchup.round_id)
        matchup.user2_score = self.user_round_score(matchup.user2_id, matchup.round_id)

        if self.repo.round_has_stats(matchup.round_id):
            matchup.status = MatchupStatus.COMPLETED.value
            if matchup.user1_score > matchup.user2_score:
                matchup.winner_id = matchup.user1_id
            elif matchup.user2_score > matchup.user1_score:
                matchup.winner_id = matchup.user2_id
            else:
                matchup.winner_id = None
        else:
            matchup.status = MatchupStatus.PENDING.value
            matchup.winner_id = None
        return self.repo.add(matchup)

    def recompute_round(self, round_id: int) -> int:
        """Called inside the stat-insertion transaction."""
        matchups = self.repo.matchups_for_round(round_id)
        for matchup in matchups:
            self.resolve(matchup)
        return len(matchups)

    def create(self, user1_id: int, user2_id: int, round_id: int, name: Optional[str] = None) -> H2HMatchup:
        if user1_id == user2_id:
            raise ConflictError("A user cannot be matched against themselves")
        user1 = self.repo.require_user(user1_id)
        user2 = self.repo.require_user(user2_id)
        round_ = self.repo.require_round(round_id)
        name = (name or "").strip() or f"{user1.username} vs {user2.username}"

        matchup = self.repo.add(H2HMatchup(
            name=name,
            user1_id=user1.id,
            user2_id=user2.id,
            round_id=round_.id,
        ))
        self.repo.flush()
        self.resolve(matchup)
        logger.info(f"Created matchup '{name}' for round {round_.name}")
        return matchup

    def describe(self, matchup: H2HMatchup) -> dict:
        names = {}
        for user_id in (matchup.user1_id, matchup.user2_id, matchup.winner_id):
            if user_id is not None and user_id not in names:
                user = self.repo.get_user(user_id)
                names[user_id] = user.username if user else None
        return {
            'id': matchup.id,
            'name': matchup.name,
            'round_id': matchup.round_id,
            'status': matchup.status,
            'user1_id': matchup.user1_id,
            'user1_name': names.get(matchup.user1_id),
            'user1_score': matchup.user1_score,
            'user2_id': matchup.user2_id,
            'user2_name': names.get(matchup.user2_id),
            'user2_score': matchup.user2_score,
            'winner_id': matchup.winner_id,
            'winner_name': names.get(matchup.winner_id) if matchup.winner_id else None,
        }
