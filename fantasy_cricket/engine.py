from typing import Optional

from player_score_calculator import CricketScoreCalculator

from .config import LeagueConfig, get_config
from .database import atomic
from .errors import RejectReason, ValidationError
from .leaderboard import H2HResolver
from .logging_config import get_logger
from .models import Player, StatEntry, StatLine
from .repository import LeagueRepository

logger = get_logger(__name__)


def reprice(total_points: int, current_round_points: int, config: LeagueConfig) -> int:
    """Price re-derived from all-time points; never patched incrementally."""
    all_time = total_points + current_round_points
    return max(config.min_player_price, config.reprice_base + all_time * config.price_per_point)


class StatsProcessor:
    """
    Records admin-submitted stat entries and keeps the derived player
    numbers (round points, matches played, price) and the round's
    head-to-head scores in step with them.
    """

    def __init__(
        self,
        repo: LeagueRepository,
        config: Optional[LeagueConfig] = None,
        calculator: Optional[CricketScoreCalculator] = None,
    ):
        self.repo = repo
        self.config = config or get_config()
        self.calculator = calculator or CricketScoreCalculator()
        self.h2h = H2HResolver(repo, self.config)

    def record_stats(
        self,
        player_id: int,
        round_id: int,
        stats: StatLine,
        match_id: Optional[int] = None,
    ) -> StatEntry:
        """
        Scores one stat entry and saves it.

        The entry, the player's rollup and re-pricing, and the head-to-head
        recomputation commit together or not at all.
        """
        with atomic(self.repo.session):
            player = self.repo.require_player(player_id)
            round_ = self.repo.require_round(round_id)
            if not round_.is_active:
                raise ValidationError(
                    RejectReason.ROUND_NOT_ACTIVE,
                    f"Stats can only be recorded for the active round ({round_.name} is not active)",
                )
            if match_id is not None:
                self.repo.require_match(match_id)

            rules = self.repo.bonus_rules_for_round(round_.id)
            mult = self.repo.multiplier_for(round_.id, player.id)
            points = self.calculator.calculate_score(
                stats, player.position, rules, mult.multiplier if mult else None
            )

            entry = self.repo.add(StatEntry(
                player_id=player.id,
                round_id=round_.id,
                match_id=match_id,
                points=points,
                **stats.model_dump(),
            ))
            self.repo.flush()

            self._rollup(player, round_.id)
            self.h2h.recompute_round(round_.id)
            name, price, round_points = player.name, player.current_price, player.current_round_points

        self.repo.refresh(entry)
        logger.info(
            f"Recorded {points} pts for {name} in round {round_id}; "
            f"round total {round_points}, price now {price}"
        )
        return entry

    def _rollup(self, player: Player, round_id: int):
        """Re-derive the player's numbers from the stored entries."""
        player.current_round_points = sum(
            e.points for e in self.repo.stat_entries_for(player.id, round_id) if e.rolled_up_at is None
        )
        player.matches_played = len(self.repo.stat_entries_for_player(player.id))
        player.current_price = reprice(player.total_points, player.current_round_points, self.config)
        self.repo.add(player)
