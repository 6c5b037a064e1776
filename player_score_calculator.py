"""
Fantasy Cricket Score Calculator
Implements the round scoring pipeline, applied in a fixed order:
- Batting (runs, boundaries)
- Bowling (wickets, runs conceded)
- Fielding (catches, stumpings, run outs; weighted up for wicket-keepers)
- Milestones (50/100 runs, 3/5 wickets)
- Custom bonus rules set by the admin for the round
- Per-player round multiplier
The result is clamped at zero.
"""

import math
from decimal import Decimal

from fantasy_cricket.models import BonusConditions, Position


class CricketScoreCalculator:
    """
    Calculates fantasy points for one stat entry.

    Every method is pure: the same stats, position, rules and multiplier
    always give the same points.
    """

    # Batting
    RUN_PTS = 1
    FOUR_PTS = 1
    SIX_PTS = 2

    # Bowling
    WICKET_PTS = 25
    RUNS_CONCEDED_PER_PENALTY = 2  # -1 per 2 runs conceded

    # Fielding
    CATCH_PTS = 8
    STUMPING_PTS = 12
    RUN_OUT_PTS = 6
    KEEPER_FIELDING_MULT = 1.5

    # Milestones (cumulative)
    FIFTY_BONUS = 8
    HUNDRED_BONUS = 16
    THREE_WICKET_BONUS = 4
    FIVE_WICKET_BONUS = 8

    # Position normalization mapping
    POSITION_ALIASES = {
        'batsman': Position.BATSMAN.value,
        'batter': Position.BATSMAN.value,
        'bat': Position.BATSMAN.value,
        'bowler': Position.BOWLER.value,
        'bowl': Position.BOWLER.value,
        'all-rounder': Position.ALL_ROUNDER.value,
        'allrounder': Position.ALL_ROUNDER.value,
        'all rounder': Position.ALL_ROUNDER.value,
        'ar': Position.ALL_ROUNDER.value,
        'wicket-keeper': Position.WICKET_KEEPER.value,
        'wicketkeeper': Position.WICKET_KEEPER.value,
        'wicket keeper': Position.WICKET_KEEPER.value,
        'keeper': Position.WICKET_KEEPER.value,
        'wk': Position.WICKET_KEEPER.value,
    }

    def normalize_position(self, position_str):
        """Map loose input ('wk', 'Bowl', 'allrounder') to a canonical position name."""
        if not position_str:
            raise ValueError("Position is required")
        key = position_str.lower().strip()
        if key in self.POSITION_ALIASES:
            return self.POSITION_ALIASES[key]
        raise ValueError(f"Unknown position: {position_str}")

    def calculate_score(self, stats, position, bonus_rules=None, multiplier=None):
        """
        Calculates the fantasy score for one stat entry.

        Args:
            stats: Mapping (or pydantic/SQLModel object) with runs, fours, sixes,
                wickets, runs_conceded, catches, stumpings, run_outs
            position: Canonical position name of the player
            bonus_rules: Bonus rules scoped to the entry's round
            multiplier: Round multiplier for the player, or None

        Returns:
            int: Non-negative point total
        """
        return self.get_score_breakdown(stats, position, bonus_rules, multiplier)['total']

    def get_score_breakdown(self, stats, position, bonus_rules=None, multiplier=None):
        """
        Returns every stage of the calculation.
        Useful for debugging and UI display.
        """
        stats = self._as_dict(stats)

        batting = self._calculate_batting(stats)
        bowling = self._calculate_bowling(stats)
        fielding = self._calculate_fielding(stats, position)
        milestones = self._calculate_milestones(stats)
        custom_bonus, applied_rules = self._calculate_custom_bonus(stats, position, bonus_rules or [])

        subtotal = batting + bowling + fielding + milestones + custom_bonus
        multiplied = self._apply_multiplier(subtotal, multiplier)

        return {
            'position': position,
            'batting_points': batting,
            'bowling_points': bowling,
            'fielding_points': fielding,
            'milestone_points': milestones,
            'custom_bonus_points': custom_bonus,
            'applied_rules': applied_rules,
            'subtotal': subtotal,
            'multiplier': multiplier,
            'total': max(0, multiplied),
        }

    @staticmethod
    def _as_dict(stats):
        if hasattr(stats, 'model_dump'):
            return stats.model_dump()
        return dict(stats)

    @staticmethod
    def _stat(stats, key):
        return stats.get(key, 0) or 0

    def _calculate_batting(self, stats):
        runs = self._stat(stats, 'runs')
        fours = self._stat(stats, 'fours')
        sixes = self._stat(stats, 'sixes')
        return runs * self.RUN_PTS + fours * self.FOUR_PTS + sixes * self.SIX_PTS

    def _calculate_bowling(self, stats):
        wickets = self._stat(stats, 'wickets')
        runs_conceded = self._stat(stats, 'runs_conceded')
        return wickets * self.WICKET_PTS - math.floor(runs_conceded / self.RUNS_CONCEDED_PER_PENALTY)

    def _calculate_fielding(self, stats, position):
        mult = self.KEEPER_FIELDING_MULT if position == Position.WICKET_KEEPER.value else 1

        catches = self._stat(stats, 'catches')
        stumpings = self._stat(stats, 'stumpings')
        run_outs = self._stat(stats, 'run_outs')

        pts = 0
        pts += math.floor(catches * self.CATCH_PTS * mult)
        pts += math.floor(stumpings * self.STUMPING_PTS * mult)
        pts += math.floor(run_outs * self.RUN_OUT_PTS * mult)
        return pts

    def _calculate_milestones(self, stats):
        runs = self._stat(stats, 'runs')
        wickets = self._stat(stats, 'wickets')

        pts = 0
        if runs >= 50:
            pts += self.FIFTY_BONUS
        if runs >= 100:
            pts += self.HUNDRED_BONUS  # Total +24 for a century
        if wickets >= 3:
            pts += self.THREE_WICKET_BONUS
        if wickets >= 5:
            pts += self.FIVE_WICKET_BONUS  # Total +12 for a 5-fer
        return pts

    def _calculate_custom_bonus(self, stats, position, bonus_rules):
        """All matching rules apply, not just the first."""
        pts = 0
        applied = []
        for rule in bonus_rules:
            if not rule.targets(position):
                continue
            conditions = rule.conditions
            if not isinstance(conditions, BonusConditions):
                conditions = BonusConditions(**(conditions or {}))
            if conditions.is_satisfied_by(stats):
                pts += rule.bonus_points
                applied.append(rule.name)
        return pts, applied

    @staticmethod
    def _apply_multiplier(total, multiplier):
        if multiplier is None:
            return total
        # Decimal keeps e.g. 0.29 * 100 from flooring to 28
        return math.floor(Decimal(total) * Decimal(str(multiplier)))
