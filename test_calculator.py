import pytest
from player_score_calculator import CricketScoreCalculator
from fantasy_cricket.models import BonusRule, StatLine

@pytest.fixture
def calculator():
    return CricketScoreCalculator()

def rule(name, bonus_points, targets=None, **conditions):
    return BonusRule(
        round_id=1,
        name=name,
        bonus_points=bonus_points,
        target_positions=targets or ["All"],
        conditions=conditions,
    )

def test_batsman_with_fifty_and_catch(calculator):
    stats = {
        'runs': 60,
        'fours': 4,
        'sixes': 1,
        'wickets': 0,
        'catches': 1,
    }
    # Batting: 60 + 4 + 2 = 66
    # Fielding: 8
    # Fifty: 8
    # Total: 82
    assert calculator.calculate_score(stats, "Batsman") == 82

def test_accepts_stat_line(calculator):
    stats = StatLine(runs=60, fours=4, sixes=1, catches=1)
    assert calculator.calculate_score(stats, "Batsman") == 82

def test_century_gets_both_milestones(calculator):
    stats = {'runs': 120}
    # Runs: 120, Fifty: 8, Hundred: 16
    assert calculator.calculate_score(stats, "Batsman") == 144

def test_custom_rule_stacks_with_milestones(calculator):
    stats = {'runs': 120}
    rules = [rule("Centurion", 5, min_runs=100), rule("Big hitter", 3, min_runs=50)]
    breakdown = calculator.get_score_breakdown(stats, "Batsman", rules)
    assert breakdown['milestone_points'] == 24
    assert breakdown['custom_bonus_points'] == 8
    assert breakdown['applied_rules'] == ["Centurion", "Big hitter"]
    assert breakdown['total'] == 152

def test_bowling_points(calculator):
    stats = {
        'wickets': 3,  # 75
        'runs_conceded': 25,  # -12
    }
    # Three-wicket bonus: 4
    assert calculator.calculate_score(stats, "Bowler") == 67

def test_five_wicket_haul(calculator):
    stats = {'wickets': 5, 'runs_conceded': 0}
    # 125 + 4 + 8
    assert calculator.calculate_score(stats, "Bowler") == 137

def test_keeper_fielding_weighted(calculator):
    stats = {'catches': 1, 'stumpings': 1, 'run_outs': 1}
    # floor(8 * 1.5) + floor(12 * 1.5) + floor(6 * 1.5) = 12 + 18 + 9
    assert calculator.calculate_score(stats, "Wicket-keeper") == 39
    # Same stats for anyone else: 8 + 12 + 6
    assert calculator.calculate_score(stats, "All-rounder") == 26

def test_score_never_negative(calculator):
    stats = {'runs': 0, 'wickets': 0, 'runs_conceded': 500}
    assert calculator.calculate_score(stats, "Bowler") == 0
    assert calculator.calculate_score(stats, "Bowler", multiplier=3.0) == 0

def test_multiplier_applies_after_bonuses(calculator):
    stats = {'runs': 30}
    rules = [rule("Thirty", 10, targets=["Batsman"], min_runs=30)]
    # (30 + 10) * 2, not 30 * 2 + 10
    assert calculator.calculate_score(stats, "Batsman", rules, multiplier=2.0) == 80

def test_multiplier_floors_exactly(calculator):
    stats = {'wickets': 4, 'runs_conceded': 8}
    # 100 - 4 + 4 = 100; 100 * 0.29 is 28.999... in binary floating point
    assert calculator.calculate_score(stats, "Bowler", multiplier=0.29) == 29

def test_rule_skips_other_positions(calculator):
    stats = {'runs': 60}
    rules = [rule("Bowler bonus", 20, targets=["Bowler"], min_runs=10)]
    assert calculator.calculate_score(stats, "Batsman", rules) == 68

def test_rule_conditions_must_all_hold(calculator):
    rules = [rule("Tidy knock", 10, min_runs=20, max_runs=40, min_fours=2)]
    assert calculator.calculate_score({'runs': 30, 'fours': 2}, "Batsman", rules) == 42
    assert calculator.calculate_score({'runs': 30, 'fours': 1}, "Batsman", rules) == 31
    assert calculator.calculate_score({'runs': 45, 'fours': 2}, "Batsman", rules) == 47

def test_rule_with_no_conditions_always_applies(calculator):
    assert calculator.calculate_score({}, "Bowler", [rule("Showed up", 2)]) == 2

def test_scoring_is_deterministic(calculator):
    stats = {'runs': 77, 'fours': 6, 'sixes': 3, 'wickets': 2, 'runs_conceded': 31, 'catches': 2}
    rules = [rule("Fifty plus", 5, min_runs=50)]
    first = calculator.get_score_breakdown(stats, "All-rounder", rules, 1.5)
    second = calculator.get_score_breakdown(stats, "All-rounder", rules, 1.5)
    assert first == second

def test_normalize_position(calculator):
    assert calculator.normalize_position("wk") == "Wicket-keeper"
    assert calculator.normalize_position(" Bowl ") == "Bowler"
    assert calculator.normalize_position("allrounder") == "All-rounder"
    with pytest.raises(ValueError):
        calculator.normalize_position("pitcher")

def test_rule_targets(calculator):
    keepers_and_bowlers = rule("Glovework", 4, targets=["Wicket-keeper", "Bowler"])
    assert keepers_and_bowlers.targets("Bowler")
    assert not keepers_and_bowlers.targets("Batsman")
    assert rule("Everyone", 4, targets=["All"]).targets("Batsman")
    # Bowling: -1 for 2 runs conceded, then the rule's +4
    assert calculator.calculate_score({'runs_conceded': 2}, "Wicket-keeper", [keepers_and_bowlers]) == 3
