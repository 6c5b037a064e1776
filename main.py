from player_score_calculator import CricketScoreCalculator
from fantasy_cricket.models import StatLine

STAT_PROMPTS = [
    ('runs', "Runs"),
    ('fours', "Fours"),
    ('sixes', "Sixes"),
    ('wickets', "Wickets"),
    ('runs_conceded', "Runs conceded"),
    ('catches', "Catches"),
    ('stumpings', "Stumpings"),
    ('run_outs', "Run outs"),
]


def read_int(label):
    while True:
        raw = input(f"{label} [0]: ").strip()
        if not raw:
            return 0
        try:
            value = int(raw)
        except ValueError:
            print("Please enter a whole number.")
            continue
        if value < 0:
            print("Value cannot be negative.")
            continue
        return value


def main():
    print("--- Fantasy Cricket Points Preview ---\n")

    calculator = CricketScoreCalculator()

    raw_position = input("Position (Batsman / Bowler / All-rounder / Wicket-keeper): ").strip()
    try:
        position = calculator.normalize_position(raw_position)
    except ValueError as e:
        print(f"{e}. Exiting.")
        return

    stats = StatLine(**{key: read_int(label) for key, label in STAT_PROMPTS})

    raw_mult = input("Round multiplier (blank for none): ").strip()
    multiplier = None
    if raw_mult:
        try:
            multiplier = float(raw_mult)
        except ValueError:
            print("Ignoring invalid multiplier.")

    breakdown = calculator.get_score_breakdown(stats, position, multiplier=multiplier)

    print(f"\n{'Component':<20} | {'Points':<6}")
    print("-" * 30)
    for key, label in [
        ('batting_points', "Batting"),
        ('bowling_points', "Bowling"),
        ('fielding_points', "Fielding"),
        ('milestone_points', "Milestones"),
        ('subtotal', "Subtotal"),
    ]:
        print(f"{label:<20} | {breakdown[key]:<6}")
    if multiplier is not None:
        print(f"{'Multiplier':<20} | x{multiplier}")
    print(f"{'Total':<20} | {breakdown['total']:<6}")


if __name__ == "__main__":
    main()
