"""
Per-prediction scoring arithmetic.

P&L treats stated confidence as fair odds: a correct call at confidence c
returns stake * (1/c - 1), an incorrect call loses the stake. Brier score is
the squared error between confidence and the 0/1 outcome (lower is better).
"""

STAKE = 100.0
STARTING_BANKROLL = 10000.0


def calculate_pnl(confidence: float, is_correct: bool, stake: float = STAKE) -> float:
    """Profit/loss in money units, rounded to the cent."""
    if not is_correct:
        return -stake
    implied_odds = 1.0 / confidence
    return round(stake * (implied_odds - 1.0), 2)


def calculate_brier_score(confidence: float, is_correct: bool) -> float:
    """(confidence - actual)^2, rounded to 4 decimals."""
    actual = 1.0 if is_correct else 0.0
    return round((confidence - actual) ** 2, 4)


def calculate_points(is_correct: bool) -> int:
    return 1 if is_correct else 0
