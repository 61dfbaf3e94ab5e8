"""Windfall detection - flag outsized recent deposits as savings opportunities"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List

from savings_agent.domain.models import PromptOption, SavingsPrompt, Transaction, WindfallResult
from savings_agent.domain.normalizer import normalize_transactions
from savings_agent.utils.date_utils import days_before, utc_now

MIN_INCOME_OBSERVATIONS = 2
WINDFALL_THRESHOLD_MULTIPLIER = Decimal("1.5")
WINDFALL_LOOKBACK_DAYS = 30
WINDFALL_SAVINGS_RATE = Decimal("0.20")


def baseline_income(incomes: List[Decimal]) -> Decimal:
    """
    Median income used as the windfall baseline.

    For even-length lists this takes the upper-middle element
    (sorted index n // 2), not the average of the two middle values:
    [100, 200, 300, 400] -> 300.
    """
    ordered = sorted(incomes)
    return ordered[len(ordered) // 2]


def detect_windfall(transactions: Iterable, now: datetime | None = None) -> WindfallResult:
    """
    Detect a recent deposit that is large relative to typical income.

    Requirements:
    - Income = credits (negative amounts), compared by absolute value
    - At least MIN_INCOME_OBSERVATIONS incomes, else no detection
    - Deposit must exceed 1.5x the baseline (strict) and be dated within
      the last 30 calendar days (day 30 inclusive)
    - First qualifying deposit in input order wins

    Args:
        transactions: Raw records or Transaction objects
        now: Reference time (default: current UTC time)

    Returns:
        WindfallResult; "no windfall" is a normal negative result, never an exception
    """
    txns = normalize_transactions(transactions)
    now = now or utc_now()

    incomes = [abs(t.amount) for t in txns if t.is_credit]
    if len(incomes) < MIN_INCOME_OBSERVATIONS:
        return WindfallResult(is_windfall=False, explanation="Not enough transaction history")

    median = baseline_income(incomes)
    window_start = days_before(now, WINDFALL_LOOKBACK_DAYS)
    threshold = median * WINDFALL_THRESHOLD_MULTIPLIER

    recent_large_deposits = [
        t for t in txns
        if t.is_credit and abs(t.amount) > threshold and t.date >= window_start
    ]
    if not recent_large_deposits:
        return WindfallResult(is_windfall=False, explanation="No recent large deposits detected")

    windfall = recent_large_deposits[0]
    amount = abs(windfall.amount)
    multiplier = amount / median
    source = source_label(windfall)

    return WindfallResult(
        is_windfall=True,
        amount=amount,
        baseline_income=median,
        multiplier=multiplier,
        source_label=source,
        deposit_date=windfall.date,
        suggested_savings=amount * WINDFALL_SAVINGS_RATE,
        explanation=f"Detected {source}: ${amount:.2f} ({multiplier:.1f}x your typical income)",
    )


def source_label(txn: Transaction) -> str:
    return txn.description or txn.counterparty_name or "Unknown"


def build_windfall_prompt(result: WindfallResult) -> SavingsPrompt:
    """Four ordered options: 20%, 10%, 30%, decline"""
    suggested = result.suggested_savings
    return SavingsPrompt(
        title="💰 Windfall Detected!",
        message=(
            f"I noticed you received ${result.amount:.2f} from {result.source_label}, "
            f"that's {result.multiplier:.1f}x your usual income!\n\n"
            f"Would you like to save 20% (${suggested:.2f}) toward your goals?"
        ),
        options=[
            PromptOption(label="Save 20%", value=suggested, percentage=20),
            PromptOption(label="Save 10%", value=suggested / 2, percentage=10),
            PromptOption(label="Save 30%", value=suggested * Decimal("1.5"), percentage=30),
            PromptOption(label="No thanks", value=Decimal("0"), percentage=0),
        ],
        impact_message="This could cover 6 months of your average spending!",
    )
