"""Smart sweep - compare this week's spend against the trailing 4-week average"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from savings_agent.domain.models import PromptOption, SavingsPrompt, SweepResult
from savings_agent.domain.normalizer import normalize_transactions
from savings_agent.utils.date_utils import days_before, utc_now

CURRENT_WEEK_DAYS = 7
SWEEP_BASELINE_WEEKS = 4
SWEEP_MIN_UNDERSPEND = Decimal("5.00")
SWEEP_SAVINGS_RATE = Decimal("0.5")


def analyze_weekly_sweep(transactions: Iterable, now: datetime | None = None) -> SweepResult:
    """
    Find unspent budget by comparing the trailing week with the 4 weeks before it.

    Windows (calendar dates relative to `now`):
    - This week: dated on or after today - 7 days
    - Baseline:  today - 35 days <= date < today - 7 days

    Baseline average is the baseline total divided by 4 regardless of how
    the spending is spread across those weeks. Only debits (positive
    amounts) count as spending.
    """
    txns = normalize_transactions(transactions)
    now = now or utc_now()

    week_start = days_before(now, CURRENT_WEEK_DAYS)
    baseline_start = days_before(now, CURRENT_WEEK_DAYS * (SWEEP_BASELINE_WEEKS + 1))

    debits = [t for t in txns if t.is_debit]
    current_week_spend = sum((t.amount for t in debits if t.date >= week_start), Decimal("0"))
    baseline = [t for t in debits if baseline_start <= t.date < week_start]

    if not baseline:
        return SweepResult(has_opportunity=False, explanation="Not enough historical data")

    average_weekly_spend = sum((t.amount for t in baseline), Decimal("0")) / SWEEP_BASELINE_WEEKS
    underspend = average_weekly_spend - current_week_spend

    if underspend > SWEEP_MIN_UNDERSPEND:
        return SweepResult(
            has_opportunity=True,
            current_week_spend=current_week_spend,
            trailing_average_weekly_spend=average_weekly_spend,
            underspend_amount=underspend,
            suggested_savings=underspend * SWEEP_SAVINGS_RATE,
            explanation=f"You spent ${underspend:.2f} less than usual this week!",
        )

    if current_week_spend > average_weekly_spend:
        explanation = "You spent more than usual this week"
    else:
        explanation = "Unspent amount is too small to sweep"

    return SweepResult(
        has_opportunity=False,
        current_week_spend=current_week_spend,
        trailing_average_weekly_spend=average_weekly_spend,
        underspend_amount=underspend,
        explanation=explanation,
    )


def build_sweep_prompt(result: SweepResult) -> SavingsPrompt:
    suggested = result.suggested_savings
    half = suggested / 2
    return SavingsPrompt(
        title="🎯 Smart Sweep Available!",
        message=(
            f"Great self-control! You spent ${result.underspend_amount:.2f} less than your usual "
            f"${result.trailing_average_weekly_spend:.2f}/week.\n\n"
            "Want to stash some of that win?"
        ),
        options=[
            PromptOption(label=f"Save ${suggested:.2f}", value=suggested),
            PromptOption(label=f"Save ${half:.2f}", value=half),
            PromptOption(label="Keep it all", value=Decimal("0")),
        ],
        tone="encouraging",
        emoji="💪",
    )
