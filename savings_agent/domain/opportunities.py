"""Combined savings analysis - run every detector and rank the results"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List

from savings_agent.domain.models import (
    Opportunity,
    OpportunityAnalysis,
    OpportunityKind,
    OpportunitySummary,
)
from savings_agent.domain.normalizer import normalize_transactions
from savings_agent.domain.sweep import analyze_weekly_sweep, build_sweep_prompt
from savings_agent.domain.windfall import build_windfall_prompt, detect_windfall
from savings_agent.utils.date_utils import utc_now

WINDFALL_PRIORITY = 1
SWEEP_PRIORITY = 2


def run_opportunity_analysis(transactions: Iterable, now: datetime | None = None) -> OpportunityAnalysis:
    """
    Main entry point: detect windfall and sweep opportunities on one snapshot.

    Both detectors see the same normalized list and the same reference time.
    No side effects; recording shown/accepted suggestions is up to the caller.
    """
    snapshot = normalize_transactions(transactions)
    now = now or utc_now()

    windfall = detect_windfall(snapshot, now=now)
    sweep = analyze_weekly_sweep(snapshot, now=now)

    opportunities: List[Opportunity] = []
    total = Decimal("0")

    if windfall.is_windfall:
        opportunities.append(
            Opportunity(
                kind=OpportunityKind.WINDFALL,
                priority=WINDFALL_PRIORITY,
                payload=windfall,
                prompt=build_windfall_prompt(windfall),
            )
        )
        total += windfall.suggested_savings

    if sweep.has_opportunity:
        opportunities.append(
            Opportunity(
                kind=OpportunityKind.SWEEP,
                priority=SWEEP_PRIORITY,
                payload=sweep,
                prompt=build_sweep_prompt(sweep),
            )
        )
        total += sweep.suggested_savings

    opportunities.sort(key=lambda o: o.priority)

    return OpportunityAnalysis(
        opportunities=opportunities,
        summary=OpportunitySummary(
            windfall_detected=windfall.is_windfall,
            sweep_available=sweep.has_opportunity,
            total_potential_savings=total,
        ),
    )
