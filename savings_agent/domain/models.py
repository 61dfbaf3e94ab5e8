"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union


@dataclass(frozen=True)
class Transaction:
    """
    Canonical bank transaction.

    Sign convention follows the aggregator: negative amount = money received
    (credit/income), positive amount = money spent (debit).
    """

    amount: Decimal
    date: date
    description: str
    counterparty_name: Optional[str] = None

    @property
    def is_credit(self) -> bool:
        return self.amount < 0

    @property
    def is_debit(self) -> bool:
        return self.amount > 0


@dataclass
class WindfallResult:
    """Outcome of windfall detection"""

    is_windfall: bool
    explanation: str
    amount: Optional[Decimal] = None
    baseline_income: Optional[Decimal] = None
    multiplier: Optional[Decimal] = None
    source_label: Optional[str] = None
    deposit_date: Optional[date] = None
    suggested_savings: Optional[Decimal] = None


@dataclass
class SweepResult:
    """Outcome of weekly sweep analysis"""

    has_opportunity: bool
    explanation: str
    current_week_spend: Optional[Decimal] = None
    trailing_average_weekly_spend: Optional[Decimal] = None
    underspend_amount: Optional[Decimal] = None
    suggested_savings: Optional[Decimal] = None


@dataclass
class PromptOption:
    """Single choice offered to the user"""

    label: str
    value: Decimal
    percentage: Optional[int] = None


@dataclass
class SavingsPrompt:
    """User-facing prompt attached to an opportunity"""

    title: str
    message: str
    options: List[PromptOption]
    impact_message: Optional[str] = None
    tone: Optional[str] = None
    emoji: Optional[str] = None


class OpportunityKind(str, enum.Enum):
    WINDFALL = "windfall"
    SWEEP = "sweep"


@dataclass
class Opportunity:
    """Flagged savings opportunity, lower priority value = more important"""

    kind: OpportunityKind
    priority: int
    payload: Union[WindfallResult, SweepResult]
    prompt: SavingsPrompt


@dataclass
class OpportunitySummary:
    windfall_detected: bool
    sweep_available: bool
    total_potential_savings: Decimal


@dataclass
class OpportunityAnalysis:
    """Output of the combined analysis"""

    opportunities: List[Opportunity]
    summary: OpportunitySummary


@dataclass
class Vault:
    """Savings vault mirrored from the external ledger"""

    id: str
    name: str
    balance: Decimal
    goal_amount: Optional[Decimal] = None
    purpose: Optional[str] = None


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass
class WithdrawalRequest:
    """Soft-locked withdrawal request (append-only audit record)"""

    id: uuid.UUID
    vault_id: str
    amount: Decimal
    reason: str
    status: WithdrawalStatus
    created_at: datetime
    impact_message: str = ""
    completed_at: Optional[datetime] = None


@dataclass
class SoftLockPrompt:
    """Confirmation dialog shown before a cooling period starts"""

    title: str
    message: str
    prompt: str
    requires_reason: bool
    cooling_period: str
    alternative: str


@dataclass
class WithdrawalDecision:
    """Allow/deny decision for a vault withdrawal"""

    allowed: bool
    message: str
    reason: Optional[str] = None
    hours_remaining: Optional[int] = None
    withdrawal_request_id: Optional[uuid.UUID] = None
    # Amount of the pending request the decision refers to
    request_amount: Optional[Decimal] = None
    vault: Optional[Vault] = None
    prompt: Optional[SoftLockPrompt] = None


@dataclass
class WithdrawalRequestCreated:
    request: WithdrawalRequest
    impact_message: str
    available_at: datetime
    message: str = "24-hour cooling period started"


@dataclass
class WithdrawalStatusSnapshot:
    has_active_request: bool
    message: str = ""
    request: Optional[WithdrawalRequest] = None
    hours_remaining: Optional[int] = None
    can_withdraw: bool = False
    available_at: Optional[datetime] = None
