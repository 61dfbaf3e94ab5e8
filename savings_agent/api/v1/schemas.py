"""Pydantic schemas for API request/response validation"""

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

from savings_agent.domain.models import (
    Opportunity,
    SavingsPrompt,
    SoftLockPrompt,
    SweepResult,
    Vault,
    WindfallResult,
    WithdrawalDecision,
    WithdrawalRequest,
    WithdrawalStatusSnapshot,
)


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class TransactionsRequest(BaseModel):
    """Request body for the savings analysis endpoints"""

    # Raw records: malformed entries are skipped during normalization, not rejected here
    transactions: List[Any] = Field(..., description="Aggregator transactions (negative amount = income)")


class PromptOptionSchema(BaseModel):
    label: str
    value: float
    percentage: Optional[int] = None


class PromptSchema(BaseModel):
    title: str
    message: str
    options: List[PromptOptionSchema]
    impact_message: Optional[str] = None
    tone: Optional[str] = None
    emoji: Optional[str] = None

    @classmethod
    def from_domain(cls, prompt: SavingsPrompt) -> "PromptSchema":
        return cls(
            title=prompt.title,
            message=prompt.message,
            options=[
                PromptOptionSchema(label=o.label, value=float(o.value), percentage=o.percentage)
                for o in prompt.options
            ],
            impact_message=prompt.impact_message,
            tone=prompt.tone,
            emoji=prompt.emoji,
        )


class WindfallResponse(BaseModel):
    """Response for POST /v1/savings/windfall/detect"""

    is_windfall: bool
    explanation: str
    amount: Optional[float] = None
    baseline_income: Optional[float] = None
    multiplier: Optional[float] = None
    source_label: Optional[str] = None
    deposit_date: Optional[date] = None
    suggested_savings: Optional[float] = None
    prompt: Optional[PromptSchema] = None

    @classmethod
    def from_domain(cls, result: WindfallResult, prompt: Optional[SavingsPrompt] = None) -> "WindfallResponse":
        return cls(
            is_windfall=result.is_windfall,
            explanation=result.explanation,
            amount=_money(result.amount),
            baseline_income=_money(result.baseline_income),
            multiplier=round(float(result.multiplier), 1) if result.multiplier is not None else None,
            source_label=result.source_label,
            deposit_date=result.deposit_date,
            suggested_savings=_money(result.suggested_savings),
            prompt=PromptSchema.from_domain(prompt) if prompt else None,
        )


class SweepResponse(BaseModel):
    """Response for POST /v1/savings/sweep/analyze"""

    has_opportunity: bool
    explanation: str
    current_week_spend: Optional[float] = None
    trailing_average_weekly_spend: Optional[float] = None
    underspend_amount: Optional[float] = None
    suggested_savings: Optional[float] = None
    prompt: Optional[PromptSchema] = None

    @classmethod
    def from_domain(cls, result: SweepResult, prompt: Optional[SavingsPrompt] = None) -> "SweepResponse":
        return cls(
            has_opportunity=result.has_opportunity,
            explanation=result.explanation,
            current_week_spend=_money(result.current_week_spend),
            trailing_average_weekly_spend=_money(result.trailing_average_weekly_spend),
            underspend_amount=_money(result.underspend_amount),
            suggested_savings=_money(result.suggested_savings),
            prompt=PromptSchema.from_domain(prompt) if prompt else None,
        )


class OpportunitySchema(BaseModel):
    kind: str
    priority: int
    data: Union[WindfallResponse, SweepResponse]
    prompt: PromptSchema

    @classmethod
    def from_domain(cls, opportunity: Opportunity) -> "OpportunitySchema":
        if isinstance(opportunity.payload, WindfallResult):
            data = WindfallResponse.from_domain(opportunity.payload)
        else:
            data = SweepResponse.from_domain(opportunity.payload)
        return cls(
            kind=opportunity.kind.value,
            priority=opportunity.priority,
            data=data,
            prompt=PromptSchema.from_domain(opportunity.prompt),
        )


class SummarySchema(BaseModel):
    windfall_detected: bool
    sweep_available: bool
    total_potential_savings: float


class AnalysisResponse(BaseModel):
    """Response for POST /v1/savings/analyze"""

    success: bool = True
    opportunities: List[OpportunitySchema]
    summary: SummarySchema


class SavingsTransferRequest(BaseModel):
    """Request body for accepting a windfall or sweep suggestion"""

    amount: Decimal = Field(..., gt=0, description="Amount to move into the vault")
    to_vault_id: str = Field(..., min_length=1)
    from_account_id: str = Field(..., min_length=1)
    description: Optional[str] = None


class TransferResponse(BaseModel):
    success: bool = True
    transfer: Dict[str, Any]
    withdrawal_request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body returned by error_response for handled failures"""

    success: bool = False
    error: str


def error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI `responses=` entries documenting ErrorResponse bodies"""
    return {code: {"model": ErrorResponse} for code in status_codes}


class VaultUpsertRequest(BaseModel):
    """Vault snapshot pushed from the ledger integration"""

    name: str = Field(..., min_length=1)
    balance: Decimal = Field(..., ge=0)
    goal_amount: Optional[Decimal] = Field(None, ge=0)
    purpose: Optional[str] = None


class VaultSchema(BaseModel):
    id: str
    name: str
    balance: float
    goal_amount: Optional[float] = None
    purpose: Optional[str] = None

    @classmethod
    def from_domain(cls, vault: Vault) -> "VaultSchema":
        return cls(
            id=vault.id,
            name=vault.name,
            balance=float(vault.balance),
            goal_amount=_money(vault.goal_amount),
            purpose=vault.purpose,
        )


class WithdrawRequest(BaseModel):
    """Request body for POST /v1/vault/withdraw/request"""

    vault_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    reason: str = ""


class ExecuteWithdrawRequest(BaseModel):
    """Request body for POST /v1/vault/withdraw/execute"""

    vault_id: str = Field(..., min_length=1)
    to_account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)


class SoftLockPromptSchema(BaseModel):
    title: str
    message: str
    prompt: str
    requires_reason: bool
    cooling_period: str
    alternative: str

    @classmethod
    def from_domain(cls, prompt: SoftLockPrompt) -> "SoftLockPromptSchema":
        return cls(**asdict(prompt))


class WithdrawalDecisionResponse(BaseModel):
    """Soft-lock decision: allowed, cooling_period or new_request_required"""

    allowed: bool
    message: str
    reason: Optional[str] = None
    hours_remaining: Optional[int] = None
    withdrawal_request_id: Optional[str] = None
    vault: Optional[VaultSchema] = None
    prompt: Optional[SoftLockPromptSchema] = None

    @classmethod
    def from_domain(cls, decision: WithdrawalDecision) -> "WithdrawalDecisionResponse":
        return cls(
            allowed=decision.allowed,
            message=decision.message,
            reason=decision.reason,
            hours_remaining=decision.hours_remaining,
            withdrawal_request_id=str(decision.withdrawal_request_id) if decision.withdrawal_request_id else None,
            vault=VaultSchema.from_domain(decision.vault) if decision.vault else None,
            prompt=SoftLockPromptSchema.from_domain(decision.prompt) if decision.prompt else None,
        )


class WithdrawalCreatedResponse(BaseModel):
    """Returned when a new cooling period starts"""

    success: bool = True
    message: str
    withdrawal_request_id: str
    impact: str
    available_at: datetime


class WithdrawalRequestSchema(BaseModel):
    id: str
    vault_id: str
    amount: float
    reason: str
    status: str
    impact_message: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, request: WithdrawalRequest) -> "WithdrawalRequestSchema":
        return cls(
            id=str(request.id),
            vault_id=request.vault_id,
            amount=float(request.amount),
            reason=request.reason,
            status=request.status.value,
            impact_message=request.impact_message,
            created_at=request.created_at,
            completed_at=request.completed_at,
        )


class ActiveWithdrawalSchema(WithdrawalRequestSchema):
    hours_remaining: int
    can_withdraw: bool
    available_at: datetime


class WithdrawalStatusResponse(BaseModel):
    """Response for GET /v1/vault/withdraw/status/{vault_id}"""

    has_active_request: bool
    message: str = ""
    request: Optional[ActiveWithdrawalSchema] = None

    @classmethod
    def from_domain(cls, snapshot: WithdrawalStatusSnapshot) -> "WithdrawalStatusResponse":
        if not snapshot.has_active_request:
            return cls(has_active_request=False, message=snapshot.message)

        base = WithdrawalRequestSchema.from_domain(snapshot.request)
        return cls(
            has_active_request=True,
            message=snapshot.message,
            request=ActiveWithdrawalSchema(
                **base.model_dump(),
                hours_remaining=snapshot.hours_remaining,
                can_withdraw=snapshot.can_withdraw,
                available_at=snapshot.available_at,
            ),
        )


class WithdrawalHistoryResponse(BaseModel):
    """Response for GET /v1/vault/{vault_id}/withdrawals"""

    vault_id: str
    requests: List[WithdrawalRequestSchema]
