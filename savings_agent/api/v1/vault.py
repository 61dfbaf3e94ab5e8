"""Soft-lock vault endpoints - withdrawal request, execution, status and history"""

import logging
from typing import Union
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from savings_agent.api.v1.schemas import (
    ExecuteWithdrawRequest,
    TransferResponse,
    VaultSchema,
    VaultUpsertRequest,
    WithdrawalCreatedResponse,
    WithdrawalDecisionResponse,
    WithdrawalHistoryResponse,
    WithdrawalRequestSchema,
    WithdrawalStatusResponse,
    WithdrawRequest,
    error_responses,
)
from savings_agent.api.dependencies import error_response, get_ledger_client, get_request_id, get_soft_lock
from savings_agent.domain.exceptions import LedgerAPIError, PendingWithdrawalExistsError, VaultNotFoundError
from savings_agent.domain.models import Vault, WithdrawalDecision
from savings_agent.domain.soft_lock import REASON_COOLING_PERIOD, SoftLock
from savings_agent.infrastructure.clients.ledger import LedgerClient
from savings_agent.infrastructure.database.repositories import VaultRepository, WithdrawalRequestRepository
from savings_agent.infrastructure.database.session import get_db
from savings_agent.infrastructure.observability.logging import log_withdrawal_decision
from savings_agent.infrastructure.observability.metrics import (
    record_withdrawal_decision,
    withdrawal_request_counter,
)

router = APIRouter()


def _report(request_id: str, vault_id: str, decision: WithdrawalDecision) -> WithdrawalDecisionResponse:
    record_withdrawal_decision(decision.allowed, decision.reason)
    log_withdrawal_decision(request_id, vault_id, decision.allowed, decision.reason, decision.hours_remaining)
    return WithdrawalDecisionResponse.from_domain(decision)


@router.put("/vault/{vault_id}", response_model=VaultSchema)
def upsert_vault(vault_id: str, request_body: VaultUpsertRequest, db: Session = Depends(get_db)):
    """Register or refresh a vault snapshot mirrored from the ledger"""
    vault = VaultRepository(db).upsert_vault(
        Vault(
            id=vault_id,
            name=request_body.name,
            balance=request_body.balance,
            goal_amount=request_body.goal_amount,
            purpose=request_body.purpose,
        )
    )
    db.commit()
    return VaultSchema.from_domain(vault)


@router.post(
    "/vault/withdraw/request",
    response_model=Union[WithdrawalCreatedResponse, WithdrawalDecisionResponse],
    responses=error_responses(404),
)
def request_withdrawal(
    request_body: WithdrawRequest,
    request: Request,
    db: Session = Depends(get_db),
    soft_lock: SoftLock = Depends(get_soft_lock),
):
    """
    Request a vault withdrawal.

    Flow:
    1. Past the cooling period -> allowed decision (execute next)
    2. Cooling period running -> cooling_period decision with hours remaining
    3. No pending request -> start a 24-hour cooling period with goal impact
    """
    request_id = get_request_id(request)

    try:
        decision = soft_lock.check_withdrawal(request_body.vault_id, request_body.amount)
        if decision.allowed or decision.reason == REASON_COOLING_PERIOD:
            return _report(request_id, request_body.vault_id, decision)

        try:
            created = soft_lock.create_withdrawal_request(
                request_body.vault_id, request_body.amount, request_body.reason
            )
        except PendingWithdrawalExistsError:
            # Lost a race with a concurrent request for the same vault
            decision = soft_lock.check_withdrawal(request_body.vault_id, request_body.amount)
            return _report(request_id, request_body.vault_id, decision)

        db.commit()
        withdrawal_request_counter.inc()
        return WithdrawalCreatedResponse(
            message=created.message,
            withdrawal_request_id=str(created.request.id),
            impact=created.impact_message,
            available_at=created.available_at,
        )

    except VaultNotFoundError:
        db.rollback()
        return error_response(404, "Vault not found")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/vault/withdraw/execute",
    response_model=TransferResponse,
    responses=error_responses(403, 404, 409, 503),
)
async def execute_withdrawal(
    request_body: ExecuteWithdrawRequest,
    request: Request,
    db: Session = Depends(get_db),
    soft_lock: SoftLock = Depends(get_soft_lock),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """
    Execute a withdrawal once its cooling period has elapsed.

    Flow:
    1. Cooling period not over -> 403 with the lock check
    2. Amount above the cooled request -> 403
    3. Claim the request (pending -> completed) and commit; lost claim -> 409
    4. Ledger transfer; on ledger failure the claim is released
    """
    request_id = get_request_id(request)

    try:
        decision = soft_lock.check_withdrawal(request_body.vault_id, request_body.amount)
        if not decision.allowed:
            lock_check = _report(request_id, request_body.vault_id, decision)
            return error_response(403, "Withdrawal not allowed yet", lock_check=lock_check.model_dump(mode="json"))

        if request_body.amount > decision.request_amount:
            return error_response(
                403,
                "Withdrawal amount exceeds the requested amount",
                requested_amount=float(decision.request_amount),
            )

        request_uuid = decision.withdrawal_request_id
        if not soft_lock.complete_withdrawal(request_uuid):
            db.rollback()
            return error_response(409, "Withdrawal already in progress")
        db.commit()

    except VaultNotFoundError:
        db.rollback()
        return error_response(404, "Vault not found")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    # The request stays completed unless the ledger reports a failure
    try:
        transfer = await ledger_client.create_transfer(
            request_body.vault_id,
            request_body.to_account_id,
            request_body.amount,
            "Vault Withdrawal",
        )
    except LedgerAPIError as e:
        soft_lock.release_withdrawal(request_uuid)
        db.commit()
        logging.error(f"Ledger API error: {e}", extra={"request_id": request_id})
        return error_response(503, "Ledger service unavailable")

    return TransferResponse(transfer=transfer, withdrawal_request_id=str(request_uuid))


@router.get("/vault/withdraw/status/{vault_id}", response_model=WithdrawalStatusResponse)
def get_withdrawal_status(vault_id: str, soft_lock: SoftLock = Depends(get_soft_lock)):
    """Active cooling period for a vault, if any"""
    return WithdrawalStatusResponse.from_domain(soft_lock.get_withdrawal_status(vault_id))


@router.get("/vault/{vault_id}/withdrawals", response_model=WithdrawalHistoryResponse)
def get_withdrawal_history(
    vault_id: str,
    limit: int = Query(20, ge=1, le=100, description="Maximum number of requests"),
    db: Session = Depends(get_db),
):
    """Withdrawal request audit log for a vault, newest first"""
    requests = WithdrawalRequestRepository(db).get_requests_by_vault(vault_id, limit=limit)
    return WithdrawalHistoryResponse(
        vault_id=vault_id,
        requests=[WithdrawalRequestSchema.from_domain(r) for r in requests],
    )
