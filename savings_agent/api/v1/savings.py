"""Savings opportunity endpoints - windfall, smart sweep and combined analysis"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from savings_agent.api.v1.schemas import (
    AnalysisResponse,
    OpportunitySchema,
    SavingsTransferRequest,
    SummarySchema,
    SweepResponse,
    TransactionsRequest,
    TransferResponse,
    WindfallResponse,
    error_responses,
)
from savings_agent.api.dependencies import error_response, get_ledger_client, get_request_id
from savings_agent.domain.exceptions import LedgerAPIError
from savings_agent.domain.normalizer import normalize_transactions
from savings_agent.domain.opportunities import run_opportunity_analysis
from savings_agent.domain.sweep import analyze_weekly_sweep, build_sweep_prompt
from savings_agent.domain.windfall import build_windfall_prompt, detect_windfall
from savings_agent.infrastructure.clients.ledger import LedgerClient
from savings_agent.infrastructure.observability.logging import log_analysis
from savings_agent.infrastructure.observability.metrics import record_opportunities

router = APIRouter()


@router.post("/savings/analyze", response_model=AnalysisResponse)
def analyze_savings(request_body: TransactionsRequest, request: Request):
    """
    Run windfall and smart sweep detection on one transaction snapshot.

    Returns:
        Flagged opportunities ordered by priority (windfall first) and a
        summary of total potential savings
    """
    start_time = time.time()
    transactions = normalize_transactions(request_body.transactions)
    analysis = run_opportunity_analysis(transactions)

    kinds = [o.kind.value for o in analysis.opportunities]
    record_opportunities("analyze", kinds)
    log_analysis(
        get_request_id(request),
        "analyze",
        len(transactions),
        kinds,
        str(analysis.summary.total_potential_savings),
        (time.time() - start_time) * 1000,
    )

    return AnalysisResponse(
        opportunities=[OpportunitySchema.from_domain(o) for o in analysis.opportunities],
        summary=SummarySchema(
            windfall_detected=analysis.summary.windfall_detected,
            sweep_available=analysis.summary.sweep_available,
            total_potential_savings=float(analysis.summary.total_potential_savings),
        ),
    )


@router.post("/savings/windfall/detect", response_model=WindfallResponse)
def detect_windfall_opportunity(request_body: TransactionsRequest, request: Request):
    """Windfall detection only; includes the savings prompt when flagged"""
    start_time = time.time()
    transactions = normalize_transactions(request_body.transactions)
    result = detect_windfall(transactions)

    kinds = ["windfall"] if result.is_windfall else []
    record_opportunities("windfall", kinds)
    log_analysis(
        get_request_id(request),
        "windfall",
        len(transactions),
        kinds,
        str(result.suggested_savings if kinds else 0),
        (time.time() - start_time) * 1000,
    )

    prompt = build_windfall_prompt(result) if result.is_windfall else None
    return WindfallResponse.from_domain(result, prompt)


@router.post("/savings/sweep/analyze", response_model=SweepResponse)
def analyze_sweep_opportunity(request_body: TransactionsRequest, request: Request):
    """Smart sweep analysis only; includes the savings prompt when flagged"""
    start_time = time.time()
    transactions = normalize_transactions(request_body.transactions)
    result = analyze_weekly_sweep(transactions)

    kinds = ["sweep"] if result.has_opportunity else []
    record_opportunities("sweep", kinds)
    log_analysis(
        get_request_id(request),
        "sweep",
        len(transactions),
        kinds,
        str(result.suggested_savings if kinds else 0),
        (time.time() - start_time) * 1000,
    )

    prompt = build_sweep_prompt(result) if result.has_opportunity else None
    return SweepResponse.from_domain(result, prompt)


async def _instruct_savings_transfer(
    request_body: SavingsTransferRequest,
    default_description: str,
    request_id: str,
    ledger_client: LedgerClient,
):
    try:
        transfer = await ledger_client.create_transfer(
            request_body.from_account_id,
            request_body.to_vault_id,
            request_body.amount,
            request_body.description or default_description,
        )
        return TransferResponse(transfer=transfer)

    except LedgerAPIError as e:
        logging.error(f"Ledger API error: {e}", extra={"request_id": request_id})
        return error_response(503, "Ledger service unavailable")

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/savings/windfall/accept", response_model=TransferResponse, responses=error_responses(503))
async def accept_windfall(
    request_body: SavingsTransferRequest,
    request: Request,
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """User accepted a windfall prompt: move the chosen amount into the vault"""
    return await _instruct_savings_transfer(
        request_body, "Windfall Savings", get_request_id(request), ledger_client
    )


@router.post("/savings/sweep/accept", response_model=TransferResponse, responses=error_responses(503))
async def accept_sweep(
    request_body: SavingsTransferRequest,
    request: Request,
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """User accepted a smart sweep prompt: move the chosen amount into the vault"""
    return await _instruct_savings_transfer(
        request_body, "Smart Sweep Savings", get_request_id(request), ledger_client
    )
