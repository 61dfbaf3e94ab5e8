"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from savings_agent.domain.soft_lock import SoftLock
from savings_agent.infrastructure.clients.ledger import LedgerClient
from savings_agent.infrastructure.database.repositories import VaultRepository, WithdrawalRequestRepository
from savings_agent.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_ledger_client() -> LedgerClient:
    """Provide Ledger API client instance"""
    return LedgerClient()


def get_soft_lock(db: Session = Depends(get_db)) -> SoftLock:
    """Soft-lock engine bound to the request's database session"""
    return SoftLock(vaults=VaultRepository(db), requests=WithdrawalRequestRepository(db))


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    """Structured failure body: {"success": false, "error": ...}"""
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})
