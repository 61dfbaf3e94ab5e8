"""Integration tests for API endpoints"""

import logging

import httpx
import pytest
from unittest.mock import AsyncMock, patch
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

from conftest import as_payload
from savings_agent.api.dependencies import get_ledger_client
from savings_agent.domain.exceptions import LedgerAPIError
from savings_agent.domain.soft_lock import SoftLock
from savings_agent.infrastructure.clients.ledger import LedgerClient
from savings_agent.infrastructure.database.models import WithdrawalRequestRecord
from savings_agent.infrastructure.database.repositories import WithdrawalRequestRepository

pytestmark = pytest.mark.integration

VAULT_ID = "vault_emergency"


def today():
    return datetime.now(timezone.utc).date()


@pytest.fixture
def vault(client: TestClient):
    """Register a vault mirrored from the ledger"""
    response = client.put(
        f"/v1/vault/{VAULT_ID}",
        json={"name": "Emergency Fund", "balance": 1000, "goal_amount": 5000, "purpose": "Rainy days"},
    )
    assert response.status_code == 200
    return response.json()


def backdate_requests(db, hours: int) -> None:
    """Move every request's creation time into the past"""
    created_at = datetime.now(timezone.utc) - timedelta(hours=hours)
    db.query(WithdrawalRequestRecord).update({WithdrawalRequestRecord.created_at: created_at})
    db.commit()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "savings-agent"}


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "savings_opportunity_total" in response.text


def test_request_id_header(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_analyze_endpoint(client: TestClient, windfall_transactions, sweep_transactions):
    """Test POST /v1/savings/analyze finds both opportunities"""
    payload = as_payload(windfall_transactions + sweep_transactions, today())
    payload.append({"amount": "oops", "date": "2026-01-01", "name": "Malformed"})

    response = client.post("/v1/savings/analyze", json={"transactions": payload})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [o["kind"] for o in data["opportunities"]] == ["windfall", "sweep"]
    assert [o["priority"] for o in data["opportunities"]] == [1, 2]
    assert data["opportunities"][0]["data"]["multiplier"] == 4.0
    assert data["opportunities"][0]["data"]["suggested_savings"] == 400.0
    assert data["opportunities"][1]["data"]["suggested_savings"] == 38.75
    assert data["summary"] == {
        "windfall_detected": True,
        "sweep_available": True,
        "total_potential_savings": 438.75,
    }


def test_analyze_endpoint_requires_transactions(client: TestClient):
    response = client.post("/v1/savings/analyze", json={})
    assert response.status_code == 422


def test_windfall_detect_endpoint(client: TestClient, windfall_transactions):
    response = client.post(
        "/v1/savings/windfall/detect",
        json={"transactions": as_payload(windfall_transactions, today())},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["is_windfall"] is True
    assert data["source_label"] == "Annual Bonus"
    assert [o["percentage"] for o in data["prompt"]["options"]] == [20, 10, 30, 0]


def test_windfall_detect_endpoint_no_history(client: TestClient):
    response = client.post("/v1/savings/windfall/detect", json={"transactions": []})

    assert response.status_code == 200
    data = response.json()
    assert data["is_windfall"] is False
    assert data["explanation"] == "Not enough transaction history"
    assert data["prompt"] is None


def test_sweep_analyze_endpoint(client: TestClient, sweep_transactions):
    response = client.post(
        "/v1/savings/sweep/analyze",
        json={"transactions": as_payload(sweep_transactions, today())},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["has_opportunity"] is True
    assert data["underspend_amount"] == 77.5
    assert data["prompt"]["tone"] == "encouraging"
    assert len(data["prompt"]["options"]) == 3


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_accept_windfall_instructs_ledger(mock_transfer: AsyncMock, client: TestClient):
    """Test accepting a windfall moves money from the main account to the vault"""
    mock_transfer.return_value = {"id": "transfer_1", "status": "pending"}

    response = client.post(
        "/v1/savings/windfall/accept",
        json={"amount": 400, "to_vault_id": VAULT_ID, "from_account_id": "acct_main"},
    )

    assert response.status_code == 200
    assert response.json()["transfer"] == {"id": "transfer_1", "status": "pending"}
    mock_transfer.assert_awaited_once_with("acct_main", VAULT_ID, Decimal("400"), "Windfall Savings")


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_accept_sweep_ledger_unavailable(mock_transfer: AsyncMock, client: TestClient):
    mock_transfer.side_effect = LedgerAPIError("down")

    response = client.post(
        "/v1/savings/sweep/accept",
        json={"amount": 38.75, "to_vault_id": VAULT_ID, "from_account_id": "acct_main"},
    )

    assert response.status_code == 503
    assert response.json() == {"success": False, "error": "Ledger service unavailable"}


def test_accept_rejects_non_positive_amount(client: TestClient):
    response = client.post(
        "/v1/savings/sweep/accept",
        json={"amount": 0, "to_vault_id": VAULT_ID, "from_account_id": "acct_main"},
    )
    assert response.status_code == 422


def test_withdraw_request_starts_cooling_period(client: TestClient, vault):
    """Test first request creates a pending request, second reports cooling period"""
    first = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250, "reason": "Car"})

    assert first.status_code == 200
    created = first.json()
    assert created["success"] is True
    assert "20.0% to 15.0%" in created["impact"]
    assert created["withdrawal_request_id"]

    second = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250})

    assert second.status_code == 200
    decision = second.json()
    assert decision["allowed"] is False
    assert decision["reason"] == "cooling_period"
    assert decision["hours_remaining"] == 24
    assert decision["withdrawal_request_id"] == created["withdrawal_request_id"]


def test_withdraw_request_unknown_vault(client: TestClient):
    response = client.post("/v1/vault/withdraw/request", json={"vault_id": "missing", "amount": 10})

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Vault not found"}


def test_withdraw_status_endpoint(client: TestClient, vault):
    empty = client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()
    assert empty["has_active_request"] is False

    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250, "reason": "Car"})
    status = client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()

    assert status["has_active_request"] is True
    assert status["request"]["amount"] == 250.0
    assert status["request"]["reason"] == "Car"
    assert status["request"]["can_withdraw"] is False
    assert status["request"]["hours_remaining"] == 24


def test_execute_before_cooling_period_is_forbidden(client: TestClient, vault):
    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250})

    response = client.post(
        "/v1/vault/withdraw/execute",
        json={"vault_id": VAULT_ID, "to_account_id": "acct_main", "amount": 250},
    )

    assert response.status_code == 403
    data = response.json()
    assert data["success"] is False
    assert data["lock_check"]["reason"] == "cooling_period"


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_execute_after_cooling_period(mock_transfer: AsyncMock, client: TestClient, vault, db):
    """Test withdrawal executes after 24h and the request is marked completed"""
    mock_transfer.return_value = {"id": "transfer_2", "status": "complete"}
    created = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250}).json()
    backdate_requests(db, hours=25)

    allowed = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250}).json()
    assert allowed["allowed"] is True

    response = client.post(
        "/v1/vault/withdraw/execute",
        json={"vault_id": VAULT_ID, "to_account_id": "acct_main", "amount": 250},
    )

    assert response.status_code == 200
    assert response.json()["withdrawal_request_id"] == created["withdrawal_request_id"]
    mock_transfer.assert_awaited_once_with(VAULT_ID, "acct_main", Decimal("250"), "Vault Withdrawal")

    history = client.get(f"/v1/vault/{VAULT_ID}/withdrawals").json()
    assert [r["status"] for r in history["requests"]] == ["completed"]
    assert client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()["has_active_request"] is False


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_execute_ledger_failure_keeps_request_pending(mock_transfer: AsyncMock, client: TestClient, vault, db):
    mock_transfer.side_effect = LedgerAPIError("timeout")
    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250})
    backdate_requests(db, hours=25)

    response = client.post(
        "/v1/vault/withdraw/execute",
        json={"vault_id": VAULT_ID, "to_account_id": "acct_main", "amount": 250},
    )

    assert response.status_code == 503
    status = client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()
    assert status["has_active_request"] is True
    assert status["request"]["can_withdraw"] is True


def pending_request_count(db) -> int:
    return db.query(WithdrawalRequestRecord).filter(WithdrawalRequestRecord.status == "pending").count()


def execute(client: TestClient, amount):
    return client.post(
        "/v1/vault/withdraw/execute",
        json={"vault_id": VAULT_ID, "to_account_id": "acct_main", "amount": amount},
    )


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_execute_rejects_amount_above_request(mock_transfer: AsyncMock, client: TestClient, vault, db):
    """Test a cooled $10 request cannot be used to empty the vault"""
    mock_transfer.return_value = {"id": "transfer_3"}
    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 10})
    backdate_requests(db, hours=25)

    response = execute(client, 900)

    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "error": "Withdrawal amount exceeds the requested amount",
        "requested_amount": 10.0,
    }
    mock_transfer.assert_not_awaited()
    assert client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()["request"]["can_withdraw"] is True

    assert execute(client, 10).status_code == 200
    mock_transfer.assert_awaited_once_with(VAULT_ID, "acct_main", Decimal("10"), "Vault Withdrawal")


def test_execute_with_empty_ledger_acknowledgement_pays_once(client: TestClient, vault, db):
    """Test a bodyless 204 transfer completes the request so a retry cannot pay again"""
    ledger_calls = []

    def ledger(request: httpx.Request) -> httpx.Response:
        ledger_calls.append(request)
        return httpx.Response(204)

    client.app.dependency_overrides[get_ledger_client] = lambda: LedgerClient(
        base_url="http://ledger.test", backoff_base=0, transport=httpx.MockTransport(ledger)
    )
    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250})
    backdate_requests(db, hours=25)

    first = execute(client, 250)
    retry = execute(client, 250)

    assert first.status_code == 200
    assert first.json()["transfer"] == {}
    assert retry.status_code == 403
    assert retry.json()["lock_check"]["reason"] == "new_request_required"
    assert len(ledger_calls) == 1
    assert client.get(f"/v1/vault/withdraw/status/{VAULT_ID}").json()["has_active_request"] is False


@patch("savings_agent.infrastructure.clients.ledger.LedgerClient.create_transfer")
def test_execute_conflicts_when_request_already_claimed(mock_transfer: AsyncMock, client: TestClient, vault, db):
    """Test a concurrent execution that claims the request first wins"""
    client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250})
    backdate_requests(db, hours=25)
    check_withdrawal = SoftLock.check_withdrawal

    def check_then_claimed_elsewhere(self, vault_id, amount):
        decision = check_withdrawal(self, vault_id, amount)
        db.query(WithdrawalRequestRecord).update({WithdrawalRequestRecord.status: "completed"})
        db.commit()
        return decision

    with patch.object(SoftLock, "check_withdrawal", check_then_claimed_elsewhere):
        response = execute(client, 250)

    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Withdrawal already in progress"}
    mock_transfer.assert_not_awaited()


def test_withdraw_request_race_answers_with_cooling_period(client: TestClient, vault, db):
    """Test losing the insert race returns the existing request's cooling period"""
    created = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 250}).json()
    find_pending_request = WithdrawalRequestRepository.find_pending_request
    lookups = []

    def stale_first_lookup(self, vault_id):
        lookups.append(vault_id)
        if len(lookups) == 1:
            return None
        return find_pending_request(self, vault_id)

    with patch.object(WithdrawalRequestRepository, "find_pending_request", stale_first_lookup):
        response = client.post("/v1/vault/withdraw/request", json={"vault_id": VAULT_ID, "amount": 300})

    assert response.status_code == 200
    decision = response.json()
    assert decision["allowed"] is False
    assert decision["reason"] == "cooling_period"
    assert decision["withdrawal_request_id"] == created["withdrawal_request_id"]
    assert len(lookups) == 2
    assert pending_request_count(db) == 1


def test_openapi_documents_error_bodies(client: TestClient):
    paths = client.get("/openapi.json").json()["paths"]

    execute_responses = paths["/v1/vault/withdraw/execute"]["post"]["responses"]
    accept_responses = paths["/v1/savings/sweep/accept"]["post"]["responses"]

    for code in ("403", "404", "409", "503"):
        schema = execute_responses[code]["content"]["application/json"]["schema"]
        assert schema["$ref"].endswith("/ErrorResponse")
    assert accept_responses["503"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


@pytest.mark.parametrize(
    "path,endpoint",
    [
        ("/v1/savings/analyze", "analyze"),
        ("/v1/savings/windfall/detect", "windfall"),
        ("/v1/savings/sweep/analyze", "sweep"),
    ],
)
def test_every_analysis_is_logged(client: TestClient, caplog, windfall_transactions, path, endpoint):
    caplog.set_level(logging.INFO)

    client.post(path, json={"transactions": as_payload(windfall_transactions, today())})

    records = [r for r in caplog.records if r.getMessage() == "Savings analysis completed"]
    assert [r.endpoint for r in records] == [endpoint]
    assert records[0].transaction_count == 6
