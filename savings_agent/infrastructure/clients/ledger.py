"""Ledger transfer client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict
from savings_agent.config import settings
from savings_agent.domain.exceptions import LedgerAPIError
from savings_agent.infrastructure.observability.metrics import (
    ledger_transfer_latency_histogram,
    ledger_transfer_failure_counter,
)

logger = logging.getLogger(__name__)


class LedgerClient:
    """Client for instructing account transfers on the external ledger"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ledger_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries or settings.ledger_max_retries
        self.backoff_base = settings.ledger_backoff_base if backoff_base is None else backoff_base
        self.transport = transport

    async def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        description: str,
    ) -> Dict[str, Any]:
        """
        Ask the ledger to move money between two accounts.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1) seconds
        - Retries on 5xx errors and network failures; 4xx fails immediately
        - Tracks latency histogram and failure counter

        Returns:
            Transfer record as returned by the ledger, empty when the ledger
            acknowledges without a body

        Raises:
            LedgerAPIError: On 4xx responses or when all retries are exhausted
        """
        payload = {
            "from_account_id": from_account_id,
            "to_account_id": to_account_id,
            "amount": str(amount),
            "description": description,
        }

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with ledger_transfer_latency_histogram.time():
                        response = await client.post(f"{self.base_url}/transfers", json=payload)
                        response.raise_for_status()
                    # 202/204 acknowledgements may carry no body
                    return response.json() if response.content else {}

                except httpx.HTTPStatusError as e:
                    ledger_transfer_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise LedgerAPIError(f"Ledger rejected transfer: {e.response.status_code}") from e
                    error: Exception = e

                except httpx.RequestError as e:
                    ledger_transfer_failure_counter.inc()
                    error = e

                attempt += 1
                if attempt >= self.max_retries:
                    raise LedgerAPIError(f"Ledger unavailable after {attempt} attempts: {error}") from error

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "Ledger transfer failed, retrying",
                    extra={"attempt": attempt, "backoff_seconds": backoff},
                )
                await asyncio.sleep(backoff)
