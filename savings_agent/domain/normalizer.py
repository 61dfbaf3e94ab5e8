"""Transaction normalization shared by every detector"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional

from savings_agent.domain.models import Transaction
from savings_agent.utils.date_utils import parse_calendar_date

logger = logging.getLogger(__name__)

# Key aliases seen in aggregator payloads, checked in order
DESCRIPTION_KEYS = ("description", "name")
COUNTERPARTY_KEYS = ("counterparty_name", "counterpartyName", "merchant_name", "merchant")


def parse_amount(value: Any) -> Decimal:
    """Parse a signed amount, rejecting booleans and non-finite numbers"""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, float):
        # str() keeps the short repr (0.1 -> "0.1") instead of binary noise
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a numeric amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return amount


def _first_text(record: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value:
            return str(value)
    return None


def normalize_transaction(record: Any) -> Transaction:
    """
    Convert one raw record into a canonical Transaction.

    Raises:
        ValueError/TypeError: If the date or amount cannot be parsed
    """
    if isinstance(record, Transaction):
        return record
    if not isinstance(record, Mapping):
        raise TypeError(f"Unsupported transaction record: {type(record).__name__}")

    return Transaction(
        amount=parse_amount(record.get("amount")),
        date=parse_calendar_date(record.get("date")),
        description=_first_text(record, DESCRIPTION_KEYS) or "",
        counterparty_name=_first_text(record, COUNTERPARTY_KEYS),
    )


def normalize_transactions(records: Iterable[Any]) -> List[Transaction]:
    """
    Normalize a batch of raw records, preserving input order.

    Malformed records (unparsable date, non-numeric amount) are skipped
    without failing the batch.
    """
    transactions = []
    skipped = 0
    for index, record in enumerate(records):
        try:
            transactions.append(normalize_transaction(record))
        except (ValueError, TypeError) as e:
            skipped += 1
            logger.debug("Skipping malformed transaction", extra={"index": index, "error": str(e)})

    if skipped:
        logger.info(
            "Skipped malformed transactions",
            extra={"skipped": skipped, "accepted": len(transactions)},
        )
    return transactions
