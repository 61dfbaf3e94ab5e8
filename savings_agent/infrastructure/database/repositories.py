"""Data access layer for vaults and withdrawal requests"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from savings_agent.infrastructure.database.models import VaultRecord, WithdrawalRequestRecord
from savings_agent.domain.exceptions import PendingWithdrawalExistsError
from savings_agent.domain.models import Vault, WithdrawalRequest, WithdrawalStatus
from savings_agent.utils.date_utils import ensure_utc


def _to_vault(row: VaultRecord) -> Vault:
    return Vault(
        id=row.id,
        name=row.name,
        balance=Decimal(row.balance),
        goal_amount=Decimal(row.goal_amount) if row.goal_amount is not None else None,
        purpose=row.purpose,
    )


def _to_withdrawal_request(row: WithdrawalRequestRecord) -> WithdrawalRequest:
    return WithdrawalRequest(
        id=row.id,
        vault_id=row.vault_id,
        amount=Decimal(row.amount),
        reason=row.reason or "",
        status=WithdrawalStatus(row.status),
        created_at=ensure_utc(row.created_at),
        impact_message=row.impact_message or "",
        completed_at=ensure_utc(row.completed_at) if row.completed_at else None,
    )


class VaultRepository:
    """Repository for the local vault mirror"""

    def __init__(self, db: Session):
        self.db = db

    def get_vault(self, vault_id: str) -> Optional[Vault]:
        row = self.db.get(VaultRecord, vault_id)
        return _to_vault(row) if row else None

    def upsert_vault(self, vault: Vault) -> Vault:
        """Insert or refresh a vault snapshot received from the ledger"""
        row = self.db.get(VaultRecord, vault.id)
        if row is None:
            row = VaultRecord(id=vault.id)
            self.db.add(row)

        row.name = vault.name
        row.balance = vault.balance
        row.goal_amount = vault.goal_amount
        row.purpose = vault.purpose
        self.db.flush()
        return _to_vault(row)


class WithdrawalRequestRepository:
    """
    Repository for withdrawal requests.

    The partial unique index on pending rows makes insert_request the
    single point that enforces one pending request per vault.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_pending_request(self, vault_id: str) -> Optional[WithdrawalRequest]:
        row = (
            self.db.query(WithdrawalRequestRecord)
            .filter(
                WithdrawalRequestRecord.vault_id == vault_id,
                WithdrawalRequestRecord.status == WithdrawalStatus.PENDING.value,
            )
            .order_by(WithdrawalRequestRecord.created_at.desc())
            .first()
        )
        return _to_withdrawal_request(row) if row else None

    def insert_request(
        self,
        vault_id: str,
        amount: Decimal,
        reason: str,
        impact_message: str,
        created_at: datetime,
    ) -> WithdrawalRequest:
        """
        Persist a new pending request.

        Raises:
            PendingWithdrawalExistsError: If the vault already has a pending request
        """
        row = WithdrawalRequestRecord(
            vault_id=vault_id,
            amount=amount,
            reason=reason,
            status=WithdrawalStatus.PENDING.value,
            impact_message=impact_message,
            created_at=created_at,
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise PendingWithdrawalExistsError(vault_id) from e
        return _to_withdrawal_request(row)

    def mark_completed(self, request_id: uuid.UUID, completed_at: datetime) -> bool:
        """
        Move a pending request to completed.

        Single conditional UPDATE: of two concurrent callers only one sees
        a matched row and gets True.
        """
        result = self.db.execute(
            update(WithdrawalRequestRecord)
            .where(
                WithdrawalRequestRecord.id == request_id,
                WithdrawalRequestRecord.status == WithdrawalStatus.PENDING.value,
            )
            .values(status=WithdrawalStatus.COMPLETED.value, completed_at=completed_at)
        )
        return result.rowcount == 1

    def release_request(self, request_id: uuid.UUID) -> bool:
        """
        Move a completed request back to pending.

        Returns False if the request is not completed, or if the vault gained
        a new pending request in the meantime.
        """
        try:
            result = self.db.execute(
                update(WithdrawalRequestRecord)
                .where(
                    WithdrawalRequestRecord.id == request_id,
                    WithdrawalRequestRecord.status == WithdrawalStatus.COMPLETED.value,
                )
                .values(status=WithdrawalStatus.PENDING.value, completed_at=None)
            )
        except IntegrityError:
            self.db.rollback()
            return False
        return result.rowcount == 1

    def get_requests_by_vault(self, vault_id: str, limit: int = 20) -> List[WithdrawalRequest]:
        """Fetch the vault's request history, newest first"""
        rows = (
            self.db.query(WithdrawalRequestRecord)
            .filter(WithdrawalRequestRecord.vault_id == vault_id)
            .order_by(WithdrawalRequestRecord.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_to_withdrawal_request(row) for row in rows]
