"""Soft-lock vaults - 24-hour cooling-off period before a withdrawal executes"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Protocol

from savings_agent.domain.exceptions import VaultNotFoundError
from savings_agent.domain.models import (
    SoftLockPrompt,
    Vault,
    WithdrawalDecision,
    WithdrawalRequest,
    WithdrawalRequestCreated,
    WithdrawalStatusSnapshot,
)
from savings_agent.utils.date_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

COOLING_PERIOD_HOURS = 24
# Flat savings velocity used for the goal-delay estimate, not derived from history
ASSUMED_WEEKLY_PROGRESS_PCT = Decimal("5")

REASON_NEW_REQUEST = "new_request_required"
REASON_COOLING_PERIOD = "cooling_period"


class VaultReader(Protocol):
    def get_vault(self, vault_id: str) -> Optional[Vault]: ...


class WithdrawalRequestStore(Protocol):
    """
    Persistence for withdrawal requests.

    insert_request must be atomic with respect to the one-pending-per-vault
    rule and raise PendingWithdrawalExistsError when a pending request exists.
    mark_completed must only succeed for a request that is still pending, so
    that a request is claimed by exactly one caller.
    """

    def find_pending_request(self, vault_id: str) -> Optional[WithdrawalRequest]: ...

    def insert_request(
        self,
        vault_id: str,
        amount: Decimal,
        reason: str,
        impact_message: str,
        created_at: datetime,
    ) -> WithdrawalRequest: ...

    def mark_completed(self, request_id: uuid.UUID, completed_at: datetime) -> bool: ...

    def release_request(self, request_id: uuid.UUID) -> bool: ...


def hours_since(created_at: datetime, now: datetime) -> float:
    return (ensure_utc(now) - ensure_utc(created_at)).total_seconds() / 3600


def goal_impact_message(vault: Vault, amount: Decimal) -> str:
    """
    Describe how a withdrawal sets back the vault's goal.

    Empty when the vault has no goal. Delay assumes 5% of the goal saved per
    week: weeks = ceil(progress lost / 5).
    """
    if not vault.goal_amount:
        return ""

    current_progress = vault.balance / vault.goal_amount * 100
    new_progress = (vault.balance - amount) / vault.goal_amount * 100
    weeks_delay = math.ceil((current_progress - new_progress) / ASSUMED_WEEKLY_PROGRESS_PCT)

    return (
        "Withdrawing now means:\n"
        f"- Your progress drops from {current_progress:.1f}% to {new_progress:.1f}%\n"
        f"- You'll reach your goal approximately {weeks_delay} weeks later"
    )


def build_soft_lock_prompt(vault: Vault, amount: Decimal) -> SoftLockPrompt:
    """Confirmation dialog shown before a cooling period is started"""
    lines = [f'You\'re about to withdraw ${amount:.2f} from your "{vault.name}" vault.', ""]
    if vault.purpose:
        lines.append(f"Purpose: {vault.purpose}")
    balance_line = f"Current balance: ${vault.balance:.2f}"
    if vault.goal_amount:
        balance_line += f" ({vault.balance / vault.goal_amount * 100:.1f}% of goal)"
    lines.append(balance_line)

    return SoftLockPrompt(
        title="🔒 Are you sure?",
        message="\n".join(lines),
        prompt="Why are you making this withdrawal?",
        requires_reason=True,
        cooling_period=f"{COOLING_PERIOD_HOURS} hours",
        alternative="Need money urgently? Consider withdrawing from your main account instead.",
    )


class SoftLock:
    """
    Per-vault withdrawal gate.

    States: no request -> pending (cooling) -> eligible (24h elapsed) ->
    completed (claimed by the caller before executing the transfer). Eligibility
    is evaluated lazily against the clock on every call; pending requests
    never expire.
    """

    def __init__(
        self,
        vaults: VaultReader,
        requests: WithdrawalRequestStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.vaults = vaults
        self.requests = requests
        self.clock = clock

    def _get_vault(self, vault_id: str) -> Vault:
        vault = self.vaults.get_vault(vault_id)
        if vault is None:
            raise VaultNotFoundError(vault_id)
        return vault

    def check_withdrawal(self, vault_id: str, amount: Decimal) -> WithdrawalDecision:
        """
        Decide whether a withdrawal may execute now.

        Does not create a request; when none exists the decision asks the
        caller to confirm and call create_withdrawal_request.

        Raises:
            VaultNotFoundError: If the vault does not exist
        """
        vault = self._get_vault(vault_id)
        pending = self.requests.find_pending_request(vault_id)

        if pending is None:
            return WithdrawalDecision(
                allowed=False,
                reason=REASON_NEW_REQUEST,
                message=f"Withdrawals require a {COOLING_PERIOD_HOURS}-hour cooling period",
                vault=vault,
                prompt=build_soft_lock_prompt(vault, amount),
            )

        elapsed = hours_since(pending.created_at, self.clock())
        if elapsed >= COOLING_PERIOD_HOURS:
            return WithdrawalDecision(
                allowed=True,
                message=f"Withdrawal unlocked after {COOLING_PERIOD_HOURS}-hour cooling period",
                withdrawal_request_id=pending.id,
                request_amount=pending.amount,
            )

        hours_remaining = math.ceil(COOLING_PERIOD_HOURS - elapsed)
        return WithdrawalDecision(
            allowed=False,
            reason=REASON_COOLING_PERIOD,
            hours_remaining=hours_remaining,
            message=f"Withdrawal will be available in {hours_remaining} hours",
            withdrawal_request_id=pending.id,
            request_amount=pending.amount,
        )

    def create_withdrawal_request(
        self, vault_id: str, amount: Decimal, reason: str = ""
    ) -> WithdrawalRequestCreated:
        """
        Start the cooling period for a vault withdrawal.

        Raises:
            VaultNotFoundError: If the vault does not exist
            PendingWithdrawalExistsError: If the vault already has a pending request
        """
        vault = self._get_vault(vault_id)
        impact = goal_impact_message(vault, amount)
        now = self.clock()

        request = self.requests.insert_request(
            vault_id=vault_id,
            amount=amount,
            reason=reason or "",
            impact_message=impact,
            created_at=now,
        )
        logger.info(
            "Withdrawal cooling period started",
            extra={"vault_id": vault_id, "withdrawal_request_id": str(request.id)},
        )

        return WithdrawalRequestCreated(
            request=request,
            impact_message=impact,
            available_at=ensure_utc(now) + timedelta(hours=COOLING_PERIOD_HOURS),
        )

    def get_withdrawal_status(self, vault_id: str) -> WithdrawalStatusSnapshot:
        pending = self.requests.find_pending_request(vault_id)
        if pending is None:
            return WithdrawalStatusSnapshot(has_active_request=False, message="No active withdrawal request")

        elapsed = hours_since(pending.created_at, self.clock())
        return WithdrawalStatusSnapshot(
            has_active_request=True,
            request=pending,
            hours_remaining=max(0, math.ceil(COOLING_PERIOD_HOURS - elapsed)),
            can_withdraw=elapsed >= COOLING_PERIOD_HOURS,
            available_at=ensure_utc(pending.created_at) + timedelta(hours=COOLING_PERIOD_HOURS),
        )

    def complete_withdrawal(self, request_id: uuid.UUID) -> bool:
        """
        Claim a pending request for execution by marking it completed.

        Returns False when the request is no longer pending, i.e. another
        execution already claimed it.
        """
        return self.requests.mark_completed(request_id, self.clock())

    def release_withdrawal(self, request_id: uuid.UUID) -> bool:
        """Return a claimed request to pending after its transfer failed"""
        released = self.requests.release_request(request_id)
        if not released:
            logger.warning("Withdrawal request could not be released", extra={"withdrawal_request_id": str(request_id)})
        return released
