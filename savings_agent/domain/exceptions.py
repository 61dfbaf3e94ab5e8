"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class VaultNotFoundError(DomainException):
    """Referenced vault does not exist in the ledger mirror"""

    def __init__(self, vault_id: str):
        super().__init__(f"Vault not found: {vault_id}")
        self.vault_id = vault_id


class PendingWithdrawalExistsError(DomainException):
    """Vault already has a pending withdrawal request"""

    def __init__(self, vault_id: str):
        super().__init__(f"Vault {vault_id} already has a pending withdrawal request")
        self.vault_id = vault_id


class LedgerAPIError(DomainException):
    """Ledger service returned an error or is unavailable"""

    pass
