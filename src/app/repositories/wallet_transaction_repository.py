"""Wallet Transaction Repository Interface

Defines the contract for the append-only transaction log.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from src.domain.wallet_transaction import WalletTransaction, TransactionType


class WalletTransactionRepository(ABC):
    """
    Repository interface for WalletTransaction persistence

    Transactions are immutable and append-only. Idempotency is enforced by
    the unique (account_id, gateway, external_ref) constraint.
    """

    @abstractmethod
    async def create(self, transaction: WalletTransaction) -> WalletTransaction:
        """
        Append a new transaction

        Args:
            transaction: WalletTransaction entity to persist

        Returns:
            Created WalletTransaction with generated ID

        Raises:
            IntegrityError: If external_ref already exists for the account+gateway
        """
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: int) -> Optional[WalletTransaction]:
        pass

    @abstractmethod
    async def get_latest(self, account_id: str) -> Optional[WalletTransaction]:
        """
        Retrieve the most recent transaction, ordered by (created_at, id)

        Its balance_after_* columns are the account's current balance.
        """
        pass

    @abstractmethod
    async def get_by_external_ref(
        self, account_id: str, gateway: str, external_ref: str
    ) -> Optional[WalletTransaction]:
        pass

    @abstractmethod
    async def list_by_account(
        self,
        account_id: str,
        limit: int,
        offset: int,
        transaction_type: Optional[TransactionType] = None,
        feature_code: Optional[str] = None,
    ) -> Tuple[List[WalletTransaction], int]:
        """
        Paginated history, most recent first

        Returns:
            Tuple of (transactions, total matching count)
        """
        pass

    @abstractmethod
    async def list_all_for_account(self, account_id: str) -> List[WalletTransaction]:
        """Full history in ledger order (created_at, id ascending)"""
        pass
