"""Ledger Store

The single mutation primitive of the wallet. Everything that changes a
balance (consumption, allocation, purchase, expiry, refund) goes through
``LedgerStore.append``.
"""

import logging
from typing import List, Optional, Tuple
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from src.app.repositories.wallet_transaction_repository import WalletTransactionRepository
from src.domain.errors import ConflictError
from src.domain.wallet_balance import WalletBalance, snapshot_of
from src.domain.wallet_transaction import WalletTransaction, TransactionType, CreditPool

logger = logging.getLogger(__name__)


class LedgerEntry(BaseModel):
    """A transaction to append, before balances are snapshotted"""

    transaction_type: TransactionType
    pool: CreditPool
    amount: int
    description: str = ""
    gateway: Optional[str] = None
    external_ref: Optional[str] = None
    feature_code: Optional[str] = None


class LedgerStore:
    """
    Append-only credit ledger for all accounts

    Rules:
    1. append never commits; the caller's unit of work does
    2. The caller must hold the account's write lock (AccountLocks + row lock)
    3. external_ref is unique per account+gateway -> ConflictError
    4. A pool can never go negative -> InvariantError
    """

    def __init__(self, transaction_repo: WalletTransactionRepository):
        self.transaction_repo = transaction_repo

    async def latest_balance(self, account_id: str) -> WalletBalance:
        """Balance snapshot recorded on the account's most recent transaction"""
        latest = await self.transaction_repo.get_latest(account_id)
        if latest is None:
            return WalletBalance()
        return snapshot_of(latest)

    async def append(self, account_id: str, entry: LedgerEntry) -> WalletTransaction:
        """
        Append one transaction to the account's ledger

        Args:
            account_id: Account identifier (row must be locked by the caller)
            entry: Transaction to append

        Returns:
            The persisted WalletTransaction with balance snapshots

        Raises:
            ConflictError: external_ref already recorded for account+gateway
            InvariantError: resulting pool balance would be negative
        """
        if entry.external_ref is not None:
            if entry.gateway is None:
                raise ValueError("external_ref requires a gateway")
            existing = await self.transaction_repo.get_by_external_ref(
                account_id, entry.gateway, entry.external_ref
            )
            if existing:
                raise ConflictError(
                    f"External reference {entry.gateway}:{entry.external_ref} already recorded",
                    existing=existing,
                )

        balance = await self.latest_balance(account_id)
        after = balance.apply(entry.pool, entry.amount)

        transaction = WalletTransaction(
            account_id=account_id,
            transaction_type=entry.transaction_type,
            pool=entry.pool,
            amount=entry.amount,
            balance_after_subscription=after.subscription_credits,
            balance_after_purchased=after.purchased_credits,
            description=entry.description,
            gateway=entry.gateway,
            external_ref=entry.external_ref,
            feature_code=entry.feature_code,
        )

        try:
            created = await self.transaction_repo.create(transaction)
        except IntegrityError as e:
            # Lost a race with a writer in another process
            raise ConflictError(
                f"External reference {entry.gateway}:{entry.external_ref} already recorded",
                reason=str(e.orig) if e.orig else str(e),
            ) from e

        logger.info(
            f"Ledger append account={account_id} type={entry.transaction_type.value} "
            f"pool={entry.pool.value} amount={entry.amount} "
            f"balance={after.subscription_credits}/{after.purchased_credits}"
        )
        return created

    async def get_transaction(self, transaction_id: int) -> Optional[WalletTransaction]:
        return await self.transaction_repo.get_by_id(transaction_id)

    async def find_by_external_ref(
        self, account_id: str, gateway: str, external_ref: str
    ) -> Optional[WalletTransaction]:
        return await self.transaction_repo.get_by_external_ref(account_id, gateway, external_ref)

    async def list_transactions(
        self,
        account_id: str,
        page: int = 1,
        limit: int = 20,
        transaction_type: Optional[TransactionType] = None,
        feature_code: Optional[str] = None,
    ) -> Tuple[List[WalletTransaction], int]:
        """Paginated history (1-based page), most recent first"""
        offset = (page - 1) * limit
        return await self.transaction_repo.list_by_account(
            account_id=account_id,
            limit=limit,
            offset=offset,
            transaction_type=transaction_type,
            feature_code=feature_code,
        )
