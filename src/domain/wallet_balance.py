"""Wallet balance projection

A wallet's balance is never stored on its own; it is derived from the
ordered transaction log.
"""

from typing import Iterable, List, Optional
from pydantic import BaseModel, computed_field
from src.domain.errors import InvariantError
from src.domain.wallet_transaction import CreditPool, WalletTransaction


class WalletBalance(BaseModel):
    subscription_credits: int = 0
    purchased_credits: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.subscription_credits + self.purchased_credits

    def get(self, pool: CreditPool) -> int:
        if pool == CreditPool.SUBSCRIPTION:
            return self.subscription_credits
        return self.purchased_credits

    def apply(self, pool: CreditPool, amount: int) -> "WalletBalance":
        """Return the balance after adding a signed amount to one pool.

        Raises InvariantError if the pool would go negative.
        """
        subscription = self.subscription_credits
        purchased = self.purchased_credits
        if pool == CreditPool.SUBSCRIPTION:
            subscription += amount
        else:
            purchased += amount

        if subscription < 0 or purchased < 0:
            raise InvariantError(
                f"{pool.value} pool would become negative",
                reason=f"balance={self.get(pool)}, amount={amount}",
            )
        return WalletBalance(subscription_credits=subscription, purchased_credits=purchased)


class SnapshotBreak(BaseModel):
    transaction_id: Optional[int]
    expected: WalletBalance
    recorded: WalletBalance


def snapshot_of(transaction: WalletTransaction) -> WalletBalance:
    return WalletBalance(
        subscription_credits=transaction.balance_after_subscription,
        purchased_credits=transaction.balance_after_purchased,
    )


def running_totals(transactions: Iterable[WalletTransaction]):
    """Yield (transaction, subscription_total, purchased_total) after each entry."""
    subscription = 0
    purchased = 0
    for txn in transactions:
        if txn.pool == CreditPool.SUBSCRIPTION:
            subscription += txn.amount
        else:
            purchased += txn.amount
        yield txn, subscription, purchased


def project_balance(transactions: Iterable[WalletTransaction]) -> WalletBalance:
    """Fold transactions ordered by (created_at, id) into a WalletBalance.

    Uses only the signed amounts; recorded snapshots are ignored so the
    result can be compared against them.
    """
    subscription = 0
    purchased = 0
    for _, subscription, purchased in running_totals(transactions):
        pass
    return WalletBalance(subscription_credits=subscription, purchased_credits=purchased)


def find_snapshot_breaks(transactions: Iterable[WalletTransaction]) -> List[SnapshotBreak]:
    """Transactions whose recorded balance_after_* disagree with the running totals."""
    breaks: List[SnapshotBreak] = []
    for txn, subscription, purchased in running_totals(transactions):
        if (
            txn.balance_after_subscription != subscription
            or txn.balance_after_purchased != purchased
        ):
            breaks.append(
                SnapshotBreak(
                    transaction_id=txn.id,
                    expected=WalletBalance(subscription_credits=subscription, purchased_credits=purchased),
                    recorded=snapshot_of(txn),
                )
            )
    return breaks
