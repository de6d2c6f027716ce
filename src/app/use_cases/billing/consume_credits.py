"""ConsumeCredits Use Case

Debits credits from an account's wallet with the subscription-first
waterfall, under the account's write lock.
"""

import logging
from typing import List
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.catalog_repository import CatalogRepository
from src.domain.errors import BillingError, InsufficientCreditsError
from src.domain.wallet_balance import WalletBalance
from src.domain.wallet_transaction import TransactionType, CreditPool
from .dtos import ConsumeCommandDTO, ConsumptionResultDTO
from .errors import to_error

logger = logging.getLogger(__name__)


def split_waterfall(balance: WalletBalance, amount: int) -> tuple[int, int]:
    """
    Split a debit across pools: subscription credits first (they reset every
    period), the purchased pool only for the remainder.

    Returns:
        Tuple of (subscription_debit, purchased_debit)

    Raises:
        InsufficientCreditsError: if the wallet total is below amount
    """
    if balance.total < amount:
        raise InsufficientCreditsError(
            f"Insufficient credits. Required: {amount}, Available: {balance.total}",
            reason=(
                f"subscription={balance.subscription_credits}, "
                f"purchased={balance.purchased_credits}, required={amount}"
            ),
        )
    subscription_debit = min(balance.subscription_credits, amount)
    return subscription_debit, amount - subscription_debit


class ConsumeCredits:
    """
    Use Case: Consume credits from an account

    Business Rules:
    1. Subscription pool is debited first, purchased pool for the remainder
    2. total < amount -> INSUFFICIENT_CREDITS, nothing appended
    3. One consumption transaction per pool actually debited
    4. Both transactions commit together or not at all

    Flow:
    1. Resolve amount (explicit, or feature credit_cost)
    2. Take account lock (in-process + database row lock)
    3. Read latest balance, split with the waterfall
    4. Append the debits
    5. Commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        catalog_repo: CatalogRepository,
        ledger: LedgerStore,
    ):
        self.uow = uow
        self.locks = locks
        self.account_repo = account_repo
        self.catalog_repo = catalog_repo
        self.ledger = ledger

    async def execute(self, command: ConsumeCommandDTO) -> Result[ConsumptionResultDTO]:
        amount = command.amount
        label = command.reason or "usage"
        if command.feature_code is not None:
            feature = await self.catalog_repo.get_feature(command.feature_code)
            if not feature or not feature.is_active:
                return Return.err(
                    Error(
                        code="FEATURE_NOT_FOUND",
                        message=f"Feature '{command.feature_code}' not found or inactive",
                    )
                )
            amount = feature.credit_cost
            label = feature.display_name

        async with self.locks.hold(command.account_id):
            try:
                account = await self.account_repo.get_or_create(command.account_id, for_update=True)
                if not account.is_active:
                    await self.uow.rollback()
                    return Return.err(
                        Error(
                            code="ACCOUNT_INACTIVE",
                            message=f"Account {command.account_id} is deactivated",
                        )
                    )

                balance = await self.ledger.latest_balance(command.account_id)
                subscription_debit, purchased_debit = split_waterfall(balance, amount)

                transaction_ids: List[int] = []
                if subscription_debit:
                    txn = await self.ledger.append(
                        command.account_id,
                        LedgerEntry(
                            transaction_type=TransactionType.CONSUMPTION,
                            pool=CreditPool.SUBSCRIPTION,
                            amount=-subscription_debit,
                            description=f"Used {subscription_debit} subscription credits for {label}",
                            feature_code=command.feature_code,
                        ),
                    )
                    transaction_ids.append(txn.id)
                if purchased_debit:
                    txn = await self.ledger.append(
                        command.account_id,
                        LedgerEntry(
                            transaction_type=TransactionType.CONSUMPTION,
                            pool=CreditPool.PURCHASED,
                            amount=-purchased_debit,
                            description=f"Used {purchased_debit} purchased credits for {label}",
                            feature_code=command.feature_code,
                        ),
                    )
                    transaction_ids.append(txn.id)

                await self.uow.commit()

            except BillingError as e:
                await self.uow.rollback()
                return Return.err(to_error(e))

            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Consumption failed for account {command.account_id}: {e}")
                return Return.err(
                    Error(
                        code="CONSUME_CREDITS_FAILED",
                        message="Failed to consume credits",
                        reason=str(e),
                    )
                )

        return Return.ok(
            ConsumptionResultDTO(
                account_id=command.account_id,
                amount=amount,
                subscription_debited=subscription_debit,
                purchased_debited=purchased_debit,
                transaction_ids=transaction_ids,
                balance=WalletBalance(
                    subscription_credits=balance.subscription_credits - subscription_debit,
                    purchased_credits=balance.purchased_credits - purchased_debit,
                ),
            )
        )
