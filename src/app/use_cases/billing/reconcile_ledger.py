"""ReconcileLedger Use Case

Replays every account's transaction log and checks it against the balance
snapshots recorded on the transactions themselves.
"""

import logging
import time
from typing import List
from libs.result import Result, Return, Error
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.wallet_transaction_repository import WalletTransactionRepository
from src.domain.base import utcnow
from src.domain.wallet_balance import (
    WalletBalance,
    find_snapshot_breaks,
    project_balance,
    running_totals,
    snapshot_of,
)
from .dtos import AccountDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileLedger:
    """
    Use Case: Reconcile wallet balances against transaction history

    Business Rules:
    1. Each transaction's balance_after_* must equal the running sum of
       amounts up to and including it (snapshot_mismatch)
    2. Neither pool may be negative at any point (negative_pool)
    3. The latest snapshot total must equal the sum of all amounts
       (total_mismatch)
    4. Read-only: discrepancies are reported, never repaired

    Flow:
    1. List all accounts
    2. For each account, load its ordered log and run the three checks
    3. Return reconciliation result with all discrepancies
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        transaction_repo: WalletTransactionRepository,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def check_account(self, account_id: str) -> List[AccountDiscrepancyDTO]:
        transactions = await self.transaction_repo.list_all_for_account(account_id)
        if not transactions:
            return []

        discrepancies: List[AccountDiscrepancyDTO] = []

        for snapshot_break in find_snapshot_breaks(transactions):
            discrepancies.append(
                AccountDiscrepancyDTO(
                    account_id=account_id,
                    kind="snapshot_mismatch",
                    transaction_id=snapshot_break.transaction_id,
                    expected=snapshot_break.expected,
                    recorded=snapshot_break.recorded,
                )
            )

        for txn, subscription, purchased in running_totals(transactions):
            if subscription < 0 or purchased < 0:
                discrepancies.append(
                    AccountDiscrepancyDTO(
                        account_id=account_id,
                        kind="negative_pool",
                        transaction_id=txn.id,
                        expected=WalletBalance(
                            subscription_credits=max(subscription, 0),
                            purchased_credits=max(purchased, 0),
                        ),
                        recorded=WalletBalance(
                            subscription_credits=subscription,
                            purchased_credits=purchased,
                        ),
                    )
                )
                break

        projected = project_balance(transactions)
        latest = snapshot_of(transactions[-1])
        if projected.total != latest.total:
            discrepancies.append(
                AccountDiscrepancyDTO(
                    account_id=account_id,
                    kind="total_mismatch",
                    transaction_id=transactions[-1].id,
                    expected=projected,
                    recorded=latest,
                )
            )

        return discrepancies

    async def execute(self) -> Result[ReconciliationResultDTO]:
        """
        Execute ledger reconciliation

        Returns:
            Result[ReconciliationResultDTO]: Reconciliation result with any discrepancies
        """
        start_time = time.time()
        reconciliation_time = utcnow()

        try:
            logger.info("Starting wallet ledger reconciliation")

            account_ids = await self.account_repo.list_ids()
            logger.info(f"Found {len(account_ids)} accounts to reconcile")

            discrepancies: List[AccountDiscrepancyDTO] = []
            for account_id in account_ids:
                found = await self.check_account(account_id)
                for discrepancy in found:
                    logger.warning(
                        f"Discrepancy for account {account_id}: {discrepancy.kind} "
                        f"at transaction {discrepancy.transaction_id}, "
                        f"expected={discrepancy.expected.subscription_credits}/"
                        f"{discrepancy.expected.purchased_credits}, "
                        f"recorded={discrepancy.recorded.subscription_credits}/"
                        f"{discrepancy.recorded.purchased_credits}"
                    )
                discrepancies.extend(found)

            execution_time_ms = int((time.time() - start_time) * 1000)

            response = ReconciliationResultDTO(
                total_accounts_checked=len(account_ids),
                discrepancies_found=len(discrepancies),
                discrepancies=discrepancies,
                reconciliation_time=reconciliation_time,
                execution_time_ms=execution_time_ms,
            )

            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"across {len(account_ids)} accounts in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {len(account_ids)} accounts balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(response)

        except Exception as e:
            logger.error(f"Ledger reconciliation failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile wallet ledger",
                    reason=str(e),
                )
            )
