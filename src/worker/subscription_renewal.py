"""Subscription Renewal Background Worker

Renews subscriptions whose billing period has ended and expires the ones
cancelled at period end. Can be run as a standalone script or integrated
with a scheduler.
"""

import argparse
import asyncio
import logging
import time
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import sessionmaker

from config import ApplicationConfig
from src.adapter.repositories.account_repository import SqlAlchemyAccountRepository
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.repositories.user_subscription_repository import SqlAlchemyUserSubscriptionRepository
from src.adapter.repositories.wallet_transaction_repository import SqlAlchemyWalletTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.ledger_store import LedgerStore
from src.app.use_cases.billing import (
    RenewSubscription,
    SubscriptionLifecycle,
    RenewalOutcome,
    SubscriptionRenewalRunDTO,
)
from src.domain.base import utcnow
from .base import PeriodicWorker, configure_logging

logger = logging.getLogger(__name__)


class SubscriptionRenewalWorker(PeriodicWorker):
    """
    Background worker for subscription renewal

    Features:
    - Picks up active/cancelling subscriptions with current_period_end <= now
    - Renews (allocation reset) or expires (downgrade to free) each one
    - One session per account so a failure never blocks the others
    - Idempotent: re-running for the same period is a no-op

    Usage:
        # Run once
        worker = SubscriptionRenewalWorker()
        result = await worker.run_once()

        # Run continuously (hourly)
        worker = SubscriptionRenewalWorker()
        await worker.run_forever(interval_seconds=3600)
    """

    name = "subscription renewal"

    def __init__(
        self,
        db_uri: Optional[str] = None,
        session_factory: Optional[sessionmaker] = None,
        locks: Optional[AccountLocks] = None,
        billing_cycle_months: Optional[int] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            session_factory: Existing session factory; skips engine creation
            locks: Account locks shared with the API process, if in-process
            billing_cycle_months: Period length (defaults to ApplicationConfig)
        """
        super().__init__(db_uri=db_uri, session_factory=session_factory)
        self.locks = locks or AccountLocks()
        self.billing_cycle_months = billing_cycle_months or ApplicationConfig.BILLING_CYCLE_MONTHS

        logger.info("SubscriptionRenewalWorker initialized")

    def is_enabled(self) -> bool:
        return ApplicationConfig.SUBSCRIPTION_RENEWAL_ENABLED

    async def _renew_account(self, account_id: str, now: datetime):
        async with self.async_session_factory() as session:
            transaction_repo = SqlAlchemyWalletTransactionRepository(session)
            subscription_repo = SqlAlchemyUserSubscriptionRepository(session)
            lifecycle = SubscriptionLifecycle(
                subscription_repo=subscription_repo,
                catalog_repo=SqlAlchemyCatalogRepository(session),
                ledger=LedgerStore(transaction_repo),
                billing_cycle_months=self.billing_cycle_months,
            )
            use_case = RenewSubscription(
                uow=SqlAlchemyUnitOfWork(session),
                locks=self.locks,
                account_repo=SqlAlchemyAccountRepository(session),
                subscription_repo=subscription_repo,
                lifecycle=lifecycle,
            )
            return await use_case.execute(account_id, now=now)

    async def run_once(self, now: Optional[datetime] = None) -> SubscriptionRenewalRunDTO:
        """
        Process every subscription due at `now`

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            SubscriptionRenewalRunDTO with summary
        """
        start_time = time.time()
        now = now or utcnow()

        async with self.async_session_factory() as session:
            due = await SqlAlchemyUserSubscriptionRepository(session).get_due(now)
            account_ids = [subscription.account_id for subscription in due]

        logger.info(f"Found {len(account_ids)} subscriptions due for renewal")

        counts = {outcome: 0 for outcome in RenewalOutcome}
        failed = 0

        for account_id in account_ids:
            try:
                result = await self._renew_account(account_id, now)
            except Exception as e:
                logger.error(f"Unexpected error renewing account {account_id}: {e}")
                failed += 1
                continue

            if result.is_err():
                logger.error(
                    f"Failed to renew subscription for account {account_id}: "
                    f"{result.error.message}"
                )
                failed += 1
                continue

            counts[result.value.outcome] += 1

        execution_time_ms = int((time.time() - start_time) * 1000)

        result = SubscriptionRenewalRunDTO(
            total_due=len(account_ids),
            renewed=counts[RenewalOutcome.RENEWED],
            expired=counts[RenewalOutcome.EXPIRED],
            skipped=counts[RenewalOutcome.SKIPPED],
            failed=failed,
            run_at=now,
            execution_time_ms=execution_time_ms,
        )

        logger.info(
            f"Subscription renewal complete: {result.renewed} renewed, "
            f"{result.expired} expired, {result.skipped} skipped, "
            f"{result.failed} failed, {execution_time_ms}ms"
        )

        return result

    def summarize(self, result: SubscriptionRenewalRunDTO) -> str:
        return (
            f"{result.total_due} due, {result.renewed} renewed, {result.expired} expired, "
            f"{result.skipped} skipped, {result.failed} failed"
        )


async def main(argv=None):
    configure_logging()

    parser = argparse.ArgumentParser(description="Subscription Renewal Worker")
    parser.add_argument(
        "--continuous", action="store_true", help="Run continuously"
    )
    parser.add_argument(
        "--interval", type=int,
        default=ApplicationConfig.SUBSCRIPTION_RENEWAL_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args(argv)

    worker = SubscriptionRenewalWorker()

    try:
        if args.continuous:
            await worker.run_forever(interval_seconds=args.interval)
        else:
            await worker.run_once()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
