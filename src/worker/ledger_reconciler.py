"""Ledger Reconciliation Background Worker

Replays every wallet's transaction log against its recorded balance
snapshots and reports drift. It never repairs anything: a discrepancy is
logged for a human to investigate.

    python -m src.worker.ledger_reconciler --once   # exit status 1 on drift
    python -m src.worker.ledger_reconciler          # daily loop
"""

import argparse
import asyncio
import logging

from config import ApplicationConfig
from src.adapter.repositories.account_repository import SqlAlchemyAccountRepository
from src.adapter.repositories.wallet_transaction_repository import SqlAlchemyWalletTransactionRepository
from src.app.use_cases.billing import ReconcileLedger, ReconciliationResultDTO
from .base import PeriodicWorker, configure_logging

logger = logging.getLogger(__name__)


class LedgerReconcilerWorker(PeriodicWorker):

    name = "ledger reconciliation"

    def is_enabled(self) -> bool:
        return ApplicationConfig.RECONCILIATION_ENABLED

    async def run_once(self) -> ReconciliationResultDTO:
        async with self.async_session_factory() as session:
            result = await ReconcileLedger(
                account_repo=SqlAlchemyAccountRepository(session),
                transaction_repo=SqlAlchemyWalletTransactionRepository(session),
            ).execute()

        if result.is_err():
            raise RuntimeError(f"Reconciliation failed: {result.error.message}")

        report = result.value
        for d in report.discrepancies:
            logger.error(
                f"Ledger drift on account {d.account_id}: {d.kind} at transaction "
                f"{d.transaction_id}, expected {d.expected.subscription_credits}/"
                f"{d.expected.purchased_credits}, recorded {d.recorded.subscription_credits}/"
                f"{d.recorded.purchased_credits}"
            )
        return report

    def summarize(self, result: ReconciliationResultDTO) -> str:
        return (
            f"{result.total_accounts_checked} accounts checked, "
            f"{result.discrepancies_found} discrepancies, {result.execution_time_ms}ms"
        )


async def main(argv=None) -> int:
    configure_logging()

    parser = argparse.ArgumentParser(description="Ledger Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run one pass and exit")
    parser.add_argument(
        "--interval", type=int,
        default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Seconds between passes"
    )
    args = parser.parse_args(argv)

    worker = LedgerReconcilerWorker()
    try:
        if args.once:
            report = await worker.run_once()
            logger.info(worker.summarize(report))
            return 1 if report.discrepancies_found else 0
        await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
