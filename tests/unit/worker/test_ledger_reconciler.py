"""Unit tests for LedgerReconcilerWorker

Tests cover:
- Worker initialization with configuration
- run_once execution with reconciliation
- Reconciliation disabled scenario
- Command line exit status
- run_forever continuous execution
- Shutdown and cleanup
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from libs.result import Return, Error
from src.app.use_cases.billing.dtos import ReconciliationResultDTO, AccountDiscrepancyDTO
from src.domain.wallet_balance import WalletBalance
from src.worker.ledger_reconciler import LedgerReconcilerWorker, main


@pytest.fixture
def mock_session_factory():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session)


@pytest.fixture
def sample_discrepancy_result():
    """Reconciliation result with one drifted snapshot"""
    return ReconciliationResultDTO(
        total_accounts_checked=10,
        discrepancies_found=1,
        discrepancies=[
            AccountDiscrepancyDTO(
                account_id="user_123",
                kind="snapshot_mismatch",
                transaction_id=7,
                expected=WalletBalance(subscription_credits=470, purchased_credits=100),
                recorded=WalletBalance(subscription_credits=480, purchased_credits=100),
            ),
        ],
        reconciliation_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        execution_time_ms=250,
    )


class TestLedgerReconcilerWorkerInit:

    @patch("src.worker.base.ApplicationConfig")
    @patch("src.worker.base.create_async_engine")
    def test_initializes_with_default_config(self, mock_create_engine, mock_app_config):
        """
        Given: No custom configuration provided
        When: Worker is initialized
        Then: Uses defaults from ApplicationConfig
        """
        # Arrange
        mock_app_config.DB_URI = "postgresql+asyncpg://default@localhost/db"
        mock_create_engine.return_value = MagicMock()

        # Act
        worker = LedgerReconcilerWorker()

        # Assert
        assert worker.db_uri == "postgresql+asyncpg://default@localhost/db"
        mock_create_engine.assert_called_once()

    @patch("src.worker.base.create_async_engine")
    def test_existing_session_factory_skips_engine(self, mock_create_engine, mock_session_factory):
        worker = LedgerReconcilerWorker(session_factory=mock_session_factory)

        assert worker.engine is None
        assert worker.async_session_factory is mock_session_factory
        mock_create_engine.assert_not_called()


@pytest.mark.asyncio
class TestLedgerReconcilerWorkerRunOnce:

    @patch("src.worker.ledger_reconciler.ReconcileLedger")
    async def test_run_once_returns_discrepancies(
        self, mock_use_case_class, mock_session_factory, sample_discrepancy_result
    ):
        """
        Given: One account drifted
        When: run_once is called
        Then: The use case result is returned as-is
        """
        # Arrange
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(return_value=Return.ok(sample_discrepancy_result))
        mock_use_case_class.return_value = mock_use_case

        # Act
        worker = LedgerReconcilerWorker(session_factory=mock_session_factory)
        result = await worker.run_once()

        # Assert
        assert result.discrepancies_found == 1
        assert result.discrepancies[0].account_id == "user_123"
        mock_use_case.execute.assert_awaited_once()

    @patch("src.worker.ledger_reconciler.ReconcileLedger")
    async def test_run_once_raises_on_use_case_error(
        self, mock_use_case_class, mock_session_factory
    ):
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(
            return_value=Return.err(
                Error(code="RECONCILIATION_FAILED", message="Database connection failed")
            )
        )
        mock_use_case_class.return_value = mock_use_case

        worker = LedgerReconcilerWorker(session_factory=mock_session_factory)
        with pytest.raises(RuntimeError, match="Reconciliation failed"):
            await worker.run_once()


@pytest.mark.asyncio
class TestLedgerReconcilerWorkerLifecycle:

    @patch("src.worker.base.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine):
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine

        worker = LedgerReconcilerWorker(db_uri="sqlite+aiosqlite:///:memory:")
        await worker.shutdown()

        mock_engine.dispose.assert_awaited_once()

    @patch("src.worker.ledger_reconciler.ApplicationConfig")
    @patch("src.worker.base.asyncio.sleep")
    async def test_run_forever_survives_failed_cycles(
        self, mock_sleep, mock_app_config, mock_session_factory
    ):
        """
        Given: Every reconciliation run fails
        When: run_forever is looping
        Then: The loop keeps sleeping between attempts
        """
        mock_app_config.RECONCILIATION_ENABLED = True
        calls = 0

        async def limited_sleep(seconds):
            nonlocal calls
            calls += 1
            if calls >= 2:
                raise KeyboardInterrupt("Test termination")

        mock_sleep.side_effect = limited_sleep
        worker = LedgerReconcilerWorker(session_factory=mock_session_factory)
        worker.run_once = AsyncMock(side_effect=RuntimeError("Reconciliation failed"))

        with pytest.raises(KeyboardInterrupt):
            await worker.run_forever(interval_seconds=60)

        assert worker.run_once.await_count == 2
        mock_sleep.assert_called_with(60)

    @patch("src.worker.ledger_reconciler.ApplicationConfig")
    @patch("src.worker.base.asyncio.sleep")
    async def test_run_forever_skips_when_disabled(
        self, mock_sleep, mock_app_config, mock_session_factory
    ):
        mock_app_config.RECONCILIATION_ENABLED = False
        mock_sleep.side_effect = KeyboardInterrupt("Test termination")
        worker = LedgerReconcilerWorker(session_factory=mock_session_factory)
        worker.run_once = AsyncMock()

        with pytest.raises(KeyboardInterrupt):
            await worker.run_forever(interval_seconds=60)

        worker.run_once.assert_not_called()


@pytest.mark.asyncio
class TestLedgerReconcilerMain:

    @patch("src.worker.ledger_reconciler.configure_logging")
    @patch("src.worker.ledger_reconciler.LedgerReconcilerWorker")
    async def test_single_pass_exits_non_zero_on_drift(
        self, mock_worker_class, mock_configure_logging, sample_discrepancy_result
    ):
        worker = mock_worker_class.return_value
        worker.run_once = AsyncMock(return_value=sample_discrepancy_result)
        worker.shutdown = AsyncMock()
        worker.summarize = MagicMock(return_value="1 discrepancy")

        exit_code = await main(["--once"])

        assert exit_code == 1
        worker.shutdown.assert_awaited_once()

    @patch("src.worker.ledger_reconciler.configure_logging")
    @patch("src.worker.ledger_reconciler.LedgerReconcilerWorker")
    async def test_single_pass_exits_zero_when_clean(
        self, mock_worker_class, mock_configure_logging, sample_discrepancy_result
    ):
        clean = sample_discrepancy_result.model_copy(
            update={"discrepancies_found": 0, "discrepancies": []}
        )
        worker = mock_worker_class.return_value
        worker.run_once = AsyncMock(return_value=clean)
        worker.shutdown = AsyncMock()
        worker.summarize = MagicMock(return_value="clean")

        assert await main(["--once"]) == 0
