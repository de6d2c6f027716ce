"""Unit tests for LedgerStore.append"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError

from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.domain.errors import ConflictError, InvariantError
from src.domain.wallet_transaction import CreditPool, TransactionType
from tests.fixtures.factories import make_transaction


@pytest.fixture
def mock_transaction_repo():
    repo = MagicMock()
    repo.get_latest = AsyncMock(
        return_value=make_transaction(7, CreditPool.PURCHASED, 5, 10, 5, TransactionType.PURCHASE)
    )
    repo.get_by_external_ref = AsyncMock(return_value=None)
    repo.create = AsyncMock(side_effect=lambda txn: txn)
    return repo


@pytest.fixture
def ledger(mock_transaction_repo):
    return LedgerStore(mock_transaction_repo)


@pytest.mark.asyncio
class TestLedgerAppend:

    async def test_append_snapshots_running_balance(self, ledger, mock_transaction_repo):
        """
        Given: latest snapshot 10/5
        When: -4 is appended to the subscription pool
        Then: the new row records 6/5
        """
        # Act
        txn = await ledger.append(
            "user_123",
            LedgerEntry(
                transaction_type=TransactionType.CONSUMPTION,
                pool=CreditPool.SUBSCRIPTION,
                amount=-4,
            ),
        )

        # Assert
        assert txn.balance_after_subscription == 6
        assert txn.balance_after_purchased == 5
        assert txn.account_id == "user_123"
        mock_transaction_repo.create.assert_called_once()
        # No external ref -> no duplicate lookup
        mock_transaction_repo.get_by_external_ref.assert_not_called()

    async def test_first_entry_starts_from_zero(self, ledger, mock_transaction_repo):
        mock_transaction_repo.get_latest = AsyncMock(return_value=None)

        txn = await ledger.append(
            "user_new",
            LedgerEntry(
                transaction_type=TransactionType.PURCHASE,
                pool=CreditPool.PURCHASED,
                amount=100,
                gateway="local",
                external_ref="order_1",
            ),
        )

        assert txn.balance_after_subscription == 0
        assert txn.balance_after_purchased == 100

    async def test_negative_pool_is_rejected_before_write(self, ledger, mock_transaction_repo):
        with pytest.raises(InvariantError):
            await ledger.append(
                "user_123",
                LedgerEntry(
                    transaction_type=TransactionType.CONSUMPTION,
                    pool=CreditPool.PURCHASED,
                    amount=-6,
                ),
            )

        mock_transaction_repo.create.assert_not_called()

    async def test_duplicate_external_ref_raises_conflict(self, ledger, mock_transaction_repo):
        existing = make_transaction(
            3, CreditPool.PURCHASED, 5, 10, 5, TransactionType.PURCHASE,
            gateway="local", external_ref="order_1",
        )
        mock_transaction_repo.get_by_external_ref = AsyncMock(return_value=existing)

        with pytest.raises(ConflictError) as exc_info:
            await ledger.append(
                "user_123",
                LedgerEntry(
                    transaction_type=TransactionType.PURCHASE,
                    pool=CreditPool.PURCHASED,
                    amount=5,
                    gateway="local",
                    external_ref="order_1",
                ),
            )

        assert exc_info.value.existing is existing
        mock_transaction_repo.create.assert_not_called()

    async def test_unique_violation_on_insert_becomes_conflict(self, ledger, mock_transaction_repo):
        """Another process inserted the same ref between lookup and insert"""
        mock_transaction_repo.create = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        )

        with pytest.raises(ConflictError):
            await ledger.append(
                "user_123",
                LedgerEntry(
                    transaction_type=TransactionType.PURCHASE,
                    pool=CreditPool.PURCHASED,
                    amount=5,
                    gateway="local",
                    external_ref="order_1",
                ),
            )

    async def test_external_ref_requires_gateway(self, ledger):
        with pytest.raises(ValueError):
            await ledger.append(
                "user_123",
                LedgerEntry(
                    transaction_type=TransactionType.PURCHASE,
                    pool=CreditPool.PURCHASED,
                    amount=5,
                    external_ref="order_1",
                ),
            )

    async def test_latest_balance_reads_snapshot(self, ledger):
        balance = await ledger.latest_balance("user_123")

        assert balance.subscription_credits == 10
        assert balance.purchased_credits == 5
        assert balance.total == 15
