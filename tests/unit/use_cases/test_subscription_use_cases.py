"""Unit tests for GetSubscription, CancelSubscription and RenewSubscription"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.billing.cancel_subscription import CancelSubscription
from src.app.use_cases.billing.dtos import RenewalOutcome
from src.app.use_cases.billing.get_subscription import GetSubscription
from src.app.use_cases.billing.renew_subscription import RenewSubscription
from src.domain.errors import ConflictError, NoActiveSubscriptionError
from src.domain.user_subscription import UserSubscription, SubscriptionStatus
from src.domain.wallet_transaction import CreditPool, TransactionType
from tests.fixtures.factories import free_plan, make_transaction, pro_plan

PERIOD_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2024, 2, 1, tzinfo=timezone.utc)


def pro_subscription(**overrides) -> UserSubscription:
    data = dict(
        id=1,
        account_id="user_123",
        plan_id="pro",
        status=SubscriptionStatus.ACTIVE,
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
    )
    data.update(overrides)
    return UserSubscription(**data)


@pytest.fixture
def mock_catalog_repo():
    repo = MagicMock()
    repo.get_plan = AsyncMock(return_value=pro_plan())
    repo.get_free_plan = AsyncMock(return_value=free_plan())
    return repo


@pytest.fixture
def mock_subscription_repo():
    repo = MagicMock()
    repo.get_by_account_id = AsyncMock(return_value=pro_subscription())
    return repo


@pytest.fixture
def mock_lifecycle():
    return MagicMock()


@pytest.mark.asyncio
class TestGetSubscription:

    async def test_returns_subscription_with_plan(self, mock_subscription_repo, mock_catalog_repo):
        use_case = GetSubscription(mock_subscription_repo, mock_catalog_repo)

        result = await use_case.execute("user_123")

        assert result.is_ok()
        assert result.value.status == SubscriptionStatus.ACTIVE
        assert result.value.plan.id == "pro"
        assert result.value.plan.monthly_credits == 500
        assert result.value.current_period_end == PERIOD_END

    async def test_never_subscribed_reports_free_plan(
        self, mock_subscription_repo, mock_catalog_repo
    ):
        """
        Given: an account with no subscription record
        When: its subscription is requested
        Then: status none on the free plan
        """
        mock_subscription_repo.get_by_account_id = AsyncMock(return_value=None)
        use_case = GetSubscription(mock_subscription_repo, mock_catalog_repo)

        result = await use_case.execute("user_123")

        assert result.value.status == SubscriptionStatus.NONE
        assert result.value.plan.id == "free"
        assert result.value.current_period_end is None


@pytest.mark.asyncio
class TestCancelSubscription:

    async def test_cancel_commits_and_returns_cancelling(
        self, mock_uow, locks, mock_account_repo, mock_catalog_repo, mock_lifecycle
    ):
        mock_lifecycle.cancel = AsyncMock(
            return_value=pro_subscription(
                status=SubscriptionStatus.CANCELLING, cancel_at_period_end=True
            )
        )
        use_case = CancelSubscription(mock_uow, locks, mock_account_repo, mock_catalog_repo, mock_lifecycle)

        result = await use_case.execute("user_123")

        assert result.is_ok()
        assert result.value.status == SubscriptionStatus.CANCELLING
        assert result.value.cancel_at_period_end is True
        assert result.value.plan.id == "pro"
        mock_uow.commit.assert_awaited_once()
        mock_account_repo.get_or_create.assert_awaited_once_with("user_123", for_update=True)

    async def test_nothing_to_cancel(
        self, mock_uow, locks, mock_account_repo, mock_catalog_repo, mock_lifecycle
    ):
        mock_lifecycle.cancel = AsyncMock(side_effect=NoActiveSubscriptionError("none"))
        use_case = CancelSubscription(mock_uow, locks, mock_account_repo, mock_catalog_repo, mock_lifecycle)

        result = await use_case.execute("user_123")

        assert result.is_err()
        assert result.error.code == "NO_ACTIVE_SUBSCRIPTION"
        mock_uow.rollback.assert_awaited_once()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestRenewSubscription:

    @pytest.fixture
    def use_case(self, mock_uow, locks, mock_account_repo, mock_subscription_repo, mock_lifecycle):
        return RenewSubscription(
            uow=mock_uow,
            locks=locks,
            account_repo=mock_account_repo,
            subscription_repo=mock_subscription_repo,
            lifecycle=mock_lifecycle,
        )

    async def test_renewed_period_is_committed(
        self, use_case, mock_lifecycle, mock_subscription_repo, mock_uow
    ):
        subscription = mock_subscription_repo.get_by_account_id.return_value
        allocation = make_transaction(
            9, CreditPool.SUBSCRIPTION, 380, 500, 0, TransactionType.SUBSCRIPTION_ALLOCATION
        )

        async def renew(sub, now):
            sub.current_period_start = PERIOD_END
            sub.current_period_end = datetime(2024, 3, 1, tzinfo=timezone.utc)
            return RenewalOutcome.RENEWED, allocation

        mock_lifecycle.renew = AsyncMock(side_effect=renew)

        result = await use_case.execute("user_123", now=datetime(2024, 2, 1, 0, 5, tzinfo=timezone.utc))

        assert result.is_ok()
        assert result.value.outcome == RenewalOutcome.RENEWED
        assert result.value.transaction_id == 9
        assert result.value.current_period_end == datetime(2024, 3, 1, tzinfo=timezone.utc)
        mock_lifecycle.renew.assert_awaited_once_with(subscription, datetime(2024, 2, 1, 0, 5, tzinfo=timezone.utc))
        mock_uow.commit.assert_awaited_once()

    async def test_skipped_renewal_writes_nothing(self, use_case, mock_lifecycle, mock_uow):
        mock_lifecycle.renew = AsyncMock(return_value=(RenewalOutcome.SKIPPED, None))

        result = await use_case.execute("user_123", now=datetime(2024, 1, 15, tzinfo=timezone.utc))

        assert result.value.outcome == RenewalOutcome.SKIPPED
        assert result.value.transaction_id is None
        mock_uow.rollback.assert_awaited_once()
        mock_uow.commit.assert_not_called()

    async def test_no_subscription_is_skipped(
        self, use_case, mock_subscription_repo, mock_lifecycle
    ):
        mock_subscription_repo.get_by_account_id = AsyncMock(return_value=None)
        mock_lifecycle.renew = AsyncMock()

        result = await use_case.execute("user_123")

        assert result.value.outcome == RenewalOutcome.SKIPPED
        mock_lifecycle.renew.assert_not_called()

    async def test_allocation_already_written_is_skipped(self, use_case, mock_lifecycle, mock_uow):
        """
        Given: another worker already allocated this period
        When: the renewal appends the same allocation reference
        Then: the conflict is treated as already renewed
        """
        mock_lifecycle.renew = AsyncMock(side_effect=ConflictError("dup"))

        result = await use_case.execute("user_123", now=datetime(2024, 2, 2, tzinfo=timezone.utc))

        assert result.is_ok()
        assert result.value.outcome == RenewalOutcome.SKIPPED
        mock_uow.rollback.assert_awaited_once()

    async def test_unexpected_failure(self, use_case, mock_lifecycle):
        mock_lifecycle.renew = AsyncMock(side_effect=RuntimeError("boom"))

        result = await use_case.execute("user_123", now=datetime(2024, 2, 2, tzinfo=timezone.utc))

        assert result.is_err()
        assert result.error.code == "RENEW_SUBSCRIPTION_FAILED"
