"""Unit tests for VerifyPayment use case

Tests cover:
- Unknown or mismatched intents
- Signature rejection leaves the intent pending
- Top-up fulfilment appends exactly one purchase
- Subscription fulfilment goes through the lifecycle
- Already fulfilled intents return the recorded result
- Conflict from a concurrent writer returns the existing entry
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.adapter.services.payment_gateway import LocalPaymentGateway
from src.app.use_cases.billing.dtos import VerifyPaymentCommandDTO, VerificationSource
from src.app.use_cases.billing.verify_payment import VerifyPayment
from src.domain.errors import ConflictError
from src.domain.payment_intent import PaymentIntent, IntentKind, IntentStatus
from src.domain.user_subscription import UserSubscription, SubscriptionStatus
from src.domain.wallet_transaction import CreditPool, TransactionType
from tests.fixtures.factories import make_transaction, pro_plan


@pytest.fixture
def gateway():
    return LocalPaymentGateway(key_id="key_test", key_secret="secret_test", webhook_secret="whsec_test")


def topup_intent(**overrides) -> PaymentIntent:
    data = dict(
        id=1,
        gateway_ref="order_1",
        gateway="local",
        account_id="user_123",
        kind=IntentKind.TOPUP,
        product_or_plan_id="pack_100",
        credits=100,
        expected_amount=9900,
        status=IntentStatus.PENDING,
    )
    data.update(overrides)
    return PaymentIntent(**data)


@pytest.fixture
def mock_intent_repo():
    repo = MagicMock()
    intent = topup_intent()
    repo.get_by_gateway_ref = AsyncMock(return_value=intent)
    repo.update = AsyncMock(side_effect=lambda i: i)
    return repo


@pytest.fixture
def purchase_txn():
    return make_transaction(
        42, CreditPool.PURCHASED, 100, 0, 100, TransactionType.PURCHASE,
        gateway="local", external_ref="order_1",
    )


@pytest.fixture
def mock_ledger(purchase_txn):
    ledger = MagicMock()
    ledger.append = AsyncMock(return_value=purchase_txn)
    ledger.get_transaction = AsyncMock(return_value=purchase_txn)
    ledger.find_by_external_ref = AsyncMock(return_value=purchase_txn)
    return ledger


@pytest.fixture
def mock_catalog_repo():
    repo = MagicMock()
    repo.get_plan = AsyncMock(return_value=pro_plan())
    return repo


@pytest.fixture
def mock_subscription_repo():
    repo = MagicMock()
    repo.get_by_account_id = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_lifecycle():
    return MagicMock()


@pytest.fixture
def verify_use_case(
    mock_uow, locks, mock_account_repo, mock_catalog_repo, mock_intent_repo,
    mock_subscription_repo, mock_ledger, mock_lifecycle, gateway,
):
    return VerifyPayment(
        uow=mock_uow,
        locks=locks,
        account_repo=mock_account_repo,
        catalog_repo=mock_catalog_repo,
        intent_repo=mock_intent_repo,
        subscription_repo=mock_subscription_repo,
        ledger=mock_ledger,
        lifecycle=mock_lifecycle,
        gateway=gateway,
    )


def command(gateway, **overrides) -> VerifyPaymentCommandDTO:
    data = dict(
        account_id="user_123",
        gateway_ref="order_1",
        payment_id="pay_1",
        signature=gateway.sign_payment("order_1", "pay_1"),
        kind=IntentKind.TOPUP,
        product_or_plan_id="pack_100",
    )
    data.update(overrides)
    return VerifyPaymentCommandDTO(**data)


@pytest.mark.asyncio
class TestVerifyPaymentRejections:

    async def test_unknown_gateway_ref(self, verify_use_case, mock_intent_repo, gateway):
        mock_intent_repo.get_by_gateway_ref = AsyncMock(return_value=None)

        result = await verify_use_case.execute(command(gateway))

        assert result.is_err()
        assert result.error.code == "UNKNOWN_INTENT"

    async def test_other_accounts_intent(self, verify_use_case, gateway, mock_ledger):
        result = await verify_use_case.execute(command(gateway, account_id="user_other"))

        assert result.is_err()
        assert result.error.code == "UNKNOWN_INTENT"
        mock_ledger.append.assert_not_called()

    async def test_product_mismatch(self, verify_use_case, gateway):
        result = await verify_use_case.execute(command(gateway, product_or_plan_id="pack_500"))

        assert result.is_err()
        assert result.error.code == "UNKNOWN_INTENT"

    async def test_invalid_signature_keeps_intent_pending(
        self, verify_use_case, gateway, mock_intent_repo, mock_ledger, mock_uow
    ):
        """
        Given: a pending intent
        When: verification arrives with a forged signature
        Then: INVALID_SIGNATURE, no ledger write, intent untouched
        """
        result = await verify_use_case.execute(command(gateway, signature="forged"))

        assert result.is_err()
        assert result.error.code == "INVALID_SIGNATURE"
        mock_ledger.append.assert_not_called()
        mock_intent_repo.update.assert_not_called()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestVerifyPaymentFulfilment:

    async def test_topup_credits_purchased_pool_once(
        self, verify_use_case, gateway, mock_ledger, mock_intent_repo, mock_uow
    ):
        result = await verify_use_case.execute(command(gateway))

        assert result.is_ok()
        assert result.value.transaction_id == 42
        assert result.value.already_processed is False
        assert result.value.balance.purchased_credits == 100

        mock_ledger.append.assert_awaited_once()
        entry = mock_ledger.append.await_args.args[1]
        assert entry.transaction_type == TransactionType.PURCHASE
        assert entry.pool == CreditPool.PURCHASED
        assert entry.amount == 100
        assert entry.external_ref == "order_1"

        intent = mock_intent_repo.update.await_args.args[0]
        assert intent.status == IntentStatus.FULFILLED
        assert intent.transaction_id == 42
        assert intent.payment_id == "pay_1"
        mock_uow.commit.assert_awaited_once()

    async def test_fulfilled_intent_returns_recorded_result(
        self, verify_use_case, gateway, mock_intent_repo, mock_ledger, mock_uow
    ):
        mock_intent_repo.get_by_gateway_ref = AsyncMock(
            return_value=topup_intent(status=IntentStatus.FULFILLED, transaction_id=42)
        )

        result = await verify_use_case.execute(command(gateway))

        assert result.is_ok()
        assert result.value.already_processed is True
        assert result.value.transaction_id == 42
        mock_ledger.append.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_fulfilled_intent_skips_signature_check(
        self, verify_use_case, gateway, mock_intent_repo
    ):
        mock_intent_repo.get_by_gateway_ref = AsyncMock(
            return_value=topup_intent(status=IntentStatus.FULFILLED, transaction_id=42)
        )

        result = await verify_use_case.execute(command(gateway, signature="stale"))

        assert result.is_ok()
        assert result.value.already_processed is True

    async def test_intent_fulfilled_while_waiting_for_lock(
        self, verify_use_case, gateway, mock_intent_repo, mock_ledger, mock_uow
    ):
        """The locked re-read sees the other path's fulfilment"""
        mock_intent_repo.get_by_gateway_ref = AsyncMock(
            side_effect=[
                topup_intent(),
                topup_intent(status=IntentStatus.FULFILLED, transaction_id=42),
            ]
        )

        result = await verify_use_case.execute(command(gateway))

        assert result.is_ok()
        assert result.value.already_processed is True
        mock_ledger.append.assert_not_called()
        mock_uow.rollback.assert_awaited()

    async def test_conflict_returns_existing_transaction(
        self, verify_use_case, gateway, mock_ledger, mock_uow
    ):
        mock_ledger.append = AsyncMock(side_effect=ConflictError("duplicate"))

        result = await verify_use_case.execute(command(gateway))

        assert result.is_ok()
        assert result.value.already_processed is True
        assert result.value.transaction_id == 42
        mock_uow.rollback.assert_awaited()
        mock_uow.commit.assert_not_called()
        mock_ledger.find_by_external_ref.assert_awaited_with("user_123", "local", "order_1")

    async def test_notification_source_checks_body_signature(
        self, verify_use_case, gateway
    ):
        body = b'{"event":"payment.captured","gateway_ref":"order_1"}'

        result = await verify_use_case.execute(
            command(
                gateway,
                signature=gateway.sign_notification(body),
                source=VerificationSource.NOTIFICATION,
                raw_payload=body,
            )
        )

        assert result.is_ok()
        assert result.value.transaction_id == 42

    async def test_subscription_activates_plan(
        self, verify_use_case, gateway, mock_intent_repo, mock_lifecycle, mock_ledger
    ):
        mock_intent_repo.get_by_gateway_ref = AsyncMock(
            return_value=topup_intent(
                gateway_ref="sub_1",
                kind=IntentKind.SUBSCRIPTION,
                product_or_plan_id="pro",
                credits=500,
                expected_amount=49900,
            )
        )
        allocation = make_transaction(
            50, CreditPool.SUBSCRIPTION, 500, 500, 0, TransactionType.SUBSCRIPTION_ALLOCATION,
            gateway="local", external_ref="sub_1",
        )
        subscription = UserSubscription(
            account_id="user_123", plan_id="pro", status=SubscriptionStatus.ACTIVE
        )
        mock_lifecycle.activate = AsyncMock(return_value=(subscription, allocation))

        result = await verify_use_case.execute(
            command(
                gateway,
                gateway_ref="sub_1",
                signature=gateway.sign_payment("sub_1", "pay_1"),
                kind=IntentKind.SUBSCRIPTION,
                product_or_plan_id="pro",
            )
        )

        assert result.is_ok()
        assert result.value.transaction_id == 50
        assert result.value.balance.subscription_credits == 500
        assert result.value.subscription.status == SubscriptionStatus.ACTIVE
        assert result.value.subscription.plan.monthly_credits == 500
        mock_lifecycle.activate.assert_awaited_once()
        mock_ledger.append.assert_not_called()
