"""Use cases wired to a real session, for integration tests"""

from src.adapter.repositories.account_repository import SqlAlchemyAccountRepository
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.repositories.payment_intent_repository import SqlAlchemyPaymentIntentRepository
from src.adapter.repositories.user_subscription_repository import SqlAlchemyUserSubscriptionRepository
from src.adapter.repositories.wallet_transaction_repository import SqlAlchemyWalletTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.app.use_cases.billing import (
    CancelSubscription,
    ConsumeCredits,
    CreateSubscriptionCheckout,
    CreateTopUpCheckout,
    HandlePaymentNotification,
    ReconcileLedger,
    RefundCredits,
    SubscriptionLifecycle,
    VerifyPayment,
)
from src.app.use_cases.billing.dtos import SubscriptionCheckoutCommandDTO, VerifyPaymentCommandDTO
from src.domain.wallet_transaction import TransactionType, CreditPool


class WalletHarness:
    """Every billing use case bound to one session"""

    def __init__(self, session, locks, gateway):
        self.session = session
        self.locks = locks
        self.gateway = gateway
        self.uow = SqlAlchemyUnitOfWork(session)
        self.account_repo = SqlAlchemyAccountRepository(session)
        self.catalog_repo = SqlAlchemyCatalogRepository(session)
        self.intent_repo = SqlAlchemyPaymentIntentRepository(session)
        self.subscription_repo = SqlAlchemyUserSubscriptionRepository(session)
        self.transaction_repo = SqlAlchemyWalletTransactionRepository(session)
        self.ledger = LedgerStore(self.transaction_repo)
        self.lifecycle = SubscriptionLifecycle(
            subscription_repo=self.subscription_repo,
            catalog_repo=self.catalog_repo,
            ledger=self.ledger,
        )

    async def seed(self, account_id: str, subscription: int = 0, purchased: int = 0):
        """Give an account starting balances and commit"""
        await self.account_repo.get_or_create(account_id)
        if subscription:
            await self.ledger.append(
                account_id,
                LedgerEntry(
                    transaction_type=TransactionType.SUBSCRIPTION_ALLOCATION,
                    pool=CreditPool.SUBSCRIPTION,
                    amount=subscription,
                    description="seed",
                ),
            )
        if purchased:
            await self.ledger.append(
                account_id,
                LedgerEntry(
                    transaction_type=TransactionType.PURCHASE,
                    pool=CreditPool.PURCHASED,
                    amount=purchased,
                    description="seed",
                ),
            )
        await self.session.commit()

    def consume(self) -> ConsumeCredits:
        return ConsumeCredits(self.uow, self.locks, self.account_repo, self.catalog_repo, self.ledger)

    def refund(self) -> RefundCredits:
        return RefundCredits(self.uow, self.locks, self.account_repo, self.ledger)

    def cancel(self) -> CancelSubscription:
        return CancelSubscription(
            self.uow, self.locks, self.account_repo, self.catalog_repo, self.lifecycle
        )

    def topup_checkout(self) -> CreateTopUpCheckout:
        return CreateTopUpCheckout(
            uow=self.uow,
            account_repo=self.account_repo,
            catalog_repo=self.catalog_repo,
            intent_repo=self.intent_repo,
            gateway=self.gateway,
            backoff_base=0,
        )

    def subscription_checkout(self) -> CreateSubscriptionCheckout:
        return CreateSubscriptionCheckout(
            uow=self.uow,
            locks=self.locks,
            account_repo=self.account_repo,
            catalog_repo=self.catalog_repo,
            intent_repo=self.intent_repo,
            subscription_repo=self.subscription_repo,
            lifecycle=self.lifecycle,
            gateway=self.gateway,
            backoff_base=0,
        )

    def verify(self) -> VerifyPayment:
        return VerifyPayment(
            uow=self.uow,
            locks=self.locks,
            account_repo=self.account_repo,
            catalog_repo=self.catalog_repo,
            intent_repo=self.intent_repo,
            subscription_repo=self.subscription_repo,
            ledger=self.ledger,
            lifecycle=self.lifecycle,
            gateway=self.gateway,
        )

    def notification(self) -> HandlePaymentNotification:
        return HandlePaymentNotification(self.intent_repo, self.gateway, self.verify())

    def reconcile(self) -> ReconcileLedger:
        return ReconcileLedger(self.account_repo, self.transaction_repo)

    async def subscribe(self, account_id: str, plan_id: str = "pro"):
        """Check out and verify a paid plan; returns the subscription DTO"""
        checkout = await self.subscription_checkout().execute(
            SubscriptionCheckoutCommandDTO(account_id=account_id, plan_id=plan_id)
        )
        assert checkout.is_ok(), checkout.error
        result = await self.verify().execute(
            VerifyPaymentCommandDTO(
                account_id=account_id,
                gateway_ref=checkout.value.gateway_ref,
                signature=self.gateway.sign_payment(checkout.value.gateway_ref, None),
                kind=checkout.value.kind,
                product_or_plan_id=plan_id,
            )
        )
        assert result.is_ok(), result.error
        return result.value.subscription
