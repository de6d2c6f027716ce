"""Checkout Use Cases

Start a top-up purchase or a plan subscription with the payment gateway
and register the pending PaymentIntent that verification will resolve.
Checkout never touches the ledger.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.payment_gateway import PaymentGateway, call_with_backoff
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.payment_intent_repository import PaymentIntentRepository
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import BillingError
from src.domain.payment_intent import PaymentIntent, IntentKind
from src.domain.subscription_plan import FREE_PLAN_ID
from src.domain.user_subscription import SubscriptionStatus
from .dtos import (
    TopUpCheckoutCommandDTO,
    SubscriptionCheckoutCommandDTO,
    CheckoutResponseDTO,
)
from .errors import to_error
from .subscription_lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class _Checkout:
    """Gateway call and intent registration shared by both checkout kinds"""

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: AccountRepository,
        catalog_repo: CatalogRepository,
        intent_repo: PaymentIntentRepository,
        gateway: PaymentGateway,
        currency: str = "INR",
        max_retries: int = 3,
        backoff_base: float = 0.5,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.catalog_repo = catalog_repo
        self.intent_repo = intent_repo
        self.gateway = gateway
        self.currency = currency
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    async def _register_intent(
        self,
        account_id: str,
        kind: IntentKind,
        product_or_plan_id: str,
        credits: int,
        amount_in_cents: int,
        gateway_ref: str,
    ) -> PaymentIntent:
        await self.account_repo.get_or_create(account_id)
        intent = await self.intent_repo.create(
            PaymentIntent(
                gateway_ref=gateway_ref,
                gateway=self.gateway.name,
                account_id=account_id,
                kind=kind,
                product_or_plan_id=product_or_plan_id,
                credits=credits,
                expected_amount=amount_in_cents,
                currency=self.currency,
            )
        )
        await self.uow.commit()
        logger.info(
            f"Registered {kind.value} intent {gateway_ref} for account {account_id} "
            f"({product_or_plan_id}, {amount_in_cents} {self.currency})"
        )
        return intent

    async def _with_backoff(self, operation):
        return await call_with_backoff(
            operation, max_retries=self.max_retries, backoff_base=self.backoff_base
        )


class CreateTopUpCheckout(_Checkout):
    """
    Use Case: Start a one-time credit pack purchase

    Business Rules:
    1. Product must exist and be active
    2. Charge = product.price_in_cents
    3. Intent credits = product.credits
    """

    async def execute(self, command: TopUpCheckoutCommandDTO) -> Result[CheckoutResponseDTO]:
        product = await self.catalog_repo.get_product(command.product_id)
        if not product or not product.is_active:
            return Return.err(
                Error(
                    code="PRODUCT_NOT_FOUND",
                    message=f"Credit product '{command.product_id}' not found or inactive",
                )
            )

        receipt = f"topup:{command.account_id}:{product.id}"
        try:
            order = await self._with_backoff(
                lambda: self.gateway.create_order(
                    amount_in_cents=product.price_in_cents,
                    currency=self.currency,
                    receipt=receipt,
                    notes={"account_id": command.account_id, "product_id": product.id},
                )
            )
            await self._register_intent(
                command.account_id,
                IntentKind.TOPUP,
                product.id,
                product.credits,
                product.price_in_cents,
                order.gateway_ref,
            )

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Top-up checkout failed for account {command.account_id}: {e}")
            return Return.err(
                Error(
                    code="CHECKOUT_FAILED",
                    message="Failed to create checkout",
                    reason=str(e),
                )
            )

        return Return.ok(
            CheckoutResponseDTO(
                gateway=self.gateway.name,
                gateway_ref=order.gateway_ref,
                kind=IntentKind.TOPUP,
                product_or_plan_id=product.id,
                amount_in_cents=product.price_in_cents,
                currency=self.currency,
                client_payload=order.client_payload,
            )
        )


class CreateSubscriptionCheckout(_Checkout):
    """
    Use Case: Start a plan subscription

    Business Rules:
    1. Plan must exist, be active and not be the free plan
    2. Already active on the same plan -> ALREADY_SUBSCRIBED
    3. Cancelling on the same plan before period end -> resume, no charge
    4. Otherwise a gateway subscription is created; allocation happens at
       verification, switching plans resets the period
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        catalog_repo: CatalogRepository,
        intent_repo: PaymentIntentRepository,
        subscription_repo: UserSubscriptionRepository,
        lifecycle: SubscriptionLifecycle,
        gateway: PaymentGateway,
        currency: str = "INR",
        max_retries: int = 3,
        backoff_base: float = 0.5,
    ):
        super().__init__(
            uow,
            account_repo,
            catalog_repo,
            intent_repo,
            gateway,
            currency=currency,
            max_retries=max_retries,
            backoff_base=backoff_base,
        )
        self.locks = locks
        self.subscription_repo = subscription_repo
        self.lifecycle = lifecycle

    async def _try_resume(self, account_id: str, plan_id: str) -> Optional[bool]:
        """
        Resume a cancelling subscription to the same plan

        Returns:
            True if resumed, False if a new checkout is needed,
            None if the account is already active on this plan

        Note:
            The lock transaction always ends here, so rows loaded earlier in
            the session are expired when this returns.
        """
        async with self.locks.hold(account_id):
            await self.account_repo.get_or_create(account_id, for_update=True)
            subscription = await self.subscription_repo.get_by_account_id(
                account_id, for_update=True
            )
            now = utcnow()

            if self.lifecycle.can_resume(subscription, plan_id, now):
                await self.lifecycle.resume(subscription)
                await self.uow.commit()
                return True

            already_active = (
                subscription is not None
                and subscription.status == SubscriptionStatus.ACTIVE
                and subscription.plan_id == plan_id
                and subscription.current_period_end is not None
                and subscription.current_period_end > now
            )
            await self.uow.rollback()
            return None if already_active else False

    async def execute(
        self, command: SubscriptionCheckoutCommandDTO
    ) -> Result[CheckoutResponseDTO]:
        plan = await self.catalog_repo.get_plan(command.plan_id)
        if not plan or not plan.is_active:
            return Return.err(
                Error(
                    code="PLAN_NOT_FOUND",
                    message=f"Plan '{command.plan_id}' not found or inactive",
                )
            )
        if plan.id == FREE_PLAN_ID or plan.price_in_cents <= 0:
            return Return.err(
                Error(
                    code="PLAN_NOT_PURCHASABLE",
                    message=f"Plan '{plan.id}' cannot be purchased",
                )
            )
        plan_id = plan.id

        try:
            resumed = await self._try_resume(command.account_id, plan_id)
            if resumed is None:
                return Return.err(
                    Error(
                        code="ALREADY_SUBSCRIBED",
                        message=f"Account is already subscribed to '{plan_id}'",
                    )
                )
            if resumed:
                return Return.ok(
                    CheckoutResponseDTO(
                        gateway=self.gateway.name,
                        kind=IntentKind.SUBSCRIPTION,
                        product_or_plan_id=plan_id,
                        amount_in_cents=0,
                        currency=self.currency,
                        resumed=True,
                    )
                )

            # Reload after the resume transaction expired it
            plan = await self.catalog_repo.get_plan(plan_id)
            order = await self._with_backoff(
                lambda: self.gateway.create_subscription(
                    plan=plan,
                    receipt=f"sub:{command.account_id}:{plan.id}",
                    notes={"account_id": command.account_id, "plan_id": plan.id},
                )
            )
            await self._register_intent(
                command.account_id,
                IntentKind.SUBSCRIPTION,
                plan.id,
                plan.monthly_credits,
                plan.price_in_cents,
                order.gateway_ref,
            )

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Subscription checkout failed for account {command.account_id}: {e}")
            return Return.err(
                Error(
                    code="CHECKOUT_FAILED",
                    message="Failed to create checkout",
                    reason=str(e),
                )
            )

        return Return.ok(
            CheckoutResponseDTO(
                gateway=self.gateway.name,
                gateway_ref=order.gateway_ref,
                kind=IntentKind.SUBSCRIPTION,
                product_or_plan_id=plan.id,
                amount_in_cents=plan.price_in_cents,
                currency=self.currency,
                client_payload=order.client_payload,
            )
        )
