"""VerifyPayment Use Case

Resolves a pending PaymentIntent exactly once. The client's checkout
callback and the gateway's webhook both land here; whichever arrives
first credits the wallet, the other sees already_processed=True.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.app.services.payment_gateway import PaymentGateway
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.payment_intent_repository import PaymentIntentRepository
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import (
    BillingError,
    ConflictError,
    SignatureError,
    UnknownIntentError,
)
from src.domain.payment_intent import PaymentIntent, IntentKind, IntentStatus
from src.domain.wallet_balance import snapshot_of
from src.domain.wallet_transaction import WalletTransaction, TransactionType, CreditPool
from .dtos import (
    VerifyPaymentCommandDTO,
    VerificationResultDTO,
    VerificationSource,
    SubscriptionResponseDTO,
    to_subscription_dto,
)
from .errors import to_error
from .subscription_lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class VerifyPayment:
    """
    Use Case: Verify a payment and credit the wallet

    Business Rules:
    1. Intent must exist and match account, kind and product/plan
    2. Fulfilled intents return the recorded result unchanged
    3. Bad signature -> INVALID_SIGNATURE, intent stays pending
    4. Fulfilment (intent update + one ledger append) is atomic
    5. The ledger's unique external_ref is the last line of defence
       against a double credit from another process

    Flow:
    1. Look up intent (lock-free), short-circuit if fulfilled
    2. Check the signature
    3. Take the account lock, re-read the intent FOR UPDATE
    4. Append purchase, or activate the plan
    5. Mark fulfilled, commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        catalog_repo: CatalogRepository,
        intent_repo: PaymentIntentRepository,
        subscription_repo: UserSubscriptionRepository,
        ledger: LedgerStore,
        lifecycle: SubscriptionLifecycle,
        gateway: PaymentGateway,
    ):
        self.uow = uow
        self.locks = locks
        self.account_repo = account_repo
        self.catalog_repo = catalog_repo
        self.intent_repo = intent_repo
        self.subscription_repo = subscription_repo
        self.ledger = ledger
        self.lifecycle = lifecycle
        self.gateway = gateway

    async def execute(self, command: VerifyPaymentCommandDTO) -> Result[VerificationResultDTO]:
        try:
            intent = await self.intent_repo.get_by_gateway_ref(command.gateway_ref)
            self._check_matches(intent, command)

            if intent.status == IntentStatus.FULFILLED:
                return Return.ok(await self._recorded_result(intent))

            self._check_signature(command)

        except BillingError as e:
            return Return.err(to_error(e))

        gateway_name = intent.gateway
        async with self.locks.hold(command.account_id):
            try:
                await self.account_repo.get_or_create(command.account_id, for_update=True)
                intent = await self.intent_repo.get_by_gateway_ref(
                    command.gateway_ref, for_update=True
                )
                if intent.status == IntentStatus.FULFILLED:
                    result = await self._recorded_result(intent)
                    await self.uow.rollback()
                    return Return.ok(result)

                result = await self._fulfil(intent, command.payment_id)
                await self.uow.commit()

            except ConflictError as e:
                await self.uow.rollback()
                existing = await self.ledger.find_by_external_ref(
                    command.account_id, gateway_name, command.gateway_ref
                )
                if existing is None:
                    return Return.err(to_error(e))
                logger.info(f"Payment {command.gateway_ref} was credited concurrently")
                return Return.ok(
                    await self._result_for(
                        command.account_id, command.gateway_ref, command.kind, existing
                    )
                )

            except BillingError as e:
                await self.uow.rollback()
                return Return.err(to_error(e))

            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Payment verification failed for {command.gateway_ref}: {e}")
                return Return.err(
                    Error(
                        code="VERIFY_PAYMENT_FAILED",
                        message="Failed to verify payment",
                        reason=str(e),
                    )
                )

        logger.info(
            f"Payment {command.gateway_ref} verified via {command.source.value}, "
            f"transaction {result.transaction_id}"
        )
        return Return.ok(result)

    def _check_matches(
        self, intent: Optional[PaymentIntent], command: VerifyPaymentCommandDTO
    ) -> None:
        if (
            intent is None
            or intent.account_id != command.account_id
            or intent.kind != command.kind
            or intent.product_or_plan_id != command.product_or_plan_id
        ):
            raise UnknownIntentError(
                f"No pending checkout matches gateway reference {command.gateway_ref}"
            )

    def _check_signature(self, command: VerifyPaymentCommandDTO) -> None:
        if command.source == VerificationSource.NOTIFICATION:
            valid = self.gateway.verify_notification_signature(
                command.raw_payload or b"", command.signature
            )
        else:
            valid = self.gateway.verify_payment_signature(
                command.gateway_ref, command.payment_id, command.signature
            )

        if not valid:
            logger.warning(
                f"Invalid {command.source.value} signature for {command.gateway_ref} "
                f"(account {command.account_id})"
            )
            raise SignatureError("Payment signature verification failed")

    async def _fulfil(
        self, intent: PaymentIntent, payment_id: Optional[str]
    ) -> VerificationResultDTO:
        subscription_dto = None

        if intent.kind == IntentKind.TOPUP:
            txn = await self.ledger.append(
                intent.account_id,
                LedgerEntry(
                    transaction_type=TransactionType.PURCHASE,
                    pool=CreditPool.PURCHASED,
                    amount=intent.credits,
                    description=f"Purchased {intent.credits} credits ({intent.product_or_plan_id})",
                    gateway=intent.gateway,
                    external_ref=intent.gateway_ref,
                ),
            )
        else:
            plan = await self.catalog_repo.get_plan(intent.product_or_plan_id)
            if plan is None:
                raise UnknownIntentError(
                    f"Plan '{intent.product_or_plan_id}' of {intent.gateway_ref} no longer exists"
                )
            subscription, txn = await self.lifecycle.activate(
                intent.account_id, plan, intent.gateway, intent.gateway_ref
            )
            subscription_dto = to_subscription_dto(subscription, plan)

        now = utcnow()
        intent.status = IntentStatus.FULFILLED
        intent.payment_id = payment_id
        intent.transaction_id = txn.id
        intent.fulfilled_at = now
        intent.updated_at = now
        await self.intent_repo.update(intent)

        return VerificationResultDTO(
            gateway_ref=intent.gateway_ref,
            kind=intent.kind,
            transaction_id=txn.id,
            balance=snapshot_of(txn),
            subscription=subscription_dto,
        )

    async def _recorded_result(self, intent: PaymentIntent) -> VerificationResultDTO:
        txn = None
        if intent.transaction_id is not None:
            txn = await self.ledger.get_transaction(intent.transaction_id)
        if txn is None:
            txn = await self.ledger.find_by_external_ref(
                intent.account_id, intent.gateway, intent.gateway_ref
            )
        if txn is None:
            raise UnknownIntentError(
                f"Fulfilled checkout {intent.gateway_ref} has no ledger entry"
            )
        return await self._result_for(intent.account_id, intent.gateway_ref, intent.kind, txn)

    async def _result_for(
        self,
        account_id: str,
        gateway_ref: str,
        kind: IntentKind,
        txn: WalletTransaction,
    ) -> VerificationResultDTO:
        subscription_dto: Optional[SubscriptionResponseDTO] = None
        if kind == IntentKind.SUBSCRIPTION:
            subscription = await self.subscription_repo.get_by_account_id(account_id)
            if subscription is not None:
                plan = await self.catalog_repo.get_plan(subscription.plan_id)
                if plan is not None:
                    subscription_dto = to_subscription_dto(subscription, plan)

        return VerificationResultDTO(
            gateway_ref=gateway_ref,
            kind=kind,
            transaction_id=txn.id,
            balance=snapshot_of(txn),
            already_processed=True,
            subscription=subscription_dto,
        )
