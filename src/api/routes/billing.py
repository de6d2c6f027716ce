"""Billing API Routes

FastAPI routes for wallet, catalog, checkout and subscription operations.
The caller's account comes from the X-Account-Id header; the refund route
is for internal services and names the account in its body.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.api.error import ClientError
from src.api.schemas.billing_request import (
    ConsumeRequestSchema,
    RefundRequestSchema,
    TopUpCheckoutRequestSchema,
    SubscriptionCheckoutRequestSchema,
    VerifyPaymentRequestSchema,
)
from src.adapter.repositories.account_repository import SqlAlchemyAccountRepository
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.repositories.payment_intent_repository import SqlAlchemyPaymentIntentRepository
from src.adapter.repositories.user_subscription_repository import SqlAlchemyUserSubscriptionRepository
from src.adapter.repositories.wallet_transaction_repository import SqlAlchemyWalletTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.ledger_store import LedgerStore
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing import (
    GetWallet,
    ListTransactions,
    ListPlans,
    ListProducts,
    ListFeatures,
    CheckAffordability,
    ConsumeCredits,
    RefundCredits,
    SubscriptionLifecycle,
    GetSubscription,
    CancelSubscription,
    CreateTopUpCheckout,
    CreateSubscriptionCheckout,
    VerifyPayment,
    HandlePaymentNotification,
    TransactionsPageDTO,
    ConsumeCommandDTO,
    ConsumptionResultDTO,
    AffordabilityDTO,
    RefundCommandDTO,
    RefundResultDTO,
    PlanDTO,
    ProductDTO,
    FeatureDTO,
    SubscriptionResponseDTO,
    TopUpCheckoutCommandDTO,
    SubscriptionCheckoutCommandDTO,
    CheckoutResponseDTO,
    VerifyPaymentCommandDTO,
    VerificationResultDTO,
    NotificationResultDTO,
)
from src.depends import (
    get_session,
    get_account_locks,
    get_payment_gateway,
    get_current_account_id,
    require_service_caller,
)
from src.domain.wallet_balance import WalletBalance

router = APIRouter(prefix="/billing", tags=["Billing"])

ERROR_EXAMPLE = {
    "application/json": {
        "example": {
            "error": {
                "code": "INSUFFICIENT_CREDITS",
                "message": "Insufficient credits. Required: 12, Available: 5"
            }
        }
    }
}


def _lifecycle(session: AsyncSession) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(
        subscription_repo=SqlAlchemyUserSubscriptionRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        ledger=LedgerStore(SqlAlchemyWalletTransactionRepository(session)),
        billing_cycle_months=ApplicationConfig.BILLING_CYCLE_MONTHS,
    )


def _verify_payment(
    session: AsyncSession, locks: AccountLocks, gateway: PaymentGateway
) -> VerifyPayment:
    return VerifyPayment(
        uow=SqlAlchemyUnitOfWork(session),
        locks=locks,
        account_repo=SqlAlchemyAccountRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        intent_repo=SqlAlchemyPaymentIntentRepository(session),
        subscription_repo=SqlAlchemyUserSubscriptionRepository(session),
        ledger=LedgerStore(SqlAlchemyWalletTransactionRepository(session)),
        lifecycle=_lifecycle(session),
        gateway=gateway,
    )


def _unwrap(result):
    if result.is_err():
        raise ClientError.from_error(result.error)
    return result.value


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------

@router.get("/wallet", response_model=WalletBalance)
async def get_wallet(
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Current credit balance per pool.

    Accounts that never transacted report zero balances.
    """
    use_case = GetWallet(LedgerStore(SqlAlchemyWalletTransactionRepository(session)))
    return _unwrap(await use_case.execute(account_id))


@router.get("/transactions", response_model=TransactionsPageDTO)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = Query(None, description="Filter by transaction type"),
    feature_code: Optional[str] = Query(None, description="Filter by feature code"),
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Transaction history, most recent first.

    **Query parameters:**
    - `page`: 1-based page number
    - `limit`: page size (1..100)
    - `type`: subscription_allocation | purchase | consumption | expiry | refund
    - `feature_code`: only consumptions of this feature
    """
    use_case = ListTransactions(LedgerStore(SqlAlchemyWalletTransactionRepository(session)))
    return _unwrap(
        await use_case.execute(
            account_id,
            page=page,
            limit=limit,
            transaction_type=type,
            feature_code=feature_code,
        )
    )


@router.post(
    "/consume",
    response_model=ConsumptionResultDTO,
    status_code=status.HTTP_200_OK,
    responses={402: {"description": "Insufficient credits", "content": ERROR_EXAMPLE}},
)
async def consume_credits(
    request: ConsumeRequestSchema,
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
):
    """
    Consume credits, subscription pool first.

    Give either an explicit `amount` or a `feature_code` priced from the
    feature catalog. Nothing is deducted when the wallet cannot cover it.

    **Returns:**
    - 200: Credits consumed
    - 402: Insufficient credits
    - 404: Unknown feature
    """
    use_case = ConsumeCredits(
        uow=SqlAlchemyUnitOfWork(session),
        locks=locks,
        account_repo=SqlAlchemyAccountRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        ledger=LedgerStore(SqlAlchemyWalletTransactionRepository(session)),
    )
    command = ConsumeCommandDTO(
        account_id=account_id,
        amount=request.amount,
        feature_code=request.feature_code,
        reason=request.reason,
    )
    return _unwrap(await use_case.execute(command))


@router.post(
    "/refund",
    response_model=RefundResultDTO,
    dependencies=[Depends(require_service_caller)],
)
async def refund_credits(
    request: RefundRequestSchema,
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
):
    """
    Give credits back to the purchased pool.

    Called by internal services (e.g. a job runner compensating a failed
    export) with the `X-Service-Key` header; end-user identities are
    rejected with 401.

    Repeating a refund with the same `external_ref` returns the original
    refund with `already_processed = true`.
    """
    use_case = RefundCredits(
        uow=SqlAlchemyUnitOfWork(session),
        locks=locks,
        account_repo=SqlAlchemyAccountRepository(session),
        ledger=LedgerStore(SqlAlchemyWalletTransactionRepository(session)),
    )
    command = RefundCommandDTO(
        account_id=request.account_id,
        amount=request.amount,
        external_ref=request.external_ref,
        reason=request.reason,
    )
    return _unwrap(await use_case.execute(command))


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@router.get("/plans", response_model=List[PlanDTO])
async def list_plans(session: AsyncSession = Depends(get_session)):
    use_case = ListPlans(SqlAlchemyCatalogRepository(session))
    return _unwrap(await use_case.execute())


@router.get("/products", response_model=List[ProductDTO])
async def list_products(session: AsyncSession = Depends(get_session)):
    use_case = ListProducts(SqlAlchemyCatalogRepository(session))
    return _unwrap(await use_case.execute())


@router.get("/features", response_model=List[FeatureDTO])
async def list_features(session: AsyncSession = Depends(get_session)):
    use_case = ListFeatures(SqlAlchemyCatalogRepository(session))
    return _unwrap(await use_case.execute())


@router.get("/features/{feature_code}/affordability", response_model=AffordabilityDTO)
async def check_affordability(
    feature_code: str,
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
):
    """Whether the wallet currently covers the feature's credit cost."""
    use_case = CheckAffordability(
        catalog_repo=SqlAlchemyCatalogRepository(session),
        ledger=LedgerStore(SqlAlchemyWalletTransactionRepository(session)),
    )
    return _unwrap(await use_case.execute(account_id, feature_code))


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

@router.get("/subscription", response_model=SubscriptionResponseDTO)
async def get_subscription(
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
):
    use_case = GetSubscription(
        subscription_repo=SqlAlchemyUserSubscriptionRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
    )
    return _unwrap(await use_case.execute(account_id))


@router.post("/cancel-subscription", response_model=SubscriptionResponseDTO)
async def cancel_subscription(
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
):
    """
    Cancel at the end of the current period.

    The plan and its credits stay usable until `current_period_end`.
    """
    use_case = CancelSubscription(
        uow=SqlAlchemyUnitOfWork(session),
        locks=locks,
        account_repo=SqlAlchemyAccountRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        lifecycle=_lifecycle(session),
    )
    return _unwrap(await use_case.execute(account_id))


# ---------------------------------------------------------------------------
# Checkout & verification
# ---------------------------------------------------------------------------

@router.post("/topup-checkout", response_model=CheckoutResponseDTO)
async def create_topup_checkout(
    request: TopUpCheckoutRequestSchema,
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Start a credit pack purchase.

    Returns the gateway order the client completes payment against.
    """
    use_case = CreateTopUpCheckout(
        uow=SqlAlchemyUnitOfWork(session),
        account_repo=SqlAlchemyAccountRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        intent_repo=SqlAlchemyPaymentIntentRepository(session),
        gateway=gateway,
        currency=ApplicationConfig.PAYMENT_CURRENCY,
        max_retries=ApplicationConfig.GATEWAY_MAX_RETRIES,
        backoff_base=ApplicationConfig.GATEWAY_BACKOFF_BASE_SECONDS,
    )
    command = TopUpCheckoutCommandDTO(account_id=account_id, product_id=request.product_id)
    return _unwrap(await use_case.execute(command))


@router.post("/subscription-checkout", response_model=CheckoutResponseDTO)
async def create_subscription_checkout(
    request: SubscriptionCheckoutRequestSchema,
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Subscribe to (or switch to) a paid plan.

    Re-subscribing to the plan being cancelled, before the period ends,
    resumes it without a charge (`resumed = true`).
    """
    use_case = CreateSubscriptionCheckout(
        uow=SqlAlchemyUnitOfWork(session),
        locks=locks,
        account_repo=SqlAlchemyAccountRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        intent_repo=SqlAlchemyPaymentIntentRepository(session),
        subscription_repo=SqlAlchemyUserSubscriptionRepository(session),
        lifecycle=_lifecycle(session),
        gateway=gateway,
        currency=ApplicationConfig.PAYMENT_CURRENCY,
        max_retries=ApplicationConfig.GATEWAY_MAX_RETRIES,
        backoff_base=ApplicationConfig.GATEWAY_BACKOFF_BASE_SECONDS,
    )
    command = SubscriptionCheckoutCommandDTO(account_id=account_id, plan_id=request.plan_id)
    return _unwrap(await use_case.execute(command))


@router.post(
    "/verify-payment",
    response_model=VerificationResultDTO,
    responses={400: {"description": "Invalid signature"}, 404: {"description": "Unknown checkout"}},
)
async def verify_payment(
    request: VerifyPaymentRequestSchema,
    account_id: str = Depends(get_current_account_id),
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Confirm a completed checkout and credit the wallet.

    Idempotent: verifying the same payment again (or after the webhook
    already did) returns the recorded result with `already_processed = true`.
    """
    use_case = _verify_payment(session, locks, gateway)
    command = VerifyPaymentCommandDTO(
        account_id=account_id,
        gateway_ref=request.gateway_ref,
        signature=request.signature,
        payment_id=request.payment_id,
        kind=request.kind,
        product_or_plan_id=request.product_or_plan_id,
    )
    return _unwrap(await use_case.execute(command))


@router.post("/webhooks/payment", response_model=NotificationResultDTO)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header("", alias="X-Gateway-Signature"),
    session: AsyncSession = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Gateway notification endpoint.

    The raw body is signed with the webhook secret. Success events credit
    the wallet through the same verification as the client callback.
    """
    raw_body = await request.body()
    use_case = HandlePaymentNotification(
        intent_repo=SqlAlchemyPaymentIntentRepository(session),
        gateway=gateway,
        verify_payment=_verify_payment(session, locks, gateway),
    )
    return _unwrap(await use_case.execute(raw_body, x_gateway_signature))
