"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.domain.payment_intent import IntentKind
from src.domain.subscription_plan import SubscriptionPlan
from src.domain.credit_product import CreditProduct
from src.domain.feature_cost import FeatureCost
from src.domain.user_subscription import UserSubscription, SubscriptionStatus
from src.domain.wallet_balance import WalletBalance
from src.domain.wallet_transaction import WalletTransaction


# ---------------------------------------------------------------------------
# Wallet & transactions
# ---------------------------------------------------------------------------

class TransactionDTO(BaseModel):
    """Single ledger entry as exposed to clients"""

    id: int
    transaction_type: str = Field(
        ...,
        description="subscription_allocation | purchase | consumption | expiry | refund"
    )
    pool: str = Field(..., description="subscription | purchased")
    amount: int = Field(..., description="Signed credit amount")
    balance_after_subscription: int
    balance_after_purchased: int
    balance_after: int = Field(..., description="Total balance after this entry")
    description: str
    external_ref: Optional[str] = None
    feature_code: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 42,
                "transaction_type": "consumption",
                "pool": "subscription",
                "amount": -10,
                "balance_after_subscription": 490,
                "balance_after_purchased": 100,
                "balance_after": 590,
                "description": "Used 10 subscription credits for Story export",
                "external_ref": None,
                "feature_code": "story_export",
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
    )


class TransactionsPageDTO(BaseModel):
    transactions: List[TransactionDTO]
    page: int
    limit: int
    total: int
    total_pages: int


def to_transaction_dto(txn: WalletTransaction) -> TransactionDTO:
    return TransactionDTO(
        id=txn.id,
        transaction_type=txn.transaction_type.value,
        pool=txn.pool.value,
        amount=txn.amount,
        balance_after_subscription=txn.balance_after_subscription,
        balance_after_purchased=txn.balance_after_purchased,
        balance_after=txn.balance_after_subscription + txn.balance_after_purchased,
        description=txn.description,
        external_ref=txn.external_ref,
        feature_code=txn.feature_code,
        created_at=txn.created_at,
    )


# ---------------------------------------------------------------------------
# Consumption & refunds
# ---------------------------------------------------------------------------

class ConsumeCommandDTO(BaseModel):
    """
    Command DTO for consuming credits

    Either amount or feature_code must be given; feature_code prices the
    action from the feature catalog.
    """

    account_id: str = Field(..., min_length=1)

    amount: Optional[int] = Field(
        default=None,
        gt=0,
        description="Credits to consume (must be > 0)"
    )

    feature_code: Optional[str] = Field(
        default=None,
        description="Chargeable feature; its credit_cost is consumed"
    )

    reason: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Free-form description for the ledger"
    )

    @model_validator(mode="after")
    def check_amount_or_feature(self):
        if (self.amount is None) == (self.feature_code is None):
            raise ValueError("Exactly one of amount or feature_code is required")
        return self


class ConsumptionResultDTO(BaseModel):
    account_id: str
    amount: int
    subscription_debited: int
    purchased_debited: int
    transaction_ids: List[int]
    balance: WalletBalance


class AffordabilityDTO(BaseModel):
    feature_code: str
    feature_display_name: str
    cost: int
    balance: int
    can_afford: bool


class RefundCommandDTO(BaseModel):
    """
    Command DTO for refunding credits

    Refunds compensate failed chargeable work and are credited to the
    purchased pool, which never expires.
    """

    account_id: str = Field(..., min_length=1)

    amount: int = Field(..., gt=0, description="Credits to give back (must be > 0)")

    external_ref: str = Field(
        ...,
        min_length=1,
        description="Idempotency key for this refund (e.g. failed job id)"
    )

    reason: Optional[str] = Field(default=None, max_length=200)


class RefundResultDTO(BaseModel):
    transaction: TransactionDTO
    balance: WalletBalance
    already_processed: bool = False


# ---------------------------------------------------------------------------
# Catalog & subscription
# ---------------------------------------------------------------------------

class PlanDTO(BaseModel):
    id: str
    name: str
    display_name: str
    monthly_credits: int
    price_in_cents: int
    is_active: bool


class ProductDTO(BaseModel):
    id: str
    credits: int
    price_in_cents: int
    is_active: bool


class FeatureDTO(BaseModel):
    feature_code: str
    display_name: str
    credit_cost: int
    is_active: bool


def to_plan_dto(plan: SubscriptionPlan) -> PlanDTO:
    return PlanDTO(
        id=plan.id,
        name=plan.name,
        display_name=plan.display_name,
        monthly_credits=plan.monthly_credits,
        price_in_cents=plan.price_in_cents,
        is_active=plan.is_active,
    )


def to_product_dto(product: CreditProduct) -> ProductDTO:
    return ProductDTO(
        id=product.id,
        credits=product.credits,
        price_in_cents=product.price_in_cents,
        is_active=product.is_active,
    )


def to_feature_dto(feature: FeatureCost) -> FeatureDTO:
    return FeatureDTO(
        feature_code=feature.feature_code,
        display_name=feature.display_name,
        credit_cost=feature.credit_cost,
        is_active=feature.is_active,
    )


class SubscriptionResponseDTO(BaseModel):
    """Account subscription with its plan embedded"""

    account_id: str
    status: SubscriptionStatus
    plan: PlanDTO
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "account_id": "user_123",
                "status": "cancelling",
                "plan": {
                    "id": "pro",
                    "name": "pro",
                    "display_name": "Pro",
                    "monthly_credits": 500,
                    "price_in_cents": 49900,
                    "is_active": True
                },
                "current_period_start": "2024-01-01T00:00:00Z",
                "current_period_end": "2024-02-01T00:00:00Z",
                "cancel_at_period_end": True
            }
        }
    )


def to_subscription_dto(subscription: UserSubscription, plan: SubscriptionPlan) -> SubscriptionResponseDTO:
    return SubscriptionResponseDTO(
        account_id=subscription.account_id,
        status=subscription.status,
        plan=to_plan_dto(plan),
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


# ---------------------------------------------------------------------------
# Checkout & verification
# ---------------------------------------------------------------------------

class TopUpCheckoutCommandDTO(BaseModel):
    account_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)


class SubscriptionCheckoutCommandDTO(BaseModel):
    account_id: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)


class CheckoutResponseDTO(BaseModel):
    """
    Parameters the client needs to collect payment

    resumed=True means a cancelling subscription to the same plan was
    reactivated and no payment is required (gateway_ref is None).
    """

    gateway: str
    gateway_ref: Optional[str] = None
    kind: IntentKind
    product_or_plan_id: str
    amount_in_cents: int
    currency: str
    client_payload: Dict[str, Any] = Field(default_factory=dict)
    resumed: bool = False


class VerificationSource(str, Enum):
    CLIENT = "client"              # Checkout success callback
    NOTIFICATION = "notification"  # Gateway webhook


class VerifyPaymentCommandDTO(BaseModel):
    account_id: str = Field(..., min_length=1)
    gateway_ref: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    payment_id: Optional[str] = None
    kind: IntentKind
    product_or_plan_id: str = Field(..., min_length=1)
    source: VerificationSource = VerificationSource.CLIENT
    raw_payload: Optional[bytes] = Field(
        default=None,
        description="Signed notification body (source=notification only)"
    )


class VerificationResultDTO(BaseModel):
    gateway_ref: str
    kind: IntentKind
    transaction_id: int
    balance: WalletBalance
    already_processed: bool = False
    subscription: Optional[SubscriptionResponseDTO] = None


class NotificationResultDTO(BaseModel):
    event: str
    gateway_ref: Optional[str] = None
    processed: bool = False
    already_processed: bool = False
    transaction_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Renewal & reconciliation
# ---------------------------------------------------------------------------

class RenewalOutcome(str, Enum):
    RENEWED = "renewed"
    EXPIRED = "expired"
    SKIPPED = "skipped"


class RenewalResultDTO(BaseModel):
    account_id: str
    outcome: RenewalOutcome
    status: Optional[SubscriptionStatus] = None
    plan_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    transaction_id: Optional[int] = None


class SubscriptionRenewalRunDTO(BaseModel):
    """Summary of one renewal worker pass"""

    total_due: int
    renewed: int
    expired: int
    skipped: int
    failed: int
    run_at: datetime
    execution_time_ms: int


class AccountDiscrepancyDTO(BaseModel):
    account_id: str
    kind: str = Field(
        ...,
        description="snapshot_mismatch | negative_pool | total_mismatch"
    )
    transaction_id: Optional[int] = None
    expected: WalletBalance
    recorded: WalletBalance


class ReconciliationResultDTO(BaseModel):
    total_accounts_checked: int
    discrepancies_found: int
    discrepancies: List[AccountDiscrepancyDTO]
    reconciliation_time: datetime
    execution_time_ms: int
