from .base import BaseModel, generate_uuid, utcnow
from .account import Account
from .wallet_transaction import WalletTransaction, TransactionType, CreditPool, INTERNAL_GATEWAY
from .wallet_balance import WalletBalance, project_balance, find_snapshot_breaks, snapshot_of
from .subscription_plan import SubscriptionPlan, FREE_PLAN_ID
from .credit_product import CreditProduct
from .feature_cost import FeatureCost
from .user_subscription import UserSubscription, SubscriptionStatus
from .payment_intent import PaymentIntent, IntentKind, IntentStatus

__all__ = [
    "BaseModel",
    "generate_uuid",
    "utcnow",
    "Account",
    "WalletTransaction",
    "TransactionType",
    "CreditPool",
    "INTERNAL_GATEWAY",
    "WalletBalance",
    "project_balance",
    "find_snapshot_breaks",
    "snapshot_of",
    "SubscriptionPlan",
    "FREE_PLAN_ID",
    "CreditProduct",
    "FeatureCost",
    "UserSubscription",
    "SubscriptionStatus",
    "PaymentIntent",
    "IntentKind",
    "IntentStatus",
]
