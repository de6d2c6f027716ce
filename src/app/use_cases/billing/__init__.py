"""Billing domain use cases"""
from .get_wallet import GetWallet
from .list_transactions import ListTransactions
from .list_catalog import ListPlans, ListProducts, ListFeatures
from .check_affordability import CheckAffordability
from .consume_credits import ConsumeCredits, split_waterfall
from .refund_credits import RefundCredits
from .subscription_lifecycle import SubscriptionLifecycle
from .get_subscription import GetSubscription
from .cancel_subscription import CancelSubscription
from .renew_subscription import RenewSubscription
from .create_checkout import CreateTopUpCheckout, CreateSubscriptionCheckout
from .verify_payment import VerifyPayment
from .handle_payment_notification import HandlePaymentNotification
from .reconcile_ledger import ReconcileLedger
from .dtos import (
    TransactionDTO,
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
    VerificationSource,
    VerifyPaymentCommandDTO,
    VerificationResultDTO,
    NotificationResultDTO,
    RenewalOutcome,
    RenewalResultDTO,
    SubscriptionRenewalRunDTO,
    AccountDiscrepancyDTO,
    ReconciliationResultDTO,
)

__all__ = [
    "GetWallet",
    "ListTransactions",
    "ListPlans",
    "ListProducts",
    "ListFeatures",
    "CheckAffordability",
    "ConsumeCredits",
    "split_waterfall",
    "RefundCredits",
    "SubscriptionLifecycle",
    "GetSubscription",
    "CancelSubscription",
    "RenewSubscription",
    "CreateTopUpCheckout",
    "CreateSubscriptionCheckout",
    "VerifyPayment",
    "HandlePaymentNotification",
    "ReconcileLedger",
    "TransactionDTO",
    "TransactionsPageDTO",
    "ConsumeCommandDTO",
    "ConsumptionResultDTO",
    "AffordabilityDTO",
    "RefundCommandDTO",
    "RefundResultDTO",
    "PlanDTO",
    "ProductDTO",
    "FeatureDTO",
    "SubscriptionResponseDTO",
    "TopUpCheckoutCommandDTO",
    "SubscriptionCheckoutCommandDTO",
    "CheckoutResponseDTO",
    "VerificationSource",
    "VerifyPaymentCommandDTO",
    "VerificationResultDTO",
    "NotificationResultDTO",
    "RenewalOutcome",
    "RenewalResultDTO",
    "SubscriptionRenewalRunDTO",
    "AccountDiscrepancyDTO",
    "ReconciliationResultDTO",
]
