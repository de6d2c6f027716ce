from .account_repository import AccountRepository
from .wallet_transaction_repository import WalletTransactionRepository
from .catalog_repository import CatalogRepository
from .user_subscription_repository import UserSubscriptionRepository
from .payment_intent_repository import PaymentIntentRepository

__all__ = [
    "AccountRepository",
    "WalletTransactionRepository",
    "CatalogRepository",
    "UserSubscriptionRepository",
    "PaymentIntentRepository",
]
