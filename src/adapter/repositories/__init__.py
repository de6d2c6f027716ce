from .account_repository import SqlAlchemyAccountRepository
from .wallet_transaction_repository import SqlAlchemyWalletTransactionRepository
from .catalog_repository import SqlAlchemyCatalogRepository
from .user_subscription_repository import SqlAlchemyUserSubscriptionRepository
from .payment_intent_repository import SqlAlchemyPaymentIntentRepository

__all__ = [
    "SqlAlchemyAccountRepository",
    "SqlAlchemyWalletTransactionRepository",
    "SqlAlchemyCatalogRepository",
    "SqlAlchemyUserSubscriptionRepository",
    "SqlAlchemyPaymentIntentRepository",
]
