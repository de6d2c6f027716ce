from .unit_of_work import UnitOfWork
from .account_lock import AccountLocks
from .ledger_store import LedgerStore, LedgerEntry
from .payment_gateway import PaymentGateway, GatewayOrder, call_with_backoff

__all__ = [
    "UnitOfWork",
    "AccountLocks",
    "LedgerStore",
    "LedgerEntry",
    "PaymentGateway",
    "GatewayOrder",
    "call_with_backoff",
]
