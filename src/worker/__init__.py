"""Background workers for the wallet service"""
from .subscription_renewal import SubscriptionRenewalWorker
from .ledger_reconciler import LedgerReconcilerWorker

__all__ = ["SubscriptionRenewalWorker", "LedgerReconcilerWorker"]
