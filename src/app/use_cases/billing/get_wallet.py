"""Get Wallet Use Case

Retrieves an account's current credit balance per pool.
"""

from libs.result import Result, Return
from src.app.services.ledger_store import LedgerStore
from src.domain.wallet_balance import WalletBalance


class GetWallet:
    """
    Get Wallet Use Case

    Read-only and lock-free. The balance is the snapshot recorded on the
    latest committed transaction, so a concurrent write is either fully
    visible or not at all. Accounts without history read as zero.
    """

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    async def execute(self, account_id: str) -> Result[WalletBalance]:
        balance = await self.ledger.latest_balance(account_id)
        return Return.ok(balance)
