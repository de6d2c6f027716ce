"""Account Repository Interface

Defines the contract for account persistence operations.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from src.domain.account import Account


class AccountRepository(ABC):
    """
    Repository interface for Account persistence

    The account row doubles as the per-account write lock: ledger writers
    fetch it with for_update=True before appending. The lock is held by the
    database until the unit of work ends, so it also orders writers running
    in other processes.
    """

    @abstractmethod
    async def get_by_id(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        """
        Retrieve account by ID

        Args:
            account_id: Account identifier
            for_update: If True, take the account write lock

        Returns:
            Account if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_or_create(self, account_id: str, for_update: bool = False) -> Account:
        """
        Retrieve account by ID, creating it on first billing interaction

        Args:
            account_id: Account identifier
            for_update: If True, take the account write lock

        Returns:
            Existing or newly created Account
        """
        pass

    @abstractmethod
    async def list_ids(self) -> List[str]:
        """Return the ids of all accounts"""
        pass
