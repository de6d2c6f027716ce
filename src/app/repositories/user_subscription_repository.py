"""User Subscription Repository Interface

Defines the contract for subscription persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.domain.user_subscription import UserSubscription


class UserSubscriptionRepository(ABC):
    """
    Repository interface for UserSubscription persistence

    One record per account; plan changes update it in place.
    """

    @abstractmethod
    async def get_by_account_id(
        self, account_id: str, for_update: bool = False
    ) -> Optional[UserSubscription]:
        """
        Retrieve the account's subscription

        Args:
            account_id: Account identifier
            for_update: If True, lock the row and refresh it from the database

        Returns:
            UserSubscription if the account ever subscribed, None otherwise
        """
        pass

    @abstractmethod
    async def get_due(self, now: datetime, limit: int = 500) -> List[UserSubscription]:
        """
        Retrieve active or cancelling subscriptions whose period has ended

        Used by the renewal worker.
        """
        pass

    @abstractmethod
    async def save(self, subscription: UserSubscription) -> UserSubscription:
        """Insert or update a subscription"""
        pass
