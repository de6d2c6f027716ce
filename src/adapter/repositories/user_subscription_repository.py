"""SQLAlchemy User Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.
"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.domain.user_subscription import UserSubscription, RENEWABLE_STATUSES


class SqlAlchemyUserSubscriptionRepository(UserSubscriptionRepository):
    """
    SQLAlchemy implementation of UserSubscriptionRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_account_id(
        self, account_id: str, for_update: bool = False
    ) -> Optional[UserSubscription]:
        statement = select(UserSubscription).where(UserSubscription.account_id == account_id)

        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_due(self, now: datetime, limit: int = 500) -> List[UserSubscription]:
        """
        Retrieve subscriptions whose billing period has ended

        Args:
            now: Reference time
            limit: Maximum rows per batch

        Returns:
            Active or cancelling subscriptions with current_period_end <= now
        """
        statement = (
            select(UserSubscription)
            .where(
                UserSubscription.status.in_(RENEWABLE_STATUSES),
                UserSubscription.current_period_end.is_not(None),
                UserSubscription.current_period_end <= now,
            )
            .order_by(UserSubscription.current_period_end)
            .limit(limit)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def save(self, subscription: UserSubscription) -> UserSubscription:
        self.session.add(subscription)
        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription
