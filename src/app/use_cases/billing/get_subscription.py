"""Get Subscription Use Case

Returns the account's subscription with its plan embedded. Accounts that
never subscribed are reported on the free plan with status none.
"""

from libs.result import Result, Return
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.domain.user_subscription import SubscriptionStatus
from .dtos import SubscriptionResponseDTO, to_plan_dto, to_subscription_dto


class GetSubscription:

    def __init__(
        self,
        subscription_repo: UserSubscriptionRepository,
        catalog_repo: CatalogRepository,
    ):
        self.subscription_repo = subscription_repo
        self.catalog_repo = catalog_repo

    async def execute(self, account_id: str) -> Result[SubscriptionResponseDTO]:
        subscription = await self.subscription_repo.get_by_account_id(account_id)

        plan = None
        if subscription is not None:
            plan = await self.catalog_repo.get_plan(subscription.plan_id)

        if subscription is None or plan is None:
            free_plan = await self.catalog_repo.get_free_plan()
            return Return.ok(
                SubscriptionResponseDTO(
                    account_id=account_id,
                    status=SubscriptionStatus.NONE,
                    plan=to_plan_dto(free_plan),
                )
            )

        return Return.ok(to_subscription_dto(subscription, plan))
