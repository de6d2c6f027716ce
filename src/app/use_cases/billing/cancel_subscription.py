"""CancelSubscription Use Case

Marks the account's subscription to end at the current period end.
"""

from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.catalog_repository import CatalogRepository
from src.domain.errors import BillingError
from .dtos import SubscriptionResponseDTO, to_subscription_dto
from .errors import to_error
from .subscription_lifecycle import SubscriptionLifecycle


class CancelSubscription:
    """
    Use Case: Cancel subscription at period end

    Business Rules:
    1. Plan and subscription credits remain usable until current_period_end
    2. Repeating the cancellation is a no-op
    3. No active subscription -> NO_ACTIVE_SUBSCRIPTION
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        catalog_repo: CatalogRepository,
        lifecycle: SubscriptionLifecycle,
    ):
        self.uow = uow
        self.locks = locks
        self.account_repo = account_repo
        self.catalog_repo = catalog_repo
        self.lifecycle = lifecycle

    async def execute(self, account_id: str) -> Result[SubscriptionResponseDTO]:
        async with self.locks.hold(account_id):
            try:
                await self.account_repo.get_or_create(account_id, for_update=True)
                subscription = await self.lifecycle.cancel(account_id)
                plan = await self.catalog_repo.get_plan(subscription.plan_id)
                response = to_subscription_dto(subscription, plan)
                await self.uow.commit()
                return Return.ok(response)

            except BillingError as e:
                await self.uow.rollback()
                return Return.err(to_error(e))

            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="CANCEL_SUBSCRIPTION_FAILED",
                        message="Failed to cancel subscription",
                        reason=str(e),
                    )
                )
