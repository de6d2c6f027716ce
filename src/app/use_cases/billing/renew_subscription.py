"""RenewSubscription Use Case

Processes one account whose billing period has ended: renews the
allocation, or expires a cancelled subscription to the free plan.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.repositories.account_repository import AccountRepository
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import BillingError, ConflictError
from .dtos import RenewalOutcome, RenewalResultDTO
from .errors import to_error
from .subscription_lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class RenewSubscription:
    """
    Use Case: Renew or expire a due subscription

    Business Rules:
    1. Safe to re-invoke for the same period: once the period advanced the
       subscription is no longer due (SKIPPED); a concurrent run that already
       wrote this period's allocation surfaces as ConflictError (SKIPPED)
    2. Allocation/expiry and the subscription update commit together
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        subscription_repo: UserSubscriptionRepository,
        lifecycle: SubscriptionLifecycle,
    ):
        self.uow = uow
        self.locks = locks
        self.account_repo = account_repo
        self.subscription_repo = subscription_repo
        self.lifecycle = lifecycle

    async def execute(
        self, account_id: str, now: Optional[datetime] = None
    ) -> Result[RenewalResultDTO]:
        now = now or utcnow()

        async with self.locks.hold(account_id):
            try:
                await self.account_repo.get_or_create(account_id, for_update=True)
                subscription = await self.subscription_repo.get_by_account_id(
                    account_id, for_update=True
                )
                if subscription is None:
                    await self.uow.rollback()
                    return Return.ok(
                        RenewalResultDTO(account_id=account_id, outcome=RenewalOutcome.SKIPPED)
                    )

                outcome, txn = await self.lifecycle.renew(subscription, now)
                response = RenewalResultDTO(
                    account_id=account_id,
                    outcome=outcome,
                    status=subscription.status,
                    plan_id=subscription.plan_id,
                    current_period_end=subscription.current_period_end,
                    transaction_id=txn.id if txn else None,
                )

                if outcome == RenewalOutcome.SKIPPED:
                    await self.uow.rollback()
                else:
                    await self.uow.commit()
                return Return.ok(response)

            except ConflictError:
                await self.uow.rollback()
                logger.info(f"Renewal for account {account_id} already processed")
                return Return.ok(
                    RenewalResultDTO(account_id=account_id, outcome=RenewalOutcome.SKIPPED)
                )

            except BillingError as e:
                await self.uow.rollback()
                return Return.err(to_error(e))

            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Renewal failed for account {account_id}: {e}")
                return Return.err(
                    Error(
                        code="RENEW_SUBSCRIPTION_FAILED",
                        message="Failed to renew subscription",
                        reason=str(e),
                    )
                )
