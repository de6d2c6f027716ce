"""Subscription Lifecycle Manager

Owns plan assignment, period renewal, cancellation and expiry. Every
subscription-pool change it makes is a ledger append; it never commits,
the calling use case owns the unit of work and the account lock.
"""

import logging
from calendar import monthrange
from datetime import datetime, timezone
from typing import Optional, Tuple
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.user_subscription_repository import UserSubscriptionRepository
from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.domain.base import utcnow
from src.domain.errors import NoActiveSubscriptionError
from src.domain.subscription_plan import SubscriptionPlan
from src.domain.user_subscription import (
    UserSubscription,
    SubscriptionStatus,
    RENEWABLE_STATUSES,
)
from src.domain.wallet_transaction import (
    WalletTransaction,
    TransactionType,
    CreditPool,
    INTERNAL_GATEWAY,
)
from .dtos import RenewalOutcome

logger = logging.getLogger(__name__)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length"""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    _, last_day = monthrange(year, month)
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def _period_key(period_end: datetime) -> str:
    if period_end.tzinfo is not None:
        period_end = period_end.astimezone(timezone.utc)
    return period_end.strftime("%Y-%m-%dT%H:%M:%S")


def allocation_ref(account_id: str, period_end: datetime) -> str:
    """Idempotency key of the allocation made when a period ends"""
    return f"alloc:{account_id}:{_period_key(period_end)}"


def expiry_ref(account_id: str, period_end: datetime) -> str:
    return f"expire:{account_id}:{_period_key(period_end)}"


class SubscriptionLifecycle:
    """
    State machine per account:

        none -> active -> active (renewed)
                active -> cancelling -> expired
                                     -> active (resumed before period end)

    Allocation resets the subscription pool to plan.monthly_credits: unused
    subscription credits are forfeited, purchased credits are never touched.
    """

    def __init__(
        self,
        subscription_repo: UserSubscriptionRepository,
        catalog_repo: CatalogRepository,
        ledger: LedgerStore,
        billing_cycle_months: int = 1,
    ):
        self.subscription_repo = subscription_repo
        self.catalog_repo = catalog_repo
        self.ledger = ledger
        self.billing_cycle_months = billing_cycle_months

    def period_end_after(self, start: datetime) -> datetime:
        return add_months(start, self.billing_cycle_months)

    async def _reset_subscription_pool(
        self,
        account_id: str,
        target: int,
        transaction_type: TransactionType,
        gateway: str,
        external_ref: str,
        description: str,
    ) -> WalletTransaction:
        balance = await self.ledger.latest_balance(account_id)
        return await self.ledger.append(
            account_id,
            LedgerEntry(
                transaction_type=transaction_type,
                pool=CreditPool.SUBSCRIPTION,
                amount=target - balance.subscription_credits,
                description=description,
                gateway=gateway,
                external_ref=external_ref,
            ),
        )

    async def activate(
        self,
        account_id: str,
        plan: SubscriptionPlan,
        gateway: str,
        external_ref: str,
        now: Optional[datetime] = None,
    ) -> Tuple[UserSubscription, WalletTransaction]:
        """
        Subscribe or switch plans, starting a fresh billing period

        Args:
            account_id: Account identifier (locked by the caller)
            plan: Plan to assign
            gateway: Namespace of external_ref
            external_ref: Idempotency key of the allocation (gateway payment ref)
            now: Period start (defaults to current UTC time)

        Returns:
            Tuple of (saved subscription, allocation transaction)

        Raises:
            ConflictError: allocation for external_ref already recorded
        """
        now = now or utcnow()
        subscription = await self.subscription_repo.get_by_account_id(account_id, for_update=True)

        txn = await self._reset_subscription_pool(
            account_id,
            plan.monthly_credits,
            TransactionType.SUBSCRIPTION_ALLOCATION,
            gateway,
            external_ref,
            f"{plan.display_name} plan allocation: {plan.monthly_credits} credits",
        )

        if subscription is None:
            subscription = UserSubscription(account_id=account_id, plan_id=plan.id)

        subscription.plan_id = plan.id
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.current_period_start = now
        subscription.current_period_end = self.period_end_after(now)
        subscription.cancel_at_period_end = False
        if gateway != INTERNAL_GATEWAY:
            subscription.gateway_subscription_ref = external_ref
        subscription.updated_at = utcnow()

        subscription = await self.subscription_repo.save(subscription)
        logger.info(
            f"Account {account_id} subscribed to {plan.id} until {subscription.current_period_end}"
        )
        return subscription, txn

    async def renew(
        self, subscription: UserSubscription, now: Optional[datetime] = None
    ) -> Tuple[RenewalOutcome, Optional[WalletTransaction]]:
        """
        Process a subscription whose period has ended

        Not cancelling: reset the pool to the plan's credits and advance the
        period past now. Cancelling (or plan gone): expire to the free plan.
        Not yet due: SKIPPED, nothing written.

        Raises:
            ConflictError: this period was already processed elsewhere
        """
        now = now or utcnow()
        if (
            subscription.status not in RENEWABLE_STATUSES
            or subscription.current_period_end is None
            or subscription.current_period_end > now
        ):
            return RenewalOutcome.SKIPPED, None

        period_end = subscription.current_period_end
        plan = await self.catalog_repo.get_plan(subscription.plan_id)

        if subscription.cancel_at_period_end or plan is None:
            txn = await self.expire(subscription, period_end)
            return RenewalOutcome.EXPIRED, txn

        txn = await self._reset_subscription_pool(
            subscription.account_id,
            plan.monthly_credits,
            TransactionType.SUBSCRIPTION_ALLOCATION,
            INTERNAL_GATEWAY,
            allocation_ref(subscription.account_id, period_end),
            f"Monthly {plan.display_name} allocation: {plan.monthly_credits} credits",
        )

        start = period_end
        end = self.period_end_after(start)
        while end <= now:
            start, end = end, self.period_end_after(end)

        subscription.current_period_start = start
        subscription.current_period_end = end
        subscription.updated_at = utcnow()
        await self.subscription_repo.save(subscription)

        logger.info(
            f"Renewed {plan.id} for account {subscription.account_id}, next renewal {end}"
        )
        return RenewalOutcome.RENEWED, txn

    async def expire(
        self, subscription: UserSubscription, period_end: datetime
    ) -> Optional[WalletTransaction]:
        """
        Downgrade to the free plan at period end

        The subscription pool is reset to the free plan's monthly credits
        with an expiry transaction; purchased credits are untouched.
        """
        free_plan = await self.catalog_repo.get_free_plan()
        balance = await self.ledger.latest_balance(subscription.account_id)

        txn = None
        if balance.subscription_credits != free_plan.monthly_credits:
            lapsed = balance.subscription_credits - free_plan.monthly_credits
            txn = await self._reset_subscription_pool(
                subscription.account_id,
                free_plan.monthly_credits,
                TransactionType.EXPIRY,
                INTERNAL_GATEWAY,
                expiry_ref(subscription.account_id, period_end),
                f"Expired {lapsed} unused subscription credits at period end",
            )

        subscription.plan_id = free_plan.id
        subscription.status = SubscriptionStatus.EXPIRED
        subscription.cancel_at_period_end = False
        subscription.updated_at = utcnow()
        await self.subscription_repo.save(subscription)

        logger.info(f"Subscription for account {subscription.account_id} expired")
        return txn

    async def cancel(self, account_id: str) -> UserSubscription:
        """
        Cancel at period end; plan and credits stay usable until then

        Cancelling an already cancelling subscription is a no-op.

        Raises:
            NoActiveSubscriptionError: nothing to cancel
        """
        subscription = await self.subscription_repo.get_by_account_id(account_id, for_update=True)
        if subscription is None or subscription.status not in RENEWABLE_STATUSES:
            raise NoActiveSubscriptionError(f"Account {account_id} has no active subscription")

        if subscription.cancel_at_period_end:
            return subscription

        subscription.cancel_at_period_end = True
        subscription.status = SubscriptionStatus.CANCELLING
        subscription.updated_at = utcnow()
        subscription = await self.subscription_repo.save(subscription)

        logger.info(
            f"Account {account_id} cancelled, access until {subscription.current_period_end}"
        )
        return subscription

    def can_resume(
        self, subscription: Optional[UserSubscription], plan_id: str, now: datetime
    ) -> bool:
        return (
            subscription is not None
            and subscription.status == SubscriptionStatus.CANCELLING
            and subscription.plan_id == plan_id
            and subscription.current_period_end is not None
            and subscription.current_period_end > now
        )

    async def resume(self, subscription: UserSubscription) -> UserSubscription:
        """Undo a pending cancellation; the period keeps renewing as before"""
        subscription.cancel_at_period_end = False
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.updated_at = utcnow()
        subscription = await self.subscription_repo.save(subscription)
        logger.info(f"Account {subscription.account_id} resumed plan {subscription.plan_id}")
        return subscription
