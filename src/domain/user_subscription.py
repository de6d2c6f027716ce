"""User Subscription Domain Entity

Tracks the plan an account is on and its billing period.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from src.domain.base import BaseModel, BigIntegerId, UTCDateTime, utcnow


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    NONE = "none"              # Never subscribed (free plan)
    ACTIVE = "active"          # Renews at current_period_end
    CANCELLING = "cancelling"  # Usable until current_period_end, then expires
    EXPIRED = "expired"        # Downgraded to the free plan


# Statuses whose current_period_end triggers renewal processing
RENEWABLE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLING)


class UserSubscription(BaseModel, table=True):
    """
    User Subscription - The account's current plan assignment

    Domain Rules:
    - At most one record per account; changing plans updates it in place
    - Status transitions: none -> active -> active (renewed)
                          active -> cancelling -> expired | active (resumed)
    - cancel_at_period_end keeps the plan and its credits usable until
      current_period_end
    """

    __tablename__ = "user_subscriptions"
    __table_args__ = (
        Index('ix_user_subscriptions_status_period_end', 'status', 'current_period_end'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntegerId, primary_key=True, autoincrement=True),
        description="Unique subscription identifier (auto-increment)"
    )

    account_id: str = Field(
        foreign_key="accounts.id",
        unique=True,
        description="Owning account (one subscription per account)"
    )

    plan_id: str = Field(
        foreign_key="subscription_plans.id",
        description="Current plan"
    )

    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.NONE,
        description="Lifecycle status"
    )

    current_period_start: Optional[datetime] = Field(
        default=None,
        sa_type=UTCDateTime,
        description="Start of the current billing period"
    )

    current_period_end: Optional[datetime] = Field(
        default=None,
        sa_type=UTCDateTime,
        description="End of the current billing period (renewal time)"
    )

    cancel_at_period_end: bool = Field(
        default=False,
        description="Expire instead of renewing at current_period_end"
    )

    gateway_subscription_ref: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Gateway reference of the paid subscription"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        description="Subscription creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        description="Last update timestamp"
    )
