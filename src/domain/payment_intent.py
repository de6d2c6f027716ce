"""Payment Intent Domain Entity

A pending checkout correlated with a gateway order/subscription. Resolved
exactly once by payment verification.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from src.domain.base import BaseModel, BigIntegerId, UTCDateTime, utcnow


class IntentKind(str, Enum):
    TOPUP = "topup"
    SUBSCRIPTION = "subscription"


class IntentStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


class PaymentIntent(BaseModel, table=True):
    """
    Payment Intent - Checkout awaiting gateway confirmation

    Domain Rules:
    - gateway_ref is unique (one intent per gateway order/subscription)
    - pending -> fulfilled happens once, together with the ledger append
    - transaction_id points at the ledger entry that fulfilled it
    """

    __tablename__ = "payment_intents"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntegerId, primary_key=True, autoincrement=True),
    )

    gateway_ref: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="Gateway order or subscription id"
    )

    gateway: str = Field(max_length=50, description="Gateway name")

    account_id: str = Field(
        foreign_key="accounts.id",
        index=True,
        description="Account that started the checkout"
    )

    kind: IntentKind = Field(description="topup or subscription")

    product_or_plan_id: str = Field(max_length=100)

    credits: int = Field(description="Credits granted on fulfilment")

    expected_amount: int = Field(description="Expected charge in cents")

    currency: str = Field(default="INR", max_length=3)

    status: IntentStatus = Field(default=IntentStatus.PENDING)

    payment_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Gateway payment id reported at verification"
    )

    transaction_id: Optional[int] = Field(
        default=None,
        description="Ledger transaction that fulfilled this intent"
    )

    fulfilled_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
