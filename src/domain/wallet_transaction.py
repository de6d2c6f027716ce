"""Wallet Transaction Domain Entity

Immutable append-only log of every credit movement. The log is the only
source of truth for a wallet's balance.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, UniqueConstraint, Integer, String
from src.domain.base import BaseModel, BigIntegerId, UTCDateTime, utcnow


class TransactionType(str, Enum):
    """Wallet transaction types"""
    SUBSCRIPTION_ALLOCATION = "subscription_allocation"  # Pool reset to plan credits
    PURCHASE = "purchase"                                # One-time top-up
    CONSUMPTION = "consumption"                          # Chargeable action
    EXPIRY = "expiry"                                    # Subscription credits lapsed
    REFUND = "refund"                                    # Compensation credits


class CreditPool(str, Enum):
    """The two independent balances that make up a wallet"""
    SUBSCRIPTION = "subscription"
    PURCHASED = "purchased"


# Gateway name used for references minted by the service itself
INTERNAL_GATEWAY = "internal"


class WalletTransaction(BaseModel, table=True):
    """
    Wallet Transaction - One signed credit movement on one pool

    Domain Rules:
    - Append-only; rows are never updated or deleted
    - amount is signed: credits in are positive, debits negative
    - balance_after_* snapshot both pools after this entry; ordered by
      (created_at, id) each snapshot equals the previous one plus amount
      on the entry's pool
    - (account_id, gateway, external_ref) is unique, which makes payment
      fulfilment and periodic allocation idempotent
    """

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        CheckConstraint('balance_after_subscription >= 0', name='subscription_pool_non_negative'),
        CheckConstraint('balance_after_purchased >= 0', name='purchased_pool_non_negative'),
        UniqueConstraint('account_id', 'gateway', 'external_ref', name='uq_wallet_transactions_external_ref'),
        Index('ix_wallet_transactions_account_created', 'account_id', 'created_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntegerId, primary_key=True, autoincrement=True),
        description="Unique transaction identifier (auto-increment)"
    )

    account_id: str = Field(
        foreign_key="accounts.id",
        index=True,
        description="Owning account"
    )

    transaction_type: TransactionType = Field(
        description="Type of transaction"
    )

    pool: CreditPool = Field(
        description="Pool the amount applies to"
    )

    amount: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Signed credit amount"
    )

    balance_after_subscription: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Subscription pool balance after this entry"
    )

    balance_after_purchased: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Purchased pool balance after this entry"
    )

    description: str = Field(
        default="",
        sa_column=Column(String(255), nullable=False, default=""),
        description="Human readable description"
    )

    gateway: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), nullable=True),
        description="Namespace of external_ref (payment gateway name or 'internal')"
    )

    external_ref: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Gateway payment reference or internal idempotency key"
    )

    feature_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Feature charged, for consumption entries"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        description="Transaction timestamp (immutable)"
    )
