"""Account Domain Entity

One wallet per user. The account row is what writers lock to serialize
ledger mutations for that user.
"""

from datetime import datetime
from sqlmodel import Field
from src.domain.base import BaseModel, UTCDateTime, utcnow


class Account(BaseModel, table=True):
    """
    Account - Owner of a credit wallet

    Domain Rules:
    - Account id is the user id (one wallet per user)
    - Created on the first billing write for the user
    - Never deleted, only deactivated (is_active=False)
    - Balance is NOT stored here; it is projected from WalletTransactions
    """

    __tablename__ = "accounts"

    id: str = Field(
        primary_key=True,
        max_length=255,
        description="Account identifier (the owning user's id)"
    )

    is_active: bool = Field(
        default=True,
        description="Deactivated accounts reject ledger writes"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        description="Account creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        description="Last update timestamp"
    )
