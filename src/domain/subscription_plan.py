"""Subscription Plan reference data."""

from typing import Optional
from sqlmodel import Field
from src.domain.base import BaseModel

FREE_PLAN_ID = "free"


class SubscriptionPlan(BaseModel, table=True):
    """
    Subscription Plan - Immutable catalog entry

    The free plan (monthly_credits=0, price 0) always exists.
    """

    __tablename__ = "subscription_plans"

    id: str = Field(primary_key=True, max_length=100)
    name: str = Field(unique=True, max_length=100)
    display_name: str = Field(max_length=255)
    monthly_credits: int = Field(default=0, ge=0)
    price_in_cents: int = Field(default=0, ge=0)
    provider_plan_ref: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)
