"""Credit Product reference data (one-time top-ups)."""

from sqlmodel import Field
from src.domain.base import BaseModel


class CreditProduct(BaseModel, table=True):
    __tablename__ = "credit_products"

    id: str = Field(primary_key=True, max_length=100)
    credits: int = Field(gt=0)
    price_in_cents: int = Field(gt=0)
    is_active: bool = Field(default=True)
