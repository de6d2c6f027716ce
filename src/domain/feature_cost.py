"""Feature Cost reference data

Credit price of each chargeable action.
"""

from sqlmodel import Field
from src.domain.base import BaseModel


class FeatureCost(BaseModel, table=True):
    __tablename__ = "feature_costs"

    feature_code: str = Field(primary_key=True, max_length=100)
    display_name: str = Field(max_length=255)
    credit_cost: int = Field(gt=0)
    is_active: bool = Field(default=True)
