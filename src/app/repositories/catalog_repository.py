"""Catalog Repository Interface

Read access to billing reference data: subscription plans, credit products
and feature costs.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from src.domain.subscription_plan import SubscriptionPlan
from src.domain.credit_product import CreditProduct
from src.domain.feature_cost import FeatureCost


class CatalogRepository(ABC):

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        pass

    @abstractmethod
    async def get_free_plan(self) -> SubscriptionPlan:
        """
        Retrieve the free plan, creating it if the catalog lacks one

        The free plan always exists, so callers never handle None here.
        """
        pass

    @abstractmethod
    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        pass

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[CreditProduct]:
        pass

    @abstractmethod
    async def list_products(self, active_only: bool = True) -> List[CreditProduct]:
        pass

    @abstractmethod
    async def get_feature(self, feature_code: str) -> Optional[FeatureCost]:
        pass

    @abstractmethod
    async def list_features(self, active_only: bool = True) -> List[FeatureCost]:
        pass
