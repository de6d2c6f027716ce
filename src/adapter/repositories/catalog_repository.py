"""SQLAlchemy implementation of CatalogRepository"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.catalog_repository import CatalogRepository
from src.domain.subscription_plan import SubscriptionPlan, FREE_PLAN_ID
from src.domain.credit_product import CreditProduct
from src.domain.feature_cost import FeatureCost

logger = logging.getLogger(__name__)


class SqlAlchemyCatalogRepository(CatalogRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        result = await self.session.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id)
        )
        return result.scalar_one_or_none()

    async def get_free_plan(self) -> SubscriptionPlan:
        plan = await self.get_plan(FREE_PLAN_ID)
        if plan:
            return plan

        plan = SubscriptionPlan(
            id=FREE_PLAN_ID,
            name=FREE_PLAN_ID,
            display_name="Free",
            monthly_credits=0,
            price_in_cents=0,
            is_active=True,
        )
        self.session.add(plan)
        await self.session.flush()
        logger.info("Created missing free plan")
        return plan

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        stmt = select(SubscriptionPlan)
        if active_only:
            stmt = stmt.where(SubscriptionPlan.is_active == True)  # noqa: E712
        stmt = stmt.order_by(SubscriptionPlan.price_in_cents, SubscriptionPlan.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_product(self, product_id: str) -> Optional[CreditProduct]:
        result = await self.session.execute(
            select(CreditProduct).where(CreditProduct.id == product_id)
        )
        return result.scalar_one_or_none()

    async def list_products(self, active_only: bool = True) -> List[CreditProduct]:
        stmt = select(CreditProduct)
        if active_only:
            stmt = stmt.where(CreditProduct.is_active == True)  # noqa: E712
        stmt = stmt.order_by(CreditProduct.credits, CreditProduct.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_feature(self, feature_code: str) -> Optional[FeatureCost]:
        result = await self.session.execute(
            select(FeatureCost).where(FeatureCost.feature_code == feature_code)
        )
        return result.scalar_one_or_none()

    async def list_features(self, active_only: bool = True) -> List[FeatureCost]:
        stmt = select(FeatureCost)
        if active_only:
            stmt = stmt.where(FeatureCost.is_active == True)  # noqa: E712
        stmt = stmt.order_by(FeatureCost.display_name)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_reference_data(
        self,
        plans: Iterable[Dict[str, Any]] = (),
        products: Iterable[Dict[str, Any]] = (),
        features: Iterable[Dict[str, Any]] = (),
    ) -> None:
        """
        Insert or update catalog rows from configuration

        Args:
            plans: SubscriptionPlan field dicts
            products: CreditProduct field dicts
            features: FeatureCost field dicts
        """
        for data in plans:
            await self.session.merge(SubscriptionPlan(**data))
        for data in products:
            await self.session.merge(CreditProduct(**data))
        for data in features:
            await self.session.merge(FeatureCost(**data))
        await self.session.flush()
        await self.get_free_plan()
