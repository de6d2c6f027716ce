"""Catalog read use cases: plans, credit products and feature costs."""

from typing import List
from libs.result import Result, Return
from src.app.repositories.catalog_repository import CatalogRepository
from .dtos import (
    PlanDTO,
    ProductDTO,
    FeatureDTO,
    to_plan_dto,
    to_product_dto,
    to_feature_dto,
)


class ListPlans:
    def __init__(self, catalog_repo: CatalogRepository):
        self.catalog_repo = catalog_repo

    async def execute(self) -> Result[List[PlanDTO]]:
        plans = await self.catalog_repo.list_plans(active_only=True)
        return Return.ok([to_plan_dto(plan) for plan in plans])


class ListProducts:
    def __init__(self, catalog_repo: CatalogRepository):
        self.catalog_repo = catalog_repo

    async def execute(self) -> Result[List[ProductDTO]]:
        products = await self.catalog_repo.list_products(active_only=True)
        return Return.ok([to_product_dto(product) for product in products])


class ListFeatures:
    def __init__(self, catalog_repo: CatalogRepository):
        self.catalog_repo = catalog_repo

    async def execute(self) -> Result[List[FeatureDTO]]:
        features = await self.catalog_repo.list_features(active_only=True)
        return Return.ok([to_feature_dto(feature) for feature in features])
