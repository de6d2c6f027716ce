"""CheckAffordability Use Case

Answers whether an account can pay for a feature, without deducting.
"""

from libs.result import Result, Return, Error
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.services.ledger_store import LedgerStore
from .dtos import AffordabilityDTO


class CheckAffordability:

    def __init__(self, catalog_repo: CatalogRepository, ledger: LedgerStore):
        self.catalog_repo = catalog_repo
        self.ledger = ledger

    async def execute(self, account_id: str, feature_code: str) -> Result[AffordabilityDTO]:
        feature = await self.catalog_repo.get_feature(feature_code)
        if not feature or not feature.is_active:
            return Return.err(
                Error(
                    code="FEATURE_NOT_FOUND",
                    message=f"Feature '{feature_code}' not found or inactive",
                )
            )

        balance = await self.ledger.latest_balance(account_id)
        return Return.ok(
            AffordabilityDTO(
                feature_code=feature.feature_code,
                feature_display_name=feature.display_name,
                cost=feature.credit_cost,
                balance=balance.total,
                can_afford=balance.total >= feature.credit_cost,
            )
        )
