"""SQLAlchemy implementation of PaymentIntentRepository"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.payment_intent_repository import PaymentIntentRepository
from src.domain.payment_intent import PaymentIntent


class SqlAlchemyPaymentIntentRepository(PaymentIntentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, intent: PaymentIntent) -> PaymentIntent:
        self.session.add(intent)
        await self.session.flush()
        await self.session.refresh(intent)
        return intent

    async def get_by_gateway_ref(
        self, gateway_ref: str, for_update: bool = False
    ) -> Optional[PaymentIntent]:
        stmt = select(PaymentIntent).where(PaymentIntent.gateway_ref == gateway_ref)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, intent: PaymentIntent) -> PaymentIntent:
        self.session.add(intent)
        await self.session.flush()
        await self.session.refresh(intent)
        return intent
