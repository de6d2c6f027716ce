"""Payment Intent Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from src.domain.payment_intent import PaymentIntent


class PaymentIntentRepository(ABC):

    @abstractmethod
    async def create(self, intent: PaymentIntent) -> PaymentIntent:
        pass

    @abstractmethod
    async def get_by_gateway_ref(
        self, gateway_ref: str, for_update: bool = False
    ) -> Optional[PaymentIntent]:
        """
        Retrieve intent by gateway order/subscription id

        Args:
            gateway_ref: Gateway reference returned at checkout
            for_update: If True, lock the row and refresh it from the database,
                discarding any stale copy held by the session

        Returns:
            PaymentIntent if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, intent: PaymentIntent) -> PaymentIntent:
        pass
