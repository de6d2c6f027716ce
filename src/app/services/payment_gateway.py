"""Payment Gateway Interface

The abstract checkout/verify contract with an external payment gateway.
Gateway calls happen outside the ledger critical section.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
from pydantic import BaseModel
from src.domain.errors import TransientGatewayError
from src.domain.subscription_plan import SubscriptionPlan

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayOrder(BaseModel):
    """Gateway-side object created at checkout"""

    gateway_ref: str
    client_payload: Dict[str, Any] = {}


class PaymentGateway(ABC):
    """
    Abstract payment gateway

    Implementations must raise TransientGatewayError for failures that are
    safe to retry (timeouts, rate limiting, 5xx) and GatewayError otherwise.
    """

    name: str = "gateway"

    @abstractmethod
    async def create_order(
        self,
        amount_in_cents: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        """Create a one-time payment order"""
        pass

    @abstractmethod
    async def create_subscription(
        self,
        plan: SubscriptionPlan,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        """Create a recurring subscription for a plan"""
        pass

    @abstractmethod
    def verify_payment_signature(
        self, gateway_ref: str, payment_id: Optional[str], signature: str
    ) -> bool:
        """Check the signature the client received after paying"""
        pass

    @abstractmethod
    def verify_notification_signature(self, raw_body: bytes, signature: str) -> bool:
        """Check the signature of an out-of-band gateway notification"""
        pass


async def call_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    backoff_base: float = 0.5,
) -> T:
    """
    Run a gateway call, retrying TransientGatewayError with exponential backoff

    Args:
        operation: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        backoff_base: Delay before the first retry; doubles each retry

    Raises:
        TransientGatewayError: if every attempt failed transiently
        GatewayError: immediately, for non-retryable failures
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientGatewayError as e:
            if attempt >= max_retries:
                logger.error(f"Gateway call failed after {attempt + 1} attempts: {e}")
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                f"Transient gateway error (attempt {attempt + 1}/{max_retries + 1}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await asyncio.sleep(delay)
            attempt += 1
