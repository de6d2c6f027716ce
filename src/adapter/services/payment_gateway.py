"""Payment Gateway Implementations

Concrete gateways for checkout creation and signature verification.
"""

import hashlib
import hmac
import logging
from typing import Dict, Optional
import httpx
from src.app.services.payment_gateway import PaymentGateway, GatewayOrder
from src.domain.base import generate_uuid
from src.domain.errors import GatewayError, TransientGatewayError
from src.domain.subscription_plan import SubscriptionPlan

logger = logging.getLogger(__name__)

# Status codes worth retrying
TRANSIENT_HTTP_ERRORS = frozenset({429, 500, 502, 503, 504})


class HmacPaymentGateway(PaymentGateway):
    """
    Signature verification shared by all gateways

    - Client confirmation: HMAC-SHA256(key_secret, "{gateway_ref}|{payment_id}")
    - Notification: HMAC-SHA256(webhook_secret, raw_body)
    Both are hex encoded and compared in constant time.
    """

    def __init__(self, key_id: str, key_secret: str, webhook_secret: str):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret

    @staticmethod
    def _hmac_hex(secret: str, payload: bytes) -> str:
        return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    @staticmethod
    def _payment_payload(gateway_ref: str, payment_id: Optional[str]) -> bytes:
        if payment_id:
            return f"{gateway_ref}|{payment_id}".encode("utf-8")
        return gateway_ref.encode("utf-8")

    def sign_payment(self, gateway_ref: str, payment_id: Optional[str]) -> str:
        return self._hmac_hex(self.key_secret, self._payment_payload(gateway_ref, payment_id))

    def sign_notification(self, raw_body: bytes) -> str:
        return self._hmac_hex(self.webhook_secret, raw_body)

    def verify_payment_signature(
        self, gateway_ref: str, payment_id: Optional[str], signature: str
    ) -> bool:
        if not signature:
            return False
        expected = self.sign_payment(gateway_ref, payment_id)
        return hmac.compare_digest(expected, signature)

    def verify_notification_signature(self, raw_body: bytes, signature: str) -> bool:
        if not signature or not self.webhook_secret:
            return False
        expected = self.sign_notification(raw_body)
        return hmac.compare_digest(expected, signature)


class LocalPaymentGateway(HmacPaymentGateway):
    """
    Gateway that mints references locally

    Useful for development and testing: no network calls, and
    sign_payment() produces the signature a real checkout would return.
    """

    name = "local"

    async def create_order(
        self,
        amount_in_cents: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        order_id = f"order_{generate_uuid()}"
        return GatewayOrder(
            gateway_ref=order_id,
            client_payload={
                "key_id": self.key_id,
                "order_id": order_id,
                "amount": amount_in_cents,
                "currency": currency,
                "receipt": receipt,
            },
        )

    async def create_subscription(
        self,
        plan: SubscriptionPlan,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        subscription_id = f"sub_{generate_uuid()}"
        return GatewayOrder(
            gateway_ref=subscription_id,
            client_payload={
                "key_id": self.key_id,
                "subscription_id": subscription_id,
                "plan_ref": plan.provider_plan_ref or plan.id,
            },
        )


class HttpPaymentGateway(HmacPaymentGateway):
    """
    Gateway reached over a REST API

    POST {base_url}/orders and {base_url}/subscriptions with basic auth
    (key_id, key_secret); both return a JSON object with an "id".
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP gateway

        Args:
            base_url: Gateway API root
            key_id: API key id (basic auth user, also sent to the client)
            key_secret: API key secret (basic auth password, signs payments)
            webhook_secret: Secret signing notification bodies
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(key_id, key_secret, webhook_secret)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self.transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.TransportError as e:
            raise TransientGatewayError(f"Gateway unreachable: {url}", reason=str(e)) from e

        if response.status_code in TRANSIENT_HTTP_ERRORS:
            raise TransientGatewayError(
                f"Gateway returned {response.status_code} for {path}",
                reason=response.text[:500],
            )
        if response.is_error:
            raise GatewayError(
                f"Gateway rejected {path} with {response.status_code}",
                reason=response.text[:500],
            )

        body = response.json()
        if "id" not in body:
            raise GatewayError(f"Gateway response for {path} has no id")
        return body

    async def create_order(
        self,
        amount_in_cents: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        body = await self._post(
            "/orders",
            {
                "amount": amount_in_cents,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        logger.info(f"Created gateway order {body['id']} for receipt {receipt}")
        return GatewayOrder(
            gateway_ref=body["id"],
            client_payload={
                "key_id": self.key_id,
                "order_id": body["id"],
                "amount": amount_in_cents,
                "currency": currency,
            },
        )

    async def create_subscription(
        self,
        plan: SubscriptionPlan,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        if not plan.provider_plan_ref:
            raise GatewayError(f"Plan {plan.id} has no gateway plan reference")

        body = await self._post(
            "/subscriptions",
            {
                "plan_id": plan.provider_plan_ref,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        logger.info(f"Created gateway subscription {body['id']} for plan {plan.id}")
        return GatewayOrder(
            gateway_ref=body["id"],
            client_payload={
                "key_id": self.key_id,
                "subscription_id": body["id"],
                "short_url": body.get("short_url"),
            },
        )


def create_payment_gateway(config) -> PaymentGateway:
    """
    Factory function to create the configured payment gateway

    Args:
        config: ApplicationConfig-like object

    Returns:
        LocalPaymentGateway unless PAYMENT_GATEWAY == "http"
    """
    if config.PAYMENT_GATEWAY == "http":
        return HttpPaymentGateway(
            base_url=config.PAYMENT_API_BASE_URL,
            key_id=config.PAYMENT_KEY_ID,
            key_secret=config.PAYMENT_KEY_SECRET,
            webhook_secret=config.PAYMENT_WEBHOOK_SECRET,
            timeout=float(config.GATEWAY_TIMEOUT_SECONDS),
        )

    return LocalPaymentGateway(
        key_id=config.PAYMENT_KEY_ID,
        key_secret=config.PAYMENT_KEY_SECRET,
        webhook_secret=config.PAYMENT_WEBHOOK_SECRET,
    )
