"""HandlePaymentNotification Use Case

Entry point for the gateway's out-of-band webhook. Success events are
funnelled into VerifyPayment with source=notification, so a webhook and
the client callback for the same payment credit the wallet once.
"""

import json
import logging
from libs.result import Result, Return, Error
from src.app.services.payment_gateway import PaymentGateway
from src.app.repositories.payment_intent_repository import PaymentIntentRepository
from .dtos import NotificationResultDTO, VerifyPaymentCommandDTO, VerificationSource
from .verify_payment import VerifyPayment

logger = logging.getLogger(__name__)

SUCCESS_EVENTS = frozenset({
    "payment.captured",
    "order.paid",
    "subscription.activated",
    "subscription.charged",
})


class HandlePaymentNotification:

    def __init__(
        self,
        intent_repo: PaymentIntentRepository,
        gateway: PaymentGateway,
        verify_payment: VerifyPayment,
    ):
        self.intent_repo = intent_repo
        self.gateway = gateway
        self.verify_payment = verify_payment

    async def execute(self, raw_body: bytes, signature: str) -> Result[NotificationResultDTO]:
        """
        Process one signed gateway notification

        Args:
            raw_body: Request body exactly as received (the signed bytes)
            signature: Value of the signature header

        Returns:
            Result with NotificationResultDTO; non-success events are
            acknowledged with processed=False
        """
        if not self.gateway.verify_notification_signature(raw_body, signature or ""):
            logger.warning("Rejected payment notification with invalid signature")
            return Return.err(
                Error(code="INVALID_SIGNATURE", message="Notification signature verification failed")
            )

        try:
            payload = json.loads(raw_body)
            event = payload["event"]
        except (ValueError, KeyError, TypeError) as e:
            return Return.err(
                Error(
                    code="INVALID_NOTIFICATION",
                    message="Notification body is not a valid event",
                    reason=str(e),
                )
            )

        gateway_ref = payload.get("gateway_ref")
        if event not in SUCCESS_EVENTS or not gateway_ref:
            logger.info(f"Ignoring payment notification {event} for {gateway_ref}")
            return Return.ok(NotificationResultDTO(event=event, gateway_ref=gateway_ref))

        intent = await self.intent_repo.get_by_gateway_ref(gateway_ref)
        if intent is None:
            return Return.err(
                Error(
                    code="UNKNOWN_INTENT",
                    message=f"No checkout matches gateway reference {gateway_ref}",
                )
            )

        result = await self.verify_payment.execute(
            VerifyPaymentCommandDTO(
                account_id=intent.account_id,
                gateway_ref=gateway_ref,
                signature=signature,
                payment_id=payload.get("payment_id"),
                kind=intent.kind,
                product_or_plan_id=intent.product_or_plan_id,
                source=VerificationSource.NOTIFICATION,
                raw_payload=raw_body,
            )
        )
        if result.is_err():
            return Return.err(result.error)

        return Return.ok(
            NotificationResultDTO(
                event=event,
                gateway_ref=gateway_ref,
                processed=True,
                already_processed=result.value.already_processed,
                transaction_id=result.value.transaction_id,
            )
        )
