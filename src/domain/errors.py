"""Billing error taxonomy

Raised by the ledger, lifecycle and gateway layers; use cases translate them
into libs.result Errors carrying the same code.
"""

from typing import Optional


class BillingError(Exception):
    code = "BILLING_ERROR"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class ConflictError(BillingError):
    """external_ref already recorded for the account+gateway pair"""

    code = "DUPLICATE_EXTERNAL_REF"

    def __init__(self, message: str, existing=None, reason: Optional[str] = None):
        super().__init__(message, reason)
        self.existing = existing


class InvariantError(BillingError):
    """Append would drive a pool negative"""

    code = "NEGATIVE_BALANCE"


class InsufficientCreditsError(BillingError):
    code = "INSUFFICIENT_CREDITS"


class SignatureError(BillingError):
    code = "INVALID_SIGNATURE"


class UnknownIntentError(BillingError):
    code = "UNKNOWN_INTENT"


class NoActiveSubscriptionError(BillingError):
    code = "NO_ACTIVE_SUBSCRIPTION"


class GatewayError(BillingError):
    """Gateway rejected the request; retrying will not help"""

    code = "GATEWAY_REJECTED"


class TransientGatewayError(GatewayError):
    """Timeout, rate limit or 5xx from the gateway; safe to retry"""

    code = "GATEWAY_UNAVAILABLE"
