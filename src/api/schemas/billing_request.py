"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests. Client routes take
the account from the X-Account-Id header, never from the body; only the
service-to-service refund names the account it credits.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from src.domain.payment_intent import IntentKind


class ConsumeRequestSchema(BaseModel):
    """
    Request schema for consuming credits

    Used for POST /billing/consume endpoint.
    """

    amount: Optional[int] = Field(
        default=None,
        gt=0,
        description="Credits to consume (must be > 0)"
    )

    feature_code: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Chargeable feature; its catalog credit_cost is consumed"
    )

    reason: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Free-form description for the ledger"
    )

    @model_validator(mode="after")
    def check_amount_or_feature(self):
        if (self.amount is None) == (self.feature_code is None):
            raise ValueError("Exactly one of amount or feature_code is required")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "feature_code": "story_export",
                "reason": "Export of story 42"
            }
        }
    )


class RefundRequestSchema(BaseModel):
    """
    Request schema for refunding credits

    Used for POST /billing/refund endpoint (service callers only).
    """

    account_id: str = Field(..., min_length=1, max_length=255, description="Account to credit")

    amount: int = Field(..., gt=0, description="Credits to give back (must be > 0)")

    external_ref: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Idempotency key, e.g. the id of the failed job"
    )

    reason: Optional[str] = Field(default=None, max_length=200)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "account_id": "user_123",
                "amount": 10,
                "external_ref": "job_981",
                "reason": "Export failed"
            }
        }
    )


class TopUpCheckoutRequestSchema(BaseModel):
    product_id: str = Field(..., min_length=1)


class SubscriptionCheckoutRequestSchema(BaseModel):
    plan_id: str = Field(..., min_length=1)


class VerifyPaymentRequestSchema(BaseModel):
    """
    Request schema for the checkout success callback

    Used for POST /billing/verify-payment endpoint.
    """

    gateway_ref: str = Field(..., min_length=1, description="Order or subscription id from checkout")
    signature: str = Field(..., min_length=1, description="Signature returned by the gateway")
    payment_id: Optional[str] = Field(default=None, description="Gateway payment id")
    kind: IntentKind
    product_or_plan_id: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "gateway_ref": "order_5f0c2d",
                "signature": "9b1f...e4",
                "payment_id": "pay_77a1",
                "kind": "topup",
                "product_or_plan_id": "pack_100"
            }
        }
    )
