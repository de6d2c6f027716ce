from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from libs.result import Error

# Result error code -> HTTP status; anything else is a 400
ERROR_STATUS_CODES = {
    "INSUFFICIENT_CREDITS": status.HTTP_402_PAYMENT_REQUIRED,
    "PRODUCT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PLAN_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FEATURE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNKNOWN_INTENT": status.HTTP_404_NOT_FOUND,
    "NO_ACTIVE_SUBSCRIPTION": status.HTTP_404_NOT_FOUND,
    "ALREADY_SUBSCRIBED": status.HTTP_409_CONFLICT,
    "DUPLICATE_EXTERNAL_REF": status.HTTP_409_CONFLICT,
    "NEGATIVE_BALANCE": status.HTTP_409_CONFLICT,
    "ACCOUNT_INACTIVE": status.HTTP_409_CONFLICT,
    "GATEWAY_REJECTED": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
}


class ClientError(Exception):
    """Use case error surfaced to the HTTP client as {"error": {...}}"""

    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code

    @classmethod
    def from_error(cls, error: Error) -> "ClientError":
        if error.code.endswith("_FAILED"):
            return cls(error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return cls(error, status_code=ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST))


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error.model_dump(exclude_none=True)},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request parameters",
                "reason": "; ".join(
                    f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}"
                    for e in exc.errors()
                ),
            }
        },
    )
