from libs.result import Error
from src.domain.errors import BillingError


def to_error(e: BillingError) -> Error:
    """Translate a domain exception into a Result error with the same code"""
    return Error(code=e.code, message=e.message, reason=e.reason)
