from .unit_of_work import SqlAlchemyUnitOfWork
from .payment_gateway import (
    LocalPaymentGateway,
    HttpPaymentGateway,
    create_payment_gateway,
)

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LocalPaymentGateway",
    "HttpPaymentGateway",
    "create_payment_gateway",
]
