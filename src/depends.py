import hmac
from typing import Optional
from fastapi import Depends, Header, status
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from libs.result import Error
from src.api.error import ClientError
from src.adapter.services.payment_gateway import create_payment_gateway
from src.app.services.account_lock import AccountLocks
from src.app.services.payment_gateway import PaymentGateway

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

# One lock registry per process, shared by every request
account_locks = AccountLocks()

payment_gateway = create_payment_gateway(ApplicationConfig)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_account_locks() -> AccountLocks:
    return account_locks


def get_payment_gateway() -> PaymentGateway:
    return payment_gateway


def get_current_account_id(
    x_account_id: str = Header(..., alias="X-Account-Id", min_length=1),
) -> str:
    """Caller identity, set by the authenticating proxy in front of the service"""
    return x_account_id


def get_service_api_key() -> str:
    return ApplicationConfig.SERVICE_API_KEY


def require_service_caller(
    x_service_key: Optional[str] = Header(default=None, alias="X-Service-Key"),
    expected_key: str = Depends(get_service_api_key),
) -> None:
    """Service-to-service routes accept only callers holding the shared key"""
    if not expected_key or not x_service_key or not hmac.compare_digest(x_service_key, expected_key):
        raise ClientError(
            Error(code="UNAUTHORIZED", message="Service credentials required"),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
