import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

import src.domain  # noqa: F401  registers every table on SQLModel.metadata
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.api.error import ClientError, client_error_handler, validation_error_handler
from src.api.routes import billing
from src.depends import engine, AsyncSessionLocal

logger = logging.getLogger(__name__)


async def init_database(config) -> None:
    """Create tables and seed the catalog from configuration"""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        catalog_repo = SqlAlchemyCatalogRepository(session)
        await catalog_repo.upsert_reference_data(
            plans=config.CATALOG_PLANS,
            products=config.CATALOG_PRODUCTS,
            features=config.CATALOG_FEATURES,
        )
        await session.commit()

    logger.info(
        f"Database ready: {len(config.CATALOG_PLANS)} plans, "
        f"{len(config.CATALOG_PRODUCTS)} products, {len(config.CATALOG_FEATURES)} features"
    )


def create_app(config) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.AUTO_CREATE_TABLES:
            await init_database(config)
        yield
        await engine.dispose()

    app = FastAPI(
        title="Credit Wallet Service",
        description="Credit wallet, subscription ledger and payment reconciliation",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.ENABLE_LOGGING_MIDDLEWARE:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.time()
            response = await call_next(request)
            duration_ms = int((time.time() - start) * 1000)
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
            )
            return response

    app.add_exception_handler(ClientError, client_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(billing.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
