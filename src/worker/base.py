"""Shared plumbing for the periodic background workers

A worker process owns its database engine, runs one pass at a fixed
interval and disposes the engine on shutdown.
"""

import asyncio
import logging
from typing import Any, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig

logger = logging.getLogger(__name__)


class PeriodicWorker:
    """
    Base class for workers run by a scheduler or as a long-lived process

    Subclasses implement run_once() and summarize(). is_enabled() is
    checked before every cycle so configuration can pause a worker without
    stopping its process.
    """

    name = "worker"

    def __init__(
        self,
        db_uri: Optional[str] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        """
        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            session_factory: Existing session factory; skips engine creation
        """
        self.engine = None
        if session_factory is None:
            self.db_uri = db_uri or ApplicationConfig.DB_URI
            self.engine = create_async_engine(self.db_uri, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

    def is_enabled(self) -> bool:
        return True

    async def run_once(self) -> Any:
        raise NotImplementedError

    def summarize(self, result: Any) -> str:
        return str(result)

    async def run_forever(self, interval_seconds: int):
        logger.info(f"Starting {self.name} with {interval_seconds}s interval")

        while True:
            if self.is_enabled():
                try:
                    result = await self.run_once()
                    logger.info(f"{self.name} cycle complete: {self.summarize(result)}")
                except Exception as e:
                    logger.error(f"{self.name} cycle failed: {e}")
            else:
                logger.debug(f"{self.name} is disabled, skipping")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info(f"{self.name} shutdown complete")


def configure_logging():
    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
