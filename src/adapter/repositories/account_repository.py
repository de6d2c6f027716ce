"""SQLAlchemy implementation of AccountRepository

Provides persistence for Account entities with pessimistic locking support
so that ledger writes for one account are serialized across processes.
"""

from typing import List, Optional
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.account_repository import AccountRepository
from src.domain.account import Account
from src.domain.base import utcnow


class SqlAlchemyAccountRepository(AccountRepository):
    """
    SQLAlchemy implementation of AccountRepository

    Features:
    - Pessimistic locking: UPDATE of the account row, then SELECT FOR UPDATE
    - Lazy account creation on first write
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _lock(self, account_id: str) -> None:
        # SQLite ignores FOR UPDATE; an UPDATE takes its database write lock
        # (and the row lock elsewhere) until commit or rollback
        await self.session.execute(
            update(Account).where(Account.id == account_id).values(updated_at=utcnow())
        )

    async def get_by_id(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        """
        Retrieve account with optional row-level locking

        Args:
            account_id: Account identifier
            for_update: If True, locks the account until the transaction ends
                (prevents concurrent modifications, also from other processes)

        Returns:
            Account if found, None otherwise
        """
        stmt = select(Account).where(Account.id == account_id)

        if for_update:
            await self._lock(account_id)
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, account_id: str, for_update: bool = False) -> Account:
        """
        Retrieve account, creating it when missing

        Note:
            A concurrent creation from another process surfaces as an
            IntegrityError on flush and fails the caller's unit of work.
        """
        account = await self.get_by_id(account_id, for_update=for_update)
        if account:
            return account

        account = Account(id=account_id)
        self.session.add(account)
        await self.session.flush()
        return await self.get_by_id(account_id, for_update=for_update)

    async def list_ids(self) -> List[str]:
        result = await self.session.execute(select(Account.id).order_by(Account.id))
        return list(result.scalars().all())
