"""SQLAlchemy implementation of WalletTransactionRepository

Append-only persistence of wallet transactions. Duplicate external
references are rejected by the unique constraint and surface as
IntegrityError on flush.
"""

from typing import List, Optional, Tuple
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.wallet_transaction_repository import WalletTransactionRepository
from src.domain.wallet_transaction import WalletTransaction, TransactionType


class SqlAlchemyWalletTransactionRepository(WalletTransactionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: WalletTransaction) -> WalletTransaction:
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def get_by_id(self, transaction_id: int) -> Optional[WalletTransaction]:
        stmt = select(WalletTransaction).where(WalletTransaction.id == transaction_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest(self, account_id: str) -> Optional[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.account_id == account_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_ref(
        self, account_id: str, gateway: str, external_ref: str
    ) -> Optional[WalletTransaction]:
        stmt = select(WalletTransaction).where(
            WalletTransaction.account_id == account_id,
            WalletTransaction.gateway == gateway,
            WalletTransaction.external_ref == external_ref,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_account(
        self,
        account_id: str,
        limit: int,
        offset: int,
        transaction_type: Optional[TransactionType] = None,
        feature_code: Optional[str] = None,
    ) -> Tuple[List[WalletTransaction], int]:
        """
        Paginated history for an account, most recent first

        Args:
            account_id: Account identifier
            limit: Page size
            offset: Rows to skip
            transaction_type: Optional type filter
            feature_code: Optional feature filter (consumption entries)

        Returns:
            Tuple of (transactions, total matching count)
        """
        conditions = [WalletTransaction.account_id == account_id]
        if transaction_type is not None:
            conditions.append(WalletTransaction.transaction_type == transaction_type)
        if feature_code is not None:
            conditions.append(WalletTransaction.feature_code == feature_code)

        count_stmt = select(func.count()).select_from(WalletTransaction).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(WalletTransaction)
            .where(*conditions)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_all_for_account(self, account_id: str) -> List[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.account_id == account_id)
            .order_by(WalletTransaction.created_at.asc(), WalletTransaction.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
