"""
List Transactions Use Case

Retrieves wallet transaction history for an account with pagination.
"""
import math
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.ledger_store import LedgerStore
from src.domain.wallet_transaction import TransactionType
from .dtos import TransactionsPageDTO, to_transaction_dto

MAX_PAGE_SIZE = 100


class ListTransactions:
    """
    Use case: View wallet transactions

    Transactions are ordered by created_at DESC (most recent first).
    Optional filters: transaction type and feature code.
    """

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    async def execute(
        self,
        account_id: str,
        page: int = 1,
        limit: int = 20,
        transaction_type: Optional[str] = None,
        feature_code: Optional[str] = None,
    ) -> Result[TransactionsPageDTO]:
        """
        List transactions for an account.

        Args:
            account_id: Account identifier
            page: 1-based page number
            limit: Page size (1..100)
            transaction_type: Optional type filter (TransactionType value)
            feature_code: Optional feature filter

        Returns:
            Result[TransactionsPageDTO]: One page plus pagination metadata
        """
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            return Return.err(
                Error(
                    code="INVALID_PAGINATION",
                    message=f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}",
                )
            )

        type_filter = None
        if transaction_type is not None:
            try:
                type_filter = TransactionType(transaction_type)
            except ValueError:
                return Return.err(
                    Error(
                        code="INVALID_TRANSACTION_TYPE",
                        message=f"Unknown transaction type '{transaction_type}'",
                    )
                )

        transactions, total = await self.ledger.list_transactions(
            account_id=account_id,
            page=page,
            limit=limit,
            transaction_type=type_filter,
            feature_code=feature_code,
        )

        return Return.ok(
            TransactionsPageDTO(
                transactions=[to_transaction_dto(txn) for txn in transactions],
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if total else 0,
            )
        )
