"""RefundCredits Use Case

Credits compensation back to an account's purchased pool, idempotent on
the caller-supplied external_ref.
"""

import logging
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.account_lock import AccountLocks
from src.app.services.ledger_store import LedgerStore, LedgerEntry
from src.app.repositories.account_repository import AccountRepository
from src.domain.errors import BillingError, ConflictError
from src.domain.wallet_balance import snapshot_of
from src.domain.wallet_transaction import TransactionType, CreditPool
from .dtos import RefundCommandDTO, RefundResultDTO, to_transaction_dto
from .errors import to_error

logger = logging.getLogger(__name__)

REFUND_GATEWAY = "refund"


class RefundCredits:
    """
    Use Case: Refund credits to an account

    Business Rules:
    1. Idempotency: same external_ref returns the original refund
    2. Refunds go to the purchased pool (never reset by renewals)
    3. Serialized with other writes on the account
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: AccountLocks,
        account_repo: AccountRepository,
        ledger: LedgerStore,
    ):
        self.uow = uow
        self.locks = locks
        self.account_repo = account_repo
        self.ledger = ledger

    async def execute(self, command: RefundCommandDTO) -> Result[RefundResultDTO]:
        async with self.locks.hold(command.account_id):
            try:
                await self.account_repo.get_or_create(command.account_id, for_update=True)
                txn = await self.ledger.append(
                    command.account_id,
                    LedgerEntry(
                        transaction_type=TransactionType.REFUND,
                        pool=CreditPool.PURCHASED,
                        amount=command.amount,
                        description=command.reason or f"Refunded {command.amount} credits",
                        gateway=REFUND_GATEWAY,
                        external_ref=command.external_ref,
                    ),
                )
                await self.uow.commit()

            except ConflictError as e:
                await self.uow.rollback()
                existing = await self.ledger.find_by_external_ref(
                    command.account_id, REFUND_GATEWAY, command.external_ref
                )
                if existing is None:
                    return Return.err(to_error(e))
                logger.info(
                    f"Refund {command.external_ref} for account {command.account_id} already applied"
                )
                return Return.ok(
                    RefundResultDTO(
                        transaction=to_transaction_dto(existing),
                        balance=snapshot_of(existing),
                        already_processed=True,
                    )
                )

            except BillingError as e:
                await self.uow.rollback()
                return Return.err(to_error(e))

            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="REFUND_CREDITS_FAILED",
                        message="Failed to refund credits",
                        reason=str(e),
                    )
                )

        return Return.ok(
            RefundResultDTO(transaction=to_transaction_dto(txn), balance=snapshot_of(txn))
        )
