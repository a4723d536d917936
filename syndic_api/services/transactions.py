"""Tenant-scoped access to bank transactions."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.models import BankAccount, BankTransaction, TransactionReconciliationStatus
from syndic_api.services.errors import ReconciliationNotFoundError


class TransactionStore:
    """Reads bank transactions and moves their reconciliation status."""

    def __init__(self, db: AsyncSession, tenant_id: UUID) -> None:
        self.db = db
        self.tenant_id = tenant_id

    async def get(
        self,
        transaction_id: UUID,
        *,
        condominium_id: UUID | None = None,
        for_update: bool = False,
    ) -> BankTransaction:
        """Load a transaction of the tenant, optionally restricted to a condominium.

        ``for_update`` locks the row until the surrounding transaction ends so
        that concurrent confirmations on the same transaction are serialized.

        Raises:
            ReconciliationNotFoundError: If the transaction is not visible to the tenant.
        """
        stmt = select(BankTransaction).where(
            BankTransaction.id == transaction_id,
            BankTransaction.tenant_id == self.tenant_id,
        )
        if condominium_id is not None:
            stmt = stmt.join(BankAccount, BankTransaction.bank_account_id == BankAccount.id).where(
                BankAccount.condominium_id == condominium_id
            )
        if for_update:
            stmt = stmt.with_for_update(of=BankTransaction)

        result = await self.db.execute(stmt)
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise ReconciliationNotFoundError("Transaction")
        return transaction

    async def set_status(
        self,
        transaction: BankTransaction,
        status: TransactionReconciliationStatus,
    ) -> None:
        transaction.reconciliation_status = status
        await self.db.flush()
