"""Read-only audit trail of confirmed reconciliations."""

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from syndic_api.models import BankAccount, BankTransaction, ReconciliationRecord, ReconciliationStatus
from syndic_api.services.errors import ReconciliationConflictError
from syndic_api.services.reconciliation import load_reconciliation_config


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


async def get_history(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int | None = None,
) -> list[ReconciliationRecord]:
    """Confirmed records of a condominium, newest ``matched_at`` first.

    ``date_from``/``date_to`` are inclusive calendar days on ``matched_at``.
    """
    if date_from and date_to and date_from > date_to:
        raise ReconciliationConflictError("History range start must not be after its end")

    stmt = (
        select(ReconciliationRecord)
        .join(BankTransaction, ReconciliationRecord.bank_transaction_id == BankTransaction.id)
        .join(BankAccount, BankTransaction.bank_account_id == BankAccount.id)
        .where(
            ReconciliationRecord.tenant_id == tenant_id,
            ReconciliationRecord.status == ReconciliationStatus.CONFIRMED,
            BankAccount.condominium_id == condominium_id,
        )
    )
    if date_from is not None:
        stmt = stmt.where(ReconciliationRecord.matched_at >= _start_of(date_from))
    if date_to is not None:
        stmt = stmt.where(ReconciliationRecord.matched_at < _start_of(date_to + timedelta(days=1)))

    stmt = (
        stmt.order_by(ReconciliationRecord.matched_at.desc(), ReconciliationRecord.id)
        .limit(limit if limit is not None else load_reconciliation_config().history_limit)
        .options(selectinload(ReconciliationRecord.transaction))
    )
    result = await db.execute(stmt)
    return list(result.scalars())
