"""Review queue management for reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from syndic_api.logger import get_logger
from syndic_api.models import (
    ACTIVE_QUEUE_STATUSES,
    BankAccount,
    BankTransaction,
    QueueStatus,
    ReconciliationRecord,
    ReconciliationStatus,
    TransactionReconciliationStatus,
    can_transition,
)
from syndic_api.services.errors import ReconciliationConflictError, ReconciliationNotFoundError
from syndic_api.services.targets import TargetDetails, TargetRef, TargetRepository, target_not_found
from syndic_api.services.transactions import TransactionStore

logger = get_logger(__name__)


@dataclass
class QueueItem:
    record: ReconciliationRecord
    transaction: BankTransaction
    # Live target details; None without a suggestion or when the target is gone.
    suggestion: TargetDetails | None = None


@dataclass
class QueueStats:
    pending: int = 0
    suggested: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.suggested


@dataclass
class QueuePage:
    items: list[QueueItem] = field(default_factory=list)
    stats: QueueStats = field(default_factory=QueueStats)


def ensure_transition(record: ReconciliationRecord, new_status: QueueStatus) -> None:
    """Raise a conflict if the queue state machine forbids the move."""
    if not can_transition(record.queue_status, new_status):
        raise ReconciliationConflictError(f"Reconciliation already {record.queue_status.value}")


def _condominium_scope(stmt: Any, tenant_id: UUID, condominium_id: UUID) -> Any:
    return (
        stmt.join(BankTransaction, ReconciliationRecord.bank_transaction_id == BankTransaction.id)
        .join(BankAccount, BankTransaction.bank_account_id == BankAccount.id)
        .where(
            ReconciliationRecord.tenant_id == tenant_id,
            BankAccount.condominium_id == condominium_id,
        )
    )


async def get_queue_stats(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
) -> QueueStats:
    stmt = _condominium_scope(
        select(ReconciliationRecord.queue_status, func.count(ReconciliationRecord.id)),
        tenant_id,
        condominium_id,
    ).where(ReconciliationRecord.queue_status.in_(ACTIVE_QUEUE_STATUSES))
    result = await db.execute(stmt.group_by(ReconciliationRecord.queue_status))
    counts = {status: count for status, count in result.all()}
    return QueueStats(
        pending=counts.get(QueueStatus.PENDING, 0),
        suggested=counts.get(QueueStatus.SUGGESTED, 0),
    )


async def get_queue(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
    status: QueueStatus | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> QueuePage:
    """Active queue of a condominium, newest first, with live suggestion details.

    Raises:
        ReconciliationConflictError: If ``status`` is not an active queue status.
    """
    if status is not None and status not in ACTIVE_QUEUE_STATUSES:
        raise ReconciliationConflictError(
            f"Queue status filter must be pending or suggested, got {status.value}"
        )

    statuses = [status] if status is not None else list(ACTIVE_QUEUE_STATUSES)
    stmt = (
        _condominium_scope(select(ReconciliationRecord), tenant_id, condominium_id)
        .where(ReconciliationRecord.queue_status.in_(statuses))
        .order_by(ReconciliationRecord.created_at.desc(), ReconciliationRecord.id)
        .offset(offset)
        .options(selectinload(ReconciliationRecord.transaction))
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    records = (await db.execute(stmt)).scalars().all()

    targets = TargetRepository(db, tenant_id)
    items: list[QueueItem] = []
    for record in records:
        suggestion = None
        if record.suggested_target_type is not None and record.suggested_target_id is not None:
            suggestion = await targets.get(
                TargetRef(record.suggested_target_type, record.suggested_target_id)
            )
        items.append(QueueItem(record=record, transaction=record.transaction, suggestion=suggestion))

    stats = await get_queue_stats(db, tenant_id=tenant_id, condominium_id=condominium_id)
    return QueuePage(items=items, stats=stats)


async def get_active_record(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    transaction_id: UUID,
) -> ReconciliationRecord | None:
    result = await db.execute(
        select(ReconciliationRecord)
        .where(
            ReconciliationRecord.tenant_id == tenant_id,
            ReconciliationRecord.bank_transaction_id == transaction_id,
            ReconciliationRecord.status == ReconciliationStatus.PENDING,
            ReconciliationRecord.queue_status.in_(ACTIVE_QUEUE_STATUSES),
        )
        .order_by(ReconciliationRecord.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _ensure_reviewable(transaction: BankTransaction) -> None:
    if transaction.reconciliation_status == TransactionReconciliationStatus.MATCHED:
        raise ReconciliationConflictError("Transaction already reconciled")
    if transaction.reconciliation_status == TransactionReconciliationStatus.IGNORED:
        raise ReconciliationConflictError("Transaction is ignored")


@dataclass
class EnqueueResult:
    record: ReconciliationRecord
    transaction: BankTransaction
    created: bool


async def enqueue_transaction(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    transaction_id: UUID,
    condominium_id: UUID | None = None,
) -> EnqueueResult:
    """Create the implicit ``pending`` record for an unmatched transaction.

    Idempotent: an already active record is returned with ``created=False``.
    """
    transaction = await TransactionStore(db, tenant_id).get(
        transaction_id, condominium_id=condominium_id
    )
    _ensure_reviewable(transaction)

    record = await get_active_record(db, tenant_id=tenant_id, transaction_id=transaction_id)
    if record is not None:
        return EnqueueResult(record=record, transaction=transaction, created=False)

    record = ReconciliationRecord(
        tenant_id=tenant_id,
        bank_transaction_id=transaction.id,
        status=ReconciliationStatus.PENDING,
        queue_status=QueueStatus.PENDING,
    )
    db.add(record)
    await db.flush()
    await db.refresh(record)
    logger.info("Transaction queued for review", transaction_id=str(transaction_id))
    return EnqueueResult(record=record, transaction=transaction, created=True)


async def record_suggestion(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    transaction_id: UUID,
    target: TargetRef,
    confidence_score: int,
    matching_details: dict[str, Any] | None = None,
    condominium_id: UUID | None = None,
) -> ReconciliationRecord:
    """Attach a scored suggestion to the transaction's active queue record.

    A newer suggestion replaces the previous one.
    """
    if not 0 <= confidence_score <= 100:
        raise ReconciliationConflictError("Confidence score must be between 0 and 100")

    transaction = await TransactionStore(db, tenant_id).get(
        transaction_id, condominium_id=condominium_id
    )
    _ensure_reviewable(transaction)
    if await TargetRepository(db, tenant_id).get(target) is None:
        raise target_not_found(target)

    record = await get_active_record(db, tenant_id=tenant_id, transaction_id=transaction_id)
    if record is None:
        record = ReconciliationRecord(
            tenant_id=tenant_id,
            bank_transaction_id=transaction.id,
            status=ReconciliationStatus.PENDING,
            queue_status=QueueStatus.PENDING,
        )
        db.add(record)

    ensure_transition(record, QueueStatus.SUGGESTED)
    record.queue_status = QueueStatus.SUGGESTED
    record.suggested_target_type = target.target_type
    record.suggested_target_id = target.target_id
    record.confidence_score = confidence_score
    record.matching_details = matching_details
    await db.flush()
    await db.refresh(record)

    logger.info(
        "Suggestion recorded",
        transaction_id=str(transaction_id),
        target_type=target.target_type.value,
        target_id=str(target.target_id),
        confidence_score=confidence_score,
    )
    return record


async def get_record(
    db: AsyncSession,
    record_id: UUID,
    *,
    tenant_id: UUID,
    for_update: bool = False,
) -> ReconciliationRecord:
    stmt = select(ReconciliationRecord).where(
        ReconciliationRecord.id == record_id,
        ReconciliationRecord.tenant_id == tenant_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    record = (await db.execute(stmt)).scalar_one_or_none()
    if record is None:
        raise ReconciliationNotFoundError("Reconciliation")
    return record


async def reject_record(
    db: AsyncSession,
    record_id: UUID,
    *,
    tenant_id: UUID,
    reason: str | None = None,
) -> ReconciliationRecord:
    """Dismiss a queue entry. Transaction and target are left untouched."""
    record = await get_record(db, record_id, tenant_id=tenant_id, for_update=True)
    ensure_transition(record, QueueStatus.REJECTED)

    record.status = ReconciliationStatus.REJECTED
    record.queue_status = QueueStatus.REJECTED
    record.notes = reason
    await db.flush()
    await db.refresh(record)

    logger.info("Reconciliation rejected", reconciliation_id=str(record_id))
    return record


async def ignore_record(
    db: AsyncSession,
    record_id: UUID,
    *,
    tenant_id: UUID,
) -> ReconciliationRecord:
    """Exclude the transaction from future matching."""
    record = await get_record(db, record_id, tenant_id=tenant_id, for_update=True)
    ensure_transition(record, QueueStatus.IGNORED)

    record.queue_status = QueueStatus.IGNORED
    transactions = TransactionStore(db, tenant_id)
    transaction = await transactions.get(record.bank_transaction_id)
    await transactions.set_status(transaction, TransactionReconciliationStatus.IGNORED)
    await db.refresh(record)

    logger.info(
        "Reconciliation ignored",
        reconciliation_id=str(record_id),
        transaction_id=str(transaction.id),
    )
    return record


async def delete_record(
    db: AsyncSession,
    record_id: UUID,
    *,
    tenant_id: UUID,
) -> None:
    """Remove a record and put its transaction back to ``unmatched``.

    The target's paid amount and status are not reverted: a confirmed match
    is one-way and corrections on the obligation side are manual.
    """
    record = await get_record(db, record_id, tenant_id=tenant_id, for_update=True)
    transaction_id = record.bank_transaction_id
    was_confirmed = record.status == ReconciliationStatus.CONFIRMED

    await db.delete(record)
    await db.flush()

    still_confirmed = await db.scalar(
        select(
            exists().where(
                ReconciliationRecord.bank_transaction_id == transaction_id,
                ReconciliationRecord.status == ReconciliationStatus.CONFIRMED,
            )
        )
    )
    transactions = TransactionStore(db, tenant_id)
    transaction = await transactions.get(transaction_id)
    if not still_confirmed:
        await transactions.set_status(transaction, TransactionReconciliationStatus.UNMATCHED)

    logger.info(
        "Reconciliation deleted",
        reconciliation_id=str(record_id),
        transaction_id=str(transaction_id),
        was_confirmed=was_confirmed,
        transaction_status=transaction.reconciliation_status.value,
    )
