"""Match executor: atomically confirm a transaction against one target."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.logger import get_logger
from syndic_api.models import (
    TARGET_COLUMNS,
    MatchType,
    QueueStatus,
    ReconciliationRecord,
    ReconciliationStatus,
    TransactionReconciliationStatus,
)
from syndic_api.services.errors import ReconciliationConflictError
from syndic_api.services.targets import TargetRef, TargetRepository, target_not_found
from syndic_api.services.transactions import TransactionStore

logger = get_logger(__name__)

ALREADY_RECONCILED = "Transaction already reconciled"


@dataclass(frozen=True)
class UserActor:
    """A person confirming a match by hand."""

    user_id: UUID


@dataclass(frozen=True)
class SystemActor:
    """The auto-matcher."""


SYSTEM = SystemActor()

Actor = UserActor | SystemActor


async def confirm_match(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    actor: Actor,
    transaction_id: UUID,
    target: TargetRef,
    notes: str | None = None,
    condominium_id: UUID | None = None,
    confidence_score: int | None = None,
    matching_details: dict[str, Any] | None = None,
) -> ReconciliationRecord:
    """Confirm a match and apply it to the transaction and the target.

    All writes happen inside one savepoint: either the pending records are
    replaced by the confirmed one, the transaction is marked matched and the
    target is updated, or nothing changes. The caller commits.

    Raises:
        ReconciliationNotFoundError: If the transaction or target does not exist.
        ReconciliationConflictError: If the transaction already has a confirmed match.
    """
    try:
        async with db.begin_nested():
            record = await _apply_match(
                db,
                tenant_id=tenant_id,
                actor=actor,
                transaction_id=transaction_id,
                target=target,
                notes=notes,
                condominium_id=condominium_id,
                confidence_score=confidence_score,
                matching_details=matching_details,
            )
    except IntegrityError as exc:
        # Lost a race on the confirmed-record unique index.
        raise ReconciliationConflictError(ALREADY_RECONCILED) from exc

    logger.info(
        "Reconciliation confirmed",
        reconciliation_id=str(record.id),
        transaction_id=str(transaction_id),
        target_type=target.target_type.value,
        target_id=str(target.target_id),
        match_type=record.match_type.value if record.match_type else None,
        confidence_score=confidence_score,
    )
    return record


async def _apply_match(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    actor: Actor,
    transaction_id: UUID,
    target: TargetRef,
    notes: str | None,
    condominium_id: UUID | None,
    confidence_score: int | None,
    matching_details: dict[str, Any] | None,
) -> ReconciliationRecord:
    transactions = TransactionStore(db, tenant_id)
    transaction = await transactions.get(
        transaction_id, condominium_id=condominium_id, for_update=True
    )

    already_confirmed = await db.scalar(
        select(
            exists().where(
                ReconciliationRecord.bank_transaction_id == transaction.id,
                ReconciliationRecord.status == ReconciliationStatus.CONFIRMED,
            )
        )
    )
    if already_confirmed:
        raise ReconciliationConflictError(ALREADY_RECONCILED)

    targets = TargetRepository(db, tenant_id)
    if await targets.get(target) is None:
        raise target_not_found(target)

    await db.execute(
        delete(ReconciliationRecord).where(
            ReconciliationRecord.bank_transaction_id == transaction.id,
            ReconciliationRecord.status == ReconciliationStatus.PENDING,
        )
    )

    now = datetime.now(UTC)
    is_user = isinstance(actor, UserActor)
    record = ReconciliationRecord(
        tenant_id=tenant_id,
        bank_transaction_id=transaction.id,
        target_type=target.target_type,
        match_type=MatchType.MANUAL if is_user else MatchType.AUTO,
        status=ReconciliationStatus.CONFIRMED,
        queue_status=QueueStatus.VALIDATED,
        confidence_score=confidence_score,
        matching_details=matching_details,
        matched_by_id=actor.user_id if is_user else None,
        matched_at=now,
        notes=notes,
    )
    setattr(record, TARGET_COLUMNS[target.target_type], target.target_id)
    db.add(record)
    await db.flush()

    await transactions.set_status(transaction, TransactionReconciliationStatus.MATCHED)
    await targets.apply_payment(target, abs(transaction.amount), paid_at=now)
    return record
