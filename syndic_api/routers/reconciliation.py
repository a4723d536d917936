"""Reconciliation API router."""

from datetime import date
from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from syndic_api.deps import CurrentUserDep, DbSession
from syndic_api.models import BankTransaction, QueueStatus, ReconciliationRecord
from syndic_api.schemas.reconciliation import (
    AutoMatchRequest,
    AutoMatchResponse,
    CandidateResponse,
    CandidatesResponse,
    DeleteResponse,
    EnqueueRequest,
    HistoryEntryResponse,
    HistoryTarget,
    HistoryTransaction,
    QueueItemResponse,
    QueueResponse,
    QueueStatsResponse,
    ReconciliationCreate,
    ReconciliationResponse,
    RejectRequest,
    SuggestionCreate,
    SuggestionResponse,
    TargetDetailsResponse,
    TransactionSummary,
)
from syndic_api.services.auto_match import auto_match
from syndic_api.services.errors import ReconciliationError, ReconciliationNotFoundError
from syndic_api.services.history import get_history
from syndic_api.services.match_executor import UserActor, confirm_match
from syndic_api.services.notifier import WebhookNotifier, get_notifier
from syndic_api.services.reconciliation import get_candidates
from syndic_api.services.review_queue import (
    QueueItem,
    delete_record,
    enqueue_transaction,
    get_queue,
    ignore_record,
    record_suggestion,
    reject_record,
)
from syndic_api.services.targets import TargetRef
from syndic_api.utils.exceptions import raise_bad_request, raise_not_found

router = APIRouter(
    prefix="/condominiums/{condominium_id}/reconciliation",
    tags=["reconciliation"],
)
records_router = APIRouter(prefix="/reconciliations", tags=["reconciliation"])


def _raise_http(exc: ReconciliationError) -> NoReturn:
    if isinstance(exc, ReconciliationNotFoundError):
        raise_not_found(exc.resource, cause=exc)
    raise_bad_request(str(exc), cause=exc)


def _transaction_summary(transaction: BankTransaction) -> TransactionSummary:
    return TransactionSummary(
        id=transaction.id,
        amount=transaction.amount,
        date=transaction.transaction_date,
        label=transaction.label,
        counterparty=transaction.counterparty_name,
        direction=transaction.direction,
        reconciliation_status=transaction.reconciliation_status,
    )


def _record_response(record: ReconciliationRecord) -> ReconciliationResponse:
    return ReconciliationResponse(
        id=record.id,
        transaction_id=record.bank_transaction_id,
        target_type=record.target_type,
        target_id=record.target_id,
        suggested_target_type=record.suggested_target_type,
        suggested_target_id=record.suggested_target_id,
        match_type=record.match_type,
        status=record.status,
        queue_status=record.queue_status,
        confidence_score=record.confidence_score,
        matching_details=record.matching_details,
        matched_by_id=record.matched_by_id,
        matched_at=record.matched_at,
        notes=record.notes,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _queue_item_response(item: QueueItem) -> QueueItemResponse:
    record = item.record
    suggestion = None
    if item.suggestion is not None:
        suggestion = SuggestionResponse(
            target_type=item.suggestion.ref.target_type,
            target_id=item.suggestion.ref.target_id,
            confidence_score=record.confidence_score,
            matching_details=record.matching_details,
            details=TargetDetailsResponse(
                label=item.suggestion.label,
                amount=item.suggestion.amount,
                status=item.suggestion.status,
                date=item.suggestion.date,
            ),
        )
    return QueueItemResponse(
        id=record.id,
        transaction=_transaction_summary(item.transaction),
        queue_status=record.queue_status,
        suggestion=suggestion,
        created_at=record.created_at,
    )


@router.get("/queue", response_model=QueueResponse)
async def list_queue(
    condominium_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> QueueResponse:
    queue_status = None
    if status_filter:
        try:
            queue_status = QueueStatus(status_filter)
        except ValueError as exc:
            raise_bad_request(f"Unknown queue status: {status_filter}", cause=exc)

    try:
        page = await get_queue(
            db,
            tenant_id=current_user.tenant_id,
            condominium_id=condominium_id,
            status=queue_status,
            limit=limit,
            offset=offset,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    return QueueResponse(
        items=[_queue_item_response(item) for item in page.items],
        stats=QueueStatsResponse(
            pending=page.stats.pending,
            suggested=page.stats.suggested,
            total=page.stats.total,
        ),
    )


@router.post("/queue", response_model=ReconciliationResponse)
async def enqueue(
    condominium_id: UUID,
    payload: EnqueueRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: CurrentUserDep,
    notifier: WebhookNotifier = Depends(get_notifier),
) -> ReconciliationResponse:
    try:
        result = await enqueue_transaction(
            db,
            tenant_id=current_user.tenant_id,
            transaction_id=payload.transaction_id,
            condominium_id=condominium_id,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    if result.created:
        response.status_code = status.HTTP_201_CREATED
        # Sent after the response so a slow webhook never delays the caller.
        background_tasks.add_task(
            notifier.send, WebhookNotifier.transaction_payload(result.transaction)
        )
    return _record_response(result.record)


@router.post(
    "/suggestions",
    response_model=ReconciliationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_suggestion(
    condominium_id: UUID,
    payload: SuggestionCreate,
    db: DbSession,
    current_user: CurrentUserDep,
) -> ReconciliationResponse:
    try:
        record = await record_suggestion(
            db,
            tenant_id=current_user.tenant_id,
            transaction_id=payload.transaction_id,
            target=TargetRef(payload.suggested_target_type, payload.suggested_target_id),
            confidence_score=payload.confidence_score,
            matching_details=payload.matching_details,
            condominium_id=condominium_id,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    return _record_response(record)


@router.get("/candidates/{transaction_id}", response_model=CandidatesResponse)
async def list_candidates(
    condominium_id: UUID,
    transaction_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
) -> CandidatesResponse:
    try:
        result = await get_candidates(
            db,
            transaction_id,
            tenant_id=current_user.tenant_id,
            condominium_id=condominium_id,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    return CandidatesResponse(
        transaction=_transaction_summary(result.transaction),
        candidates=[
            CandidateResponse(
                target_type=candidate.target_type,
                target_id=candidate.target_id,
                label=candidate.label,
                amount=candidate.amount,
                date=candidate.date,
                score=candidate.score,
            )
            for candidate in result.candidates
        ],
    )


@router.post("", response_model=ReconciliationResponse, status_code=status.HTTP_201_CREATED)
async def create_reconciliation(
    condominium_id: UUID,
    payload: ReconciliationCreate,
    db: DbSession,
    current_user: CurrentUserDep,
) -> ReconciliationResponse:
    try:
        record = await confirm_match(
            db,
            tenant_id=current_user.tenant_id,
            actor=UserActor(current_user.user_id),
            transaction_id=payload.transaction_id,
            target=TargetRef(payload.target_type, payload.target_id),
            notes=payload.notes,
            condominium_id=condominium_id,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    return _record_response(record)


@router.post("/auto-match", response_model=AutoMatchResponse)
async def run_auto_match(
    condominium_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
    payload: AutoMatchRequest | None = None,
) -> AutoMatchResponse:
    result = await auto_match(
        db,
        tenant_id=current_user.tenant_id,
        condominium_id=condominium_id,
        min_confidence=payload.min_confidence if payload else None,
    )
    await db.commit()
    return AutoMatchResponse(matched=result.matched, skipped=result.skipped, total=result.total)


@router.get("/history", response_model=list[HistoryEntryResponse])
async def list_history(
    condominium_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
    date_from: date | None = Query(default=None, alias="from"),
    date_to: date | None = Query(default=None, alias="to"),
) -> list[HistoryEntryResponse]:
    try:
        records = await get_history(
            db,
            tenant_id=current_user.tenant_id,
            condominium_id=condominium_id,
            date_from=date_from,
            date_to=date_to,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    return [
        HistoryEntryResponse(
            id=record.id,
            transaction=HistoryTransaction(
                id=record.transaction.id,
                amount=record.transaction.amount,
                date=record.transaction.transaction_date,
                label=record.transaction.label,
            ),
            target=HistoryTarget(type=record.target_type, id=record.target_id),
            match_type=record.match_type,
            confidence_score=record.confidence_score,
            matched_at=record.matched_at,
            notes=record.notes,
        )
        for record in records
    ]


@records_router.post("/{reconciliation_id}/reject", response_model=ReconciliationResponse)
async def reject_reconciliation(
    reconciliation_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
    payload: RejectRequest | None = None,
) -> ReconciliationResponse:
    try:
        record = await reject_record(
            db,
            reconciliation_id,
            tenant_id=current_user.tenant_id,
            reason=payload.reason if payload else None,
        )
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    return _record_response(record)


@records_router.post("/{reconciliation_id}/ignore", response_model=ReconciliationResponse)
async def ignore_reconciliation(
    reconciliation_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
) -> ReconciliationResponse:
    try:
        record = await ignore_record(db, reconciliation_id, tenant_id=current_user.tenant_id)
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    return _record_response(record)


@records_router.delete("/{reconciliation_id}", response_model=DeleteResponse)
async def delete_reconciliation(
    reconciliation_id: UUID,
    db: DbSession,
    current_user: CurrentUserDep,
) -> DeleteResponse:
    try:
        await delete_record(db, reconciliation_id, tenant_id=current_user.tenant_id)
    except ReconciliationError as exc:
        _raise_http(exc)

    await db.commit()
    return DeleteResponse(success=True)
