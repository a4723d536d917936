"""Pydantic schemas for reconciliation API."""

import datetime as dt
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field

from syndic_api.models import (
    MatchType,
    QueueStatus,
    ReconciliationStatus,
    TargetType,
    TransactionDirection,
    TransactionReconciliationStatus,
)
from syndic_api.schemas.base import CamelModel


class TransactionSummary(CamelModel):
    """Bank transaction fields shown next to a queue entry."""

    id: UUID
    amount: Decimal
    date: dt.date
    label: str
    counterparty: str | None = None
    direction: TransactionDirection
    reconciliation_status: TransactionReconciliationStatus


class TargetDetailsResponse(CamelModel):
    label: str
    amount: Decimal
    status: str
    date: dt.date | None = None


class SuggestionResponse(CamelModel):
    target_type: TargetType
    target_id: UUID
    confidence_score: int | None
    matching_details: dict[str, Any] | None = None
    details: TargetDetailsResponse


class QueueItemResponse(CamelModel):
    id: UUID
    transaction: TransactionSummary
    queue_status: QueueStatus
    suggestion: SuggestionResponse | None = None
    created_at: dt.datetime


class QueueStatsResponse(CamelModel):
    pending: int
    suggested: int
    total: int


class QueueResponse(CamelModel):
    items: list[QueueItemResponse]
    stats: QueueStatsResponse


class EnqueueRequest(CamelModel):
    transaction_id: UUID


class SuggestionCreate(CamelModel):
    """Scored suggestion produced by an offline matcher."""

    transaction_id: UUID
    suggested_target_type: TargetType
    suggested_target_id: UUID
    confidence_score: int = Field(ge=0, le=100)
    matching_details: dict[str, Any] | None = None


class CandidateResponse(CamelModel):
    target_type: TargetType
    target_id: UUID
    label: str
    amount: Decimal
    date: dt.date | None = None
    score: int


class CandidatesResponse(CamelModel):
    transaction: TransactionSummary
    candidates: list[CandidateResponse]


class ReconciliationCreate(CamelModel):
    """Manual confirmation of a match."""

    transaction_id: UUID
    target_type: TargetType
    target_id: UUID
    notes: str | None = Field(default=None, max_length=2000)


class ReconciliationResponse(CamelModel):
    id: UUID
    transaction_id: UUID
    target_type: TargetType | None
    target_id: UUID | None
    suggested_target_type: TargetType | None
    suggested_target_id: UUID | None
    match_type: MatchType | None
    status: ReconciliationStatus
    queue_status: QueueStatus
    confidence_score: int | None
    matching_details: dict[str, Any] | None
    matched_by_id: UUID | None
    matched_at: dt.datetime | None
    notes: str | None
    created_at: dt.datetime
    updated_at: dt.datetime


class RejectRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=2000)


class AutoMatchRequest(CamelModel):
    min_confidence: int | None = Field(default=None, ge=0, le=100)


class AutoMatchResponse(CamelModel):
    matched: int
    skipped: int
    total: int


class HistoryTransaction(CamelModel):
    id: UUID
    amount: Decimal
    date: dt.date
    label: str


class HistoryTarget(CamelModel):
    type: TargetType
    id: UUID


class HistoryEntryResponse(CamelModel):
    id: UUID
    transaction: HistoryTransaction
    target: HistoryTarget
    match_type: MatchType | None
    confidence_score: int | None
    matched_at: dt.datetime | None
    notes: str | None


class DeleteResponse(CamelModel):
    success: bool = True
