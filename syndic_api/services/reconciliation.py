"""Reconciliation matching engine: candidate generation and scoring."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.config import Settings, settings
from syndic_api.logger import get_logger
from syndic_api.models import (
    BankTransaction,
    TargetType,
    TransactionDirection,
    TransactionReconciliationStatus,
)
from syndic_api.services.errors import ReconciliationConflictError
from syndic_api.services.targets import TargetDetails, TargetRepository
from syndic_api.services.transactions import TransactionStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationConfig:
    """Runtime configuration for matching and batch sizes."""

    auto_match_min_confidence: int
    auto_match_batch_limit: int
    candidate_limit: int
    history_limit: int


_config_cache: ReconciliationConfig | None = None


def load_reconciliation_config(force_reload: bool = False) -> ReconciliationConfig:
    """Snapshot reconciliation settings.

    Caches the result; ``force_reload`` re-reads the environment.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    source = Settings() if force_reload else settings
    config = ReconciliationConfig(
        auto_match_min_confidence=source.reconciliation_auto_match_min_confidence,
        auto_match_batch_limit=source.reconciliation_auto_match_batch_limit,
        candidate_limit=source.reconciliation_candidate_limit,
        history_limit=source.reconciliation_history_limit,
    )
    _config_cache = config
    return config


# =============================================================================
# Scoring
# =============================================================================

AMOUNT_EXACT_TOLERANCE = Decimal("0.01")
AMOUNT_EXACT_SCORE = 40
# (relative difference upper bound, score), checked in order
AMOUNT_TIERS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("0.05"), 25),
    (Decimal("0.10"), 15),
)
LABEL_TOKEN_MIN_LENGTH = 3
LABEL_TOKEN_SCORE = 10
LABEL_MAX_SCORE = 30
MAX_SCORE = 100


def score_amount(tx_amount: Decimal, target_amount: Decimal) -> int:
    """Score amount proximity (0-40). The transaction sign is ignored."""
    paid = abs(tx_amount)
    diff = abs(paid - target_amount)
    if diff < AMOUNT_EXACT_TOLERANCE:
        return AMOUNT_EXACT_SCORE

    denominator = max(paid, target_amount)
    if denominator <= 0:
        return 0
    ratio = diff / denominator
    for upper_bound, score in AMOUNT_TIERS:
        if ratio < upper_bound:
            return score
    return 0


def label_tokens(target_label: str | None) -> list[str]:
    return [
        token
        for token in (target_label or "").lower().split()
        if len(token) >= LABEL_TOKEN_MIN_LENGTH
    ]


def score_label(tx_label: str | None, target_label: str | None) -> int:
    """Score label overlap (0-30): 10 per target token found in the bank label."""
    haystack = (tx_label or "").lower()
    matched = sum(1 for token in label_tokens(target_label) if token in haystack)
    return min(LABEL_MAX_SCORE, matched * LABEL_TOKEN_SCORE)


def score_breakdown(
    tx_amount: Decimal,
    target_amount: Decimal,
    tx_label: str | None,
    target_label: str | None,
) -> dict[str, int]:
    """Per-component scores; stored as a record's ``matching_details``."""
    amount = score_amount(tx_amount, target_amount)
    label = score_label(tx_label, target_label)
    return {
        "amount": amount,
        "label": label,
        "total": max(0, min(MAX_SCORE, amount + label)),
    }


def calculate_match_score(
    tx_amount: Decimal,
    target_amount: Decimal,
    tx_label: str | None,
    target_label: str | None,
) -> int:
    """Deterministic confidence score in [0, 100]."""
    return score_breakdown(tx_amount, target_amount, tx_label, target_label)["total"]


# =============================================================================
# Candidates
# =============================================================================

DEBIT_TARGET_TYPES = (TargetType.INVOICE, TargetType.UTILITY_BILL)
CREDIT_TARGET_TYPES = (TargetType.FUND_CALL_ITEM, TargetType.PAYMENT)


@dataclass
class MatchCandidate:
    """Scored candidate target for a transaction."""

    target_type: TargetType
    target_id: UUID
    label: str
    amount: Decimal
    score: int
    date: date | None = None
    # Score components are small integers, not monetary values.
    breakdown: dict[str, int] | None = None


@dataclass
class CandidateList:
    transaction: BankTransaction
    candidates: list[MatchCandidate]


def target_types_for(amount: Decimal) -> tuple[TargetType, ...]:
    if TransactionDirection.from_amount(amount) is TransactionDirection.DEBIT:
        return DEBIT_TARGET_TYPES
    return CREDIT_TARGET_TYPES


async def find_candidates(
    db: AsyncSession,
    transaction: BankTransaction,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
) -> list[TargetDetails]:
    """Outstanding targets on the transaction's side of the ledger. Read-only."""
    targets = TargetRepository(db, tenant_id)
    found: list[TargetDetails] = []
    for target_type in target_types_for(transaction.amount):
        found.extend(await targets.list_outstanding(target_type, condominium_id))
    return found


def score_candidates(
    transaction: BankTransaction,
    targets: list[TargetDetails],
    *,
    limit: int,
) -> list[MatchCandidate]:
    """Score, sort by descending score (stable) and keep the top ``limit``."""
    scored: list[MatchCandidate] = []
    for target in targets:
        breakdown = score_breakdown(
            transaction.amount, target.amount, transaction.label, target.match_label
        )
        scored.append(
            MatchCandidate(
                target_type=target.ref.target_type,
                target_id=target.ref.target_id,
                label=target.label,
                amount=target.amount,
                score=breakdown["total"],
                date=target.date,
                breakdown=breakdown,
            )
        )
    scored.sort(key=lambda candidate: candidate.score, reverse=True)
    return scored[:limit]


async def get_candidates(
    db: AsyncSession,
    transaction_id: UUID,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
    limit: int | None = None,
) -> CandidateList:
    """Top scored candidates for one transaction of the condominium.

    Raises:
        ReconciliationNotFoundError: If the transaction is not in the condominium.
        ReconciliationConflictError: If the transaction is ignored.
    """
    transaction = await TransactionStore(db, tenant_id).get(
        transaction_id, condominium_id=condominium_id
    )
    if transaction.reconciliation_status == TransactionReconciliationStatus.IGNORED:
        raise ReconciliationConflictError("Transaction is ignored")

    config = load_reconciliation_config()
    targets = await find_candidates(
        db, transaction, tenant_id=tenant_id, condominium_id=condominium_id
    )
    candidates = score_candidates(
        transaction, targets, limit=limit if limit is not None else config.candidate_limit
    )
    logger.debug(
        "Candidates scored",
        transaction_id=str(transaction_id),
        considered=len(targets),
        returned=len(candidates),
    )
    return CandidateList(transaction=transaction, candidates=candidates)
