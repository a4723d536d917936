"""Batch auto-matching of high-confidence suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.logger import async_log_timing, get_logger, log_exception
from syndic_api.models import QueueStatus
from syndic_api.services.match_executor import SYSTEM, confirm_match
from syndic_api.services.reconciliation import load_reconciliation_config
from syndic_api.services.review_queue import get_queue

logger = get_logger(__name__)


@dataclass(frozen=True)
class AutoMatchResult:
    matched: int
    skipped: int
    total: int


async def auto_match(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    condominium_id: UUID,
    min_confidence: int | None = None,
) -> AutoMatchResult:
    """Confirm every suggested entry whose confidence reaches ``min_confidence``.

    Each confirmation runs in its own savepoint; a failing entry is logged and
    counted as skipped without aborting the batch.
    """
    config = load_reconciliation_config()
    threshold = config.auto_match_min_confidence if min_confidence is None else min_confidence

    matched = 0
    skipped = 0
    async with async_log_timing(
        "auto_match",
        logger=logger,
        tenant_id=str(tenant_id),
        condominium_id=str(condominium_id),
        min_confidence=threshold,
    ) as ctx:
        page = await get_queue(
            db,
            tenant_id=tenant_id,
            condominium_id=condominium_id,
            status=QueueStatus.SUGGESTED,
            limit=config.auto_match_batch_limit,
        )
        for item in page.items:
            record_id = item.record.id
            transaction_id = item.transaction.id
            score = item.record.confidence_score
            if item.suggestion is None or score is None or score < threshold:
                skipped += 1
                continue
            try:
                await confirm_match(
                    db,
                    tenant_id=tenant_id,
                    actor=SYSTEM,
                    transaction_id=transaction_id,
                    target=item.suggestion.ref,
                    notes=f"Auto-match (score: {score})",
                    confidence_score=score,
                    matching_details=item.record.matching_details,
                )
            except Exception as exc:
                skipped += 1
                log_exception(
                    logger,
                    exc,
                    "Auto-match entry skipped",
                    level="warning",
                    reconciliation_id=str(record_id),
                    transaction_id=str(transaction_id),
                )
                continue
            matched += 1

        ctx.update(matched=matched, skipped=skipped, total=len(page.items))

    return AutoMatchResult(matched=matched, skipped=skipped, total=len(page.items))
