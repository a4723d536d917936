"""Webhook notification when a transaction enters the review queue."""

from __future__ import annotations

from typing import Any

import httpx

from syndic_api.config import settings
from syndic_api.logger import get_logger, log_exception, log_external_api
from syndic_api.models import BankTransaction

logger = get_logger(__name__)

UNMATCHED_TRANSACTION_EVENT = "reconciliation.transaction_queued"


class WebhookNotifier:
    """Fire-and-forget JSON webhook. Disabled when no URL is configured."""

    def __init__(
        self,
        url: str | None,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @staticmethod
    def transaction_payload(transaction: BankTransaction) -> dict[str, Any]:
        return {
            "event": UNMATCHED_TRANSACTION_EVENT,
            "tenant_id": str(transaction.tenant_id),
            "transaction_id": str(transaction.id),
            "bank_account_id": str(transaction.bank_account_id),
            "amount": str(transaction.amount),
            "date": transaction.transaction_date.isoformat(),
            "label": transaction.label,
            "direction": transaction.direction.value,
        }

    @log_external_api("reconciliation_webhook")
    async def _post(self, payload: dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()

    async def send(self, payload: dict[str, Any]) -> bool:
        """Deliver ``payload``; returns False when disabled or on failure."""
        if not self.enabled:
            return False
        try:
            await self._post(payload)
        except httpx.HTTPError as exc:
            log_exception(
                logger,
                exc,
                "Reconciliation webhook delivery failed",
                level="warning",
                include_traceback=False,
                webhook_event=payload.get("event"),
                transaction_id=payload.get("transaction_id"),
            )
            return False
        return True


def get_notifier() -> WebhookNotifier:
    """FastAPI dependency building the notifier from settings."""
    return WebhookNotifier(
        settings.reconciliation_webhook_url,
        timeout=settings.reconciliation_webhook_timeout_seconds,
    )
