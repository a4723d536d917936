"""Target repository: uniform access to the four obligation kinds.

A target is addressed by a ``TargetRef`` tag + id. Each kind has one handler
that knows how to describe it, list what is still outstanding and apply a
payment to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from syndic_api.logger import get_logger
from syndic_api.models import (
    FundCallItem,
    FundCallItemStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentStatus,
    TargetType,
    UtilityBill,
    UtilityBillStatus,
)
from syndic_api.services.errors import ReconciliationNotFoundError

logger = get_logger(__name__)

_NOT_FOUND_NAMES: dict[TargetType, str] = {
    TargetType.INVOICE: "Invoice",
    TargetType.UTILITY_BILL: "Utility bill",
    TargetType.FUND_CALL_ITEM: "Fund call item",
    TargetType.PAYMENT: "Payment",
}


@dataclass(frozen=True)
class TargetRef:
    """Tagged reference to exactly one obligation."""

    target_type: TargetType
    target_id: UUID


@dataclass(frozen=True)
class TargetDetails:
    """Live view of a target used for display and scoring."""

    ref: TargetRef
    label: str
    match_label: str
    amount: Decimal
    status: str
    date: date | None = None


class _TargetHandler:
    target_type: ClassVar[TargetType]
    model: ClassVar[Any]
    outstanding_statuses: ClassVar[tuple[Any, ...]]

    def load_options(self) -> list[Any]:
        return []

    def describe(self, row: Any) -> TargetDetails:
        raise NotImplementedError

    def apply_payment(self, row: Any, amount: Decimal, paid_at: datetime) -> str:
        raise NotImplementedError

    def _ref(self, row: Any) -> TargetRef:
        return TargetRef(self.target_type, row.id)


class _InvoiceHandler(_TargetHandler):
    target_type = TargetType.INVOICE
    model = Invoice
    outstanding_statuses = (InvoiceStatus.PENDING,)

    def describe(self, row: Invoice) -> TargetDetails:
        return TargetDetails(
            ref=self._ref(row),
            label=f"{row.supplier_name} - {row.invoice_number or 'Facture'}",
            match_label=row.supplier_name,
            amount=row.amount_ttc - row.paid_amount,
            status=row.status.value,
            date=row.issue_date,
        )

    def apply_payment(self, row: Invoice, amount: Decimal, paid_at: datetime) -> str:
        # A matched invoice is settled in full whatever the transaction amount.
        row.status = InvoiceStatus.PAID
        row.paid_at = paid_at
        row.paid_amount = row.amount_ttc
        return row.status.value


class _UtilityBillHandler(_TargetHandler):
    target_type = TargetType.UTILITY_BILL
    model = UtilityBill
    outstanding_statuses = (UtilityBillStatus.DRAFT, UtilityBillStatus.VALIDATED)

    def describe(self, row: UtilityBill) -> TargetDetails:
        return TargetDetails(
            ref=self._ref(row),
            label=f"{row.utility_type} - {row.supplier_name or 'Facture consommation'}",
            match_label=row.supplier_name or row.utility_type,
            amount=row.total_amount,
            status=row.status.value,
            date=row.period_start,
        )

    def apply_payment(self, row: UtilityBill, amount: Decimal, paid_at: datetime) -> str:
        row.status = UtilityBillStatus.DISTRIBUTED
        return row.status.value


class _InstallmentHandler(_TargetHandler):
    """Owner-facing targets paid in one or more installments."""

    paid_status: ClassVar[Any]
    partial_status: ClassVar[Any]

    def load_options(self) -> list[Any]:
        return [selectinload(self.model.owner)]

    def _label(self, row: Any) -> str:
        raise NotImplementedError

    def describe(self, row: Any) -> TargetDetails:
        return TargetDetails(
            ref=self._ref(row),
            label=self._label(row),
            match_label=row.owner.display_name,
            amount=row.amount - row.paid_amount,
            status=row.status.value,
        )

    def apply_payment(self, row: Any, amount: Decimal, paid_at: datetime) -> str:
        row.paid_amount = row.paid_amount + amount
        if row.paid_amount >= row.amount:
            row.status = self.paid_status
            row.paid_at = paid_at
        else:
            row.status = self.partial_status
        return row.status.value


class _FundCallItemHandler(_InstallmentHandler):
    target_type = TargetType.FUND_CALL_ITEM
    model = FundCallItem
    outstanding_statuses = (
        FundCallItemStatus.PENDING,
        FundCallItemStatus.PARTIAL,
        FundCallItemStatus.OVERDUE,
    )
    paid_status = FundCallItemStatus.PAID
    partial_status = FundCallItemStatus.PARTIAL

    def _label(self, row: FundCallItem) -> str:
        return f"Appel de fonds - {row.owner.display_name}"


class _PaymentHandler(_InstallmentHandler):
    target_type = TargetType.PAYMENT
    model = Payment
    outstanding_statuses = (PaymentStatus.PENDING, PaymentStatus.PARTIAL)
    paid_status = PaymentStatus.PAID
    partial_status = PaymentStatus.PARTIAL

    def _label(self, row: Payment) -> str:
        return f"{row.description or 'Paiement'} - {row.owner.display_name}"


_HANDLERS: dict[TargetType, _TargetHandler] = {
    handler.target_type: handler
    for handler in (
        _InvoiceHandler(),
        _UtilityBillHandler(),
        _FundCallItemHandler(),
        _PaymentHandler(),
    )
}


class TargetRepository:
    """Tenant-scoped reads and payment application for reconciliation targets."""

    def __init__(self, db: AsyncSession, tenant_id: UUID) -> None:
        self.db = db
        self.tenant_id = tenant_id

    async def _load(self, ref: TargetRef) -> tuple[_TargetHandler, Any | None]:
        handler = _HANDLERS[ref.target_type]
        model = handler.model
        result = await self.db.execute(
            select(model)
            .where(model.id == ref.target_id, model.tenant_id == self.tenant_id)
            .options(*handler.load_options())
            .execution_options(populate_existing=True)
        )
        return handler, result.scalar_one_or_none()

    async def get(self, ref: TargetRef) -> TargetDetails | None:
        """Fresh read of a target; ``None`` when it does not exist for the tenant."""
        handler, row = await self._load(ref)
        if row is None:
            return None
        return handler.describe(row)

    async def list_outstanding(
        self, target_type: TargetType, condominium_id: UUID
    ) -> list[TargetDetails]:
        handler = _HANDLERS[target_type]
        model = handler.model
        result = await self.db.execute(
            select(model)
            .where(
                model.tenant_id == self.tenant_id,
                model.condominium_id == condominium_id,
                model.status.in_(handler.outstanding_statuses),
            )
            .order_by(model.created_at, model.id)
            .options(*handler.load_options())
            .execution_options(populate_existing=True)
        )
        return [handler.describe(row) for row in result.scalars()]

    async def apply_payment(
        self,
        ref: TargetRef,
        amount: Decimal,
        *,
        paid_at: datetime | None = None,
    ) -> str:
        """Record ``amount`` against the target and return its new status."""
        handler, row = await self._load(ref)
        if row is None:
            raise target_not_found(ref)

        new_status = handler.apply_payment(row, amount, paid_at or datetime.now(UTC))
        await self.db.flush()
        logger.info(
            "Target payment applied",
            target_type=ref.target_type.value,
            target_id=str(ref.target_id),
            amount=str(amount),
            status=new_status,
        )
        return new_status


def target_not_found(ref: TargetRef) -> ReconciliationNotFoundError:
    return ReconciliationNotFoundError(_NOT_FOUND_NAMES[ref.target_type])
