"""Reconciliation record model and review-queue state machine."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from syndic_api.database import Base
from syndic_api.models.bank import BankTransaction
from syndic_api.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin, enum_values


class TargetType(str, Enum):
    """Kind of obligation a transaction is matched against."""

    PAYMENT = "payment"
    INVOICE = "invoice"
    UTILITY_BILL = "utility_bill"
    FUND_CALL_ITEM = "fund_call_item"


class MatchType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class ReconciliationStatus(str, Enum):
    """Outcome of a reconciliation record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class QueueStatus(str, Enum):
    """Review-queue position of a reconciliation record."""

    PENDING = "pending"
    SUGGESTED = "suggested"
    VALIDATED = "validated"
    REJECTED = "rejected"
    IGNORED = "ignored"


ACTIVE_QUEUE_STATUSES = (QueueStatus.PENDING, QueueStatus.SUGGESTED)

# validated/rejected/ignored are terminal.
QUEUE_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.PENDING: frozenset(
        {QueueStatus.SUGGESTED, QueueStatus.VALIDATED, QueueStatus.REJECTED, QueueStatus.IGNORED}
    ),
    QueueStatus.SUGGESTED: frozenset(
        {QueueStatus.SUGGESTED, QueueStatus.VALIDATED, QueueStatus.REJECTED, QueueStatus.IGNORED}
    ),
    QueueStatus.VALIDATED: frozenset(),
    QueueStatus.REJECTED: frozenset(),
    QueueStatus.IGNORED: frozenset(),
}


def can_transition(current: QueueStatus, new: QueueStatus) -> bool:
    return new in QUEUE_TRANSITIONS[current]


TARGET_COLUMNS: dict[TargetType, str] = {
    TargetType.INVOICE: "invoice_id",
    TargetType.UTILITY_BILL: "utility_bill_id",
    TargetType.FUND_CALL_ITEM: "fund_call_item_id",
    TargetType.PAYMENT: "payment_id",
}


def _target_consistency_sql() -> str:
    def only(column: str | None) -> str:
        return " AND ".join(
            f"{name} IS NOT NULL" if name == column else f"{name} IS NULL"
            for name in TARGET_COLUMNS.values()
        )

    clauses = [f"(target_type IS NULL AND {only(None)})"]
    clauses.extend(
        f"(target_type = '{target_type.value}' AND {only(column)})"
        for target_type, column in TARGET_COLUMNS.items()
    )
    return " OR ".join(clauses)


CONFIRMED_ONLY = text("status = 'confirmed'")


class ReconciliationRecord(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """A proposed or confirmed link between a bank transaction and one target."""

    __tablename__ = "reconciliations"
    __table_args__ = (
        # At most one confirmed record per transaction.
        Index(
            "uq_reconciliations_confirmed_transaction",
            "bank_transaction_id",
            unique=True,
            postgresql_where=CONFIRMED_ONLY,
            sqlite_where=CONFIRMED_ONLY,
        ),
        Index("ix_reconciliations_tenant_queue_status", "tenant_id", "queue_status"),
        CheckConstraint(_target_consistency_sql(), name="ck_reconciliations_single_target"),
        CheckConstraint(
            "confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 100)",
            name="ck_reconciliations_confidence_range",
        ),
    )

    bank_transaction_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_type: Mapped[TargetType | None] = mapped_column(
        SQLEnum(TargetType, name="target_type_enum", values_callable=enum_values),
        nullable=True,
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True
    )
    utility_bill_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("utility_bills.id"), nullable=True
    )
    fund_call_item_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("fund_call_items.id"), nullable=True
    )
    payment_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("payments.id"), nullable=True
    )
    suggested_target_type: Mapped[TargetType | None] = mapped_column(
        SQLEnum(TargetType, name="target_type_enum", values_callable=enum_values),
        nullable=True,
    )
    suggested_target_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    match_type: Mapped[MatchType | None] = mapped_column(
        SQLEnum(MatchType, name="match_type_enum", values_callable=enum_values),
        nullable=True,
    )
    status: Mapped[ReconciliationStatus] = mapped_column(
        SQLEnum(
            ReconciliationStatus,
            name="reconciliation_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=ReconciliationStatus.PENDING,
    )
    queue_status: Mapped[QueueStatus] = mapped_column(
        SQLEnum(QueueStatus, name="queue_status_enum", values_callable=enum_values),
        nullable=False,
        default=QueueStatus.PENDING,
    )
    confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Scores are non-monetary; the breakdown is kept for display and audit.
    matching_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    # NULL means the system actor (auto-match).
    matched_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction: Mapped[BankTransaction] = relationship(BankTransaction)

    @property
    def target_id(self) -> UUID | None:
        if self.target_type is None:
            return None
        return getattr(self, TARGET_COLUMNS[self.target_type])
