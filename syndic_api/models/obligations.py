"""Outstanding obligations a bank transaction can settle.

Debits settle invoices and utility bills; credits settle owner fund-call
installments and manual payments. CRUD of these rows lives outside the
reconciliation engine.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from syndic_api.database import Base
from syndic_api.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin, enum_values
from syndic_api.models.user import User


class CondominiumScopedMixin:
    condominium_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("condominiums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class UtilityBillStatus(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    DISTRIBUTED = "distributed"
    CANCELLED = "cancelled"


class FundCallItemStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


class Invoice(UUIDMixin, TenantOwnedMixin, CondominiumScopedMixin, TimestampMixin, Base):
    """Supplier invoice paid by the condominium."""

    __tablename__ = "invoices"

    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount_ttc: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name="invoice_status_enum", values_callable=enum_values),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UtilityBill(UUIDMixin, TenantOwnedMixin, CondominiumScopedMixin, TimestampMixin, Base):
    """Water/energy consumption bill distributed across lots."""

    __tablename__ = "utility_bills"

    utility_type: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[UtilityBillStatus] = mapped_column(
        SQLEnum(UtilityBillStatus, name="utility_bill_status_enum", values_callable=enum_values),
        nullable=False,
        default=UtilityBillStatus.DRAFT,
    )


class FundCallItem(UUIDMixin, TenantOwnedMixin, CondominiumScopedMixin, TimestampMixin, Base):
    """One owner's installment of a fund call."""

    __tablename__ = "fund_call_items"

    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[FundCallItemStatus] = mapped_column(
        SQLEnum(
            FundCallItemStatus, name="fund_call_item_status_enum", values_callable=enum_values
        ),
        nullable=False,
        default=FundCallItemStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner: Mapped[User] = relationship(User)


class Payment(UUIDMixin, TenantOwnedMixin, CondominiumScopedMixin, TimestampMixin, Base):
    """Manual payment expected from an owner."""

    __tablename__ = "payments"

    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status_enum", values_callable=enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner: Mapped[User] = relationship(User)
