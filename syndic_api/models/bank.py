"""Bank account and bank transaction models.

Rows are written by the bank aggregation sync; the reconciliation engine
only reads them and moves ``reconciliation_status``.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from syndic_api.database import Base
from syndic_api.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin, enum_values


class TransactionDirection(str, Enum):
    """Money flow derived from the sign of the amount."""

    DEBIT = "debit"
    CREDIT = "credit"

    @classmethod
    def from_amount(cls, amount: Decimal) -> "TransactionDirection":
        return cls.DEBIT if amount < 0 else cls.CREDIT


class TransactionReconciliationStatus(str, Enum):
    """Reconciliation state of a bank transaction."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"
    IGNORED = "ignored"


class BankAccount(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Bank account belonging to a condominium."""

    __tablename__ = "bank_accounts"

    condominium_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("condominiums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)


class BankTransaction(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Imported bank movement. Negative amounts are debits."""

    __tablename__ = "bank_transactions"
    __table_args__ = (
        Index("ix_bank_transactions_account_date", "bank_account_id", "transaction_date"),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_wording: Mapped[str] = mapped_column(Text, nullable=False, default="")
    simplified_wording: Mapped[str | None] = mapped_column(Text, nullable=True)
    counterparty_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    direction: Mapped[TransactionDirection] = mapped_column(
        SQLEnum(
            TransactionDirection,
            name="transaction_direction_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    reconciliation_status: Mapped[TransactionReconciliationStatus] = mapped_column(
        SQLEnum(
            TransactionReconciliationStatus,
            name="transaction_reconciliation_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=TransactionReconciliationStatus.UNMATCHED,
    )

    bank_account: Mapped[BankAccount] = relationship(BankAccount)

    @property
    def label(self) -> str:
        """Simplified wording, falling back to the raw bank label."""
        return self.simplified_wording or self.original_wording or ""
