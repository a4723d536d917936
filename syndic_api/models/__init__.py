"""SQLAlchemy models package."""

from syndic_api.models.bank import (
    BankAccount,
    BankTransaction,
    TransactionDirection,
    TransactionReconciliationStatus,
)
from syndic_api.models.condominium import Condominium
from syndic_api.models.obligations import (
    FundCallItem,
    FundCallItemStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentStatus,
    UtilityBill,
    UtilityBillStatus,
)
from syndic_api.models.reconciliation import (
    ACTIVE_QUEUE_STATUSES,
    TARGET_COLUMNS,
    MatchType,
    QueueStatus,
    ReconciliationRecord,
    ReconciliationStatus,
    TargetType,
    can_transition,
)
from syndic_api.models.user import User

__all__ = [
    "ACTIVE_QUEUE_STATUSES",
    "TARGET_COLUMNS",
    "BankAccount",
    "BankTransaction",
    "Condominium",
    "FundCallItem",
    "FundCallItemStatus",
    "Invoice",
    "InvoiceStatus",
    "MatchType",
    "Payment",
    "PaymentStatus",
    "QueueStatus",
    "ReconciliationRecord",
    "ReconciliationStatus",
    "TargetType",
    "TransactionDirection",
    "TransactionReconciliationStatus",
    "User",
    "can_transition",
]
