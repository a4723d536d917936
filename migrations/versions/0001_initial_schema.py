"""Initial schema for syndic reconciliation."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

TARGET_COLUMNS = {
    "invoice": "invoice_id",
    "utility_bill": "utility_bill_id",
    "fund_call_item": "fund_call_item_id",
    "payment": "payment_id",
}


def _single_target_check() -> str:
    def only(column: str | None) -> str:
        return " AND ".join(
            f"{name} IS NOT NULL" if name == column else f"{name} IS NULL"
            for name in TARGET_COLUMNS.values()
        )

    clauses = [f"(target_type IS NULL AND {only(None)})"]
    clauses.extend(
        f"(target_type = '{target_type}' AND {only(column)})"
        for target_type, column in TARGET_COLUMNS.items()
    )
    return " OR ".join(clauses)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    direction_enum = sa.Enum("debit", "credit", name="transaction_direction_enum")
    tx_status_enum = sa.Enum(
        "unmatched", "matched", "ignored", name="transaction_reconciliation_status_enum"
    )
    invoice_status_enum = sa.Enum(
        "draft", "pending", "paid", "cancelled", name="invoice_status_enum"
    )
    utility_bill_status_enum = sa.Enum(
        "draft", "validated", "distributed", "cancelled", name="utility_bill_status_enum"
    )
    fund_call_item_status_enum = sa.Enum(
        "pending", "partial", "paid", "overdue", "cancelled", name="fund_call_item_status_enum"
    )
    payment_status_enum = sa.Enum(
        "pending", "partial", "paid", "cancelled", name="payment_status_enum"
    )
    target_type_enum = postgresql.ENUM(
        "payment", "invoice", "utility_bill", "fund_call_item", name="target_type_enum"
    )
    match_type_enum = sa.Enum("manual", "auto", name="match_type_enum")
    reconciliation_status_enum = sa.Enum(
        "pending", "confirmed", "rejected", name="reconciliation_status_enum"
    )
    queue_status_enum = sa.Enum(
        "pending", "suggested", "validated", "rejected", "ignored", name="queue_status_enum"
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "condominiums",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("condominium_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("iban", sa.String(length=34), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["condominium_id"], ["condominiums.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "bank_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("bank_account_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("original_wording", sa.Text(), nullable=False),
        sa.Column("simplified_wording", sa.Text(), nullable=True),
        sa.Column("counterparty_name", sa.String(length=255), nullable=True),
        sa.Column("direction", direction_enum, nullable=False),
        sa.Column("reconciliation_status", tx_status_enum, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["bank_account_id"], ["bank_accounts.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_bank_transactions_account_date",
        "bank_transactions",
        ["bank_account_id", "transaction_date"],
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("condominium_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("supplier_name", sa.String(length=255), nullable=False),
        sa.Column("invoice_number", sa.String(length=100), nullable=True),
        sa.Column("amount_ttc", sa.Numeric(18, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("status", invoice_status_enum, nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["condominium_id"], ["condominiums.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "utility_bills",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("condominium_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("utility_type", sa.String(length=50), nullable=False),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("status", utility_bill_status_enum, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["condominium_id"], ["condominiums.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "fund_call_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("condominium_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", fund_call_item_status_enum, nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["condominium_id"], ["condominiums.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("condominium_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", payment_status_enum, nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["condominium_id"], ["condominiums.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
    )

    # Shared by target_type and suggested_target_type
    target_type_enum.create(op.get_bind(), checkfirst=True)
    target_type_column = postgresql.ENUM(name="target_type_enum", create_type=False)

    op.create_table(
        "reconciliations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("bank_transaction_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("target_type", target_type_column, nullable=True),
        sa.Column("invoice_id", sa.Uuid(), nullable=True),
        sa.Column("utility_bill_id", sa.Uuid(), nullable=True),
        sa.Column("fund_call_item_id", sa.Uuid(), nullable=True),
        sa.Column("payment_id", sa.Uuid(), nullable=True),
        sa.Column("suggested_target_type", target_type_column, nullable=True),
        sa.Column("suggested_target_id", sa.Uuid(), nullable=True),
        sa.Column("match_type", match_type_enum, nullable=True),
        sa.Column("status", reconciliation_status_enum, nullable=False),
        sa.Column("queue_status", queue_status_enum, nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=True),
        sa.Column("matching_details", postgresql.JSONB(), nullable=True),
        sa.Column("matched_by_id", sa.Uuid(), nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["bank_transaction_id"], ["bank_transactions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["utility_bill_id"], ["utility_bills.id"]),
        sa.ForeignKeyConstraint(["fund_call_item_id"], ["fund_call_items.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
        sa.ForeignKeyConstraint(["matched_by_id"], ["users.id"]),
        sa.CheckConstraint(_single_target_check(), name="ck_reconciliations_single_target"),
        sa.CheckConstraint(
            "confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 100)",
            name="ck_reconciliations_confidence_range",
        ),
    )
    op.create_index(
        "uq_reconciliations_confirmed_transaction",
        "reconciliations",
        ["bank_transaction_id"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
    )
    op.create_index(
        "ix_reconciliations_tenant_queue_status",
        "reconciliations",
        ["tenant_id", "queue_status"],
    )


def downgrade() -> None:
    op.drop_index("ix_reconciliations_tenant_queue_status", table_name="reconciliations")
    op.drop_index("uq_reconciliations_confirmed_transaction", table_name="reconciliations")
    op.drop_table("reconciliations")
    op.drop_table("payments")
    op.drop_table("fund_call_items")
    op.drop_table("utility_bills")
    op.drop_table("invoices")
    op.drop_index("ix_bank_transactions_account_date", table_name="bank_transactions")
    op.drop_table("bank_transactions")
    op.drop_table("bank_accounts")
    op.drop_table("condominiums")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS queue_status_enum")
    op.execute("DROP TYPE IF EXISTS reconciliation_status_enum")
    op.execute("DROP TYPE IF EXISTS match_type_enum")
    op.execute("DROP TYPE IF EXISTS target_type_enum")
    op.execute("DROP TYPE IF EXISTS payment_status_enum")
    op.execute("DROP TYPE IF EXISTS fund_call_item_status_enum")
    op.execute("DROP TYPE IF EXISTS utility_bill_status_enum")
    op.execute("DROP TYPE IF EXISTS invoice_status_enum")
    op.execute("DROP TYPE IF EXISTS transaction_reconciliation_status_enum")
    op.execute("DROP TYPE IF EXISTS transaction_direction_enum")
