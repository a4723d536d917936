"""Tests for confirming a match against each kind of target."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from syndic_api.models import (
    FundCallItemStatus,
    InvoiceStatus,
    MatchType,
    PaymentStatus,
    QueueStatus,
    ReconciliationRecord,
    ReconciliationStatus,
    TargetType,
    TransactionReconciliationStatus,
    UtilityBillStatus,
)
from syndic_api.services.errors import ReconciliationConflictError, ReconciliationNotFoundError
from syndic_api.services.match_executor import SYSTEM, UserActor, confirm_match
from syndic_api.services.review_queue import enqueue_transaction, record_suggestion
from syndic_api.services.targets import TargetRef, TargetRepository
from tests.factories import (
    BankTransactionFactory,
    CondominiumFactory,
    InvoiceFactory,
    PaymentFactory,
    ReconciliationRecordFactory,
    UtilityBillFactory,
)


async def _records_for(db, transaction_id):
    result = await db.execute(
        select(ReconciliationRecord).where(ReconciliationRecord.bank_transaction_id == transaction_id)
    )
    return list(result.scalars())


@pytest.mark.asyncio
async def test_manual_fund_call_match_settles_installment(
    db, tenant_id, test_user, condominium, owner_credit
):
    """A user confirms the suggested fund-call item for an owner transfer."""
    transaction = owner_credit.transaction
    item = owner_credit.item
    await record_suggestion(
        db,
        tenant_id=tenant_id,
        transaction_id=transaction.id,
        target=TargetRef(TargetType.FUND_CALL_ITEM, item.id),
        confidence_score=60,
    )

    record = await confirm_match(
        db,
        tenant_id=tenant_id,
        actor=UserActor(test_user.id),
        transaction_id=transaction.id,
        target=TargetRef(TargetType.FUND_CALL_ITEM, item.id),
        notes="Charges Q4",
        condominium_id=condominium.id,
    )

    assert record.status == ReconciliationStatus.CONFIRMED
    assert record.queue_status == QueueStatus.VALIDATED
    assert record.match_type == MatchType.MANUAL
    assert record.matched_by_id == test_user.id
    assert record.matched_at is not None
    assert record.target_type == TargetType.FUND_CALL_ITEM
    assert record.fund_call_item_id == item.id
    assert record.target_id == item.id
    assert record.notes == "Charges Q4"

    await db.refresh(transaction)
    await db.refresh(item)
    assert transaction.reconciliation_status == TransactionReconciliationStatus.MATCHED
    assert item.status == FundCallItemStatus.PAID
    assert item.paid_amount == Decimal("450.00")
    assert item.paid_at is not None

    # The pending suggestion was replaced by the confirmed record.
    records = await _records_for(db, transaction.id)
    assert [r.id for r in records] == [record.id]


@pytest.mark.asyncio
async def test_invoice_match_settles_in_full(db, tenant_id, condominium, bank_account):
    transaction = await BankTransactionFactory.create_async(
        db, tenant_id=tenant_id, bank_account_id=bank_account.id, amount=Decimal("-1150.00")
    )
    invoice = await InvoiceFactory.create_async(
        db, tenant_id=tenant_id, condominium_id=condominium.id, amount_ttc=Decimal("1200.00")
    )

    record = await confirm_match(
        db,
        tenant_id=tenant_id,
        actor=SYSTEM,
        transaction_id=transaction.id,
        target=TargetRef(TargetType.INVOICE, invoice.id),
    )

    assert record.match_type == MatchType.AUTO
    assert record.matched_by_id is None
    await db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_amount == Decimal("1200.00")
    assert invoice.paid_at is not None


@pytest.mark.asyncio
async def test_utility_bill_match_marks_distributed(db, tenant_id, condominium, bank_account):
    transaction = await BankTransactionFactory.create_async(
        db, tenant_id=tenant_id, bank_account_id=bank_account.id, amount=Decimal("-320.50")
    )
    bill = await UtilityBillFactory.create_async(
        db,
        tenant_id=tenant_id,
        condominium_id=condominium.id,
        supplier_name="Veolia",
        total_amount=Decimal("320.50"),
    )

    await confirm_match(
        db,
        tenant_id=tenant_id,
        actor=SYSTEM,
        transaction_id=transaction.id,
        target=TargetRef(TargetType.UTILITY_BILL, bill.id),
    )

    await db.refresh(bill)
    assert bill.status == UtilityBillStatus.DISTRIBUTED


@pytest.mark.asyncio
async def test_partial_payment_accumulates(db, tenant_id, condominium, bank_account, owner):
    payment = await PaymentFactory.create_async(
        db,
        tenant_id=tenant_id,
        condominium_id=condominium.id,
        owner_id=owner.id,
        amount=Decimal("300.00"),
    )
    first = await BankTransactionFactory.create_async(
        db, tenant_id=tenant_id, bank_account_id=bank_account.id, amount=Decimal("100.00")
    )
    second = await BankTransactionFactory.create_async(
        db, tenant_id=tenant_id, bank_account_id=bank_account.id, amount=Decimal("200.00")
    )
    ref = TargetRef(TargetType.PAYMENT, payment.id)

    await confirm_match(db, tenant_id=tenant_id, actor=SYSTEM, transaction_id=first.id, target=ref)
    await db.refresh(payment)
    assert payment.status == PaymentStatus.PARTIAL
    assert payment.paid_amount == Decimal("100.00")
    assert payment.paid_at is None

    await confirm_match(db, tenant_id=tenant_id, actor=SYSTEM, transaction_id=second.id, target=ref)
    await db.refresh(payment)
    assert payment.status == PaymentStatus.PAID
    assert payment.paid_amount == Decimal("300.00")
    assert payment.paid_at is not None


@pytest.mark.asyncio
async def test_second_confirmation_is_a_conflict(db, tenant_id, test_user, insurance_debit):
    transaction = insurance_debit.transaction
    ref = TargetRef(TargetType.INVOICE, insurance_debit.invoice.id)
    await confirm_match(
        db, tenant_id=tenant_id, actor=UserActor(test_user.id), transaction_id=transaction.id, target=ref
    )

    with pytest.raises(ReconciliationConflictError, match="Transaction already reconciled"):
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=UserActor(test_user.id),
            transaction_id=transaction.id,
            target=ref,
        )

    confirmed = await db.scalar(
        select(func.count(ReconciliationRecord.id)).where(
            ReconciliationRecord.bank_transaction_id == transaction.id,
            ReconciliationRecord.status == ReconciliationStatus.CONFIRMED,
        )
    )
    assert confirmed == 1


@pytest.mark.asyncio
async def test_missing_transaction_or_target(db, tenant_id, condominium, insurance_debit):
    ref = TargetRef(TargetType.INVOICE, insurance_debit.invoice.id)

    with pytest.raises(ReconciliationNotFoundError, match="Transaction not found"):
        await confirm_match(db, tenant_id=tenant_id, actor=SYSTEM, transaction_id=uuid4(), target=ref)

    other_condo = await CondominiumFactory.create_async(db, tenant_id=tenant_id)
    with pytest.raises(ReconciliationNotFoundError, match="Transaction not found"):
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=SYSTEM,
            transaction_id=insurance_debit.transaction.id,
            target=ref,
            condominium_id=other_condo.id,
        )

    for target_type, name in [
        (TargetType.INVOICE, "Invoice"),
        (TargetType.UTILITY_BILL, "Utility bill"),
        (TargetType.FUND_CALL_ITEM, "Fund call item"),
        (TargetType.PAYMENT, "Payment"),
    ]:
        with pytest.raises(ReconciliationNotFoundError, match=f"{name} not found"):
            await confirm_match(
                db,
                tenant_id=tenant_id,
                actor=SYSTEM,
                transaction_id=insurance_debit.transaction.id,
                target=TargetRef(target_type, uuid4()),
            )


@pytest.mark.asyncio
async def test_failed_confirmation_leaves_no_trace(db, tenant_id, insurance_debit):
    transaction = insurance_debit.transaction
    queued = await enqueue_transaction(db, tenant_id=tenant_id, transaction_id=transaction.id)

    with pytest.raises(ReconciliationNotFoundError):
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=SYSTEM,
            transaction_id=transaction.id,
            target=TargetRef(TargetType.INVOICE, uuid4()),
        )

    await db.refresh(transaction)
    assert transaction.reconciliation_status == TransactionReconciliationStatus.UNMATCHED
    records = await _records_for(db, transaction.id)
    assert [r.id for r in records] == [queued.record.id]
    assert records[0].status == ReconciliationStatus.PENDING


@pytest.mark.asyncio
async def test_other_tenant_target_is_not_found(db, tenant_id, condominium, insurance_debit):
    foreign_invoice = await InvoiceFactory.create_async(
        db, tenant_id=uuid4(), condominium_id=condominium.id
    )

    with pytest.raises(ReconciliationNotFoundError, match="Invoice not found"):
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=SYSTEM,
            transaction_id=insurance_debit.transaction.id,
            target=TargetRef(TargetType.INVOICE, foreign_invoice.id),
        )


@pytest.mark.asyncio
async def test_unique_index_rejects_second_confirmed_record(db, tenant_id, insurance_debit):
    transaction = insurance_debit.transaction
    await ReconciliationRecordFactory.create_async(
        db,
        tenant_id=tenant_id,
        bank_transaction_id=transaction.id,
        status=ReconciliationStatus.CONFIRMED,
        queue_status=QueueStatus.VALIDATED,
        target_type=TargetType.INVOICE,
        invoice_id=insurance_debit.invoice.id,
    )

    with pytest.raises(IntegrityError):
        async with db.begin_nested():
            await ReconciliationRecordFactory.create_async(
                db,
                tenant_id=tenant_id,
                bank_transaction_id=transaction.id,
                status=ReconciliationStatus.CONFIRMED,
                queue_status=QueueStatus.VALIDATED,
                target_type=TargetType.INVOICE,
                invoice_id=insurance_debit.invoice.id,
            )


@pytest.mark.asyncio
async def test_check_constraint_rejects_mismatched_target_column(db, tenant_id, insurance_debit):
    with pytest.raises(IntegrityError):
        async with db.begin_nested():
            await ReconciliationRecordFactory.create_async(
                db,
                tenant_id=tenant_id,
                bank_transaction_id=insurance_debit.transaction.id,
                target_type=TargetType.PAYMENT,
                invoice_id=insurance_debit.invoice.id,
            )


@pytest.mark.asyncio
async def test_failure_while_settling_target_rolls_back_every_step(
    db, tenant_id, test_user, insurance_debit, monkeypatch
):
    transaction = insurance_debit.transaction
    queued = await enqueue_transaction(db, tenant_id=tenant_id, transaction_id=transaction.id)

    async def failing_apply_payment(self, ref, amount, *, paid_at=None):
        raise RuntimeError("target update failed")

    monkeypatch.setattr(TargetRepository, "apply_payment", failing_apply_payment)

    with pytest.raises(RuntimeError, match="target update failed"):
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=UserActor(test_user.id),
            transaction_id=transaction.id,
            target=TargetRef(TargetType.INVOICE, insurance_debit.invoice.id),
        )

    await db.refresh(transaction)
    await db.refresh(insurance_debit.invoice)
    assert transaction.reconciliation_status == TransactionReconciliationStatus.UNMATCHED
    assert insurance_debit.invoice.status == InvoiceStatus.PENDING
    records = await _records_for(db, transaction.id)
    assert [r.id for r in records] == [queued.record.id]
    assert records[0].status == ReconciliationStatus.PENDING


@pytest.mark.asyncio
async def test_concurrent_confirmation_surfaces_as_conflict(
    db, tenant_id, test_user, insurance_debit, monkeypatch
):
    """Another writer confirms the transaction between the check and the insert."""
    transaction = insurance_debit.transaction
    invoice = insurance_debit.invoice
    original_get = TargetRepository.get

    async def get_after_concurrent_confirm(self, ref):
        await ReconciliationRecordFactory.create_async(
            db,
            tenant_id=tenant_id,
            bank_transaction_id=transaction.id,
            status=ReconciliationStatus.CONFIRMED,
            queue_status=QueueStatus.VALIDATED,
            target_type=TargetType.INVOICE,
            invoice_id=invoice.id,
        )
        return await original_get(self, ref)

    monkeypatch.setattr(TargetRepository, "get", get_after_concurrent_confirm)

    with pytest.raises(ReconciliationConflictError, match="Transaction already reconciled") as exc_info:
        await confirm_match(
            db,
            tenant_id=tenant_id,
            actor=UserActor(test_user.id),
            transaction_id=transaction.id,
            target=TargetRef(TargetType.INVOICE, invoice.id),
        )

    assert isinstance(exc_info.value.__cause__, IntegrityError)
    await db.refresh(transaction)
    assert transaction.reconciliation_status == TransactionReconciliationStatus.UNMATCHED
    assert await _records_for(db, transaction.id) == []
