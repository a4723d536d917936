"""Fixtures reproducing the reference bank feeds used across reconciliation tests."""

from dataclasses import dataclass
from decimal import Decimal

import pytest_asyncio

from syndic_api.models import BankTransaction, FundCallItem, Invoice, User
from tests.factories import (
    BankTransactionFactory,
    FundCallItemFactory,
    InvoiceFactory,
    UserFactory,
)


@dataclass
class InsuranceDebit:
    transaction: BankTransaction
    invoice: Invoice


@dataclass
class OwnerCredit:
    transaction: BankTransaction
    item: FundCallItem
    owner: User


@pytest_asyncio.fixture
async def owner(db, tenant_id) -> User:
    return await UserFactory.create_async(
        db, tenant_id=tenant_id, first_name="Jean", last_name="Dupont"
    )


@pytest_asyncio.fixture
async def insurance_debit(db, tenant_id, condominium, bank_account) -> InsuranceDebit:
    """-1200.00 direct debit against the MMA insurance invoice (scores 50)."""
    transaction = await BankTransactionFactory.create_async(
        db,
        tenant_id=tenant_id,
        bank_account_id=bank_account.id,
        amount=Decimal("-1200.00"),
        original_wording="PRLV ASSURANCE MMA IMMEUBLE",
    )
    invoice = await InvoiceFactory.create_async(
        db,
        tenant_id=tenant_id,
        condominium_id=condominium.id,
        supplier_name="MMA",
        amount_ttc=Decimal("1200.00"),
    )
    return InsuranceDebit(transaction=transaction, invoice=invoice)


@pytest_asyncio.fixture
async def owner_credit(db, tenant_id, condominium, bank_account, owner) -> OwnerCredit:
    """+450.00 transfer from Jean Dupont against his fund-call installment (scores 60)."""
    transaction = await BankTransactionFactory.create_async(
        db,
        tenant_id=tenant_id,
        bank_account_id=bank_account.id,
        amount=Decimal("450.00"),
        original_wording="VIREMENT DUPONT JEAN CHARGES Q4",
    )
    item = await FundCallItemFactory.create_async(
        db,
        tenant_id=tenant_id,
        condominium_id=condominium.id,
        owner_id=owner.id,
        amount=Decimal("450.00"),
    )
    return OwnerCredit(transaction=transaction, item=item, owner=owner)
