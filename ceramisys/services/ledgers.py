"""
Customer and supplier account ledgers.

Each entry stores the running balance after it. For customers DEBIT means
the customer owes us more; for suppliers CREDIT means we owe them more.
Entries are added to the caller's session and never committed here.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ceramisys.core.exceptions import NotFoundError
from ceramisys.models import (
    Customer, CustomerAccountEntry, Supplier, SupplierAccountEntry,
    AccountTransactionType, AccountReferenceType,
)


def _last_balance(db: Session, entry_model, owner_column, owner_id: int) -> Decimal:
    last = (
        db.query(entry_model)
        .filter(owner_column == owner_id)
        .order_by(entry_model.id.desc())
        .first()
    )
    return Decimal(last.balance) if last else Decimal(0)


def customer_balance(db: Session, customer_id: int) -> Decimal:
    return _last_balance(db, CustomerAccountEntry, CustomerAccountEntry.customer_id, customer_id)


def supplier_balance(db: Session, supplier_id: int) -> Decimal:
    return _last_balance(db, SupplierAccountEntry, SupplierAccountEntry.supplier_id, supplier_id)


def add_customer_entry(
    db: Session,
    customer_id: int,
    transaction_type: AccountTransactionType,
    amount: Decimal,
    reference_type: AccountReferenceType,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
) -> CustomerAccountEntry:
    amount = Decimal(str(amount))
    balance = customer_balance(db, customer_id)
    if transaction_type == AccountTransactionType.DEBIT:
        balance += amount
    else:
        balance -= amount

    entry = CustomerAccountEntry(
        customer_id=customer_id,
        transaction_type=transaction_type,
        amount=amount,
        balance=balance,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
    )
    db.add(entry)
    db.flush()
    return entry


def add_supplier_entry(
    db: Session,
    supplier_id: int,
    transaction_type: AccountTransactionType,
    amount: Decimal,
    reference_type: AccountReferenceType,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
) -> SupplierAccountEntry:
    amount = Decimal(str(amount))
    balance = supplier_balance(db, supplier_id)
    if transaction_type == AccountTransactionType.CREDIT:
        balance += amount
    else:
        balance -= amount

    entry = SupplierAccountEntry(
        supplier_id=supplier_id,
        transaction_type=transaction_type,
        amount=amount,
        balance=balance,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
    )
    db.add(entry)
    db.flush()
    return entry


def get_or_create_branch_customer(db: Session, branch) -> Customer:
    """Pseudo-customer the parent company bills when a branch sells its stock."""
    phone = f"BRANCH-{branch.id}"
    customer = db.query(Customer).filter(Customer.phone == phone).first()
    if customer:
        return customer
    customer = Customer(name=branch.name, phone=phone, note=f"عميل تلقائي للشركة التابعة {branch.name}")
    db.add(customer)
    db.flush()
    return customer


def get_or_create_parent_supplier(db: Session, parent) -> Supplier:
    """Pseudo-supplier a branch owes when it sells parent stock."""
    phone = f"PARENT-{parent.id}"
    supplier = db.query(Supplier).filter(Supplier.phone == phone).first()
    if supplier:
        return supplier
    supplier = Supplier(name=parent.name, phone=phone, note=f"مورد تلقائي للشركة الأم {parent.name}")
    db.add(supplier)
    db.flush()
    return supplier


def _summary(db: Session, entry_model, owner_column, owner_id: int, balance: Decimal) -> dict:
    totals = dict(
        db.query(entry_model.transaction_type, func.coalesce(func.sum(entry_model.amount), 0))
        .filter(owner_column == owner_id)
        .group_by(entry_model.transaction_type)
        .all()
    )
    entries = (
        db.query(entry_model)
        .filter(owner_column == owner_id)
        .order_by(entry_model.id.desc())
        .all()
    )
    return {
        "entries": entries,
        "current_balance": balance,
        "total_debit": Decimal(str(totals.get(AccountTransactionType.DEBIT, 0))),
        "total_credit": Decimal(str(totals.get(AccountTransactionType.CREDIT, 0))),
    }


def customer_account(db: Session, customer_id: int) -> dict:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("العميل غير موجود")
    summary = _summary(
        db, CustomerAccountEntry, CustomerAccountEntry.customer_id, customer_id,
        customer_balance(db, customer_id),
    )
    summary["customer"] = customer
    return summary


def supplier_account(db: Session, supplier_id: int) -> dict:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("المورد غير موجود")
    summary = _summary(
        db, SupplierAccountEntry, SupplierAccountEntry.supplier_id, supplier_id,
        supplier_balance(db, supplier_id),
    )
    summary["supplier"] = supplier
    return summary
