"""
Supplier payment receipts and their installments.

A receipt is an amount owed to a supplier (a purchase expense, or one
entered by hand). It opens with a CREDIT on the supplier ledger; every
installment is a DEBIT and may be paid out of a treasury.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, func, case
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError
from ceramisys.models import (
    Company, Purchase, Supplier, SupplierPaymentReceipt, PaymentReceiptInstallment,
    ReceiptType, ReceiptStatus, AccountTransactionType, AccountReferenceType, TransactionSource,
)
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import ledgers
from ceramisys.services import treasury as treasury_service
from ceramisys.services.purchase_expenses import RECEIPT_PREFIX
from ceramisys.utils.folios import get_next_receipt_number
from ceramisys.utils.numbers import money

logger = logging.getLogger(__name__)


def get_receipt(db: Session, receipt_id: int, current_user) -> SupplierPaymentReceipt:
    receipt = (
        db.query(SupplierPaymentReceipt)
        .options(joinedload(SupplierPaymentReceipt.supplier), joinedload(SupplierPaymentReceipt.installments))
        .filter(SupplierPaymentReceipt.id == receipt_id)
        .first()
    )
    if not receipt:
        raise NotFoundError("الإيصال غير موجود")
    ensure_company_access(current_user, receipt.company_id)
    return receipt


def list_receipts(db: Session, filters, current_user):
    company_id = resolve_company_id(current_user, filters.company_id)
    query = db.query(SupplierPaymentReceipt).join(Supplier, SupplierPaymentReceipt.supplier_id == Supplier.id)
    if company_id is not None:
        query = query.filter(SupplierPaymentReceipt.company_id == company_id)
    if filters.supplier_id:
        query = query.filter(SupplierPaymentReceipt.supplier_id == filters.supplier_id)
    if filters.purchase_id:
        query = query.filter(SupplierPaymentReceipt.purchase_id == filters.purchase_id)
    if filters.status:
        query = query.filter(SupplierPaymentReceipt.status == filters.status)
    if filters.type:
        query = query.filter(SupplierPaymentReceipt.type == filters.type)
    if filters.search:
        s = f"%{filters.search}%"
        query = query.filter(or_(
            SupplierPaymentReceipt.receipt_number.ilike(s),
            SupplierPaymentReceipt.description.ilike(s),
            Supplier.name.ilike(s),
        ))

    total = query.count()
    items = (
        query.options(joinedload(SupplierPaymentReceipt.supplier))
        .order_by(SupplierPaymentReceipt.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return items, total


def create_receipt(db: Session, data, current_user) -> SupplierPaymentReceipt:
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    if not db.query(Company).filter(Company.id == company_id).first():
        raise NotFoundError("الشركة غير موجودة")
    supplier = db.query(Supplier).filter(Supplier.id == data.supplier_id).first()
    if not supplier:
        raise NotFoundError("المورد غير موجود")
    if data.purchase_id:
        purchase = db.query(Purchase).filter(Purchase.id == data.purchase_id).first()
        if not purchase:
            raise NotFoundError("فاتورة المشتريات غير موجودة")
        if purchase.company_id != company_id:
            raise BusinessRuleError("فاتورة المشتريات تابعة لشركة أخرى")

    amount = money(data.amount)
    receipt = SupplierPaymentReceipt(
        receipt_number=get_next_receipt_number(db, SupplierPaymentReceipt, RECEIPT_PREFIX),
        company_id=company_id,
        supplier_id=supplier.id,
        purchase_id=data.purchase_id,
        type=ReceiptType.OTHER,
        status=ReceiptStatus.PENDING,
        amount=amount,
        paid_amount=Decimal(0),
        description=data.description,
        category_name=data.category_name,
        notes=data.notes,
        created_by=current_user.display_name,
    )
    db.add(receipt)
    db.flush()

    ledgers.add_supplier_entry(
        db, supplier.id, AccountTransactionType.CREDIT, amount,
        AccountReferenceType.EXPENSE, receipt.id,
        f"إيصال {receipt.receipt_number}" + (f" - {data.description}" if data.description else ""),
    )

    db.commit()
    db.refresh(receipt)
    logger.info("Payment receipt %s of %s opened for supplier %s", receipt.receipt_number, amount, supplier.id)
    return receipt


def _pay(db: Session, receipt: SupplierPaymentReceipt, amount: Decimal, data, current_user) -> PaymentReceiptInstallment:
    if receipt.status != ReceiptStatus.PENDING:
        raise BusinessRuleError(f"لا يمكن الدفع على إيصال حالته {receipt.status.value}")
    remaining = money(receipt.remaining_amount)
    if amount > remaining:
        raise BusinessRuleError(f"المبلغ المدفوع ({amount}) أكبر من المبلغ المتبقي ({remaining})")

    treasury = treasury_service.get_treasury(db, data.treasury_id) if data.treasury_id else None

    installment = PaymentReceiptInstallment(
        receipt_id=receipt.id,
        treasury_id=treasury.id if treasury else None,
        amount=amount,
        payment_method=data.payment_method,
        reference_number=data.reference_number,
        notes=data.notes,
        created_by=current_user.display_name,
    )
    db.add(installment)

    receipt.paid_amount = money(receipt.paid_amount) + amount
    if money(receipt.remaining_amount) <= 0:
        receipt.status = ReceiptStatus.PAID
        receipt.paid_at = datetime.now()
    db.flush()

    ledgers.add_supplier_entry(
        db, receipt.supplier_id, AccountTransactionType.DEBIT, amount,
        AccountReferenceType.PAYMENT, installment.id,
        f"دفعة على الإيصال {receipt.receipt_number}",
    )
    if treasury is not None:
        treasury_service.withdraw(
            db, treasury, amount, TransactionSource.PURCHASE_PAYMENT,
            reference_type="PaymentReceiptInstallment", reference_id=installment.id,
            description=f"دفعة على الإيصال {receipt.receipt_number}",
            created_by=current_user.display_name,
        )
    return installment


def add_installment(db: Session, receipt_id: int, data, current_user) -> PaymentReceiptInstallment:
    receipt = get_receipt(db, receipt_id, current_user)
    installment = _pay(db, receipt, money(data.amount), data, current_user)
    db.commit()
    db.refresh(installment)
    logger.info("Installment %s of %s on receipt %s", installment.id, installment.amount, receipt.receipt_number)
    return installment


def pay_receipt(db: Session, receipt_id: int, data, current_user) -> SupplierPaymentReceipt:
    """Settles whatever is left on the receipt as one installment."""
    receipt = get_receipt(db, receipt_id, current_user)
    remaining = money(receipt.remaining_amount)
    if receipt.status == ReceiptStatus.PENDING and remaining <= 0:
        raise BusinessRuleError("الإيصال مسدد بالكامل")
    _pay(db, receipt, remaining, data, current_user)
    db.commit()
    db.refresh(receipt)
    logger.info("Receipt %s paid in full", receipt.receipt_number)
    return receipt


def list_installments(db: Session, receipt_id: int, current_user):
    return get_receipt(db, receipt_id, current_user).installments


def delete_installment(db: Session, installment_id: int, current_user) -> SupplierPaymentReceipt:
    installment = db.query(PaymentReceiptInstallment).filter(PaymentReceiptInstallment.id == installment_id).first()
    if not installment:
        raise NotFoundError("الدفعة غير موجودة")
    receipt = get_receipt(db, installment.receipt_id, current_user)
    if receipt.status == ReceiptStatus.CANCELLED:
        raise BusinessRuleError("لا يمكن حذف دفعة من إيصال ملغي")

    amount = money(installment.amount)
    ledgers.add_supplier_entry(
        db, receipt.supplier_id, AccountTransactionType.CREDIT, amount,
        AccountReferenceType.PAYMENT, installment.id,
        f"حذف دفعة من الإيصال {receipt.receipt_number}",
    )
    if installment.treasury_id:
        treasury = treasury_service.get_treasury(db, installment.treasury_id, active_only=False)
        treasury_service.deposit(
            db, treasury, amount, TransactionSource.PURCHASE_PAYMENT,
            reference_type="PaymentReceiptInstallment", reference_id=installment.id,
            description=f"استرجاع دفعة محذوفة من الإيصال {receipt.receipt_number}",
            created_by=current_user.display_name,
        )

    receipt.paid_amount = money(receipt.paid_amount) - amount
    receipt.status = ReceiptStatus.PENDING
    receipt.paid_at = None
    receipt.installments.remove(installment)

    db.commit()
    db.refresh(receipt)
    logger.info("Installment %s removed from receipt %s", installment_id, receipt.receipt_number)
    return receipt


def cancel_receipt(db: Session, receipt_id: int, current_user) -> SupplierPaymentReceipt:
    receipt = get_receipt(db, receipt_id, current_user)
    if receipt.status != ReceiptStatus.PENDING:
        raise BusinessRuleError("يمكن إلغاء الإيصالات المعلقة فقط")

    outstanding = money(receipt.remaining_amount)
    if outstanding > 0:
        ledgers.add_supplier_entry(
            db, receipt.supplier_id, AccountTransactionType.DEBIT, outstanding,
            AccountReferenceType.EXPENSE, receipt.id,
            f"إلغاء الإيصال {receipt.receipt_number}",
        )
    receipt.status = ReceiptStatus.CANCELLED

    db.commit()
    db.refresh(receipt)
    logger.info("Receipt %s cancelled by %s", receipt.receipt_number, current_user.username)
    return receipt


def receipt_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    pending = SupplierPaymentReceipt.status == ReceiptStatus.PENDING

    query = db.query(
        func.count(SupplierPaymentReceipt.id),
        func.coalesce(func.sum(case((pending, 1), else_=0)), 0),
        func.coalesce(func.sum(case((SupplierPaymentReceipt.status == ReceiptStatus.PAID, 1), else_=0)), 0),
        func.coalesce(func.sum(case((SupplierPaymentReceipt.status == ReceiptStatus.CANCELLED, 1), else_=0)), 0),
        func.coalesce(func.sum(SupplierPaymentReceipt.paid_amount), 0),
        func.coalesce(func.sum(case(
            (pending, SupplierPaymentReceipt.amount - SupplierPaymentReceipt.paid_amount), else_=0,
        )), 0),
    )
    if company_id is not None:
        query = query.filter(SupplierPaymentReceipt.company_id == company_id)

    row = query.one()
    return {
        "total_receipts": int(row[0] or 0),
        "pending": int(row[1] or 0),
        "paid": int(row[2] or 0),
        "cancelled": int(row[3] or 0),
        "paid_amount": float(row[4] or 0),
        "outstanding_amount": float(row[5] or 0),
    }
