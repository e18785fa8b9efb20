"""
Purchase expenses: freight, customs and the like billed on top of a supplier
invoice. Each expense raises the purchase's landed cost, and when a supplier
bills it, opens a payment receipt that is settled in installments.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import (
    ExpenseCategory, ExpenseCurrency, Purchase, PurchaseExpense, Sale, Supplier,
    SupplierPaymentReceipt, ReceiptType, ReceiptStatus, AccountTransactionType, AccountReferenceType,
)
from ceramisys.services import ledgers
from ceramisys.services import purchases as purchase_service
from ceramisys.utils.folios import get_next_receipt_number
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)

RECEIPT_PREFIX = "SPR"


# -----------------------------
# Categories
# -----------------------------
def get_category(db: Session, category_id: int) -> ExpenseCategory:
    category = db.query(ExpenseCategory).filter(ExpenseCategory.id == category_id).first()
    if not category:
        raise NotFoundError("فئة المصروفات غير موجودة")
    return category


def list_categories(db: Session, include_inactive: bool = False):
    query = db.query(ExpenseCategory).options(joinedload(ExpenseCategory.suppliers))
    if not include_inactive:
        query = query.filter(ExpenseCategory.is_active == True)
    return query.order_by(ExpenseCategory.name).all()


def _suppliers(db: Session, supplier_ids) -> list:
    ids = set(supplier_ids)
    if not ids:
        return []
    suppliers = db.query(Supplier).filter(Supplier.id.in_(ids)).all()
    if len(suppliers) != len(ids):
        raise NotFoundError("بعض الموردين غير موجودين")
    return suppliers


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(ExpenseCategory).filter(ExpenseCategory.name == name)
    if exclude_id is not None:
        query = query.filter(ExpenseCategory.id != exclude_id)
    if query.first():
        raise ConflictError(f"فئة المصروفات '{name}' موجودة مسبقاً")


def create_category(db: Session, data) -> ExpenseCategory:
    _ensure_unique_name(db, data.name)
    category = ExpenseCategory(
        name=data.name,
        description=data.description,
        is_active=data.is_active,
        suppliers=_suppliers(db, data.supplier_ids),
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Expense category %s created (%s)", category.id, category.name)
    return category


def update_category(db: Session, category_id: int, data) -> ExpenseCategory:
    category = get_category(db, category_id)
    fields = data.model_dump(exclude_unset=True)

    if fields.get("name"):
        _ensure_unique_name(db, data.name, exclude_id=category.id)
        category.name = data.name
    if "description" in fields:
        category.description = data.description
    if data.is_active is not None:
        category.is_active = data.is_active
    if data.supplier_ids is not None:
        category.suppliers = _suppliers(db, data.supplier_ids)

    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    if category.expenses:
        raise BusinessRuleError("لا يمكن حذف الفئة لوجود مصروفات مسجلة عليها، يمكن تعطيلها بدلاً من ذلك")
    db.delete(category)
    db.commit()


# -----------------------------
# Expenses on a purchase
# -----------------------------
def _recalculate(db: Session, purchase: Purchase) -> None:
    db.flush()
    db.refresh(purchase, ["expenses"])
    purchase.total_expenses = money(sum((to_decimal(e.amount) for e in purchase.expenses), Decimal(0)))
    purchase_service.refresh_cost_history(db, purchase)


def _local_amount(item):
    """Returns ``(amount, rate, amount_foreign)`` with ``amount`` in local currency."""
    if item.currency == ExpenseCurrency.LYD:
        return money(item.amount), Decimal(1), None
    rate = to_decimal(item.exchange_rate)
    return money(to_decimal(item.amount) * rate), rate, money(item.amount)


def list_expenses(db: Session, purchase_id: int, current_user):
    purchase = purchase_service.get_purchase(db, purchase_id, current_user)
    return (
        db.query(PurchaseExpense)
        .options(joinedload(PurchaseExpense.category), joinedload(PurchaseExpense.supplier))
        .filter(PurchaseExpense.purchase_id == purchase.id)
        .order_by(PurchaseExpense.id)
        .all()
    )


def add_expenses(db: Session, purchase_id: int, data, current_user) -> Purchase:
    purchase = purchase_service.get_purchase(db, purchase_id, current_user)
    if db.query(Sale).filter(Sale.related_branch_purchase_id == purchase.id).first():
        raise BusinessRuleError("لا يمكن إضافة مصروفات على فاتورة مشتريات مولدة من بيع مركب")

    for item in data.expenses:
        category = get_category(db, item.category_id)
        if not category.is_active:
            raise BusinessRuleError(f"فئة المصروفات '{category.name}' غير مفعلة")

        supplier = None
        if item.supplier_id:
            supplier = purchase_service.get_supplier(db, item.supplier_id)
            allowed = {s.id for s in category.suppliers}
            if allowed and supplier.id not in allowed:
                raise BusinessRuleError(f"المورد '{supplier.name}' غير مرتبط بفئة '{category.name}'")

        amount, rate, amount_foreign = _local_amount(item)
        expense = PurchaseExpense(
            purchase_id=purchase.id,
            category_id=category.id,
            supplier_id=supplier.id if supplier else None,
            amount=amount,
            currency=item.currency,
            exchange_rate=rate,
            amount_foreign=amount_foreign,
            notes=item.notes,
        )
        db.add(expense)
        db.flush()

        if supplier:
            receipt = SupplierPaymentReceipt(
                receipt_number=get_next_receipt_number(db, SupplierPaymentReceipt, RECEIPT_PREFIX),
                company_id=purchase.company_id,
                supplier_id=supplier.id,
                purchase_id=purchase.id,
                expense_id=expense.id,
                type=ReceiptType.EXPENSE,
                status=ReceiptStatus.PENDING,
                amount=amount,
                paid_amount=Decimal(0),
                description=f"{category.name} - فاتورة مشتريات رقم {purchase.invoice_number or purchase.id}",
                category_name=category.name,
                created_by=current_user.display_name,
            )
            db.add(receipt)
            db.flush()
            ledgers.add_supplier_entry(
                db, supplier.id, AccountTransactionType.CREDIT, amount,
                AccountReferenceType.EXPENSE, receipt.id,
                f"مصروف {category.name} على فاتورة المشتريات رقم {purchase.invoice_number or purchase.id} - إيصال {receipt.receipt_number}",
            )

    _recalculate(db, purchase)
    db.commit()
    db.refresh(purchase)
    logger.info("Purchase %s: %s expense(s) added, landed costs now %s",
                purchase.id, len(data.expenses), purchase.total_expenses)
    return purchase


def delete_expense(db: Session, expense_id: int, current_user) -> None:
    expense = db.query(PurchaseExpense).filter(PurchaseExpense.id == expense_id).first()
    if not expense:
        raise NotFoundError("المصروف غير موجود")
    purchase = purchase_service.get_purchase(db, expense.purchase_id, current_user)

    receipt = expense.payment_receipt
    if receipt is not None:
        if money(receipt.paid_amount) > 0:
            raise BusinessRuleError(f"لا يمكن حذف المصروف، الإيصال {receipt.receipt_number} عليه دفعات")
        outstanding = money(receipt.remaining_amount)
        if receipt.status == ReceiptStatus.PENDING and outstanding > 0:
            ledgers.add_supplier_entry(
                db, receipt.supplier_id, AccountTransactionType.DEBIT, outstanding,
                AccountReferenceType.EXPENSE, receipt.id,
                f"إلغاء إيصال {receipt.receipt_number} بحذف المصروف",
            )
        db.delete(receipt)

    db.delete(expense)
    _recalculate(db, purchase)
    db.commit()
    logger.info("Purchase expense %s deleted from purchase %s by %s", expense_id, purchase.id, current_user.username)
