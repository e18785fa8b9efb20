import logging
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, func, case
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError
from ceramisys.models import (
    Company, Product, Purchase, PurchaseLine, PurchasePayment, ProductCostHistory, Sale, Supplier,
    SupplierPaymentReceipt, SaleType, AccountTransactionType, AccountReferenceType, TransactionSource, ReceiptStatus,
)
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import ledgers
from ceramisys.services import stock as stock_service
from ceramisys.services import treasury as treasury_service
from ceramisys.utils.folios import get_next_receipt_number
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)

UNIT_COST = Decimal("0.0001")


# -----------------------------
# Suppliers
# -----------------------------
def get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("المورد غير موجود")
    return supplier


def list_suppliers(db: Session, search: Optional[str] = None, page: int = 1, limit: int = 20):
    query = db.query(Supplier)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Supplier.name.ilike(s), Supplier.phone.ilike(s)))
    total = query.count()
    items = query.order_by(Supplier.name).offset((page - 1) * limit).limit(limit).all()
    return items, total


def create_supplier(db: Session, data) -> Supplier:
    supplier = Supplier(**data.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def update_supplier(db: Session, supplier_id: int, data) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(supplier, field, value)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: int) -> None:
    supplier = get_supplier(db, supplier_id)
    if supplier.purchases:
        raise BusinessRuleError("لا يمكن حذف المورد لوجود فواتير مشتريات مرتبطة به")
    if db.query(SupplierPaymentReceipt).filter(SupplierPaymentReceipt.supplier_id == supplier.id).first():
        raise BusinessRuleError("لا يمكن حذف المورد لوجود إيصالات دفع مرتبطة به")
    db.delete(supplier)
    db.commit()


# -----------------------------
# Purchases
# -----------------------------
def _build_lines(db: Session, lines) -> list:
    product_ids = {line.product_id for line in lines}
    found = db.query(func.count(Product.id)).filter(Product.id.in_(product_ids)).scalar()
    if found != len(product_ids):
        raise NotFoundError("بعض الأصناف غير موجودة")
    return [
        PurchaseLine(
            product_id=line.product_id,
            qty=line.qty,
            unit_price=line.unit_price,
            sub_total=money(to_decimal(line.qty) * to_decimal(line.unit_price)),
        )
        for line in lines
    ]


def _line_boxes(lines) -> dict:
    boxes = {}
    for line in lines:
        boxes[line.product_id] = boxes.get(line.product_id, Decimal(0)) + to_decimal(line.qty)
    return boxes


def _move_stock(db: Session, purchase: Purchase, changes: dict) -> None:
    """
    Applies per-product box changes to the purchasing company. Removals are
    checked against the boxes still on hand before anything moves, so stock
    that was already sold cannot be taken back.
    """
    if not purchase.affects_inventory:
        return
    removals = {product_id: -qty for product_id, qty in changes.items() if qty < 0}
    if removals:
        products = {p.id: p for p in db.query(Product).filter(Product.id.in_(list(removals))).all()}
        stock_service.ensure_all_available(
            db, ((purchase.company, products[product_id], qty) for product_id, qty in removals.items())
        )

    for product_id, qty in changes.items():
        if qty > 0:
            stock_service.increment(db, purchase.company_id, product_id, qty)
        elif qty < 0:
            stock_service.decrement(db, purchase.company_id, product_id, -qty)


def refresh_cost_history(db: Session, purchase: Purchase) -> None:
    """
    Rebuilds the landed cost rows of a purchase: its expenses are spread
    evenly over every box bought.
    """
    purchase.cost_history = []
    db.flush()

    boxes = sum((to_decimal(line.qty) for line in purchase.lines), Decimal(0))
    expenses = to_decimal(purchase.total_expenses or 0)
    per_unit = (expenses / boxes).quantize(UNIT_COST) if boxes > 0 else Decimal(0)

    for line in purchase.lines:
        price = to_decimal(line.unit_price)
        purchase.cost_history.append(ProductCostHistory(
            product_id=line.product_id,
            company_id=purchase.company_id,
            quantity=line.qty,
            purchase_price=price,
            expense_per_unit=per_unit,
            total_cost_per_unit=(price + per_unit).quantize(UNIT_COST),
        ))
    db.flush()


def product_cost_history(db: Session, product_id: int, current_user, company_id: Optional[int] = None, limit: int = 10):
    if not db.query(Product).filter(Product.id == product_id).first():
        raise NotFoundError("الصنف غير موجود")
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(ProductCostHistory).filter(ProductCostHistory.product_id == product_id)
    if company_id is not None:
        query = query.filter(ProductCostHistory.company_id == company_id)
    return query.order_by(ProductCostHistory.id.desc()).limit(limit).all()


def get_purchase(db: Session, purchase_id: int, current_user) -> Purchase:
    purchase = (
        db.query(Purchase)
        .options(joinedload(Purchase.lines).joinedload(PurchaseLine.product), joinedload(Purchase.supplier))
        .filter(Purchase.id == purchase_id)
        .first()
    )
    if not purchase:
        raise NotFoundError("فاتورة المشتريات غير موجودة")
    ensure_company_access(current_user, purchase.company_id)
    return purchase


def create_purchase(db: Session, data, current_user) -> Purchase:
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    if not db.query(Company).filter(Company.id == company_id).first():
        raise NotFoundError("الشركة غير موجودة")
    if data.supplier_id:
        get_supplier(db, data.supplier_id)
    if data.purchase_type == SaleType.CREDIT and not data.supplier_id:
        raise BusinessRuleError("المشتريات الآجلة تتطلب تحديد المورد")

    lines = _build_lines(db, data.lines)
    total = money(sum((line.sub_total for line in lines), Decimal(0)))
    is_cash = data.purchase_type == SaleType.CASH

    purchase = Purchase(
        company_id=company_id,
        supplier_id=data.supplier_id,
        invoice_number=data.invoice_number,
        status="APPROVED",
        purchase_type=data.purchase_type,
        payment_method=data.payment_method if is_cash else None,
        total=total,
        paid_amount=total if is_cash else Decimal(0),
        remaining_amount=Decimal(0) if is_cash else total,
        is_fully_paid=is_cash,
        affects_inventory=data.affects_inventory,
        notes=data.notes,
        lines=lines,
    )
    db.add(purchase)
    db.flush()

    _move_stock(db, purchase, _line_boxes(purchase.lines))
    refresh_cost_history(db, purchase)

    if not is_cash and purchase.supplier_id:
        ledgers.add_supplier_entry(
            db, purchase.supplier_id, AccountTransactionType.CREDIT, total,
            AccountReferenceType.PURCHASE, purchase.id,
            f"فاتورة مشتريات آجلة رقم {purchase.invoice_number or purchase.id}",
        )

    db.commit()
    db.refresh(purchase)
    logger.info("Purchase %s created for company %s (%s, total %s)", purchase.id, company_id, purchase.purchase_type.value, total)
    return purchase


def list_purchases(db: Session, filters, current_user):
    company_id = resolve_company_id(current_user, filters.company_id)
    query = db.query(Purchase).outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
    if company_id is not None:
        query = query.filter(Purchase.company_id == company_id)
    if filters.search:
        s = f"%{filters.search}%"
        query = query.filter(or_(Purchase.invoice_number.ilike(s), Supplier.name.ilike(s)))
    if filters.supplier_id:
        query = query.filter(Purchase.supplier_id == filters.supplier_id)
    if filters.purchase_type:
        query = query.filter(Purchase.purchase_type == filters.purchase_type)
    if filters.is_fully_paid is not None:
        query = query.filter(Purchase.is_fully_paid == filters.is_fully_paid)
    if filters.start_date:
        query = query.filter(Purchase.created_at >= datetime.combine(filters.start_date, time.min))
    if filters.end_date:
        query = query.filter(Purchase.created_at < datetime.combine(filters.end_date + timedelta(days=1), time.min))

    total = query.count()
    items = (
        query.options(joinedload(Purchase.supplier))
        .order_by(Purchase.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return items, total


def update_purchase(db: Session, purchase_id: int, data, current_user) -> Purchase:
    purchase = get_purchase(db, purchase_id, current_user)
    fields = data.model_dump(exclude_unset=True)

    if "supplier_id" in fields and data.supplier_id:
        get_supplier(db, data.supplier_id)
        purchase.supplier_id = data.supplier_id
    if "invoice_number" in fields:
        purchase.invoice_number = data.invoice_number
    if "notes" in fields:
        purchase.notes = data.notes

    if data.lines is not None:
        if purchase.payments:
            raise BusinessRuleError("لا يمكن تعديل بنود فاتورة عليها دفعات")

        # Only the net change per product moves stock
        new_lines = _build_lines(db, data.lines)
        changes = _line_boxes(new_lines)
        for product_id, qty in _line_boxes(purchase.lines).items():
            changes[product_id] = changes.get(product_id, Decimal(0)) - qty
        _move_stock(db, purchase, changes)

        purchase.lines = new_lines
        db.flush()
        refresh_cost_history(db, purchase)

        old_total = money(purchase.total)
        new_total = money(sum((line.sub_total for line in purchase.lines), Decimal(0)))
        purchase.total = new_total
        if purchase.purchase_type == SaleType.CASH:
            purchase.paid_amount = new_total
            purchase.remaining_amount = Decimal(0)
        else:
            purchase.remaining_amount = new_total - money(purchase.paid_amount)
            purchase.is_fully_paid = purchase.remaining_amount <= 0
            delta = new_total - old_total
            if purchase.supplier_id and delta != 0:
                ledgers.add_supplier_entry(
                    db, purchase.supplier_id,
                    AccountTransactionType.CREDIT if delta > 0 else AccountTransactionType.DEBIT,
                    abs(delta), AccountReferenceType.PURCHASE, purchase.id,
                    f"تعديل فاتورة مشتريات رقم {purchase.invoice_number or purchase.id}",
                )

    db.commit()
    db.refresh(purchase)
    return purchase


def delete_purchase(db: Session, purchase_id: int, current_user) -> None:
    purchase = get_purchase(db, purchase_id, current_user)
    linked = db.query(Sale).filter(Sale.related_branch_purchase_id == purchase.id).first()
    if linked:
        raise BusinessRuleError(
            f"لا يمكن حذف هذه الفاتورة مباشرة، فهي مرتبطة بفاتورة المبيعات رقم {linked.invoice_number or linked.id}"
        )

    if any(money(receipt.paid_amount) > 0 for receipt in purchase.payment_receipts):
        raise BusinessRuleError("لا يمكن حذف الفاتورة لوجود دفعات على إيصالات المصروفات المرتبطة بها")

    _move_stock(db, purchase, {product_id: -qty for product_id, qty in _line_boxes(purchase.lines).items()})

    for receipt in purchase.payment_receipts:
        outstanding = money(receipt.remaining_amount)
        if receipt.status == ReceiptStatus.PENDING and outstanding > 0:
            ledgers.add_supplier_entry(
                db, receipt.supplier_id, AccountTransactionType.DEBIT, outstanding,
                AccountReferenceType.EXPENSE, receipt.id,
                f"إلغاء إيصال {receipt.receipt_number} مع حذف فاتورة المشتريات رقم {purchase.invoice_number or purchase.id}",
            )

    if purchase.purchase_type == SaleType.CREDIT and purchase.supplier_id:
        outstanding = money(purchase.remaining_amount)
        if outstanding > 0:
            ledgers.add_supplier_entry(
                db, purchase.supplier_id, AccountTransactionType.DEBIT, outstanding,
                AccountReferenceType.PURCHASE, purchase.id,
                f"إلغاء فاتورة مشتريات رقم {purchase.invoice_number or purchase.id}",
            )

    db.delete(purchase)
    db.commit()
    logger.info("Purchase %s deleted by %s", purchase_id, current_user.username)


def add_payment(db: Session, purchase_id: int, data, current_user) -> PurchasePayment:
    purchase = get_purchase(db, purchase_id, current_user)
    amount = money(data.amount)
    remaining = money(purchase.remaining_amount)
    if remaining <= 0:
        raise BusinessRuleError("الفاتورة مسددة بالكامل")
    if amount > remaining:
        raise BusinessRuleError(f"المبلغ المدفوع ({amount}) أكبر من المبلغ المتبقي ({remaining})")

    payment = PurchasePayment(
        purchase_id=purchase.id,
        company_id=purchase.company_id,
        receipt_number=get_next_receipt_number(db, PurchasePayment, "PAY"),
        amount=amount,
        payment_method=data.payment_method,
        notes=data.notes,
    )
    if data.payment_date:
        payment.payment_date = data.payment_date
    db.add(payment)

    purchase.paid_amount = money(purchase.paid_amount) + amount
    purchase.remaining_amount = remaining - amount
    purchase.is_fully_paid = purchase.remaining_amount <= 0
    db.flush()

    if purchase.supplier_id:
        ledgers.add_supplier_entry(
            db, purchase.supplier_id, AccountTransactionType.DEBIT, amount,
            AccountReferenceType.PAYMENT, payment.id,
            f"دفعة على فاتورة المشتريات رقم {purchase.invoice_number or purchase.id} - إيصال {payment.receipt_number}",
        )

    # Paying from a treasury is optional; when one is named it must cover the amount
    if data.treasury_id:
        treasury = treasury_service.get_treasury(db, data.treasury_id)
        treasury_service.withdraw(
            db, treasury, amount, TransactionSource.PURCHASE_PAYMENT,
            reference_type="PurchasePayment", reference_id=payment.id,
            description=f"دفعة على فاتورة المشتريات رقم {purchase.invoice_number or purchase.id}",
            created_by=current_user.display_name,
        )

    db.commit()
    db.refresh(payment)
    logger.info("Purchase payment %s of %s on purchase %s", payment.receipt_number, amount, purchase.id)
    return payment


def purchase_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    cash = Purchase.purchase_type == SaleType.CASH
    credit = Purchase.purchase_type == SaleType.CREDIT

    query = db.query(
        func.count(Purchase.id),
        func.coalesce(func.sum(Purchase.total), 0),
        func.coalesce(func.sum(case((cash, 1), else_=0)), 0),
        func.coalesce(func.sum(case((credit, 1), else_=0)), 0),
        func.coalesce(func.sum(case((cash, Purchase.total), else_=0)), 0),
        func.coalesce(func.sum(case((credit, Purchase.total), else_=0)), 0),
        func.coalesce(func.sum(Purchase.remaining_amount), 0),
    )
    if company_id is not None:
        query = query.filter(Purchase.company_id == company_id)

    row = query.one()
    return {
        "total_purchases": int(row[0] or 0),
        "total_amount": float(row[1] or 0),
        "cash_purchases": int(row[2] or 0),
        "credit_purchases": int(row[3] or 0),
        "cash_amount": float(row[4] or 0),
        "credit_amount": float(row[5] or 0),
        "outstanding_amount": float(row[6] or 0),
    }
