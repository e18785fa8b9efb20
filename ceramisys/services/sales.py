"""
Sales: provisional (DRAFT) invoices, accountant approval, payments.

A DRAFT sale never touches stock. Approval moves the DRAFT to APPROVED with
a conditional update, so stock is decremented exactly once, and writes every
side effect (stock, mirrored parent invoices, ledgers, treasury) in the same
transaction.
"""
import logging
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, func, case
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import (
    Company, Customer, Product, Sale, SaleLine, SalePayment, Purchase, PurchaseLine,
    SaleStatus, SaleType, PaymentMethod, AccountTransactionType, AccountReferenceType,
    TransactionSource,
)
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import ledgers
from ceramisys.services import stock as stock_service
from ceramisys.services import treasury as treasury_service
from ceramisys.utils.folios import get_next_invoice_number, get_next_receipt_number
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _get_company(db: Session, company_id: int) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError("الشركة غير موجودة")
    return company


def _check_customer(db: Session, customer_id: Optional[int]) -> None:
    if customer_id and not db.query(Customer).filter(Customer.id == customer_id).first():
        raise NotFoundError("العميل غير موجود")


def _check_lines(db: Session, lines, company: Company, current_user) -> dict:
    """
    Every product must exist and be reachable by the user: its own company's
    products, or the parent's products for parent-company lines. Discounts
    are capped by the product group (100% without a group).
    """
    product_ids = {line.product_id for line in lines}
    products = {
        p.id: p
        for p in db.query(Product).options(joinedload(Product.group)).filter(Product.id.in_(product_ids)).all()
    }
    if len(products) != len(product_ids):
        raise NotFoundError("بعض الأصناف غير موجودة أو ليس لديك صلاحية للوصول إليها")

    for line in lines:
        product = products[line.product_id]

        if line.is_from_parent_company and not company.parent_id:
            raise BusinessRuleError("لا يمكن البيع من مخزون الشركة الأم لشركة ليست تابعة")

        if not current_user.can_access_all_companies:
            allowed = {company.id}
            if line.is_from_parent_company:
                allowed.add(company.parent_id)
            if product.created_by_company_id not in allowed:
                raise NotFoundError("بعض الأصناف غير موجودة أو ليس لديك صلاحية للوصول إليها")

        max_discount = to_decimal(product.group.max_discount_percentage) if product.group else Decimal(100)
        if line.discount_percentage and line.discount_percentage > max_discount:
            raise BusinessRuleError(
                f'الخصم المحدد للصنف "{product.name}" ({line.discount_percentage}%) '
                f"يتجاوز الحد الأقصى المسموح به ({max_discount}%)"
            )
    return products


def _build_line(line) -> SaleLine:
    gross = money(to_decimal(line.qty) * to_decimal(line.unit_price))
    discount_amount = money(gross * to_decimal(line.discount_percentage) / 100)

    return SaleLine(
        product_id=line.product_id,
        qty=line.qty,
        unit_price=line.unit_price,
        sub_total=gross - discount_amount,
        discount_percentage=line.discount_percentage or Decimal(0),
        discount_amount=discount_amount,
        is_from_parent_company=line.is_from_parent_company,
        parent_unit_price=line.parent_unit_price,
        branch_unit_price=line.branch_unit_price,
    )


def _sale_query(db: Session):
    return db.query(Sale).options(
        joinedload(Sale.lines).joinedload(SaleLine.product),
        joinedload(Sale.customer),
        joinedload(Sale.company),
    )


def _stock_company(line: SaleLine, company: Company) -> Company:
    if line.is_from_parent_company and company.parent is not None:
        return company.parent
    return company


# -----------------------------
# CRUD
# -----------------------------
def create_sale(db: Session, data, current_user) -> Sale:
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    company = _get_company(db, company_id)

    _check_customer(db, data.customer_id)
    _check_lines(db, data.lines, company, current_user)

    lines = [_build_line(line) for line in data.lines]
    total = money(sum((line.sub_total for line in lines), Decimal(0)))

    # Always a credit draft; the accountant picks the real terms on approval
    sale = Sale(
        company_id=company.id,
        customer_id=data.customer_id,
        invoice_number=get_next_invoice_number(db, company.id),
        status=SaleStatus.DRAFT,
        sale_type=SaleType.CREDIT,
        payment_method=None,
        total=total,
        paid_amount=Decimal(0),
        remaining_amount=total,
        is_fully_paid=False,
        notes=data.notes,
        lines=lines,
    )
    db.add(sale)
    db.commit()
    db.refresh(sale)

    logger.info("Draft sale %s (%s) created for company %s, total %s", sale.id, sale.invoice_number, company.id, total)
    return sale


def list_sales(db: Session, filters, current_user):
    company_id = resolve_company_id(current_user, filters.company_id)

    query = db.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)
    if company_id is not None:
        query = query.filter(Sale.company_id == company_id)
    if filters.search:
        s = f"%{filters.search}%"
        query = query.filter(or_(Sale.invoice_number.ilike(s), Customer.name.ilike(s), Customer.phone.ilike(s)))
    if filters.customer_id:
        query = query.filter(Sale.customer_id == filters.customer_id)
    if filters.status:
        query = query.filter(Sale.status == filters.status)
    if filters.sale_type:
        query = query.filter(Sale.sale_type == filters.sale_type)
    if filters.payment_method:
        query = query.filter(Sale.payment_method == filters.payment_method)
    if filters.receipt_issued is not None:
        query = query.filter(Sale.receipt_issued == filters.receipt_issued)
    if filters.start_date:
        query = query.filter(Sale.created_at >= datetime.combine(filters.start_date, time.min))
    if filters.end_date:
        query = query.filter(Sale.created_at < datetime.combine(filters.end_date + timedelta(days=1), time.min))

    total = query.count()
    items = (
        query.options(joinedload(Sale.customer), joinedload(Sale.company))
        .order_by(Sale.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return items, total


def get_sale(db: Session, sale_id: int, current_user) -> Sale:
    sale = _sale_query(db).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("الفاتورة غير موجودة")
    ensure_company_access(current_user, sale.company_id)
    return sale


def update_sale(db: Session, sale_id: int, data, current_user) -> Sale:
    sale = get_sale(db, sale_id, current_user)
    if sale.is_auto_generated:
        raise BusinessRuleError("لا يمكن تعديل الفواتير التلقائية")
    if sale.status != SaleStatus.DRAFT:
        raise BusinessRuleError("لا يمكن تعديل فاتورة معتمدة")

    fields = data.model_dump(exclude_unset=True)

    if "customer_id" in fields:
        _check_customer(db, data.customer_id)
        sale.customer_id = data.customer_id

    if "invoice_number" in fields and data.invoice_number:
        taken = db.query(Sale).filter(
            Sale.company_id == sale.company_id,
            Sale.invoice_number == data.invoice_number,
            Sale.id != sale.id,
        ).first()
        if taken:
            raise ConflictError("رقم الفاتورة مستخدم بالفعل")
        sale.invoice_number = data.invoice_number

    if "notes" in fields:
        sale.notes = data.notes

    if data.lines is not None:
        _check_lines(db, data.lines, sale.company, current_user)
        sale.lines = [_build_line(line) for line in data.lines]
        sale.total = money(sum((line.sub_total for line in sale.lines), Decimal(0)))
        sale.remaining_amount = sale.total

    db.commit()
    db.refresh(sale)
    return sale


def delete_sale(db: Session, sale_id: int, current_user) -> None:
    sale = get_sale(db, sale_id, current_user)

    if sale.is_auto_generated:
        raise BusinessRuleError(
            "لا يمكن حذف هذه الفاتورة مباشرة، فقد تم إنشاؤها تلقائياً. احذف الفاتورة الأصلية بدلاً منها"
        )
    if sale.returns:
        raise BusinessRuleError("لا يمكن حذف فاتورة لديها مرتجعات")

    if sale.status == SaleStatus.APPROVED:
        # Boxes go back to whichever company they were taken from
        for line in sale.lines:
            stock_service.increment(db, _stock_company(line, sale.company).id, line.product_id, line.qty)

        if sale.sale_type == SaleType.CREDIT and sale.customer_id:
            ledgers.add_customer_entry(
                db, sale.customer_id, AccountTransactionType.CREDIT, sale.total,
                AccountReferenceType.SALE, sale.id,
                f"إلغاء فاتورة مبيعات رقم {sale.invoice_number or sale.id}",
            )

    parent_sale = sale.related_parent_sale
    if parent_sale is not None:
        if parent_sale.customer_id:
            ledgers.add_customer_entry(
                db, parent_sale.customer_id, AccountTransactionType.CREDIT, parent_sale.total,
                AccountReferenceType.SALE, parent_sale.id,
                f"إلغاء فاتورة تلقائية رقم {parent_sale.invoice_number}",
            )
        sale.related_parent_sale = None
        db.flush()
        db.delete(parent_sale)

    purchase = sale.related_branch_purchase
    if purchase is not None:
        if purchase.supplier_id:
            ledgers.add_supplier_entry(
                db, purchase.supplier_id, AccountTransactionType.DEBIT, purchase.total,
                AccountReferenceType.PURCHASE, purchase.id,
                f"إلغاء فاتورة مشتريات تلقائية رقم {purchase.invoice_number}",
            )
        sale.related_branch_purchase = None
        db.flush()
        db.delete(purchase)

    db.delete(sale)
    db.commit()
    logger.info("Sale %s deleted by %s", sale_id, current_user.username)


# -----------------------------
# Approval
# -----------------------------
def create_mirror_records(db: Session, sale: Sale, parent_lines: List[SaleLine], parent: Company, created_by: str):
    """
    The branch sold stock owned by its parent: the parent bills the branch
    (an auto-generated APPROVED credit sale to the branch pseudo-customer) and
    the branch books the matching purchase, which does not move stock again.
    """
    branch = sale.company
    total = money(sum(
        (to_decimal(line.qty) * to_decimal(line.parent_unit_price) for line in parent_lines),
        Decimal(0),
    ))

    branch_customer = ledgers.get_or_create_branch_customer(db, branch)
    parent_sale = Sale(
        company_id=parent.id,
        customer_id=branch_customer.id,
        invoice_number=f"AUTO-{parent.id}-{sale.id}",
        status=SaleStatus.APPROVED,
        sale_type=SaleType.CREDIT,
        total=total,
        paid_amount=Decimal(0),
        remaining_amount=total,
        is_fully_paid=False,
        is_auto_generated=True,
        approved_at=datetime.utcnow(),
        approved_by=created_by,
        notes=f"فاتورة تلقائية لبيع أصناف الشركة الأم عبر {branch.name} - فاتورة رقم {sale.invoice_number or sale.id}",
        lines=[
            SaleLine(
                product_id=line.product_id,
                qty=line.qty,
                unit_price=line.parent_unit_price,
                sub_total=money(to_decimal(line.qty) * to_decimal(line.parent_unit_price)),
                discount_percentage=Decimal(0),
                discount_amount=Decimal(0),
            )
            for line in parent_lines
        ],
    )
    db.add(parent_sale)
    db.flush()

    ledgers.add_customer_entry(
        db, branch_customer.id, AccountTransactionType.DEBIT, total,
        AccountReferenceType.SALE, parent_sale.id,
        f"فاتورة تلقائية من {parent.name} - {parent_sale.invoice_number}",
    )

    parent_supplier = ledgers.get_or_create_parent_supplier(db, parent)
    purchase = Purchase(
        company_id=branch.id,
        supplier_id=parent_supplier.id,
        invoice_number=f"PUR-AUTO-{branch.id}-{sale.id}",
        status="APPROVED",
        purchase_type=SaleType.CREDIT,
        total=total,
        paid_amount=Decimal(0),
        remaining_amount=total,
        is_fully_paid=False,
        affects_inventory=False,
        notes=f"مشتريات تلقائية من {parent.name} - فاتورة رقم {parent_sale.invoice_number}",
        lines=[
            PurchaseLine(
                product_id=line.product_id,
                qty=line.qty,
                unit_price=line.parent_unit_price,
                sub_total=money(to_decimal(line.qty) * to_decimal(line.parent_unit_price)),
            )
            for line in parent_lines
        ],
    )
    db.add(purchase)
    db.flush()

    ledgers.add_supplier_entry(
        db, parent_supplier.id, AccountTransactionType.CREDIT, total,
        AccountReferenceType.PURCHASE, purchase.id,
        f"مشتريات تلقائية من {parent.name} - {purchase.invoice_number}",
    )

    sale.related_parent_sale_id = parent_sale.id
    sale.related_branch_purchase_id = purchase.id

    logger.info(
        "Auto-generated parent sale %s and branch purchase %s for sale %s (total %s)",
        parent_sale.id, purchase.id, sale.id, total,
    )
    return parent_sale, purchase


def apply_approval_effects(
    db: Session,
    sale: Sale,
    sale_type: SaleType,
    payment_method: Optional[PaymentMethod],
    bank_account_id: Optional[int],
    approved_by: str,
) -> None:
    """Amounts, stock, mirrored parent invoices, customer ledger and treasury. Does not commit."""
    now = datetime.utcnow()
    total = money(sale.total)

    sale.sale_type = sale_type
    sale.payment_method = payment_method
    sale.approved_at = now
    sale.approved_by = approved_by

    if sale_type == SaleType.CASH:
        sale.paid_amount = total
        sale.remaining_amount = Decimal(0)
        sale.is_fully_paid = True
        sale.receipt_issued = True
        sale.receipt_issued_at = now
        sale.receipt_issued_by = approved_by
    else:
        sale.paid_amount = Decimal(0)
        sale.remaining_amount = total
        sale.is_fully_paid = False

    company = sale.company
    parent_lines = []
    for line in sale.lines:
        source = _stock_company(line, company)
        stock_service.decrement(db, source.id, line.product_id, line.qty)
        if source.id != company.id:
            parent_lines.append(line)

    if parent_lines:
        create_mirror_records(db, sale, parent_lines, company.parent, approved_by)

    if sale_type == SaleType.CREDIT and sale.customer_id:
        ledgers.add_customer_entry(
            db, sale.customer_id, AccountTransactionType.DEBIT, total,
            AccountReferenceType.SALE, sale.id,
            f"فاتورة مبيعات آجلة رقم {sale.invoice_number or sale.id}",
        )

    if sale_type == SaleType.CASH and total > 0:
        treasury = treasury_service.resolve_payment_treasury(db, company.id, payment_method, bank_account_id)
        if treasury is None:
            logger.warning(
                "No treasury found for cash sale %s (company %s, method %s); deposit skipped",
                sale.id, company.id, payment_method,
            )
        else:
            customer_info = f" - الزبون: {sale.customer.name}" if sale.customer else ""
            treasury_service.deposit(
                db, treasury, total, TransactionSource.SALE,
                reference_type="Sale", reference_id=sale.id,
                description=f"فاتورة مبيعات نقدية رقم {sale.invoice_number or sale.id} - {company.name}{customer_info}",
                created_by=approved_by,
            )


def approve_sale(db: Session, sale_id: int, data, current_user) -> Sale:
    sale = get_sale(db, sale_id, current_user)

    if sale.is_auto_generated:
        raise BusinessRuleError("لا يمكن اعتماد الفواتير التلقائية يدوياً")
    if sale.status == SaleStatus.APPROVED:
        raise BusinessRuleError("الفاتورة معتمدة بالفعل")
    if sale.status != SaleStatus.DRAFT:
        raise BusinessRuleError(f"لا يمكن اعتماد فاتورة بحالة: {sale.status.value}")

    company = sale.company
    stock_service.ensure_all_available(
        db, ((_stock_company(line, company), line.product, line.qty) for line in sale.lines)
    )

    # Only one caller wins the DRAFT -> APPROVED transition
    updated = (
        db.query(Sale)
        .filter(Sale.id == sale.id, Sale.status == SaleStatus.DRAFT)
        .update({Sale.status: SaleStatus.APPROVED}, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ConflictError("تم تغيير حالة الفاتورة من مستخدم آخر، يرجى إعادة المحاولة")

    try:
        apply_approval_effects(
            db, sale, data.sale_type, data.payment_method, data.bank_account_id, current_user.display_name,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sale)
    logger.info(
        "Sale %s approved by %s as %s (total %s)",
        sale.id, current_user.username, sale.sale_type.value, sale.total,
    )
    return sale


# -----------------------------
# Payments and receipts
# -----------------------------
def record_sale_payment(db: Session, sale: Sale, data, created_by: str) -> SalePayment:
    """Applies a payment to an approved credit sale. Does not commit."""
    if sale.status != SaleStatus.APPROVED:
        raise BusinessRuleError("لا يمكن تسجيل دفعة لفاتورة غير معتمدة")
    if sale.sale_type != SaleType.CREDIT:
        raise BusinessRuleError("يمكن تسجيل الدفعات على الفواتير الآجلة فقط")

    amount = money(data.amount)
    remaining = money(sale.remaining_amount)
    if amount <= 0:
        raise BusinessRuleError("المبلغ يجب أن يكون أكبر من صفر")
    if amount > remaining:
        raise BusinessRuleError(f"المبلغ المدفوع ({amount}) أكبر من المبلغ المتبقي ({remaining})")

    payment = SalePayment(
        sale_id=sale.id,
        company_id=sale.company_id,
        receipt_number=get_next_receipt_number(db, SalePayment, "RCP"),
        amount=amount,
        payment_method=data.payment_method,
        notes=data.notes,
    )
    if data.payment_date:
        payment.payment_date = data.payment_date
    db.add(payment)

    sale.paid_amount = money(sale.paid_amount) + amount
    sale.remaining_amount = remaining - amount
    sale.is_fully_paid = sale.remaining_amount <= 0
    db.flush()

    if sale.customer_id:
        ledgers.add_customer_entry(
            db, sale.customer_id, AccountTransactionType.CREDIT, amount,
            AccountReferenceType.PAYMENT, payment.id,
            f"دفعة على الفاتورة رقم {sale.invoice_number or sale.id} - إيصال {payment.receipt_number}",
        )

    if data.treasury_id:
        treasury = treasury_service.get_treasury(db, data.treasury_id)
    else:
        treasury = treasury_service.resolve_payment_treasury(db, sale.company_id, data.payment_method)
    if treasury is None:
        logger.warning("No treasury found for payment %s on sale %s; deposit skipped", payment.id, sale.id)
    else:
        treasury_service.deposit(
            db, treasury, amount, TransactionSource.SALE_PAYMENT,
            reference_type="SalePayment", reference_id=payment.id,
            description=f"دفعة على الفاتورة رقم {sale.invoice_number or sale.id}",
            created_by=created_by,
        )
    return payment


def add_sale_payment(db: Session, sale_id: int, data, current_user) -> SalePayment:
    sale = get_sale(db, sale_id, current_user)
    payment = record_sale_payment(db, sale, data, current_user.display_name)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s of %s recorded on sale %s", payment.receipt_number, payment.amount, sale.id)
    return payment


def list_sale_payments(db: Session, sale_id: int, current_user) -> List[SalePayment]:
    sale = get_sale(db, sale_id, current_user)
    return db.query(SalePayment).filter(SalePayment.sale_id == sale.id).order_by(SalePayment.id).all()


def issue_receipt(db: Session, sale_id: int, current_user) -> Sale:
    sale = get_sale(db, sale_id, current_user)
    if sale.status != SaleStatus.APPROVED:
        raise BusinessRuleError("لا يمكن إصدار إيصال لفاتورة غير معتمدة")
    if not sale.is_fully_paid:
        raise BusinessRuleError("لا يمكن إصدار إيصال قبض لفاتورة غير مسددة بالكامل")
    if sale.receipt_issued:
        raise BusinessRuleError("تم إصدار الإيصال مسبقاً")

    sale.receipt_issued = True
    sale.receipt_issued_at = datetime.utcnow()
    sale.receipt_issued_by = current_user.display_name
    db.commit()
    db.refresh(sale)
    return sale


# -----------------------------
# Stats
# -----------------------------
def sales_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    approved = Sale.status == SaleStatus.APPROVED

    def _sum(condition):
        return func.coalesce(func.sum(case((condition, Sale.total), else_=0)), 0)

    def _count(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    today_start = datetime.combine(date.today(), time.min)

    query = db.query(
        func.count(Sale.id),
        _count(Sale.status == SaleStatus.DRAFT),
        _count(approved),
        _count(approved & (Sale.sale_type == SaleType.CASH)),
        _count(approved & (Sale.sale_type == SaleType.CREDIT)),
        _sum(approved),
        _sum(approved & (Sale.sale_type == SaleType.CASH)),
        _sum(approved & (Sale.sale_type == SaleType.CREDIT)),
        _count(approved & (Sale.created_at >= today_start)),
        _sum(approved & (Sale.created_at >= today_start)),
    ).filter(Sale.is_auto_generated == False)
    if company_id is not None:
        query = query.filter(Sale.company_id == company_id)

    row = query.one()
    return {
        "total_sales": int(row[0] or 0),
        "draft_sales": int(row[1] or 0),
        "approved_sales": int(row[2] or 0),
        "cash_sales": int(row[3] or 0),
        "credit_sales": int(row[4] or 0),
        "total_amount": float(row[5] or 0),
        "cash_amount": float(row[6] or 0),
        "credit_amount": float(row[7] or 0),
        "today_sales": int(row[8] or 0),
        "today_amount": float(row[9] or 0),
    }


def daily_chart(db: Session, current_user, days: int = 30, company_id: Optional[int] = None) -> list:
    company_id = resolve_company_id(current_user, company_id)
    start = date.today() - timedelta(days=days - 1)

    day = func.date(Sale.created_at)
    query = db.query(day, func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)).filter(
        Sale.status == SaleStatus.APPROVED,
        Sale.is_auto_generated == False,
        Sale.created_at >= datetime.combine(start, time.min),
    )
    if company_id is not None:
        query = query.filter(Sale.company_id == company_id)

    by_day = {str(d): (count, total) for d, count, total in query.group_by(day).all()}

    series = []
    for offset in range(days):
        current = start + timedelta(days=offset)
        count, total = by_day.get(current.isoformat(), (0, 0))
        series.append({"date": current.isoformat(), "count": int(count), "total": float(total)})
    return series
