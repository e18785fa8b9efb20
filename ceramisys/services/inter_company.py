"""
Complex inter-company sales: a branch sells its parent's stock straight to a
customer. One call books the customer sale, the parent's invoice to the
branch and the branch's purchase from the parent.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, PermissionDeniedError
from ceramisys.models import Company, Customer, Product, Sale, SaleLine, SaleStatus, SaleType
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import sales as sales_service
from ceramisys.services import stock as stock_service
from ceramisys.utils.folios import get_next_invoice_number
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)


def _branch_price(line, profit_margin: Decimal) -> Decimal:
    if line.branch_unit_price is not None:
        return to_decimal(line.branch_unit_price)
    return money(to_decimal(line.parent_unit_price) * (1 + to_decimal(profit_margin) / 100))


def create_complex_sale(db: Session, data, current_user) -> Sale:
    parent = db.query(Company).filter(Company.id == data.parent_company_id).first()
    branch = db.query(Company).filter(Company.id == data.branch_company_id).first()
    if not parent or not branch:
        raise NotFoundError("الشركة غير موجودة")
    if not parent.is_parent:
        raise BusinessRuleError("الشركة المحددة ليست شركة أم")
    if branch.parent_id != parent.id:
        raise BusinessRuleError("الشركة التابعة لا تنتمي إلى الشركة الأم المحددة")
    if not current_user.can_access_all_companies and current_user.company_id not in (branch.id, parent.id):
        raise PermissionDeniedError("ليس لديك صلاحية للبيع باسم هذه الشركة")

    if not db.query(Customer).filter(Customer.id == data.customer_id).first():
        raise NotFoundError("العميل غير موجود")

    product_ids = {line.product_id for line in data.lines}
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(product_ids)).all()}
    if len(products) != len(product_ids):
        raise NotFoundError("بعض الأصناف غير موجودة")

    stock_service.ensure_all_available(db, ((parent, products[line.product_id], line.qty) for line in data.lines))

    lines = []
    for line in data.lines:
        price = _branch_price(line, data.profit_margin)
        lines.append(SaleLine(
            product_id=line.product_id,
            qty=line.qty,
            unit_price=price,
            sub_total=money(to_decimal(line.qty) * price),
            discount_percentage=Decimal(0),
            discount_amount=Decimal(0),
            is_from_parent_company=True,
            parent_unit_price=line.parent_unit_price,
            branch_unit_price=price,
        ))
    total = money(sum((line.sub_total for line in lines), Decimal(0)))

    sale = Sale(
        company_id=branch.id,
        customer_id=data.customer_id,
        invoice_number=get_next_invoice_number(db, branch.id),
        status=SaleStatus.APPROVED,
        sale_type=data.sale_type,
        total=total,
        paid_amount=Decimal(0),
        remaining_amount=total,
        notes=data.notes,
        lines=lines,
    )
    db.add(sale)

    try:
        db.flush()
        sales_service.apply_approval_effects(
            db, sale, data.sale_type,
            data.payment_method if data.sale_type == SaleType.CASH else None,
            None, current_user.display_name,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sale)
    logger.info(
        "Complex sale %s: branch %s sold parent %s stock, total %s (parent sale %s, branch purchase %s)",
        sale.id, branch.id, parent.id, total, sale.related_parent_sale_id, sale.related_branch_purchase_id,
    )
    return sale


def list_complex_sales(db: Session, current_user, page: int = 1, limit: int = 20, company_id: Optional[int] = None):
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(Sale).filter(Sale.related_parent_sale_id.isnot(None))
    if company_id is not None:
        query = query.filter(Sale.company_id == company_id)

    total = query.count()
    items = (
        query.options(joinedload(Sale.customer), joinedload(Sale.company))
        .order_by(Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def settle_parent_sale(db: Session, sale_id: int, data, current_user):
    """The parent company collects what a branch owes for an auto-generated invoice."""
    sale = db.query(Sale).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("الفاتورة غير موجودة")
    if not sale.is_auto_generated:
        raise BusinessRuleError("التسوية متاحة لفواتير الشركة الأم التلقائية فقط")
    if not sale.company.is_parent:
        raise BusinessRuleError("التسوية متاحة للشركة الأم فقط")
    ensure_company_access(current_user, sale.company_id)

    payment = sales_service.record_sale_payment(db, sale, data, current_user.display_name)
    db.commit()
    db.refresh(payment)
    logger.info("Parent sale %s settled by %s (%s)", sale.id, payment.amount, payment.receipt_number)
    return payment


def complex_sales_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)

    branch_q = db.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)).filter(
        Sale.related_parent_sale_id.isnot(None)
    )
    parent_q = db.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total), 0),
        func.coalesce(func.sum(Sale.remaining_amount), 0),
    ).filter(Sale.is_auto_generated == True)
    if company_id is not None:
        branch_q = branch_q.filter(Sale.company_id == company_id)
        parent_q = parent_q.filter(Sale.company_id == company_id)

    branch_count, branch_total = branch_q.one()
    parent_count, parent_total, parent_remaining = parent_q.one()
    return {
        "complex_sales": int(branch_count or 0),
        "complex_sales_total": float(branch_total or 0),
        "parent_invoices": int(parent_count or 0),
        "parent_invoices_total": float(parent_total or 0),
        "parent_invoices_outstanding": float(parent_remaining or 0),
    }
