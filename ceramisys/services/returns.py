"""
Sale returns. A return is requested (PENDING), approved, and processed in
the same step as the approval: the boxes go back to stock and the refund is
credited to the customer's account. With a refund method the money is also
paid out of the company treasury (cash) or the chosen bank account.
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError
from ceramisys.models import (
    Sale, SaleLine, SaleStatus, SaleReturn, SaleReturnLine, ReturnStatus,
    AccountTransactionType, AccountReferenceType, TransactionSource, PaymentMethod,
)
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import ledgers
from ceramisys.services import stock as stock_service
from ceramisys.services import treasury as treasury_service
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)

FINAL_STATUSES = (ReturnStatus.PROCESSED, ReturnStatus.REJECTED)


def validate_sale(db: Session, sale_id: int, current_user) -> Sale:
    """Only approved, fully paid sales accept returns."""
    sale = (
        db.query(Sale)
        .options(joinedload(Sale.lines).joinedload(SaleLine.product), joinedload(Sale.customer))
        .filter(Sale.id == sale_id)
        .first()
    )
    if not sale:
        raise NotFoundError("الفاتورة غير موجودة")
    ensure_company_access(current_user, sale.company_id)
    if sale.status != SaleStatus.APPROVED:
        raise BusinessRuleError("لا يمكن إرجاع أصناف من فاتورة غير معتمدة")
    if not sale.is_fully_paid:
        raise BusinessRuleError("لا يمكن إرجاع أصناف من فاتورة غير مسددة بالكامل")
    return sale


def _already_returned(db: Session, sale_id: int) -> dict:
    rows = (
        db.query(SaleReturnLine.product_id, func.coalesce(func.sum(SaleReturnLine.qty), 0))
        .join(SaleReturn, SaleReturnLine.return_id == SaleReturn.id)
        .filter(SaleReturn.sale_id == sale_id, SaleReturn.status != ReturnStatus.REJECTED)
        .group_by(SaleReturnLine.product_id)
        .all()
    )
    return {product_id: to_decimal(qty) for product_id, qty in rows}


def create_return(db: Session, data, current_user) -> SaleReturn:
    sale = validate_sale(db, data.sale_id, current_user)
    if data.refund_method in (PaymentMethod.BANK, PaymentMethod.CARD) and not data.refund_treasury_id:
        raise BusinessRuleError("حدد الحساب البنكي لصرف قيمة المرتجع")

    sold_qty = defaultdict(Decimal)
    sold_price = {}
    for line in sale.lines:
        sold_qty[line.product_id] += to_decimal(line.qty)
        sold_price.setdefault(line.product_id, to_decimal(line.sub_total) / to_decimal(line.qty))

    returned = _already_returned(db, sale.id)
    requested = defaultdict(Decimal)

    lines = []
    for line in data.lines:
        if line.product_id not in sold_qty:
            raise BusinessRuleError(f"الصنف رقم {line.product_id} غير موجود في الفاتورة")
        requested[line.product_id] += to_decimal(line.qty)
        allowed = sold_qty[line.product_id] - returned.get(line.product_id, Decimal(0))
        if requested[line.product_id] > allowed:
            raise BusinessRuleError(
                f"الكمية المرتجعة للصنف رقم {line.product_id} ({requested[line.product_id]}) "
                f"تتجاوز الكمية المتاحة للإرجاع ({allowed})"
            )
        unit_price = money(line.unit_price if line.unit_price is not None else sold_price[line.product_id])
        lines.append(SaleReturnLine(
            product_id=line.product_id,
            qty=line.qty,
            unit_price=unit_price,
            sub_total=money(to_decimal(line.qty) * unit_price),
        ))

    total = money(sum((line.sub_total for line in lines), Decimal(0)))
    sale_return = SaleReturn(
        sale_id=sale.id,
        company_id=sale.company_id,
        customer_id=sale.customer_id,
        total=total,
        refund_amount=total,
        refund_method=data.refund_method,
        refund_treasury_id=data.refund_treasury_id,
        status=ReturnStatus.PENDING,
        reason=data.reason,
        notes=data.notes,
        lines=lines,
    )
    db.add(sale_return)
    db.commit()
    db.refresh(sale_return)
    logger.info("Return %s requested on sale %s (total %s)", sale_return.id, sale.id, total)
    return sale_return


def get_return(db: Session, return_id: int, current_user) -> SaleReturn:
    sale_return = (
        db.query(SaleReturn)
        .options(joinedload(SaleReturn.lines).joinedload(SaleReturnLine.product), joinedload(SaleReturn.customer))
        .filter(SaleReturn.id == return_id)
        .first()
    )
    if not sale_return:
        raise NotFoundError("المرتجع غير موجود")
    ensure_company_access(current_user, sale_return.company_id)
    return sale_return


def list_returns(db: Session, current_user, status: Optional[ReturnStatus] = None, sale_id: Optional[int] = None,
                 page: int = 1, limit: int = 20, company_id: Optional[int] = None):
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(SaleReturn)
    if company_id is not None:
        query = query.filter(SaleReturn.company_id == company_id)
    if status:
        query = query.filter(SaleReturn.status == status)
    if sale_id:
        query = query.filter(SaleReturn.sale_id == sale_id)
    total = query.count()
    items = (
        query.options(joinedload(SaleReturn.customer))
        .order_by(SaleReturn.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def _refund(db: Session, sale_return: SaleReturn, processed_by: Optional[str]) -> None:
    """Pays the refund out of a treasury; the customer's credit from the return is settled by it."""
    treasury = treasury_service.resolve_payment_treasury(
        db, sale_return.company_id, sale_return.refund_method, sale_return.refund_treasury_id,
    )
    if treasury is None:
        raise BusinessRuleError("لا توجد خزينة متاحة لصرف قيمة المرتجع")

    treasury_service.withdraw(
        db, treasury, sale_return.refund_amount, TransactionSource.RETURN,
        reference_type="SaleReturn", reference_id=sale_return.id,
        description=f"صرف قيمة المرتجع رقم {sale_return.id} على الفاتورة {sale_return.sale.invoice_number or sale_return.sale_id}",
        created_by=processed_by,
    )
    if sale_return.customer_id:
        ledgers.add_customer_entry(
            db, sale_return.customer_id, AccountTransactionType.DEBIT, sale_return.refund_amount,
            AccountReferenceType.PAYMENT, sale_return.id,
            f"صرف قيمة المرتجع رقم {sale_return.id} للعميل",
        )


def _process(db: Session, sale_return: SaleReturn, processed_by: Optional[str] = None) -> None:
    if sale_return.status != ReturnStatus.APPROVED:
        raise BusinessRuleError("يجب اعتماد المرتجع قبل معالجته")

    for line in sale_return.lines:
        stock_service.increment(db, sale_return.company_id, line.product_id, line.qty)

    if sale_return.customer_id:
        ledgers.add_customer_entry(
            db, sale_return.customer_id, AccountTransactionType.CREDIT, sale_return.refund_amount,
            AccountReferenceType.RETURN, sale_return.id,
            f"مرتجع مبيعات رقم {sale_return.id} على الفاتورة {sale_return.sale.invoice_number or sale_return.sale_id}",
        )

    if sale_return.refund_method is not None and money(sale_return.refund_amount) > 0:
        _refund(db, sale_return, processed_by)

    sale_return.status = ReturnStatus.PROCESSED
    sale_return.processed_at = datetime.utcnow()


def update_status(db: Session, return_id: int, data, current_user) -> SaleReturn:
    sale_return = get_return(db, return_id, current_user)
    if sale_return.status in FINAL_STATUSES:
        raise BusinessRuleError(f"لا يمكن تعديل مرتجع بحالة: {sale_return.status.value}")
    if data.status == ReturnStatus.PROCESSED:
        raise BusinessRuleError("استخدم المعالجة لتحويل المرتجع إلى حالة المعالجة")

    sale_return.status = data.status
    if data.notes is not None:
        sale_return.notes = data.notes

    if data.status == ReturnStatus.APPROVED:
        _process(db, sale_return, current_user.display_name)

    db.commit()
    db.refresh(sale_return)
    logger.info("Return %s -> %s by %s", sale_return.id, sale_return.status.value, current_user.username)
    return sale_return


def process_return(db: Session, return_id: int, current_user) -> SaleReturn:
    sale_return = get_return(db, return_id, current_user)
    _process(db, sale_return, current_user.display_name)
    db.commit()
    db.refresh(sale_return)
    logger.info("Return %s processed by %s", sale_return.id, current_user.username)
    return sale_return


def delete_return(db: Session, return_id: int, current_user) -> None:
    sale_return = get_return(db, return_id, current_user)
    if sale_return.status != ReturnStatus.PENDING:
        raise BusinessRuleError("يمكن حذف المرتجعات المعلقة فقط")
    db.delete(sale_return)
    db.commit()


def returns_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(SaleReturn.status, func.count(SaleReturn.id), func.coalesce(func.sum(SaleReturn.total), 0))
    if company_id is not None:
        query = query.filter(SaleReturn.company_id == company_id)

    stats = {status.value.lower(): 0 for status in ReturnStatus}
    total_amount = 0.0
    for status, count, amount in query.group_by(SaleReturn.status).all():
        stats[status.value.lower()] = int(count)
        if status == ReturnStatus.PROCESSED:
            total_amount += float(amount or 0)
    stats["total"] = sum(stats.values())
    stats["processed_amount"] = total_amount
    return stats
