import logging
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy import or_, func
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import (
    Customer, DispatchOrder, DispatchOrderStatus, ACTIVE_DISPATCH_STATUSES, Sale, SaleLine, SaleStatus,
)
from ceramisys.security import resolve_company_id, ensure_company_access

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (DispatchOrderStatus.COMPLETED, DispatchOrderStatus.CANCELLED)


def _order_query(db: Session):
    return db.query(DispatchOrder).options(
        joinedload(DispatchOrder.sale).joinedload(Sale.lines).joinedload(SaleLine.product),
        joinedload(DispatchOrder.sale).joinedload(Sale.customer),
    )


def get_dispatch_order(db: Session, order_id: int, current_user) -> DispatchOrder:
    order = _order_query(db).filter(DispatchOrder.id == order_id).first()
    if not order:
        raise NotFoundError("أمر الصرف غير موجود")
    ensure_company_access(current_user, order.company_id)
    return order


def create_dispatch_order(db: Session, data, current_user) -> DispatchOrder:
    sale = db.query(Sale).filter(Sale.id == data.sale_id).first()
    if not sale:
        raise NotFoundError("الفاتورة غير موجودة")
    ensure_company_access(current_user, sale.company_id)
    if sale.status != SaleStatus.APPROVED:
        raise BusinessRuleError("لا يمكن إنشاء أمر صرف لفاتورة غير معتمدة")

    active = db.query(DispatchOrder).filter(
        DispatchOrder.sale_id == sale.id,
        DispatchOrder.status.in_(ACTIVE_DISPATCH_STATUSES),
    ).first()
    if active:
        raise ConflictError("يوجد أمر صرف نشط لهذه الفاتورة بالفعل", data={"dispatch_order_id": active.id})

    order = DispatchOrder(
        sale_id=sale.id,
        company_id=sale.company_id,
        status=DispatchOrderStatus.PENDING,
        notes=data.notes,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Dispatch order %s created for sale %s", order.id, sale.id)
    return order


def list_dispatch_orders(db: Session, filters, current_user):
    company_id = resolve_company_id(current_user, filters.company_id)
    query = (
        db.query(DispatchOrder)
        .join(Sale, DispatchOrder.sale_id == Sale.id)
        .outerjoin(Customer, Sale.customer_id == Customer.id)
    )
    if company_id is not None:
        query = query.filter(DispatchOrder.company_id == company_id)
    if filters.status:
        query = query.filter(DispatchOrder.status == filters.status)
    if filters.search:
        s = f"%{filters.search}%"
        query = query.filter(or_(Sale.invoice_number.ilike(s), Customer.name.ilike(s), Customer.phone.ilike(s)))
    if filters.start_date:
        query = query.filter(DispatchOrder.created_at >= datetime.combine(filters.start_date, time.min))
    if filters.end_date:
        query = query.filter(DispatchOrder.created_at < datetime.combine(filters.end_date + timedelta(days=1), time.min))

    total = query.count()
    items = (
        query.options(joinedload(DispatchOrder.sale).joinedload(Sale.customer))
        .order_by(DispatchOrder.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return items, total


def update_dispatch_status(db: Session, order_id: int, data, current_user) -> DispatchOrder:
    order = get_dispatch_order(db, order_id, current_user)
    if order.status in TERMINAL_STATUSES:
        raise BusinessRuleError(f"لا يمكن تعديل أمر صرف بحالة: {order.status.value}")

    order.status = data.status
    if data.notes is not None:
        order.notes = data.notes
    if data.status == DispatchOrderStatus.COMPLETED:
        order.completed_at = datetime.utcnow()
        order.completed_by_id = current_user.id

    db.commit()
    db.refresh(order)
    logger.info("Dispatch order %s -> %s by %s", order.id, order.status.value, current_user.username)
    return order


def delete_dispatch_order(db: Session, order_id: int, current_user) -> None:
    order = get_dispatch_order(db, order_id, current_user)
    if order.status == DispatchOrderStatus.COMPLETED:
        raise BusinessRuleError("لا يمكن حذف أمر صرف مكتمل")
    db.delete(order)
    db.commit()


def dispatch_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(DispatchOrder.status, func.count(DispatchOrder.id))
    if company_id is not None:
        query = query.filter(DispatchOrder.company_id == company_id)
    counts = dict(query.group_by(DispatchOrder.status).all())

    stats = {status.value.lower(): int(counts.get(status, 0)) for status in DispatchOrderStatus}
    stats["total"] = sum(stats.values())
    return stats
