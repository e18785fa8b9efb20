from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import WAREHOUSE_MANAGE
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.warehouse import (
    DispatchOrderCreate, DispatchOrderStatusUpdate, DispatchOrderFilters, DispatchOrderRead,
)
from ceramisys.security import get_current_user, require_permissions
from ceramisys.services import warehouse as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_manage = require_permissions(WAREHOUSE_MANAGE)


@router.get("/dispatch-orders")
def list_dispatch_orders(
    filters: DispatchOrderFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_dispatch_orders(db, filters, current_user)
    return ok(paginated([DispatchOrderRead.model_validate(o) for o in items], total, filters.page, filters.limit))


@router.get("/dispatch-orders/stats")
def dispatch_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.dispatch_stats(db, current_user, company_id))


@router.post("/dispatch-orders", status_code=status.HTTP_201_CREATED)
def create_dispatch_order(
    data: DispatchOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    order = service.create_dispatch_order(db, data, current_user)
    return ok(DispatchOrderRead.model_validate(order), "تم إنشاء أمر الصرف بنجاح")


@router.get("/dispatch-orders/{order_id}")
def get_dispatch_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(DispatchOrderRead.model_validate(service.get_dispatch_order(db, order_id, current_user)))


@router.put("/dispatch-orders/{order_id}/status")
def update_dispatch_status(
    order_id: int,
    data: DispatchOrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    order = service.update_dispatch_status(db, order_id, data, current_user)
    return ok(DispatchOrderRead.model_validate(order), "تم تحديث حالة أمر الصرف بنجاح")


@router.delete("/dispatch-orders/{order_id}")
def delete_dispatch_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    service.delete_dispatch_order(db, order_id, current_user)
    return ok(None, "تم حذف أمر الصرف بنجاح")
