from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import SALES_CREATE, APPROVER_ROLES
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.sales import (
    SaleCreate, SaleUpdate, SaleApprove, SaleFilters, SaleRead, SalePaymentCreate, SalePaymentRead,
)
from ceramisys.security import get_current_user, require_permissions, require_roles
from ceramisys.services import sales as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_sell = require_permissions(SALES_CREATE)
can_approve = require_roles(*APPROVER_ROLES)


@router.get("/")
def list_sales(
    filters: SaleFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_sales(db, filters, current_user)
    return ok(paginated([SaleRead.model_validate(s) for s in items], total, filters.page, filters.limit))


@router.get("/stats")
def sales_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.sales_stats(db, current_user, company_id))


@router.get("/daily-chart")
def daily_chart(
    days: int = Query(30, ge=1, le=365),
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.daily_chart(db, current_user, days, company_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_sale(data: SaleCreate, db: Session = Depends(get_db), current_user: User = Depends(can_sell)):
    """Provisional invoice. Stock is only touched on approval."""
    sale = service.create_sale(db, data, current_user)
    return ok(SaleRead.model_validate(sale), "تم إنشاء الفاتورة المبدئية بنجاح")


@router.get("/{sale_id}")
def get_sale(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(SaleRead.model_validate(service.get_sale(db, sale_id, current_user)))


@router.put("/{sale_id}")
def update_sale(
    sale_id: int,
    data: SaleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_sell),
):
    sale = service.update_sale(db, sale_id, data, current_user)
    return ok(SaleRead.model_validate(sale), "تم تحديث الفاتورة بنجاح")


@router.delete("/{sale_id}")
def delete_sale(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_approve)):
    service.delete_sale(db, sale_id, current_user)
    return ok(None, "تم حذف الفاتورة بنجاح")


@router.post("/{sale_id}/approve")
def approve_sale(
    sale_id: int,
    data: SaleApprove,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_approve),
):
    sale = service.approve_sale(db, sale_id, data, current_user)
    return ok(SaleRead.model_validate(sale), "تم اعتماد الفاتورة بنجاح")


@router.get("/{sale_id}/payments")
def list_sale_payments(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    payments = service.list_sale_payments(db, sale_id, current_user)
    return ok([SalePaymentRead.model_validate(p) for p in payments])


@router.post("/{sale_id}/payments", status_code=status.HTTP_201_CREATED)
def add_sale_payment(
    sale_id: int,
    data: SalePaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_approve),
):
    payment = service.add_sale_payment(db, sale_id, data, current_user)
    return ok(SalePaymentRead.model_validate(payment), "تم تسجيل الدفعة بنجاح")


@router.post("/{sale_id}/issue-receipt")
def issue_receipt(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_approve)):
    sale = service.issue_receipt(db, sale_id, current_user)
    return ok(SaleRead.model_validate(sale), "تم إصدار الإيصال بنجاح")
