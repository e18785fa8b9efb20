from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import RETURNS_MANAGE, APPROVER_ROLES
from ceramisys.database import get_db
from ceramisys.models import User, ReturnStatus
from ceramisys.schemas.returns import SaleReturnCreate, SaleReturnStatusUpdate, SaleReturnRead
from ceramisys.schemas.sales import SaleRead
from ceramisys.security import get_current_user, require_permissions, require_roles
from ceramisys.services import returns as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_request = require_permissions(RETURNS_MANAGE)
can_approve = require_roles(*APPROVER_ROLES)


@router.get("/")
def list_returns(
    status_filter: Optional[ReturnStatus] = Query(None, alias="status"),
    sale_id: Optional[int] = None,
    company_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_returns(db, current_user, status_filter, sale_id, page, limit, company_id)
    return ok(paginated([SaleReturnRead.model_validate(r) for r in items], total, page, limit))


@router.get("/stats")
def returns_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.returns_stats(db, current_user, company_id))


@router.get("/validate-sale/{sale_id}")
def validate_sale(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    sale = service.validate_sale(db, sale_id, current_user)
    return ok(SaleRead.model_validate(sale), "الفاتورة صالحة للإرجاع")


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_return(data: SaleReturnCreate, db: Session = Depends(get_db), current_user: User = Depends(can_request)):
    sale_return = service.create_return(db, data, current_user)
    return ok(SaleReturnRead.model_validate(sale_return), "تم تسجيل طلب الإرجاع بنجاح")


@router.get("/{return_id}")
def get_return(return_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(SaleReturnRead.model_validate(service.get_return(db, return_id, current_user)))


@router.put("/{return_id}/status")
def update_status(
    return_id: int,
    data: SaleReturnStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_approve),
):
    sale_return = service.update_status(db, return_id, data, current_user)
    return ok(SaleReturnRead.model_validate(sale_return), "تم تحديث حالة المرتجع بنجاح")


@router.post("/{return_id}/process")
def process_return(return_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_approve)):
    sale_return = service.process_return(db, return_id, current_user)
    return ok(SaleReturnRead.model_validate(sale_return), "تمت معالجة المرتجع بنجاح")


@router.delete("/{return_id}")
def delete_return(return_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_request)):
    service.delete_return(db, return_id, current_user)
    return ok(None, "تم حذف المرتجع بنجاح")
