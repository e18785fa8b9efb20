from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import APPROVER_ROLES
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.sales import ComplexSaleCreate, ParentSaleSettlement, SaleRead, SalePaymentRead
from ceramisys.security import get_current_user, require_roles
from ceramisys.services import inter_company as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_approve = require_roles(*APPROVER_ROLES)


@router.get("/")
def list_complex_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_complex_sales(db, current_user, page, limit, company_id)
    return ok(paginated([SaleRead.model_validate(s) for s in items], total, page, limit))


@router.get("/stats")
def complex_sales_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.complex_sales_stats(db, current_user, company_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_complex_sale(data: ComplexSaleCreate, db: Session = Depends(get_db), current_user: User = Depends(can_approve)):
    sale = service.create_complex_sale(db, data, current_user)
    return ok(SaleRead.model_validate(sale), "تم إنشاء البيع المركب بنجاح")


@router.post("/parent-sales/{sale_id}/settle")
def settle_parent_sale(
    sale_id: int,
    data: ParentSaleSettlement,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_approve),
):
    payment = service.settle_parent_sale(db, sale_id, data, current_user)
    return ok(SalePaymentRead.model_validate(payment), "تم تسجيل التسوية بنجاح")
