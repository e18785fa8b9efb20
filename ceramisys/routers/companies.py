from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.organization import CompanyCreate, CompanyUpdate, CompanyRead
from ceramisys.security import get_current_user, require_roles, ensure_company_access
from ceramisys.services import companies as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

admin_only = require_roles("admin")


@router.get("/")
def list_companies(
    search: Optional[str] = None,
    is_parent: Optional[bool] = None,
    parent_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_companies(db, search, is_parent, parent_id, page, limit)
    return ok(paginated([CompanyRead.model_validate(c) for c in items], total, page, limit))


@router.get("/hierarchy")
def company_hierarchy(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok([CompanyRead.model_validate(c) for c in service.company_hierarchy(db)])


@router.get("/{company_id}")
def get_company(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    ensure_company_access(current_user, company_id)
    return ok(CompanyRead.model_validate(service.get_company(db, company_id)))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_company(data: CompanyCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    company = service.create_company(db, data)
    return ok(CompanyRead.model_validate(company), "تم إنشاء الشركة بنجاح")


@router.put("/{company_id}")
def update_company(
    company_id: int,
    data: CompanyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    company = service.update_company(db, company_id, data)
    return ok(CompanyRead.model_validate(company), "تم تحديث الشركة بنجاح")


@router.delete("/{company_id}")
def delete_company(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    service.delete_company(db, company_id)
    return ok(None, "تم حذف الشركة بنجاح")
