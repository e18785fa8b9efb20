from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import PURCHASE_WRITE_ROLES, PURCHASE_READ_ROLES, PURCHASE_DELETE_ROLES
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.expenses import ExpenseCategoryCreate, ExpenseCategoryUpdate, ExpenseCategoryRead
from ceramisys.security import require_roles
from ceramisys.services import purchase_expenses as service
from ceramisys.utils.responses import ok

router = APIRouter()

can_read = require_roles(*PURCHASE_READ_ROLES)
can_write = require_roles(*PURCHASE_WRITE_ROLES)
can_delete = require_roles(*PURCHASE_DELETE_ROLES)


@router.get("/")
def list_categories(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    return ok([ExpenseCategoryRead.model_validate(c) for c in service.list_categories(db, include_inactive)])


@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok(ExpenseCategoryRead.model_validate(service.get_category(db, category_id)))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_category(data: ExpenseCategoryCreate, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    category = service.create_category(db, data)
    return ok(ExpenseCategoryRead.model_validate(category), "تم إنشاء فئة المصروفات بنجاح")


@router.put("/{category_id}")
def update_category(
    category_id: int,
    data: ExpenseCategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    category = service.update_category(db, category_id, data)
    return ok(ExpenseCategoryRead.model_validate(category), "تم تحديث فئة المصروفات بنجاح")


@router.delete("/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_delete)):
    service.delete_category(db, category_id)
    return ok(None, "تم حذف فئة المصروفات بنجاح")
