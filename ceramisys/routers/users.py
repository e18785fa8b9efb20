from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ceramisys.core.exceptions import NotFoundError
from ceramisys.crud import users as crud
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.users import UserCreate, UserRead, UserUpdate, RoleRead
from ceramisys.security import get_current_user, require_roles, resolve_company_id, ensure_company_access
from ceramisys.utils.responses import ok

router = APIRouter()

admin_only = require_roles("admin")


@router.get("/")
def read_users(
    skip: int = 0,
    limit: int = 100,
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company_id = resolve_company_id(current_user, company_id)
    users = crud.get_users(db, company_id=company_id, skip=skip, limit=limit)
    return ok([UserRead.model_validate(u) for u in users])


@router.get("/roles")
def read_roles(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok([RoleRead.model_validate(r) for r in crud.get_roles(db)])


@router.get("/{user_id}")
def read_user_by_id(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError("المستخدم غير موجود")
    ensure_company_access(current_user, user.company_id)
    return ok(UserRead.model_validate(user))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    new_user = crud.create_user(db, user)
    return ok(UserRead.model_validate(new_user), "تم إنشاء المستخدم بنجاح")


@router.put("/{user_id}")
def update_user(
    user_id: int,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    """Updates the user; a non-empty ``password`` is re-hashed."""
    user_db = crud.update_user(db, user_id, user_in)
    return ok(UserRead.model_validate(user_db), "تم تحديث المستخدم بنجاح")


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    """Soft delete."""
    user_db = crud.deactivate_user(db, user_id)
    return ok(UserRead.model_validate(user_db), "تم تعطيل المستخدم بنجاح")
