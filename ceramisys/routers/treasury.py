from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import TREASURY_MANAGE
from ceramisys.database import get_db
from ceramisys.models import User, TreasuryType, TransactionSource
from ceramisys.schemas.treasury import TreasuryCreate, TreasuryMovement, TreasuryRead, TreasuryTransactionRead
from ceramisys.security import get_current_user, require_permissions, resolve_company_id, ensure_company_access
from ceramisys.services import treasury as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_manage = require_permissions(TREASURY_MANAGE)


def _get_accessible(db: Session, treasury_id: int, current_user: User):
    treasury = service.get_treasury(db, treasury_id)
    # Bank and general treasuries have no owner company
    if treasury.company_id is not None:
        ensure_company_access(current_user, treasury.company_id)
    return treasury


@router.get("/")
def list_treasuries(
    company_id: Optional[int] = None,
    type: Optional[TreasuryType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company_id = resolve_company_id(current_user, company_id)
    treasuries = service.list_treasuries(db, company_id, type)
    return ok([TreasuryRead.model_validate(t) for t in treasuries])


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_treasury(data: TreasuryCreate, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    treasury = service.create_treasury(db, data, company_id, current_user.display_name)
    return ok(TreasuryRead.model_validate(treasury), "تم إنشاء الخزينة بنجاح")


@router.get("/{treasury_id}")
def get_treasury(treasury_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(TreasuryRead.model_validate(_get_accessible(db, treasury_id, current_user)))


@router.get("/{treasury_id}/transactions")
def list_transactions(
    treasury_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    treasury = _get_accessible(db, treasury_id, current_user)
    items, total = service.list_transactions(db, treasury.id, page, limit)
    return ok(paginated([TreasuryTransactionRead.model_validate(t) for t in items], total, page, limit))


@router.post("/{treasury_id}/deposit")
def manual_deposit(
    treasury_id: int,
    data: TreasuryMovement,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    treasury = _get_accessible(db, treasury_id, current_user)
    tx = service.deposit(db, treasury, data.amount, TransactionSource.MANUAL,
                         description=data.description, created_by=current_user.display_name)
    db.commit()
    db.refresh(tx)
    return ok(TreasuryTransactionRead.model_validate(tx), "تم الإيداع بنجاح")


@router.post("/{treasury_id}/withdraw")
def manual_withdraw(
    treasury_id: int,
    data: TreasuryMovement,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    treasury = _get_accessible(db, treasury_id, current_user)
    tx = service.withdraw(db, treasury, data.amount, TransactionSource.MANUAL,
                          description=data.description, created_by=current_user.display_name)
    db.commit()
    db.refresh(tx)
    return ok(TreasuryTransactionRead.model_validate(tx), "تم السحب بنجاح")
