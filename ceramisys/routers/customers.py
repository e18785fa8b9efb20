from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import CUSTOMERS_WRITE, SALES_APPROVE
from ceramisys.crud import customers as crud
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.crm import CustomerCreate, CustomerRead, CustomerUpdate, AccountEntryCreate, AccountEntryRead
from ceramisys.security import get_current_user, require_permissions
from ceramisys.services import ledgers
from ceramisys.utils.responses import ok, paginated

router = APIRouter()


@router.get("/")
def get_customers(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = crud.get_customers(db, search, page, limit)
    return ok(paginated([CustomerRead.model_validate(c) for c in items], total, page, limit))


@router.get("/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(CustomerRead.model_validate(crud.get_customer(db, customer_id)))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_in: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(CUSTOMERS_WRITE)),
):
    customer = crud.create_customer(db, customer_in)
    return ok(CustomerRead.model_validate(customer), "تم إنشاء العميل بنجاح")


@router.put("/{customer_id}")
def update_customer(
    customer_id: int,
    customer_in: CustomerUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(CUSTOMERS_WRITE)),
):
    customer = crud.update_customer(db, customer_id, customer_in)
    return ok(CustomerRead.model_validate(customer), "تم تحديث العميل بنجاح")


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(CUSTOMERS_WRITE)),
):
    crud.delete_customer(db, customer_id)
    return ok(None, "تم حذف العميل بنجاح")


# --------------------------------------------------------------------------
# ACCOUNT (ledger)
# --------------------------------------------------------------------------
@router.get("/{customer_id}/account")
def get_customer_account(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    customer = crud.get_customer(db, customer_id)
    account = ledgers.customer_account(db, customer.id)
    account["customer"] = CustomerRead.model_validate(customer)
    account["entries"] = [AccountEntryRead.model_validate(e) for e in account["entries"]]
    return ok(account)


@router.post("/{customer_id}/account", status_code=status.HTTP_201_CREATED)
def add_account_entry(
    customer_id: int,
    data: AccountEntryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(SALES_APPROVE)),
):
    """Manual entry, typically an opening balance."""
    customer = crud.get_customer(db, customer_id)
    entry = ledgers.add_customer_entry(
        db, customer.id, data.transaction_type, data.amount,
        data.reference_type, data.reference_id, data.description,
    )
    db.commit()
    db.refresh(entry)
    return ok(AccountEntryRead.model_validate(entry), "تم تسجيل الحركة بنجاح")
