from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import PURCHASE_WRITE_ROLES, PURCHASE_READ_ROLES, PURCHASE_DELETE_ROLES
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.purchases import (
    SupplierCreate, SupplierUpdate, SupplierRead, SupplierAccountEntryRead,
    PurchaseCreate, PurchaseUpdate, PurchaseFilters, PurchaseRead, PurchasePaymentCreate, PurchasePaymentRead,
)
from ceramisys.schemas.expenses import PurchaseExpensesCreate, PurchaseExpenseRead
from ceramisys.security import require_roles
from ceramisys.services import ledgers
from ceramisys.services import purchases as service
from ceramisys.services import purchase_expenses as expense_service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()
suppliers_router = APIRouter()

can_read = require_roles(*PURCHASE_READ_ROLES)
can_write = require_roles(*PURCHASE_WRITE_ROLES)
can_delete = require_roles(*PURCHASE_DELETE_ROLES)


# --------------------------------------------------------------------------
# PURCHASES
# --------------------------------------------------------------------------
@router.get("/")
def list_purchases(
    filters: PurchaseFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    items, total = service.list_purchases(db, filters, current_user)
    return ok(paginated([PurchaseRead.model_validate(p) for p in items], total, filters.page, filters.limit))


@router.get("/stats")
def purchase_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    return ok(service.purchase_stats(db, current_user, company_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_purchase(data: PurchaseCreate, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    purchase = service.create_purchase(db, data, current_user)
    return ok(PurchaseRead.model_validate(purchase), "تم إنشاء فاتورة المشتريات بنجاح")


@router.get("/{purchase_id}")
def get_purchase(purchase_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok(PurchaseRead.model_validate(service.get_purchase(db, purchase_id, current_user)))


@router.put("/{purchase_id}")
def update_purchase(
    purchase_id: int,
    data: PurchaseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    purchase = service.update_purchase(db, purchase_id, data, current_user)
    return ok(PurchaseRead.model_validate(purchase), "تم تحديث فاتورة المشتريات بنجاح")


@router.delete("/{purchase_id}")
def delete_purchase(purchase_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_delete)):
    service.delete_purchase(db, purchase_id, current_user)
    return ok(None, "تم حذف فاتورة المشتريات بنجاح")


@router.post("/{purchase_id}/payments", status_code=status.HTTP_201_CREATED)
def add_payment(
    purchase_id: int,
    data: PurchasePaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    payment = service.add_payment(db, purchase_id, data, current_user)
    return ok(PurchasePaymentRead.model_validate(payment), "تم تسجيل الدفعة بنجاح")


# --------------------------------------------------------------------------
# EXPENSES
# --------------------------------------------------------------------------
@router.get("/{purchase_id}/expenses")
def list_expenses(purchase_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok([PurchaseExpenseRead.model_validate(e) for e in expense_service.list_expenses(db, purchase_id, current_user)])


@router.post("/{purchase_id}/expenses", status_code=status.HTTP_201_CREATED)
def add_expenses(
    purchase_id: int,
    data: PurchaseExpensesCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    purchase = expense_service.add_expenses(db, purchase_id, data, current_user)
    return ok(PurchaseRead.model_validate(purchase), "تم تسجيل المصروفات بنجاح")


@router.delete("/expenses/{expense_id}")
def delete_expense(expense_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    expense_service.delete_expense(db, expense_id, current_user)
    return ok(None, "تم حذف المصروف بنجاح")


# --------------------------------------------------------------------------
# SUPPLIERS
# --------------------------------------------------------------------------
@suppliers_router.get("/")
def list_suppliers(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    items, total = service.list_suppliers(db, search, page, limit)
    return ok(paginated([SupplierRead.model_validate(s) for s in items], total, page, limit))


@suppliers_router.get("/{supplier_id}")
def get_supplier(supplier_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok(SupplierRead.model_validate(service.get_supplier(db, supplier_id)))


@suppliers_router.get("/{supplier_id}/account")
def get_supplier_account(supplier_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    account = ledgers.supplier_account(db, supplier_id)
    account["supplier"] = SupplierRead.model_validate(account["supplier"])
    account["entries"] = [SupplierAccountEntryRead.model_validate(e) for e in account["entries"]]
    return ok(account)


@suppliers_router.post("/", status_code=status.HTTP_201_CREATED)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    supplier = service.create_supplier(db, data)
    return ok(SupplierRead.model_validate(supplier), "تم إنشاء المورد بنجاح")


@suppliers_router.put("/{supplier_id}")
def update_supplier(
    supplier_id: int,
    data: SupplierUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    supplier = service.update_supplier(db, supplier_id, data)
    return ok(SupplierRead.model_validate(supplier), "تم تحديث المورد بنجاح")


@suppliers_router.delete("/{supplier_id}")
def delete_supplier(supplier_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_delete)):
    service.delete_supplier(db, supplier_id)
    return ok(None, "تم حذف المورد بنجاح")
