from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import PURCHASE_WRITE_ROLES, PURCHASE_READ_ROLES, TREASURY_MANAGE
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.payment_receipts import (
    PaymentReceiptCreate, PaymentReceiptFilters, PaymentReceiptRead, InstallmentCreate, InstallmentRead, ReceiptPay,
)
from ceramisys.security import require_roles, require_permissions
from ceramisys.services import payment_receipts as service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()

can_read = require_roles(*PURCHASE_READ_ROLES)
can_write = require_roles(*PURCHASE_WRITE_ROLES)
can_pay = require_permissions(TREASURY_MANAGE)


@router.get("/")
def list_receipts(
    filters: PaymentReceiptFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    items, total = service.list_receipts(db, filters, current_user)
    return ok(paginated([PaymentReceiptRead.model_validate(r) for r in items], total, filters.page, filters.limit))


@router.get("/stats")
def receipt_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_read),
):
    return ok(service.receipt_stats(db, current_user, company_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_receipt(data: PaymentReceiptCreate, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    receipt = service.create_receipt(db, data, current_user)
    return ok(PaymentReceiptRead.model_validate(receipt), "تم إنشاء الإيصال بنجاح")


@router.delete("/installments/{installment_id}")
def delete_installment(installment_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_pay)):
    receipt = service.delete_installment(db, installment_id, current_user)
    return ok(PaymentReceiptRead.model_validate(receipt), "تم حذف الدفعة بنجاح")


@router.get("/{receipt_id}")
def get_receipt(receipt_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok(PaymentReceiptRead.model_validate(service.get_receipt(db, receipt_id, current_user)))


@router.get("/{receipt_id}/installments")
def list_installments(receipt_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_read)):
    return ok([InstallmentRead.model_validate(i) for i in service.list_installments(db, receipt_id, current_user)])


@router.post("/{receipt_id}/installments", status_code=status.HTTP_201_CREATED)
def add_installment(
    receipt_id: int,
    data: InstallmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_pay),
):
    installment = service.add_installment(db, receipt_id, data, current_user)
    return ok(InstallmentRead.model_validate(installment), "تم تسجيل الدفعة بنجاح")


@router.post("/{receipt_id}/pay")
def pay_receipt(receipt_id: int, data: ReceiptPay, db: Session = Depends(get_db), current_user: User = Depends(can_pay)):
    receipt = service.pay_receipt(db, receipt_id, data, current_user)
    return ok(PaymentReceiptRead.model_validate(receipt), "تم سداد الإيصال بالكامل")


@router.post("/{receipt_id}/cancel")
def cancel_receipt(receipt_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_pay)):
    receipt = service.cancel_receipt(db, receipt_id, current_user)
    return ok(PaymentReceiptRead.model_validate(receipt), "تم إلغاء الإيصال")
