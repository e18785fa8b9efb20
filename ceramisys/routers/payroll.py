from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import PAYROLL_MANAGE
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.payroll import (
    EmployeeCreate, EmployeeUpdate, EmployeeRead, SalaryPaymentCreate, BatchSalaryCreate,
    BonusCreate, SalaryPaymentRead, BonusRead,
)
from ceramisys.security import require_permissions
from ceramisys.services import payroll as service
from ceramisys.utils.responses import ok

router = APIRouter()

can_manage = require_permissions(PAYROLL_MANAGE)


# --------------------------------------------------------------------------
# EMPLOYEES
# --------------------------------------------------------------------------
@router.get("/employees")
def list_employees(
    company_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    employees = service.list_employees(db, current_user, company_id, is_active, search)
    return ok([EmployeeRead.model_validate(e) for e in employees])


@router.post("/employees", status_code=status.HTTP_201_CREATED)
def create_employee(data: EmployeeCreate, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    employee = service.create_employee(db, data, current_user)
    return ok(EmployeeRead.model_validate(employee), "تم إضافة الموظف بنجاح")


@router.get("/employees/{employee_id}")
def get_employee(employee_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    return ok(EmployeeRead.model_validate(service.get_employee(db, employee_id, current_user)))


@router.put("/employees/{employee_id}")
def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    employee = service.update_employee(db, employee_id, data, current_user)
    return ok(EmployeeRead.model_validate(employee), "تم تحديث بيانات الموظف بنجاح")


@router.delete("/employees/{employee_id}")
def delete_employee(employee_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    removed = service.delete_employee(db, employee_id, current_user)
    message = "تم حذف الموظف بنجاح" if removed else "للموظف سجل رواتب، تم تعطيله"
    return ok({"deleted": removed}, message)


@router.get("/employees/{employee_id}/salaries")
def employee_salary_history(employee_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    payments = service.employee_salary_history(db, employee_id, current_user)
    return ok([SalaryPaymentRead.model_validate(p) for p in payments])


# --------------------------------------------------------------------------
# SALARIES
# --------------------------------------------------------------------------
@router.post("/salaries", status_code=status.HTTP_201_CREATED)
def pay_salary(data: SalaryPaymentCreate, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    payment = service.pay_salary(db, data, current_user)
    return ok(SalaryPaymentRead.model_validate(payment), "تم صرف الراتب بنجاح")


@router.post("/salaries/batch")
def pay_multiple_salaries(data: BatchSalaryCreate, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    result = service.pay_multiple_salaries(db, data, current_user)
    payments = [SalaryPaymentRead.model_validate(p) for p in result["payments"]]
    message = f"تم صرف {len(payments)} راتب"
    if result["errors"]:
        message += f"، وتعذر صرف {len(result['errors'])}"
    return ok({"payments": payments, "errors": result["errors"]}, message)


@router.get("/salaries")
def salaries_by_month(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    payments = service.salaries_by_month(db, current_user, month, year, company_id)
    return ok([SalaryPaymentRead.model_validate(p) for p in payments])


# --------------------------------------------------------------------------
# BONUSES
# --------------------------------------------------------------------------
@router.post("/bonuses", status_code=status.HTTP_201_CREATED)
def pay_bonus(data: BonusCreate, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    bonus = service.pay_bonus(db, data, current_user)
    return ok(BonusRead.model_validate(bonus), "تم صرف المكافأة بنجاح")


@router.get("/bonuses")
def list_bonuses(
    employee_id: Optional[int] = None,
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    bonuses = service.list_bonuses(db, current_user, employee_id, company_id)
    return ok([BonusRead.model_validate(b) for b in bonuses])


@router.get("/stats")
def payroll_stats(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return ok(service.payroll_stats(db, current_user, company_id))
