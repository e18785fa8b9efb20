"""Employees, monthly salaries and bonuses. Every payout is withdrawn from a treasury."""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import CeramiSysError, NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import (
    Employee, SalaryPayment, EmployeeBonus, BonusType, TransactionSource,
)
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import treasury as treasury_service
from ceramisys.utils.folios import get_next_receipt_number
from ceramisys.utils.numbers import money, to_decimal

logger = logging.getLogger(__name__)


# -----------------------------
# Employees
# -----------------------------
def get_employee(db: Session, employee_id: int, current_user) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFoundError("الموظف غير موجود")
    ensure_company_access(current_user, employee.company_id)
    return employee


def list_employees(db: Session, current_user, company_id: Optional[int] = None,
                   is_active: Optional[bool] = None, search: Optional[str] = None):
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(Employee)
    if company_id is not None:
        query = query.filter(Employee.company_id == company_id)
    if is_active is not None:
        query = query.filter(Employee.is_active == is_active)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Employee.name.ilike(s), Employee.job_title.ilike(s), Employee.phone.ilike(s)))
    return query.order_by(Employee.name).all()


def create_employee(db: Session, data, current_user) -> Employee:
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    employee = Employee(**data.model_dump(exclude={"company_id"}), company_id=company_id)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def update_employee(db: Session, employee_id: int, data, current_user) -> Employee:
    employee = get_employee(db, employee_id, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(employee, field, value)
    db.commit()
    db.refresh(employee)
    return employee


def delete_employee(db: Session, employee_id: int, current_user) -> bool:
    """Deactivates employees with payroll history; removes the rest. Returns True when removed."""
    employee = get_employee(db, employee_id, current_user)
    has_history = (
        db.query(SalaryPayment.id).filter(SalaryPayment.employee_id == employee.id).first()
        or db.query(EmployeeBonus.id).filter(EmployeeBonus.employee_id == employee.id).first()
    )
    if has_history:
        employee.is_active = False
        db.commit()
        return False
    db.delete(employee)
    db.commit()
    return True


# -----------------------------
# Salaries
# -----------------------------
def _pay_salary(db: Session, employee: Employee, month: int, year: int, treasury, amount: Decimal,
                notes: Optional[str], paid_by: str) -> SalaryPayment:
    if not employee.is_active:
        raise BusinessRuleError(f"الموظف {employee.name} غير نشط")

    already = db.query(SalaryPayment).filter(
        SalaryPayment.employee_id == employee.id,
        SalaryPayment.month == month,
        SalaryPayment.year == year,
    ).first()
    if already:
        raise ConflictError(f"تم صرف راتب {employee.name} لشهر {month}/{year} مسبقاً")

    payment = SalaryPayment(
        employee_id=employee.id,
        amount=amount,
        month=month,
        year=year,
        treasury_id=treasury.id,
        receipt_number=get_next_receipt_number(db, SalaryPayment, "SAL"),
        notes=notes,
        created_by=paid_by,
    )
    db.add(payment)
    db.flush()

    treasury_service.withdraw(
        db, treasury, amount, TransactionSource.SALARY,
        reference_type="SalaryPayment", reference_id=payment.id,
        description=f"راتب {employee.name} - {month}/{year}",
        created_by=paid_by,
    )
    return payment


def pay_salary(db: Session, data, current_user) -> SalaryPayment:
    employee = get_employee(db, data.employee_id, current_user)
    treasury = treasury_service.get_treasury(db, data.treasury_id)
    amount = money(data.amount if data.amount is not None else employee.base_salary)

    payment = _pay_salary(db, employee, data.month, data.year, treasury, amount, data.notes, current_user.display_name)
    db.commit()
    db.refresh(payment)
    logger.info("Salary %s paid to employee %s (%s/%s, %s)", payment.receipt_number, employee.id, data.month, data.year, amount)
    return payment


def pay_multiple_salaries(db: Session, data, current_user) -> dict:
    """
    Pays every listed employee their base salary from one treasury. Failures
    are collected per employee; the successful payments are committed.
    """
    treasury = treasury_service.get_treasury(db, data.treasury_id)
    employees = db.query(Employee).filter(Employee.id.in_(data.employee_ids), Employee.is_active == True).all()
    if not employees:
        raise NotFoundError("لا يوجد موظفون نشطون في القائمة")

    required = money(sum((to_decimal(e.base_salary) for e in employees), Decimal(0)))
    if to_decimal(treasury.balance) < required:
        raise BusinessRuleError(
            f"رصيد الخزينة غير كافٍ. الرصيد الحالي: {treasury.balance}، المطلوب: {required}",
            data={"balance": float(treasury.balance), "required": float(required)},
        )

    paid, errors = [], []
    found_ids = {e.id for e in employees}
    for employee_id in data.employee_ids:
        if employee_id not in found_ids:
            errors.append({"employee_id": employee_id, "error": "الموظف غير موجود أو غير نشط"})

    for employee in employees:
        try:
            # Every check in _pay_salary runs before anything is written
            ensure_company_access(current_user, employee.company_id)
            payment = _pay_salary(
                db, employee, data.month, data.year, treasury,
                money(employee.base_salary), data.notes, current_user.display_name,
            )
            paid.append(payment)
        except CeramiSysError as exc:
            errors.append({"employee_id": employee.id, "employee_name": employee.name, "error": exc.message})
        except Exception:
            logger.exception("Unexpected error paying salary of employee %s", employee.id)
            raise

    db.commit()
    for payment in paid:
        db.refresh(payment)
    logger.info("Batch payroll %s/%s: %s paid, %s failed", data.month, data.year, len(paid), len(errors))
    return {"payments": paid, "errors": errors}


def salaries_by_month(db: Session, current_user, month: int, year: int, company_id: Optional[int] = None):
    company_id = resolve_company_id(current_user, company_id)
    query = (
        db.query(SalaryPayment)
        .join(Employee, SalaryPayment.employee_id == Employee.id)
        .options(joinedload(SalaryPayment.employee))
        .filter(SalaryPayment.month == month, SalaryPayment.year == year)
    )
    if company_id is not None:
        query = query.filter(Employee.company_id == company_id)
    return query.order_by(SalaryPayment.id).all()


def employee_salary_history(db: Session, employee_id: int, current_user):
    employee = get_employee(db, employee_id, current_user)
    return (
        db.query(SalaryPayment)
        .filter(SalaryPayment.employee_id == employee.id)
        .order_by(SalaryPayment.year.desc(), SalaryPayment.month.desc())
        .all()
    )


# -----------------------------
# Bonuses
# -----------------------------
def pay_bonus(db: Session, data, current_user) -> EmployeeBonus:
    employee = get_employee(db, data.employee_id, current_user)
    if not employee.is_active:
        raise BusinessRuleError(f"الموظف {employee.name} غير نشط")
    treasury = treasury_service.get_treasury(db, data.treasury_id)
    amount = money(data.amount)

    bonus = EmployeeBonus(
        employee_id=employee.id,
        type=data.type,
        amount=amount,
        reason=data.reason,
        treasury_id=treasury.id,
        receipt_number=get_next_receipt_number(db, EmployeeBonus, "BON"),
        effective_date=data.effective_date,
        notes=data.notes,
        created_by=current_user.display_name,
    )
    db.add(bonus)
    db.flush()

    treasury_service.withdraw(
        db, treasury, amount, TransactionSource.BONUS,
        reference_type="EmployeeBonus", reference_id=bonus.id,
        description=f"{data.type.value} - {employee.name}" + (f" - {data.reason}" if data.reason else ""),
        created_by=current_user.display_name,
    )

    # A raise is paid once and also becomes part of the salary
    if data.type == BonusType.RAISE:
        employee.base_salary = money(employee.base_salary) + amount

    db.commit()
    db.refresh(bonus)
    logger.info("Bonus %s (%s) of %s paid to employee %s", bonus.receipt_number, data.type.value, amount, employee.id)
    return bonus


def list_bonuses(db: Session, current_user, employee_id: Optional[int] = None, company_id: Optional[int] = None):
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(EmployeeBonus).join(Employee, EmployeeBonus.employee_id == Employee.id)
    if employee_id:
        query = query.filter(EmployeeBonus.employee_id == employee_id)
    if company_id is not None:
        query = query.filter(Employee.company_id == company_id)
    return query.order_by(EmployeeBonus.id.desc()).all()


def payroll_stats(db: Session, current_user, company_id: Optional[int] = None) -> dict:
    company_id = resolve_company_id(current_user, company_id)
    today = date.today()

    employees = db.query(func.count(Employee.id), func.coalesce(func.sum(Employee.base_salary), 0)).filter(
        Employee.is_active == True
    )
    month_q = db.query(func.count(SalaryPayment.id), func.coalesce(func.sum(SalaryPayment.amount), 0)).join(
        Employee, SalaryPayment.employee_id == Employee.id
    ).filter(SalaryPayment.month == today.month, SalaryPayment.year == today.year)
    year_q = db.query(func.coalesce(func.sum(SalaryPayment.amount), 0)).join(
        Employee, SalaryPayment.employee_id == Employee.id
    ).filter(SalaryPayment.year == today.year)
    bonus_q = db.query(func.coalesce(func.sum(EmployeeBonus.amount), 0)).join(
        Employee, EmployeeBonus.employee_id == Employee.id
    )

    if company_id is not None:
        employees = employees.filter(Employee.company_id == company_id)
        month_q = month_q.filter(Employee.company_id == company_id)
        year_q = year_q.filter(Employee.company_id == company_id)
        bonus_q = bonus_q.filter(Employee.company_id == company_id)

    active_count, monthly_payroll = employees.one()
    paid_count, paid_this_month = month_q.one()
    return {
        "active_employees": int(active_count or 0),
        "monthly_payroll": float(monthly_payroll or 0),
        "paid_this_month_count": int(paid_count or 0),
        "paid_this_month": float(paid_this_month or 0),
        "paid_this_year": float(year_q.scalar() or 0),
        "total_bonuses": float(bonus_q.scalar() or 0),
    }
