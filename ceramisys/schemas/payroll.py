from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from ceramisys.models.payroll import BonusType
from ceramisys.schemas.common import Money


class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    job_title: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    base_salary: Decimal = Field(..., gt=0)
    company_id: Optional[int] = None
    hire_date: Optional[date] = None
    notes: Optional[str] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    job_title: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    base_salary: Optional[Decimal] = Field(None, gt=0)
    hire_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class EmployeeRead(BaseModel):
    id: int
    name: str
    job_title: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    base_salary: Money
    company_id: int
    hire_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class SalaryPaymentCreate(BaseModel):
    employee_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    treasury_id: int
    amount: Optional[Decimal] = Field(None, gt=0)  # defaults to the base salary
    notes: Optional[str] = None


class BatchSalaryCreate(BaseModel):
    employee_ids: List[int] = Field(..., min_length=1)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    treasury_id: int
    notes: Optional[str] = None


class BonusCreate(BaseModel):
    employee_id: int
    type: BonusType
    amount: Decimal = Field(..., gt=0)
    reason: Optional[str] = None
    treasury_id: int
    effective_date: Optional[date] = None
    notes: Optional[str] = None


class SalaryPaymentRead(BaseModel):
    id: int
    employee_id: int
    amount: Money
    month: int
    year: int
    treasury_id: int
    receipt_number: str
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None

    class Config:
        from_attributes = True


class BonusRead(BaseModel):
    id: int
    employee_id: int
    type: BonusType
    amount: Money
    reason: Optional[str] = None
    treasury_id: int
    receipt_number: str
    effective_date: Optional[date] = None
    payment_date: Optional[datetime] = None
    created_by: Optional[str] = None

    class Config:
        from_attributes = True
