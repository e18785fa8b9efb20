import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Date, Enum, Numeric, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class BonusType(str, enum.Enum):
    BONUS = "BONUS"
    RAISE = "RAISE"          # also increases base salary
    INCENTIVE = "INCENTIVE"
    OVERTIME = "OVERTIME"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    job_title = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    base_salary = Column(Numeric(12, 2), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    hire_date = Column(Date, nullable=True)
    notes = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company")
    salary_payments = relationship("SalaryPayment", back_populates="employee")
    bonuses = relationship("EmployeeBonus", back_populates="employee")


class SalaryPayment(Base):
    __tablename__ = "salary_payments"
    __table_args__ = (UniqueConstraint("employee_id", "month", "year", name="uq_salary_employee_period"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    treasury_id = Column(Integer, ForeignKey("treasuries.id"), nullable=False)
    receipt_number = Column(String, unique=True, nullable=False)
    payment_date = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(String, nullable=True)
    created_by = Column(String, nullable=True)

    employee = relationship("Employee", back_populates="salary_payments")
    treasury = relationship("Treasury")


class EmployeeBonus(Base):
    __tablename__ = "employee_bonuses"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    type = Column(Enum(BonusType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String, nullable=True)
    treasury_id = Column(Integer, ForeignKey("treasuries.id"), nullable=False)
    receipt_number = Column(String, unique=True, nullable=False)
    effective_date = Column(Date, nullable=True)
    payment_date = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(String, nullable=True)
    created_by = Column(String, nullable=True)

    employee = relationship("Employee", back_populates="bonuses")
    treasury = relationship("Treasury")
