from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ceramisys.models.sales import SaleStatus, SaleType, PaymentMethod
from ceramisys.schemas.common import Money, CompanyBrief, CustomerBrief, ProductBrief


# --- Models for Creation ---

class SaleLineCreate(BaseModel):
    product_id: int
    qty: Decimal = Field(..., gt=0)  # boxes
    unit_price: Decimal = Field(..., ge=0)
    # The amount is always derived from the percentage, so the group cap holds
    discount_percentage: Decimal = Field(Decimal(0), ge=0, le=100)

    is_from_parent_company: bool = False
    parent_unit_price: Optional[Decimal] = Field(None, ge=0)
    branch_unit_price: Optional[Decimal] = Field(None, ge=0)

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def parent_line_needs_price(self):
        if self.is_from_parent_company and self.parent_unit_price is None:
            raise ValueError("parent_unit_price مطلوب لأصناف الشركة الأم")
        return self


class SaleCreate(BaseModel):
    company_id: Optional[int] = None  # system users only
    customer_id: Optional[int] = None
    notes: Optional[str] = None
    lines: List[SaleLineCreate] = Field(..., min_length=1)


class SaleUpdate(BaseModel):
    customer_id: Optional[int] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    lines: Optional[List[SaleLineCreate]] = Field(None, min_length=1)


class SaleApprove(BaseModel):
    sale_type: SaleType
    payment_method: Optional[PaymentMethod] = None
    bank_account_id: Optional[int] = None

    @model_validator(mode="after")
    def default_cash_method(self):
        if self.sale_type == SaleType.CASH and self.payment_method is None:
            self.payment_method = PaymentMethod.CASH
        return self


class SalePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    treasury_id: Optional[int] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class SaleFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)
    search: Optional[str] = None
    customer_id: Optional[int] = None
    status: Optional[SaleStatus] = None
    sale_type: Optional[SaleType] = None
    payment_method: Optional[PaymentMethod] = None
    receipt_issued: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    company_id: Optional[int] = None


# --- Models for Reading ---

class SaleLineRead(BaseModel):
    id: int
    product_id: int
    product: Optional[ProductBrief] = None
    qty: Money
    unit_price: Money
    sub_total: Money
    discount_percentage: Optional[Money] = None
    discount_amount: Optional[Money] = None
    is_from_parent_company: bool = False
    parent_unit_price: Optional[Money] = None
    branch_unit_price: Optional[Money] = None

    class Config:
        from_attributes = True


class SalePaymentRead(BaseModel):
    id: int
    sale_id: int
    receipt_number: Optional[str] = None
    amount: Money
    payment_method: PaymentMethod
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class SaleRead(BaseModel):
    id: int
    company_id: int
    company: Optional[CompanyBrief] = None
    customer_id: Optional[int] = None
    customer: Optional[CustomerBrief] = None

    invoice_number: Optional[str] = None
    status: SaleStatus
    sale_type: SaleType
    payment_method: Optional[PaymentMethod] = None

    total: Money
    paid_amount: Money
    remaining_amount: Money
    is_fully_paid: bool = False
    is_auto_generated: bool = False

    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    receipt_issued: bool = False
    receipt_issued_at: Optional[datetime] = None
    receipt_issued_by: Optional[str] = None
    notes: Optional[str] = None

    related_parent_sale_id: Optional[int] = None
    related_branch_purchase_id: Optional[int] = None
    created_at: Optional[datetime] = None

    lines: List[SaleLineRead] = []
    payments: List[SalePaymentRead] = []

    class Config:
        from_attributes = True


# --- Complex inter-company sales ---

class ComplexSaleLine(BaseModel):
    product_id: int
    qty: Decimal = Field(..., gt=0)
    parent_unit_price: Decimal = Field(..., ge=0)
    branch_unit_price: Optional[Decimal] = Field(None, ge=0)


class ComplexSaleCreate(BaseModel):
    parent_company_id: int
    branch_company_id: int
    customer_id: int
    lines: List[ComplexSaleLine] = Field(..., min_length=1)
    profit_margin: Decimal = Field(Decimal(0), ge=0)
    sale_type: SaleType = SaleType.CASH
    payment_method: Optional[PaymentMethod] = PaymentMethod.CASH
    notes: Optional[str] = None


class ParentSaleSettlement(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    treasury_id: Optional[int] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
