from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ceramisys.models.sales import SaleType, PaymentMethod
from ceramisys.schemas.common import Money, CompanyBrief, ProductBrief
from ceramisys.schemas.crm import AccountEntryRead


# --- Suppliers ---
class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    note: Optional[str] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    note: Optional[str] = None


class SupplierRead(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Supplier ledger entries share the customer ledger shape
SupplierAccountEntryRead = AccountEntryRead


# --- Purchases ---
class PurchaseLineCreate(BaseModel):
    product_id: int
    qty: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class PurchaseCreate(BaseModel):
    company_id: Optional[int] = None
    supplier_id: Optional[int] = None
    invoice_number: Optional[str] = None
    purchase_type: SaleType = SaleType.CASH
    payment_method: Optional[PaymentMethod] = PaymentMethod.CASH
    affects_inventory: bool = True
    notes: Optional[str] = None
    lines: List[PurchaseLineCreate] = Field(..., min_length=1)


class PurchaseUpdate(BaseModel):
    supplier_id: Optional[int] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    lines: Optional[List[PurchaseLineCreate]] = Field(None, min_length=1)


class PurchasePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    treasury_id: Optional[int] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class PurchaseFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)
    search: Optional[str] = None
    supplier_id: Optional[int] = None
    purchase_type: Optional[SaleType] = None
    is_fully_paid: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    company_id: Optional[int] = None


class PurchaseLineRead(BaseModel):
    id: int
    product_id: int
    product: Optional[ProductBrief] = None
    qty: Money
    unit_price: Money
    sub_total: Money

    class Config:
        from_attributes = True


class PurchasePaymentRead(BaseModel):
    id: int
    receipt_number: Optional[str] = None
    amount: Money
    payment_method: PaymentMethod
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseRead(BaseModel):
    id: int
    company_id: int
    company: Optional[CompanyBrief] = None
    supplier_id: Optional[int] = None
    supplier: Optional[SupplierRead] = None
    invoice_number: Optional[str] = None
    status: str
    purchase_type: SaleType
    payment_method: Optional[PaymentMethod] = None
    total: Money
    paid_amount: Money
    remaining_amount: Money
    is_fully_paid: bool
    total_expenses: Money = Decimal(0)
    final_total: Money = Decimal(0)
    affects_inventory: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    lines: List[PurchaseLineRead] = []
    payments: List[PurchasePaymentRead] = []

    class Config:
        from_attributes = True
