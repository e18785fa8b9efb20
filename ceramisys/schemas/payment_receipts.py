from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ceramisys.models.payment_receipts import ReceiptType, ReceiptStatus
from ceramisys.models.sales import PaymentMethod
from ceramisys.schemas.common import Money
from ceramisys.schemas.purchases import SupplierRead


class PaymentReceiptCreate(BaseModel):
    company_id: Optional[int] = None  # system users only
    supplier_id: int
    purchase_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None
    category_name: Optional[str] = None
    notes: Optional[str] = None


class InstallmentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    treasury_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class ReceiptPay(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH
    treasury_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentReceiptFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)
    search: Optional[str] = None
    supplier_id: Optional[int] = None
    purchase_id: Optional[int] = None
    status: Optional[ReceiptStatus] = None
    type: Optional[ReceiptType] = None
    company_id: Optional[int] = None


class InstallmentRead(BaseModel):
    id: int
    receipt_id: int
    amount: Money
    payment_method: PaymentMethod
    treasury_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_by: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentReceiptRead(BaseModel):
    id: int
    receipt_number: Optional[str] = None
    company_id: int
    supplier_id: int
    supplier: Optional[SupplierRead] = None
    purchase_id: Optional[int] = None
    expense_id: Optional[int] = None
    type: ReceiptType
    status: ReceiptStatus
    amount: Money
    paid_amount: Money
    remaining_amount: Money
    description: Optional[str] = None
    category_name: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    installments: List[InstallmentRead] = []

    class Config:
        from_attributes = True
