from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ceramisys.models.returns import ReturnStatus
from ceramisys.models.sales import PaymentMethod
from ceramisys.schemas.common import Money, ProductBrief, CustomerBrief


class SaleReturnLineCreate(BaseModel):
    product_id: int
    qty: Decimal = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)  # defaults to the sold price


class SaleReturnCreate(BaseModel):
    sale_id: int
    reason: Optional[str] = None
    notes: Optional[str] = None
    refund_method: Optional[PaymentMethod] = None
    refund_treasury_id: Optional[int] = None  # bank account for BANK/CARD refunds
    lines: List[SaleReturnLineCreate] = Field(..., min_length=1)


class SaleReturnStatusUpdate(BaseModel):
    status: ReturnStatus
    notes: Optional[str] = None


class SaleReturnLineRead(BaseModel):
    id: int
    product_id: int
    product: Optional[ProductBrief] = None
    qty: Money
    unit_price: Money
    sub_total: Money

    class Config:
        from_attributes = True


class SaleReturnRead(BaseModel):
    id: int
    sale_id: int
    company_id: int
    customer_id: Optional[int] = None
    customer: Optional[CustomerBrief] = None
    total: Money
    refund_amount: Money
    refund_method: Optional[PaymentMethod] = None
    refund_treasury_id: Optional[int] = None
    status: ReturnStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    lines: List[SaleReturnLineRead] = []

    class Config:
        from_attributes = True
