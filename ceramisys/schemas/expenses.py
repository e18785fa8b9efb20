from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ceramisys.models.purchases import ExpenseCurrency
from ceramisys.schemas.common import Money, ProductBrief
from ceramisys.schemas.purchases import SupplierRead


# --- Expense categories ---
class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    supplier_ids: List[int] = []


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    supplier_ids: Optional[List[int]] = None


class ExpenseCategoryRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    suppliers: List[SupplierRead] = []

    class Config:
        from_attributes = True


class ExpenseCategoryBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


# --- Purchase expenses ---
class PurchaseExpenseCreate(BaseModel):
    category_id: int
    supplier_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0)  # in ``currency``
    currency: ExpenseCurrency = ExpenseCurrency.LYD
    exchange_rate: Optional[Decimal] = Field(None, gt=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def foreign_needs_rate(self):
        if self.currency != ExpenseCurrency.LYD and self.exchange_rate is None:
            raise ValueError("سعر الصرف مطلوب للمصروفات بالعملة الأجنبية")
        return self


class PurchaseExpensesCreate(BaseModel):
    expenses: List[PurchaseExpenseCreate] = Field(..., min_length=1)


class PurchaseExpenseRead(BaseModel):
    id: int
    purchase_id: int
    category_id: int
    category: Optional[ExpenseCategoryBrief] = None
    supplier_id: Optional[int] = None
    supplier: Optional[SupplierRead] = None
    amount: Money
    currency: ExpenseCurrency
    exchange_rate: Money
    amount_foreign: Optional[Money] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductCostHistoryRead(BaseModel):
    id: int
    product_id: int
    product: Optional[ProductBrief] = None
    purchase_id: int
    company_id: int
    quantity: Money
    purchase_price: Money
    expense_per_unit: Money
    total_cost_per_unit: Money
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
