from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ceramisys.schemas.common import Money


# --- Discount groups ---
class ProductGroupCreate(BaseModel):
    name: str = Field(..., min_length=1)
    max_discount_percentage: Decimal = Field(Decimal(0), ge=0, le=100)


class ProductGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    max_discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class ProductGroupRead(BaseModel):
    id: int
    name: str
    max_discount_percentage: Money
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupProductsRequest(BaseModel):
    product_ids: List[int] = Field(..., min_length=1)


# --- Products ---
class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    unit: str = "box"
    units_per_box: Optional[Decimal] = Field(None, gt=0)
    cost: Decimal = Field(Decimal(0), ge=0)
    group_id: Optional[int] = None
    company_id: Optional[int] = None  # system users only

    # Optional opening price and stock for the owner company
    sell_price: Optional[Decimal] = Field(None, ge=0)
    initial_boxes: Decimal = Field(Decimal(0), ge=0)


class ProductUpdate(BaseModel):
    sku: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    unit: Optional[str] = None
    units_per_box: Optional[Decimal] = Field(None, gt=0)
    cost: Optional[Decimal] = Field(None, ge=0)
    group_id: Optional[int] = None
    is_active: Optional[bool] = None


class PriceSet(BaseModel):
    company_id: Optional[int] = None
    sell_price: Decimal = Field(..., ge=0)


class StockAdjust(BaseModel):
    company_id: Optional[int] = None
    boxes: Decimal  # signed delta
    notes: Optional[str] = None


class ProductPriceRead(BaseModel):
    company_id: int
    sell_price: Money

    class Config:
        from_attributes = True


class StockRead(BaseModel):
    company_id: int
    product_id: int
    boxes: Money
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductRead(BaseModel):
    id: int
    sku: str
    name: str
    unit: Optional[str] = None
    units_per_box: Optional[Money] = None
    cost: Money
    group_id: Optional[int] = None
    group: Optional[ProductGroupRead] = None
    created_by_company_id: int
    is_active: bool
    prices: List[ProductPriceRead] = []
    stocks: List[StockRead] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductGroupDetail(ProductGroupRead):
    products: List[ProductRead] = []
