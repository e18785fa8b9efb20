from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from ceramisys.models.warehouse import DispatchOrderStatus
from ceramisys.schemas.sales import SaleRead


class DispatchOrderCreate(BaseModel):
    sale_id: int
    notes: Optional[str] = None


class DispatchOrderStatusUpdate(BaseModel):
    status: DispatchOrderStatus
    notes: Optional[str] = None


class DispatchOrderFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)
    status: Optional[DispatchOrderStatus] = None
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    company_id: Optional[int] = None


class DispatchOrderRead(BaseModel):
    id: int
    sale_id: int
    company_id: int
    status: DispatchOrderStatus
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    sale: Optional[SaleRead] = None

    class Config:
        from_attributes = True
