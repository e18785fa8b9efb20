from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ceramisys.models.sales import SaleStatus, SaleType


class ReportFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    company_id: Optional[int] = None


class SalesReportFilters(ReportFilters):
    customer_id: Optional[int] = None
    status: Optional[SaleStatus] = None
    sale_type: Optional[SaleType] = None


class StockReportFilters(BaseModel):
    company_id: Optional[int] = None
    product_id: Optional[int] = None
    low_stock_only: bool = False


class ProfitReportFilters(ReportFilters):
    group_by: Literal["day", "week", "month", "year"] = "day"


class TopProductsFilters(ReportFilters):
    limit: int = Field(10, ge=1, le=100)
