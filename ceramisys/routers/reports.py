#ceramisys/routers/reports.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ceramisys.core.roles import REPORTS_VIEW
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.reports import (
    SalesReportFilters, StockReportFilters, ProfitReportFilters, ReportFilters, TopProductsFilters,
)
from ceramisys.security import require_permissions
from ceramisys.services import reports as service
from ceramisys.utils.responses import ok

router = APIRouter()

can_view = require_permissions(REPORTS_VIEW)


@router.get("/sales")
def sales_report(
    filters: SalesReportFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    """Draft and approved sales with cash/credit totals, count and average."""
    return ok(service.sales_report(db, filters, current_user))


@router.get("/stock")
def stock_report(
    filters: StockReportFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    return ok(service.stock_report(db, filters, current_user))


@router.get("/profit")
def profit_report(
    filters: ProfitReportFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    return ok(service.profit_report(db, filters, current_user))


@router.get("/customers")
def customers_report(
    filters: ReportFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    return ok(service.customers_report(db, filters, current_user))


@router.get("/top-products")
def top_products(
    filters: TopProductsFilters = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    return ok(service.top_products(db, filters, current_user))
