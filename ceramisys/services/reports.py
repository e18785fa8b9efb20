"""
Read-only reports computed per request. Auto-generated inter-company mirrors
are left out so each sale is counted once, by the company that made it.
"""
from collections import OrderedDict
from datetime import datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, desc
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.config import settings
from ceramisys.models import (
    Company, Customer, Product, ProductPrice, Sale, SaleLine, SaleStatus, SaleType, Stock,
)
from ceramisys.security import resolve_company_id
from ceramisys.utils.numbers import to_decimal


def _date_range(query, column, start_date, end_date):
    if start_date:
        query = query.filter(column >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(column < datetime.combine(end_date + timedelta(days=1), time.min))
    return query


def _scoped_sales(db: Session, filters, current_user, *columns):
    company_id = resolve_company_id(current_user, filters.company_id)
    query = db.query(*columns).select_from(Sale) if columns else db.query(Sale)
    query = query.filter(Sale.is_auto_generated == False)
    if company_id is not None:
        query = query.filter(Sale.company_id == company_id)
    return _date_range(query, Sale.created_at, filters.start_date, filters.end_date)


def sales_report(db: Session, filters, current_user) -> dict:
    query = _scoped_sales(db, filters, current_user)
    if filters.status:
        query = query.filter(Sale.status == filters.status)
    else:
        query = query.filter(Sale.status.in_([SaleStatus.DRAFT, SaleStatus.APPROVED]))
    if filters.customer_id:
        query = query.filter(Sale.customer_id == filters.customer_id)
    if filters.sale_type:
        query = query.filter(Sale.sale_type == filters.sale_type)

    sales = query.options(joinedload(Sale.customer)).order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    total = sum((to_decimal(s.total) for s in sales), Decimal(0))
    cash = sum((to_decimal(s.total) for s in sales if s.sale_type == SaleType.CASH), Decimal(0))
    credit = sum((to_decimal(s.total) for s in sales if s.sale_type == SaleType.CREDIT), Decimal(0))
    paid = sum((to_decimal(s.paid_amount) for s in sales), Decimal(0))
    remaining = sum((to_decimal(s.remaining_amount) for s in sales), Decimal(0))
    count = len(sales)

    return {
        "summary": {
            "count": count,
            "total": float(total),
            "cash_total": float(cash),
            "credit_total": float(credit),
            "paid_total": float(paid),
            "remaining_total": float(remaining),
            "average": float(total / count) if count else 0.0,
        },
        "sales": [
            {
                "id": s.id,
                "invoice_number": s.invoice_number,
                "customer_name": s.customer.name if s.customer else None,
                "status": s.status.value,
                "sale_type": s.sale_type.value,
                "total": float(s.total or 0),
                "paid_amount": float(s.paid_amount or 0),
                "remaining_amount": float(s.remaining_amount or 0),
                "created_at": s.created_at,
            }
            for s in sales
        ],
    }


def stock_report(db: Session, filters, current_user) -> dict:
    company_id = resolve_company_id(current_user, filters.company_id)
    query = (
        db.query(Stock, Product, Company, ProductPrice.sell_price)
        .select_from(Stock)
        .join(Product, Stock.product_id == Product.id)
        .join(Company, Stock.company_id == Company.id)
        .outerjoin(
            ProductPrice,
            (ProductPrice.product_id == Stock.product_id) & (ProductPrice.company_id == Stock.company_id),
        )
        .filter(Product.is_active == True)
    )
    if company_id is not None:
        query = query.filter(Stock.company_id == company_id)
    if filters.product_id:
        query = query.filter(Stock.product_id == filters.product_id)
    if filters.low_stock_only:
        query = query.filter(Stock.boxes < settings.LOW_STOCK_THRESHOLD)

    items = []
    total_boxes = Decimal(0)
    total_value = Decimal(0)
    low_stock = 0
    for stock, product, company, sell_price in query.order_by(Company.id, Product.name).all():
        boxes = to_decimal(stock.boxes)
        units = boxes * to_decimal(product.units_per_box, Decimal(1))
        value = units * to_decimal(product.cost)
        is_low = boxes < settings.LOW_STOCK_THRESHOLD
        total_boxes += boxes
        total_value += value
        low_stock += 1 if is_low else 0
        items.append({
            "company_id": company.id,
            "company_name": company.name,
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "boxes": float(boxes),
            "units": float(units),
            "cost": float(product.cost or 0),
            "value": float(value),
            "sell_price": float(sell_price) if sell_price is not None else None,
            "is_low_stock": is_low,
        })

    return {
        "summary": {
            "items": len(items),
            "total_boxes": float(total_boxes),
            "total_value": float(total_value),
            "low_stock_count": low_stock,
            "low_stock_threshold": settings.LOW_STOCK_THRESHOLD,
        },
        "items": items,
    }


def _period_key(moment: datetime, group_by: str) -> str:
    if group_by == "year":
        return f"{moment.year}"
    if group_by == "month":
        return f"{moment.year}-{moment.month:02d}"
    if group_by == "week":
        iso = moment.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    return moment.date().isoformat()


def profit_report(db: Session, filters, current_user) -> dict:
    """Revenue minus cost of approved sales; cost is qty * units_per_box * unit cost."""
    query = _scoped_sales(db, filters, current_user, Sale.created_at, SaleLine, Product).join(
        SaleLine, SaleLine.sale_id == Sale.id
    ).join(
        Product, SaleLine.product_id == Product.id
    ).filter(Sale.status == SaleStatus.APPROVED)

    periods = OrderedDict()
    for created_at, line, product in query.order_by(Sale.created_at).all():
        key = _period_key(created_at or datetime.utcnow(), filters.group_by)
        revenue = to_decimal(line.sub_total)
        cost = to_decimal(line.qty) * to_decimal(product.units_per_box, Decimal(1)) * to_decimal(product.cost)
        bucket = periods.setdefault(key, {"revenue": Decimal(0), "cost": Decimal(0)})
        bucket["revenue"] += revenue
        bucket["cost"] += cost

    rows = []
    total_revenue = Decimal(0)
    total_cost = Decimal(0)
    for period, bucket in periods.items():
        profit = bucket["revenue"] - bucket["cost"]
        total_revenue += bucket["revenue"]
        total_cost += bucket["cost"]
        rows.append({
            "period": period,
            "revenue": float(bucket["revenue"]),
            "cost": float(bucket["cost"]),
            "profit": float(profit),
            "margin": float(profit / bucket["revenue"] * 100) if bucket["revenue"] else 0.0,
        })

    total_profit = total_revenue - total_cost
    return {
        "group_by": filters.group_by,
        "summary": {
            "revenue": float(total_revenue),
            "cost": float(total_cost),
            "profit": float(total_profit),
            "margin": float(total_profit / total_revenue * 100) if total_revenue else 0.0,
        },
        "periods": rows,
    }


def customers_report(db: Session, filters, current_user) -> list:
    total_col = func.coalesce(func.sum(Sale.total), 0).label("total")
    query = _scoped_sales(
        db, filters, current_user,
        Customer.id, Customer.name, Customer.phone,
        func.count(Sale.id).label("count"),
        total_col,
        func.max(Sale.created_at).label("last_purchase"),
    ).join(Customer, Sale.customer_id == Customer.id).filter(Sale.status == SaleStatus.APPROVED)

    rows = query.group_by(Customer.id, Customer.name, Customer.phone).order_by(desc("total")).all()
    return [
        {
            "customer_id": r.id,
            "name": r.name,
            "phone": r.phone,
            "sales_count": int(r.count),
            "total": float(r.total or 0),
            "average": float(r.total or 0) / int(r.count) if r.count else 0.0,
            "last_purchase": r.last_purchase,
        }
        for r in rows
    ]


def top_products(db: Session, filters, current_user) -> list:
    revenue = func.coalesce(func.sum(SaleLine.sub_total), 0).label("revenue")
    query = _scoped_sales(
        db, filters, current_user,
        Product.id, Product.sku, Product.name,
        func.coalesce(func.sum(SaleLine.qty), 0).label("qty"),
        revenue,
    ).join(SaleLine, SaleLine.sale_id == Sale.id).join(
        Product, SaleLine.product_id == Product.id
    ).filter(Sale.status == SaleStatus.APPROVED)

    rows = query.group_by(Product.id, Product.sku, Product.name).order_by(desc("revenue")).limit(filters.limit).all()
    return [
        {
            "product_id": r.id,
            "sku": r.sku,
            "name": r.name,
            "qty": float(r.qty or 0),
            "revenue": float(r.revenue or 0),
        }
        for r in rows
    ]
