"""Box counts per company. Callers own the transaction: nothing here commits."""
from decimal import Decimal

from sqlalchemy.orm import Session

from ceramisys.core.exceptions import InsufficientStockError
from ceramisys.crud.products import get_stock
from ceramisys.models import Stock


def get_or_create_stock(db: Session, company_id: int, product_id: int) -> Stock:
    stock = get_stock(db, company_id, product_id)
    if stock:
        return stock
    stock = Stock(company_id=company_id, product_id=product_id, boxes=Decimal(0))
    db.add(stock)
    db.flush()
    return stock


def available_boxes(db: Session, company_id: int, product_id: int) -> Decimal:
    stock = get_stock(db, company_id, product_id)
    return Decimal(stock.boxes) if stock else Decimal(0)


def _shortage(product_label, available: Decimal, qty: Decimal, product_id: int, company_name: str = ""):
    where = f" في {company_name}" if company_name else ""
    return InsufficientStockError(
        f"المخزون غير كافي للصنف: {product_label}. المتوفر{where}: {available} صندوق، المطلوب: {qty} صندوق",
        data={"product_id": product_id, "available": float(available), "required": float(qty)},
    )


def ensure_available(db: Session, company_id: int, product, qty: Decimal, company_name: str = "") -> None:
    available = available_boxes(db, company_id, product.id)
    if available < Decimal(qty):
        raise _shortage(product.name, available, Decimal(qty), product.id, company_name)


def ensure_all_available(db: Session, requirements) -> None:
    """
    ``requirements`` yields ``(company, product, qty)``. Quantities of the
    same product drawn from the same company are added up first, so repeated
    lines are checked against the stock together.
    """
    totals = {}
    for company, product, qty in requirements:
        key = (company.id, product.id)
        if key in totals:
            totals[key][2] += Decimal(qty)
        else:
            totals[key] = [company, product, Decimal(qty)]

    for company, product, qty in totals.values():
        ensure_available(db, company.id, product, qty, company.name)


def increment(db: Session, company_id: int, product_id: int, boxes: Decimal) -> Stock:
    stock = get_or_create_stock(db, company_id, product_id)
    stock.boxes = Decimal(stock.boxes) + Decimal(boxes)
    return stock


def decrement(db: Session, company_id: int, product_id: int, boxes: Decimal) -> Stock:
    """Takes boxes out; the count never goes below zero."""
    stock = get_or_create_stock(db, company_id, product_id)
    available = Decimal(stock.boxes)
    if available < Decimal(boxes):
        label = stock.product.name if stock.product is not None else product_id
        raise _shortage(label, available, Decimal(boxes), product_id)
    stock.boxes = available - Decimal(boxes)
    return stock
