import io
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import pandas as pd
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.crud.products import get_product_by_sku, get_price
from ceramisys.models import Product, ProductGroup, ProductPrice, Stock, SaleLine, PurchaseLine
from ceramisys.security import resolve_company_id, ensure_company_access
from ceramisys.services import stock as stock_service
from ceramisys.utils.numbers import to_decimal

logger = logging.getLogger(__name__)

EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# -----------------------------
# Helpers
# -----------------------------
def _safe_str(val) -> str:
    if val is None:
        return ""
    s = str(val).strip()
    if s.lower() == "nan":
        return ""
    return s


def _safe_decimal(val) -> Optional[Decimal]:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    s = _safe_str(val)
    if not s:
        return None
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


def _check_group(db: Session, group_id: Optional[int]) -> None:
    if group_id and not db.query(ProductGroup).filter(ProductGroup.id == group_id).first():
        raise NotFoundError("مجموعة الأصناف غير موجودة")


def _set_price(db: Session, product_id: int, company_id: int, sell_price: Decimal) -> ProductPrice:
    price = get_price(db, company_id, product_id)
    if price:
        price.sell_price = sell_price
    else:
        price = ProductPrice(product_id=product_id, company_id=company_id, sell_price=sell_price)
        db.add(price)
    db.flush()
    return price


# -----------------------------
# CRUD
# -----------------------------
def get_product(db: Session, product_id: int, current_user) -> Product:
    product = (
        db.query(Product)
        .options(joinedload(Product.group), joinedload(Product.prices), joinedload(Product.stocks))
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        raise NotFoundError("الصنف غير موجود")
    if not current_user.can_access_all_companies:
        allowed = {current_user.company_id}
        if current_user.company and current_user.company.parent_id:
            allowed.add(current_user.company.parent_id)
        if product.created_by_company_id not in allowed:
            raise NotFoundError("الصنف غير موجود")
    return product


def list_products(db: Session, current_user, search: Optional[str] = None, group_id: Optional[int] = None,
                  company_id: Optional[int] = None, include_inactive: bool = False,
                  page: int = 1, limit: int = 20):
    """Non-system users only see the products their own company created."""
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(Product)
    if company_id is not None:
        query = query.filter(Product.created_by_company_id == company_id)
    if not include_inactive:
        query = query.filter(Product.is_active == True)
    if group_id:
        query = query.filter(Product.group_id == group_id)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(s), Product.sku.ilike(s)))

    total = query.count()
    items = (
        query.options(joinedload(Product.group), joinedload(Product.prices), joinedload(Product.stocks))
        .order_by(Product.name)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_product(db: Session, data, current_user) -> Product:
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    if get_product_by_sku(db, data.sku):
        raise ConflictError(f"الرمز {data.sku} مستخدم بالفعل")
    _check_group(db, data.group_id)

    product = Product(
        sku=data.sku,
        name=data.name,
        unit=data.unit,
        units_per_box=data.units_per_box,
        cost=data.cost,
        group_id=data.group_id,
        created_by_company_id=company_id,
    )
    db.add(product)
    db.flush()

    if data.sell_price is not None:
        _set_price(db, product.id, company_id, data.sell_price)
    if data.initial_boxes:
        stock_service.increment(db, company_id, product.id, data.initial_boxes)

    db.commit()
    db.refresh(product)
    logger.info("Product %s (%s) created for company %s", product.id, product.sku, company_id)
    return product


def update_product(db: Session, product_id: int, data, current_user) -> Product:
    product = get_product(db, product_id, current_user)
    fields = data.model_dump(exclude_unset=True)

    if "sku" in fields and data.sku != product.sku:
        if get_product_by_sku(db, data.sku):
            raise ConflictError(f"الرمز {data.sku} مستخدم بالفعل")
    if "group_id" in fields:
        _check_group(db, data.group_id)

    for field, value in fields.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int, current_user) -> bool:
    """Products already used on invoices are deactivated instead of removed."""
    product = get_product(db, product_id, current_user)
    used = (
        db.query(SaleLine.id).filter(SaleLine.product_id == product.id).first()
        or db.query(PurchaseLine.id).filter(PurchaseLine.product_id == product.id).first()
    )
    if used:
        product.is_active = False
        db.commit()
        return False
    db.delete(product)
    db.commit()
    return True


def set_price(db: Session, product_id: int, data, current_user) -> ProductPrice:
    product = get_product(db, product_id, current_user)
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    price = _set_price(db, product.id, company_id, data.sell_price)
    db.commit()
    db.refresh(price)
    return price


def adjust_stock(db: Session, product_id: int, data, current_user) -> Stock:
    product = get_product(db, product_id, current_user)
    company_id = resolve_company_id(current_user, data.company_id) or current_user.company_id
    ensure_company_access(current_user, company_id)

    current = stock_service.available_boxes(db, company_id, product.id)
    if current + data.boxes < 0:
        raise BusinessRuleError(f"لا يمكن أن يصبح المخزون سالباً. المتوفر: {current} صندوق")

    stock = stock_service.increment(db, company_id, product.id, data.boxes)
    db.commit()
    db.refresh(stock)
    logger.info(
        "Stock of product %s in company %s adjusted by %s (%s) by %s",
        product.id, company_id, data.boxes, data.notes or "-", current_user.username,
    )
    return stock


# -----------------------------
# Excel
# -----------------------------
def export_products_excel(db: Session, current_user, company_id: Optional[int] = None) -> io.BytesIO:
    company_id = resolve_company_id(current_user, company_id)
    query = db.query(Product).options(
        joinedload(Product.group), joinedload(Product.prices), joinedload(Product.stocks)
    ).filter(Product.is_active == True)
    if company_id is not None:
        query = query.filter(Product.created_by_company_id == company_id)
    products = query.order_by(Product.sku).all()

    price_company = company_id or current_user.company_id
    data = []
    for p in products:
        price = next((pr.sell_price for pr in p.prices if pr.company_id == price_company), None)
        if company_id is not None:
            boxes = sum((to_decimal(s.boxes) for s in p.stocks if s.company_id == company_id), Decimal(0))
        else:
            boxes = sum((to_decimal(s.boxes) for s in p.stocks), Decimal(0))
        data.append({
            "sku": p.sku,
            "name": p.name,
            "group": p.group.name if p.group else "",
            "unit": p.unit,
            "units_per_box": float(p.units_per_box) if p.units_per_box is not None else None,
            "cost": float(p.cost or 0),
            "price": float(price) if price is not None else None,
            "boxes": float(boxes),
        })

    df = pd.DataFrame(data, columns=["sku", "name", "group", "unit", "units_per_box", "cost", "price", "boxes"])

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Products")
    output.seek(0)
    return output


def import_costs(db: Session, filename: str, contents: bytes, current_user, company_id: Optional[int] = None) -> dict:
    """
    Bulk cost update from CSV or Excel. Required columns: ``sku`` and ``cost``;
    ``price`` sets the company sell price; ``name`` (and optionally ``unit``
    and ``units_per_box``) lets unknown SKUs be created.
    """
    filename = (filename or "").lower()
    is_csv = filename.endswith(".csv")
    is_excel = filename.endswith((".xlsx", ".xlsm", ".xls"))
    if not (is_csv or is_excel):
        raise BusinessRuleError("صيغة الملف غير مدعومة. استخدم Excel أو CSV")
    if not contents:
        raise BusinessRuleError("الملف فارغ")

    try:
        if is_csv:
            df = pd.read_csv(io.BytesIO(contents))
        else:
            df = pd.read_excel(io.BytesIO(contents), engine="openpyxl")
    except Exception as exc:
        raise BusinessRuleError(f"تعذر قراءة الملف: {exc}")

    df.columns = [str(c).lower().strip() for c in df.columns]
    missing = {"sku", "cost"} - set(df.columns)
    if missing:
        raise BusinessRuleError(f"أعمدة مفقودة في الملف: {', '.join(sorted(missing))}")

    company_id = resolve_company_id(current_user, company_id) or current_user.company_id
    created, updated, errors = 0, 0, []

    for index, row in df.iterrows():
        row_number = index + 2  # header is row 1
        sku = _safe_str(row.get("sku"))
        if not sku:
            continue

        cost = _safe_decimal(row.get("cost"))
        if cost is None or cost < 0:
            errors.append({"row": row_number, "sku": sku, "error": "التكلفة غير صالحة"})
            continue
        price = _safe_decimal(row.get("price"))

        product = get_product_by_sku(db, sku)
        if product is None:
            name = _safe_str(row.get("name"))
            if not name:
                errors.append({"row": row_number, "sku": sku, "error": "الصنف غير موجود"})
                continue
            product = Product(
                sku=sku,
                name=name,
                unit=_safe_str(row.get("unit")) or "box",
                units_per_box=_safe_decimal(row.get("units_per_box")),
                cost=cost,
                created_by_company_id=company_id,
            )
            db.add(product)
            db.flush()
            created += 1
        else:
            if not current_user.can_access_all_companies and product.created_by_company_id != company_id:
                errors.append({"row": row_number, "sku": sku, "error": "ليس لديك صلاحية على هذا الصنف"})
                continue
            product.cost = cost
            updated += 1

        if price is not None and price >= 0:
            _set_price(db, product.id, company_id, price)

    db.commit()
    logger.info("Cost import by %s: %s created, %s updated, %s failed", current_user.username, created, updated, len(errors))
    return {"created": created, "updated": updated, "failed": len(errors), "errors": errors}
