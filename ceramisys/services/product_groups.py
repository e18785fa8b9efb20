"""Discount groups: each group caps the discount percentage its products may be sold with."""
import logging
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import Product, ProductGroup

logger = logging.getLogger(__name__)


def get_group(db: Session, group_id: int) -> ProductGroup:
    group = (
        db.query(ProductGroup)
        .options(joinedload(ProductGroup.products))
        .filter(ProductGroup.id == group_id)
        .first()
    )
    if not group:
        raise NotFoundError("مجموعة الأصناف غير موجودة")
    return group


def _check_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(ProductGroup).filter(ProductGroup.name == name)
    if exclude_id:
        query = query.filter(ProductGroup.id != exclude_id)
    if query.first():
        raise ConflictError(f"المجموعة {name} موجودة بالفعل")


def list_groups(db: Session, search: Optional[str] = None) -> list:
    """Groups with the number of products assigned to each."""
    query = (
        db.query(ProductGroup, func.count(Product.id))
        .outerjoin(Product, Product.group_id == ProductGroup.id)
        .group_by(ProductGroup.id)
    )
    if search:
        query = query.filter(ProductGroup.name.ilike(f"%{search}%"))
    return query.order_by(ProductGroup.name).all()


def create_group(db: Session, data) -> ProductGroup:
    _check_name(db, data.name)
    group = ProductGroup(name=data.name, max_discount_percentage=data.max_discount_percentage)
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info("Product group %s created (max discount %s%%)", group.name, group.max_discount_percentage)
    return group


def update_group(db: Session, group_id: int, data) -> ProductGroup:
    group = get_group(db, group_id)
    fields = data.model_dump(exclude_unset=True)
    if "name" in fields and fields["name"] != group.name:
        _check_name(db, fields["name"], exclude_id=group.id)
    for field, value in fields.items():
        if value is not None:
            setattr(group, field, value)
    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, group_id: int) -> None:
    group = get_group(db, group_id)
    if group.products:
        raise BusinessRuleError(f"لا يمكن حذف المجموعة لأنها تحتوي على {len(group.products)} صنف")
    db.delete(group)
    db.commit()


def _load_products(db: Session, product_ids: List[int]) -> List[Product]:
    products = db.query(Product).filter(Product.id.in_(product_ids)).all()
    missing = set(product_ids) - {p.id for p in products}
    if missing:
        raise NotFoundError(f"أصناف غير موجودة: {', '.join(str(i) for i in sorted(missing))}")
    return products


def assign_products(db: Session, group_id: int, product_ids: List[int]) -> ProductGroup:
    group = get_group(db, group_id)
    for product in _load_products(db, product_ids):
        product.group_id = group.id
    db.commit()
    db.refresh(group)
    return group


def remove_products(db: Session, group_id: int, product_ids: List[int]) -> ProductGroup:
    group = get_group(db, group_id)
    for product in _load_products(db, product_ids):
        if product.group_id == group.id:
            product.group_id = None
    db.commit()
    db.refresh(group)
    return group


def products_for_group(db: Session, group_id: int, search: Optional[str] = None) -> list:
    """Every active product flagged with whether it belongs to the group."""
    group = get_group(db, group_id)
    query = db.query(Product).options(joinedload(Product.group)).filter(Product.is_active == True)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(s), Product.sku.ilike(s)))

    result = []
    for product in query.order_by(Product.name).all():
        result.append({
            "id": product.id,
            "sku": product.sku,
            "name": product.name,
            "group_id": product.group_id,
            "group_name": product.group.name if product.group else None,
            "is_in_group": product.group_id == group.id,
        })
    return result
