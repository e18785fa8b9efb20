from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ceramisys.core.roles import PRODUCTS_WRITE
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.products import (
    ProductGroupCreate, ProductGroupUpdate, ProductGroupRead, ProductGroupDetail, GroupProductsRequest,
)
from ceramisys.security import get_current_user, require_permissions
from ceramisys.services import product_groups as service
from ceramisys.utils.responses import ok

router = APIRouter()

can_write = require_permissions(PRODUCTS_WRITE)


@router.get("/")
def list_groups(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = []
    for group, product_count in service.list_groups(db, search):
        item = ProductGroupRead.model_validate(group).model_dump()
        item["product_count"] = int(product_count)
        data.append(item)
    return ok(data)


@router.get("/{group_id}")
def get_group(group_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(ProductGroupDetail.model_validate(service.get_group(db, group_id)))


@router.get("/{group_id}/products")
def products_for_group(
    group_id: int,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(service.products_for_group(db, group_id, search))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_group(data: ProductGroupCreate, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    group = service.create_group(db, data)
    return ok(ProductGroupRead.model_validate(group), "تم إنشاء المجموعة بنجاح")


@router.put("/{group_id}")
def update_group(
    group_id: int,
    data: ProductGroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    group = service.update_group(db, group_id, data)
    return ok(ProductGroupRead.model_validate(group), "تم تحديث المجموعة بنجاح")


@router.delete("/{group_id}")
def delete_group(group_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_write)):
    service.delete_group(db, group_id)
    return ok(None, "تم حذف المجموعة بنجاح")


@router.post("/{group_id}/assign-products")
def assign_products(
    group_id: int,
    data: GroupProductsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    group = service.assign_products(db, group_id, data.product_ids)
    return ok(ProductGroupDetail.model_validate(group), "تم إضافة الأصناف إلى المجموعة")


@router.post("/{group_id}/remove-products")
def remove_products(
    group_id: int,
    data: GroupProductsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_write),
):
    group = service.remove_products(db, group_id, data.product_ids)
    return ok(ProductGroupDetail.model_validate(group), "تم إزالة الأصناف من المجموعة")
