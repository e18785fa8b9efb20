from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ceramisys.core.roles import PRODUCTS_WRITE, INVENTORY_ADJUST, PURCHASE_READ_ROLES
from ceramisys.database import get_db
from ceramisys.models import User
from ceramisys.schemas.products import (
    ProductCreate, ProductUpdate, ProductRead, PriceSet, ProductPriceRead, StockAdjust, StockRead,
)
from ceramisys.schemas.expenses import ProductCostHistoryRead
from ceramisys.security import get_current_user, require_permissions, require_roles
from ceramisys.services import products as service
from ceramisys.services import purchases as purchases_service
from ceramisys.utils.responses import ok, paginated

router = APIRouter()


@router.get("/")
def list_products(
    search: Optional[str] = None,
    group_id: Optional[int] = None,
    company_id: Optional[int] = None,
    include_inactive: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = service.list_products(
        db, current_user, search=search, group_id=group_id, company_id=company_id,
        include_inactive=include_inactive, page=page, limit=limit,
    )
    return ok(paginated([ProductRead.model_validate(p) for p in items], total, page, limit))


# --------------------------------------------------------------------------
# EXCEL (before /{product_id} so the path is not parsed as an id)
# --------------------------------------------------------------------------
@router.get("/export/excel")
def export_products_excel(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    output = service.export_products_excel(db, current_user, company_id)
    filename = f"products_{datetime.now().strftime('%Y%m%d_%H%M')}.xlsx"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(output, headers=headers, media_type=service.EXCEL_MEDIA_TYPE)


@router.post("/upload/costs")
async def upload_costs(
    file: UploadFile = File(...),
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(PRODUCTS_WRITE)),
):
    """CSV or Excel with ``sku`` and ``cost`` columns; ``price`` and ``name`` are optional."""
    contents = await file.read()
    result = service.import_costs(db, file.filename, contents, current_user, company_id)
    message = f"تمت المعالجة: {result['created']} جديد، {result['updated']} محدث، {result['failed']} فشل"
    return ok(result, message)


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(ProductRead.model_validate(service.get_product(db, product_id, current_user)))


@router.get("/{product_id}/cost-history")
def get_cost_history(
    product_id: int,
    company_id: Optional[int] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PURCHASE_READ_ROLES)),
):
    """Latest landed costs of the product, newest first."""
    rows = purchases_service.product_cost_history(db, product_id, current_user, company_id, limit)
    return ok([ProductCostHistoryRead.model_validate(r) for r in rows])


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(PRODUCTS_WRITE)),
):
    product = service.create_product(db, data, current_user)
    return ok(ProductRead.model_validate(product), "تم إنشاء الصنف بنجاح")


@router.put("/{product_id}")
def update_product(
    product_id: int,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(PRODUCTS_WRITE)),
):
    product = service.update_product(db, product_id, data, current_user)
    return ok(ProductRead.model_validate(product), "تم تحديث الصنف بنجاح")


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(PRODUCTS_WRITE)),
):
    removed = service.delete_product(db, product_id, current_user)
    message = "تم حذف الصنف بنجاح" if removed else "الصنف مستخدم في فواتير، تم تعطيله"
    return ok({"deleted": removed}, message)


@router.put("/{product_id}/price")
def set_price(
    product_id: int,
    data: PriceSet,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(PRODUCTS_WRITE)),
):
    price = service.set_price(db, product_id, data, current_user)
    return ok(ProductPriceRead.model_validate(price), "تم تحديث السعر بنجاح")


@router.post("/{product_id}/stock")
def adjust_stock(
    product_id: int,
    data: StockAdjust,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permissions(INVENTORY_ADJUST)),
):
    stock = service.adjust_stock(db, product_id, data, current_user)
    return ok(StockRead.model_validate(stock), "تم تعديل المخزون بنجاح")
