import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError, ConflictError
from ceramisys.models import Company, User, Product, Sale

logger = logging.getLogger(__name__)


def get_company(db: Session, company_id: int) -> Company:
    company = (
        db.query(Company)
        .options(joinedload(Company.parent), joinedload(Company.children))
        .filter(Company.id == company_id)
        .first()
    )
    if not company:
        raise NotFoundError("الشركة غير موجودة")
    return company


def _check_code(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Company).filter(Company.code == code)
    if exclude_id:
        query = query.filter(Company.id != exclude_id)
    if query.first():
        raise ConflictError(f"رمز الشركة {code} مستخدم بالفعل")


def _check_hierarchy(db: Session, is_parent: bool, parent_id: Optional[int], company_id: Optional[int] = None) -> None:
    if is_parent and parent_id:
        raise BusinessRuleError("الشركة الأم لا يمكن أن تتبع شركة أخرى")
    if parent_id:
        if company_id and parent_id == company_id:
            raise BusinessRuleError("لا يمكن أن تكون الشركة تابعة لنفسها")
        parent = db.query(Company).filter(Company.id == parent_id).first()
        if not parent:
            raise NotFoundError("الشركة الأم غير موجودة")
        if not parent.is_parent:
            raise BusinessRuleError("الشركة المحددة كشركة أم ليست شركة أم")


def list_companies(db: Session, search: Optional[str] = None, is_parent: Optional[bool] = None,
                   parent_id: Optional[int] = None, page: int = 1, limit: int = 20):
    query = db.query(Company)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Company.name.ilike(s), Company.code.ilike(s)))
    if is_parent is not None:
        query = query.filter(Company.is_parent == is_parent)
    if parent_id is not None:
        query = query.filter(Company.parent_id == parent_id)

    total = query.count()
    items = (
        query.options(joinedload(Company.parent))
        .order_by(Company.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_company(db: Session, data) -> Company:
    _check_code(db, data.code)
    _check_hierarchy(db, data.is_parent, data.parent_id)

    company = Company(**data.model_dump())
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Company %s (%s) created", company.id, company.code)
    return company


def update_company(db: Session, company_id: int, data) -> Company:
    company = get_company(db, company_id)
    fields = data.model_dump(exclude_unset=True)

    if "code" in fields and fields["code"] != company.code:
        _check_code(db, fields["code"], exclude_id=company.id)

    is_parent = fields.get("is_parent", company.is_parent)
    parent_id = fields["parent_id"] if "parent_id" in fields else company.parent_id
    _check_hierarchy(db, is_parent, parent_id, company.id)
    if not is_parent and company.children:
        raise BusinessRuleError("لا يمكن إلغاء صفة الشركة الأم لشركة لديها فروع")

    for field, value in fields.items():
        setattr(company, field, value)
    db.commit()
    db.refresh(company)
    return company


def delete_company(db: Session, company_id: int) -> None:
    company = get_company(db, company_id)

    if company.children:
        raise BusinessRuleError("لا يمكن حذف شركة لديها فروع")
    if db.query(User.id).filter(User.company_id == company.id).first():
        raise BusinessRuleError("لا يمكن حذف شركة لديها مستخدمون")
    if db.query(Product.id).filter(Product.created_by_company_id == company.id).first():
        raise BusinessRuleError("لا يمكن حذف شركة لديها أصناف")
    if db.query(Sale.id).filter(Sale.company_id == company.id).first():
        raise BusinessRuleError("لا يمكن حذف شركة لديها فواتير")

    db.delete(company)
    db.commit()
    logger.info("Company %s deleted", company_id)


def company_hierarchy(db: Session) -> list:
    parents = (
        db.query(Company)
        .options(joinedload(Company.children))
        .filter(Company.is_parent == True)
        .order_by(Company.id)
        .all()
    )
    return parents
