from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError
from ceramisys.models import Customer, Sale
from ceramisys.schemas.crm import CustomerCreate


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("العميل غير موجود")
    return customer


def get_customers(db: Session, search: Optional[str] = None, page: int = 1, limit: int = 20):
    query = db.query(Customer)
    if search:
        s = f"%{search}%"
        query = query.filter(or_(Customer.name.ilike(s), Customer.phone.ilike(s)))
    total = query.count()
    items = query.order_by(Customer.name).offset((page - 1) * limit).limit(limit).all()
    return items, total


def create_customer(db: Session, customer: CustomerCreate) -> Customer:
    db_customer = Customer(
        name=customer.name,
        phone=customer.phone,
        note=customer.note,
    )
    db.add(db_customer)
    db.commit()
    db.refresh(db_customer)
    return db_customer


def update_customer(db: Session, customer_id: int, customer_in) -> Customer:
    db_customer = get_customer(db, customer_id)
    for field, value in customer_in.model_dump(exclude_unset=True).items():
        setattr(db_customer, field, value)
    db.commit()
    db.refresh(db_customer)
    return db_customer


def delete_customer(db: Session, customer_id: int) -> None:
    db_customer = get_customer(db, customer_id)
    if db.query(Sale.id).filter(Sale.customer_id == db_customer.id).first():
        raise BusinessRuleError("لا يمكن حذف عميل لديه فواتير")
    db.delete(db_customer)
    db.commit()
