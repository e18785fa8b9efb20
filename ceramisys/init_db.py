"""
Seeds a fresh database: roles, a parent company with one branch, an admin
user, treasuries and a few sample products.

    python -m ceramisys.init_db
"""
import logging
from decimal import Decimal

from ceramisys.core.roles import DEFAULT_ROLES
from ceramisys.database import SessionLocal, engine
from ceramisys.models import (
    Base, Company, Role, User, Product, ProductGroup, ProductPrice, Stock, Treasury, TreasuryType,
)
from ceramisys.security import get_password_hash

logger = logging.getLogger("ceramisys.init_db")


def seed_roles(db) -> dict:
    roles = {}
    for name, spec in DEFAULT_ROLES.items():
        role = db.query(Role).filter(Role.name == name).first()
        if not role:
            role = Role(name=name, description=spec["description"], permissions=spec["permissions"])
            db.add(role)
            logger.info("Role '%s' created", name)
        else:
            role.permissions = spec["permissions"]
        roles[name] = role
    db.flush()
    return roles


def seed_companies(db):
    parent = db.query(Company).filter(Company.code == "HQ").first()
    if not parent:
        parent = Company(name="الشركة الرئيسية", code="HQ", is_parent=True)
        db.add(parent)
        db.flush()
        logger.info("Parent company created")

    branch = db.query(Company).filter(Company.code == "BR1").first()
    if not branch:
        branch = Company(name="فرع المدينة", code="BR1", is_parent=False, parent_id=parent.id)
        db.add(branch)
        db.flush()
        logger.info("Branch company created")
    return parent, branch


def seed_users(db, roles: dict, parent, branch) -> None:
    users_to_create = [
        ("admin", "admin123", "admin", parent, True),
        ("accountant", "acc123", "accountant", parent, False),
        ("branch_sales", "sales123", "sales", branch, False),
    ]
    for uname, password, role_name, company, is_system in users_to_create:
        if not db.query(User).filter(User.username == uname).first():
            db.add(User(
                username=uname,
                full_name=uname.replace("_", " ").title(),
                password_hash=get_password_hash(password),
                role_id=roles[role_name].id,
                company_id=company.id,
                is_system_user=is_system,
            ))
            logger.info("User '%s' created", uname)
    db.flush()


def seed_treasuries(db, parent, branch) -> None:
    for company in (parent, branch):
        exists = db.query(Treasury).filter(
            Treasury.company_id == company.id, Treasury.type == TreasuryType.COMPANY
        ).first()
        if not exists:
            db.add(Treasury(name=f"خزينة {company.name}", type=TreasuryType.COMPANY, company_id=company.id, balance=0))
    if not db.query(Treasury).filter(Treasury.type == TreasuryType.BANK).first():
        db.add(Treasury(name="الحساب البنكي", type=TreasuryType.BANK, bank_name="البنك الأهلي", balance=0))
    db.flush()


def seed_products(db, parent, branch) -> None:
    group = db.query(ProductGroup).filter(ProductGroup.name == "بلاط أرضيات").first()
    if not group:
        group = ProductGroup(name="بلاط أرضيات", max_discount_percentage=Decimal("10"))
        db.add(group)
        db.flush()

    products_list = [
        # sku, name, units_per_box, cost per m2, sell price per box, boxes
        ("FLR-6060-W", "بلاط أرضيات 60x60 أبيض", Decimal("1.44"), Decimal("35"), Decimal("65"), Decimal("200")),
        ("FLR-6060-G", "بلاط أرضيات 60x60 رمادي", Decimal("1.44"), Decimal("38"), Decimal("70"), Decimal("150")),
        ("WAL-3060-B", "سيراميك حوائط 30x60 بيج", Decimal("1.62"), Decimal("28"), Decimal("55"), Decimal("8")),
    ]
    for sku, name, per_box, cost, price, boxes in products_list:
        if db.query(Product).filter(Product.sku == sku).first():
            continue
        product = Product(
            sku=sku, name=name, unit="m2", units_per_box=per_box, cost=cost,
            group_id=group.id if sku.startswith("FLR") else None,
            created_by_company_id=parent.id,
        )
        db.add(product)
        db.flush()
        db.add(ProductPrice(product_id=product.id, company_id=parent.id, sell_price=price))
        db.add(ProductPrice(product_id=product.id, company_id=branch.id, sell_price=price * Decimal("1.1")))
        db.add(Stock(product_id=product.id, company_id=parent.id, boxes=boxes))
        logger.info("Product '%s' created", sku)
    db.flush()


def init_db() -> None:
    logger.info("Creating tables")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        roles = seed_roles(db)
        parent, branch = seed_companies(db)
        seed_users(db, roles, parent, branch)
        seed_treasuries(db, parent, branch)
        seed_products(db, parent, branch)
        db.commit()
        logger.info("Database ready")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    init_db()
