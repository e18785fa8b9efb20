import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ceramisys.core.roles import DEFAULT_ROLES
from ceramisys.database import Base, get_db
from ceramisys.main import app
from ceramisys.models import (
    Company, Customer, Product, ProductGroup, ProductPrice, Role, Stock, Treasury, TreasuryType, User,
)
from ceramisys.security import get_password_hash

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    return TestClient(app)


@pytest.fixture()
def seed(db):
    """
    Parent company HQ with branch BR1, one user per role, a grouped parent
    product with 100 boxes, a branch product with 20 boxes, company
    treasuries, a bank treasury and a customer.
    """
    roles = {}
    for name, spec in DEFAULT_ROLES.items():
        roles[name] = Role(name=name, description=spec["description"], permissions=spec["permissions"])
        db.add(roles[name])
    db.flush()

    parent = Company(name="HQ", code="HQ", is_parent=True)
    db.add(parent)
    db.flush()
    branch = Company(name="Branch One", code="BR1", parent_id=parent.id)
    db.add(branch)
    db.flush()

    def user(username, role, company, system=False):
        u = User(
            username=username,
            full_name=username.title(),
            password_hash=PASSWORD_HASH,
            role_id=roles[role].id,
            company_id=company.id,
            is_system_user=system,
        )
        db.add(u)
        return u

    user("admin", "admin", parent, system=True)
    user("accountant", "accountant", parent)
    user("branch_accountant", "accountant", branch)
    user("branch_sales", "sales", branch)
    user("purchaser", "purchase_manager", parent)
    user("storekeeper", "warehouse", parent)
    user("viewer", "viewer", parent)

    group = ProductGroup(name="Floor tiles", max_discount_percentage=Decimal("10"))
    db.add(group)
    db.flush()

    parent_product = Product(
        sku="FLR-001", name="Floor 60x60", unit="m2", units_per_box=Decimal("1.44"),
        cost=Decimal("10"), group_id=group.id, created_by_company_id=parent.id,
    )
    branch_product = Product(
        sku="WAL-001", name="Wall 30x60", unit="m2", units_per_box=Decimal("2"),
        cost=Decimal("5"), created_by_company_id=branch.id,
    )
    db.add_all([parent_product, branch_product])
    db.flush()

    db.add_all([
        ProductPrice(product_id=parent_product.id, company_id=parent.id, sell_price=Decimal("50")),
        ProductPrice(product_id=branch_product.id, company_id=branch.id, sell_price=Decimal("30")),
        Stock(product_id=parent_product.id, company_id=parent.id, boxes=Decimal("100")),
        Stock(product_id=branch_product.id, company_id=branch.id, boxes=Decimal("20")),
    ])

    parent_treasury = Treasury(name="HQ cash", type=TreasuryType.COMPANY, company_id=parent.id, balance=Decimal("10000"))
    branch_treasury = Treasury(name="Branch cash", type=TreasuryType.COMPANY, company_id=branch.id, balance=Decimal("0"))
    bank = Treasury(name="Bank", type=TreasuryType.BANK, bank_name="Test bank", balance=Decimal("0"))
    db.add_all([parent_treasury, branch_treasury, bank])

    customer = Customer(name="Ahmed", phone="0500000000")
    db.add(customer)
    db.commit()

    return {
        "parent_id": parent.id,
        "branch_id": branch.id,
        "group_id": group.id,
        "parent_product_id": parent_product.id,
        "branch_product_id": branch_product.id,
        "parent_treasury_id": parent_treasury.id,
        "branch_treasury_id": branch_treasury.id,
        "bank_id": bank.id,
        "customer_id": customer.id,
    }


def login(client, username, password=PASSWORD):
    response = client.post("/api/auth/login", data={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


@pytest.fixture()
def headers(client, seed):
    """Returns a callable that logs a seeded user in and gives its auth headers."""
    cache = {}

    def _headers(username):
        if username not in cache:
            cache[username] = login(client, username)
        return cache[username]

    return _headers


def stock_of(db, company_id, product_id):
    db.expire_all()
    stock = db.query(Stock).filter(Stock.company_id == company_id, Stock.product_id == product_id).first()
    return float(stock.boxes) if stock else 0.0


def treasury_balance(db, treasury_id):
    db.expire_all()
    return float(db.query(Treasury).filter(Treasury.id == treasury_id).one().balance)
