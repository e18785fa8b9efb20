# ceramisys/models/products.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


# --- Discount groups ---
class ProductGroup(Base):
    __tablename__ = "product_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    max_discount_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    products = relationship("Product", back_populates="group")


# --- Product (SKU) ---
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, index=True, nullable=False)
    unit = Column(String, default="box")  # box, m2, piece
    units_per_box = Column(Numeric(10, 4), nullable=True)  # e.g. 1.44 m2 per box

    cost = Column(Numeric(12, 2), default=0)  # cost per unit

    group_id = Column(Integer, ForeignKey("product_groups.id"), nullable=True)
    created_by_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    group = relationship("ProductGroup", back_populates="products")
    created_by_company = relationship("Company")
    prices = relationship("ProductPrice", back_populates="product", cascade="all, delete-orphan")
    stocks = relationship("Stock", back_populates="product", cascade="all, delete-orphan")


# --- Sell price per company ---
class ProductPrice(Base):
    __tablename__ = "product_prices"
    __table_args__ = (UniqueConstraint("product_id", "company_id", name="uq_product_price_company"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    sell_price = Column(Numeric(12, 2), nullable=False)

    product = relationship("Product", back_populates="prices")
    company = relationship("Company")
