import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Enum, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


# --- Enums ---
class SaleStatus(str, enum.Enum):
    DRAFT = "DRAFT"          # provisional invoice, no stock committed
    APPROVED = "APPROVED"    # approved by the accountant, stock decremented
    CANCELLED = "CANCELLED"


class SaleType(str, enum.Enum):
    CASH = "CASH"
    CREDIT = "CREDIT"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    BANK = "BANK"   # bank transfer
    CARD = "CARD"


# --- Sale header ---
class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)

    invoice_number = Column(String, nullable=True, index=True)
    status = Column(Enum(SaleStatus), default=SaleStatus.DRAFT, nullable=False)
    sale_type = Column(Enum(SaleType), default=SaleType.CREDIT, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=True)

    total = Column(Numeric(12, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
    remaining_amount = Column(Numeric(12, 2), default=0, nullable=False)
    is_fully_paid = Column(Boolean, default=False)

    # Mirrors created by the system when a branch sells parent stock
    is_auto_generated = Column(Boolean, default=False)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String, nullable=True)

    receipt_issued = Column(Boolean, default=False)
    receipt_issued_at = Column(DateTime(timezone=True), nullable=True)
    receipt_issued_by = Column(String, nullable=True)

    notes = Column(String, nullable=True)

    related_parent_sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    related_branch_purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    company = relationship("Company")
    customer = relationship("Customer", back_populates="sales")
    lines = relationship("SaleLine", back_populates="sale", cascade="all, delete-orphan")
    payments = relationship("SalePayment", back_populates="sale", cascade="all, delete-orphan")
    dispatch_orders = relationship("DispatchOrder", back_populates="sale", cascade="all, delete-orphan")
    returns = relationship("SaleReturn", back_populates="sale")

    related_parent_sale = relationship("Sale", remote_side=[id], foreign_keys=[related_parent_sale_id])
    related_branch_purchase = relationship("Purchase", foreign_keys=[related_branch_purchase_id])


# --- Sale lines ---
class SaleLine(Base):
    __tablename__ = "sale_lines"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    qty = Column(Numeric(12, 2), nullable=False)  # boxes
    unit_price = Column(Numeric(12, 2), nullable=False)
    sub_total = Column(Numeric(12, 2), nullable=False)

    discount_percentage = Column(Numeric(5, 2), default=0)
    discount_amount = Column(Numeric(12, 2), default=0)

    # Lines served from the parent company's inventory
    is_from_parent_company = Column(Boolean, default=False)
    parent_unit_price = Column(Numeric(12, 2), nullable=True)
    branch_unit_price = Column(Numeric(12, 2), nullable=True)

    sale = relationship("Sale", back_populates="lines")
    product = relationship("Product")


# --- Payments against credit sales ---
class SalePayment(Base):
    __tablename__ = "sale_payments"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    receipt_number = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    payment_date = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sale = relationship("Sale", back_populates="payments")
