import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base
from ceramisys.models.sales import PaymentMethod


class ReturnStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSED = "PROCESSED"  # stock and customer balance already re-credited


class SaleReturn(Base):
    __tablename__ = "sale_returns"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)

    total = Column(Numeric(12, 2), nullable=False)
    refund_amount = Column(Numeric(12, 2), nullable=False)
    # No method means store credit; otherwise the refund leaves a treasury
    refund_method = Column(Enum(PaymentMethod), nullable=True)
    refund_treasury_id = Column(Integer, ForeignKey("treasuries.id"), nullable=True)

    status = Column(Enum(ReturnStatus), default=ReturnStatus.PENDING, nullable=False)
    reason = Column(String, nullable=True)  # e.g. broken tiles, wrong shade
    notes = Column(String, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sale = relationship("Sale", back_populates="returns")
    company = relationship("Company")
    customer = relationship("Customer")
    lines = relationship("SaleReturnLine", back_populates="parent_return", cascade="all, delete-orphan")


class SaleReturnLine(Base):
    __tablename__ = "sale_return_lines"

    id = Column(Integer, primary_key=True, index=True)
    return_id = Column(Integer, ForeignKey("sale_returns.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    qty = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    sub_total = Column(Numeric(12, 2), nullable=False)

    parent_return = relationship("SaleReturn", back_populates="lines")
    product = relationship("Product")
