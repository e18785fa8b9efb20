from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class Stock(Base):
    """Boxes on hand of one product in one company."""
    __tablename__ = "stocks"
    __table_args__ = (UniqueConstraint("company_id", "product_id", name="uq_stock_company_product"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    boxes = Column(Numeric(12, 2), default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    company = relationship("Company")
    product = relationship("Product", back_populates="stocks")
