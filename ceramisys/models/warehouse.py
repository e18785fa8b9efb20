import enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class DispatchOrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_DISPATCH_STATUSES = (DispatchOrderStatus.PENDING, DispatchOrderStatus.IN_PROGRESS)


class DispatchOrder(Base):
    """Work order for the warehouse to pick and ship the goods of an approved sale."""
    __tablename__ = "dispatch_orders"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    status = Column(Enum(DispatchOrderStatus), default=DispatchOrderStatus.PENDING, nullable=False)
    notes = Column(String, nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    sale = relationship("Sale", back_populates="dispatch_orders")
    company = relationship("Company")
    completed_by = relationship("User")
