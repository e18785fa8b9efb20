# ceramisys/models/organization.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class Company(Base):
    """
    Tenant. A parent company (``is_parent``) owns the main inventory; branch
    companies point at it through ``parent_id`` and may sell its stock.
    """
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    is_parent = Column(Boolean, default=False, nullable=False)
    parent_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    parent = relationship("Company", remote_side=[id], back_populates="children")
    children = relationship("Company", back_populates="parent")
    users = relationship("User", back_populates="company")


class DocumentSequence(Base):
    """Last number handed out for a numbering stem such as ``RCP-20260101-``."""
    __tablename__ = "document_sequences"

    id = Column(Integer, primary_key=True, index=True)
    stem = Column(String, unique=True, nullable=False, index=True)
    last_value = Column(Integer, default=0, nullable=False)
