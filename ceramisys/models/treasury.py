# ceramisys/models/treasury.py
import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Enum, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class TreasuryType(str, enum.Enum):
    COMPANY = "COMPANY"  # cash box of a company
    BANK = "BANK"        # bank account
    GENERAL = "GENERAL"


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class TransactionSource(str, enum.Enum):
    SALE = "SALE"
    SALE_PAYMENT = "SALE_PAYMENT"
    PURCHASE_PAYMENT = "PURCHASE_PAYMENT"
    SALARY = "SALARY"
    BONUS = "BONUS"
    RETURN = "RETURN"
    MANUAL = "MANUAL"


class Treasury(Base):
    __tablename__ = "treasuries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(Enum(TreasuryType), default=TreasuryType.COMPANY, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    bank_name = Column(String, nullable=True)
    account_number = Column(String, nullable=True)

    balance = Column(Numeric(14, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company")
    transactions = relationship("TreasuryTransaction", back_populates="treasury")


class TreasuryTransaction(Base):
    """Cash movement. ``amount`` is negative for withdrawals."""
    __tablename__ = "treasury_transactions"

    id = Column(Integer, primary_key=True, index=True)
    treasury_id = Column(Integer, ForeignKey("treasuries.id"), nullable=False)

    type = Column(Enum(TransactionType), nullable=False)
    source = Column(Enum(TransactionSource), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    balance_before = Column(Numeric(14, 2), nullable=False)
    balance_after = Column(Numeric(14, 2), nullable=False)

    reference_type = Column(String, nullable=True)
    reference_id = Column(Integer, nullable=True)
    description = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    treasury = relationship("Treasury", back_populates="transactions")
