# ceramisys/models/crm.py
import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base


class AccountTransactionType(str, enum.Enum):
    DEBIT = "DEBIT"    # the account holder owes more
    CREDIT = "CREDIT"  # the account holder owes less


class AccountReferenceType(str, enum.Enum):
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    PAYMENT = "PAYMENT"
    RETURN = "RETURN"
    EXPENSE = "EXPENSE"
    OPENING_BALANCE = "OPENING_BALANCE"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    phone = Column(String, index=True, nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sales = relationship("Sale", back_populates="customer")
    account_entries = relationship("CustomerAccountEntry", back_populates="customer")


class CustomerAccountEntry(Base):
    """
    Money ledger of a customer. ``balance`` is the running balance after the
    entry: DEBIT adds to it, CREDIT subtracts from it.
    """
    __tablename__ = "customer_account_entries"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    transaction_type = Column(Enum(AccountTransactionType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False)

    reference_type = Column(Enum(AccountReferenceType), nullable=False)
    reference_id = Column(Integer, nullable=True)
    description = Column(String, nullable=True)
    transaction_date = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer", back_populates="account_entries")
