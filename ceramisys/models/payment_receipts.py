import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base
from ceramisys.models.sales import PaymentMethod


class ReceiptType(str, enum.Enum):
    EXPENSE = "EXPENSE"  # billed through a purchase expense
    OTHER = "OTHER"      # entered by hand


class ReceiptStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class SupplierPaymentReceipt(Base):
    """
    An amount owed to a supplier outside the purchase invoice itself, paid
    off in one or more installments.
    """
    __tablename__ = "supplier_payment_receipts"

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String, unique=True, nullable=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)
    expense_id = Column(Integer, ForeignKey("purchase_expenses.id"), nullable=True, unique=True)

    type = Column(Enum(ReceiptType), default=ReceiptType.OTHER, nullable=False)
    status = Column(Enum(ReceiptStatus), default=ReceiptStatus.PENDING, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), default=0, nullable=False)

    description = Column(String, nullable=True)
    category_name = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company")
    supplier = relationship("Supplier")
    purchase = relationship("Purchase", back_populates="payment_receipts")
    expense = relationship("PurchaseExpense", back_populates="payment_receipt")
    installments = relationship(
        "PaymentReceiptInstallment",
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="PaymentReceiptInstallment.id",
    )

    @property
    def remaining_amount(self):
        return (self.amount or 0) - (self.paid_amount or 0)


class PaymentReceiptInstallment(Base):
    __tablename__ = "payment_receipt_installments"

    id = Column(Integer, primary_key=True, index=True)
    receipt_id = Column(Integer, ForeignKey("supplier_payment_receipts.id"), nullable=False, index=True)
    treasury_id = Column(Integer, ForeignKey("treasuries.id"), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    reference_number = Column(String, nullable=True)  # transfer or cheque number
    notes = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), server_default=func.now())
    created_by = Column(String, nullable=True)

    receipt = relationship("SupplierPaymentReceipt", back_populates="installments")
