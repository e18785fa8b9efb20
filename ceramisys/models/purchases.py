import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Enum, Numeric, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ceramisys.database import Base
from ceramisys.models.crm import AccountTransactionType, AccountReferenceType
from ceramisys.models.sales import SaleType, PaymentMethod


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    phone = Column(String, index=True, nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    purchases = relationship("Purchase", back_populates="supplier")
    account_entries = relationship("SupplierAccountEntry", back_populates="supplier")


class SupplierAccountEntry(Base):
    """
    What the company owes a supplier. CREDIT raises the debt (credit
    purchase), DEBIT lowers it (payment).
    """
    __tablename__ = "supplier_account_entries"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)

    transaction_type = Column(Enum(AccountTransactionType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False)

    reference_type = Column(Enum(AccountReferenceType), nullable=False)
    reference_id = Column(Integer, nullable=True)
    description = Column(String, nullable=True)
    transaction_date = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    supplier = relationship("Supplier", back_populates="account_entries")


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)

    invoice_number = Column(String, nullable=True, index=True)
    status = Column(String, default="APPROVED", nullable=False)
    purchase_type = Column(Enum(SaleType), default=SaleType.CASH, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=True)

    total = Column(Numeric(12, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
    remaining_amount = Column(Numeric(12, 2), default=0, nullable=False)
    is_fully_paid = Column(Boolean, default=False)

    # Landed costs (freight, customs...) on top of the supplier invoice
    total_expenses = Column(Numeric(12, 2), default=0, nullable=False)

    # False for mirrors of parent-company sales: the stock already moved
    affects_inventory = Column(Boolean, default=True, nullable=False)

    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company")
    supplier = relationship("Supplier", back_populates="purchases")
    lines = relationship("PurchaseLine", back_populates="purchase", cascade="all, delete-orphan")
    payments = relationship("PurchasePayment", back_populates="purchase", cascade="all, delete-orphan")
    expenses = relationship("PurchaseExpense", back_populates="purchase", cascade="all, delete-orphan")
    cost_history = relationship("ProductCostHistory", back_populates="purchase", cascade="all, delete-orphan")
    payment_receipts = relationship("SupplierPaymentReceipt", back_populates="purchase", cascade="all, delete-orphan")

    @property
    def final_total(self):
        return (self.total or 0) + (self.total_expenses or 0)


class PurchaseLine(Base):
    __tablename__ = "purchase_lines"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    qty = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    sub_total = Column(Numeric(12, 2), nullable=False)

    purchase = relationship("Purchase", back_populates="lines")
    product = relationship("Product")


class PurchasePayment(Base):
    __tablename__ = "purchase_payments"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    receipt_number = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    payment_date = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    purchase = relationship("Purchase", back_populates="payments")


# -----------------------------
# Purchase expenses and landed cost
# -----------------------------
class ExpenseCurrency(str, enum.Enum):
    LYD = "LYD"
    USD = "USD"
    EUR = "EUR"


expense_category_suppliers = Table(
    "expense_category_suppliers",
    Base.metadata,
    Column("category_id", Integer, ForeignKey("expense_categories.id"), primary_key=True),
    Column("supplier_id", Integer, ForeignKey("suppliers.id"), primary_key=True),
)


class ExpenseCategory(Base):
    """Kind of purchase expense (freight, customs, unloading...) and the suppliers who bill it."""
    __tablename__ = "expense_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    suppliers = relationship("Supplier", secondary=expense_category_suppliers, order_by="Supplier.name")
    expenses = relationship("PurchaseExpense", back_populates="category")


class PurchaseExpense(Base):
    __tablename__ = "purchase_expenses"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)

    # amount is in local currency; amount_foreign keeps what was billed abroad
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(Enum(ExpenseCurrency), default=ExpenseCurrency.LYD, nullable=False)
    exchange_rate = Column(Numeric(12, 4), default=1, nullable=False)
    amount_foreign = Column(Numeric(12, 2), nullable=True)

    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    purchase = relationship("Purchase", back_populates="expenses")
    category = relationship("ExpenseCategory", back_populates="expenses")
    supplier = relationship("Supplier")
    payment_receipt = relationship("SupplierPaymentReceipt", back_populates="expense", uselist=False)


class ProductCostHistory(Base):
    """Landed cost of a product per box, one row per purchase line."""
    __tablename__ = "product_cost_history"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    quantity = Column(Numeric(12, 2), nullable=False)
    purchase_price = Column(Numeric(12, 2), nullable=False)
    expense_per_unit = Column(Numeric(12, 4), default=0, nullable=False)
    total_cost_per_unit = Column(Numeric(12, 4), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    purchase = relationship("Purchase", back_populates="cost_history")
    product = relationship("Product")
