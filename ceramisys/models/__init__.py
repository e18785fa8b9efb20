# ceramisys/models/__init__.py

# 1. Declarative base
from ceramisys.database import Base

# 2. Organization (parent and branch companies)
from .organization import Company, DocumentSequence

# 3. Users, roles and sessions
from .users import Role, User, UserSession

# 4. Catalog and stock
from .products import Product, ProductGroup, ProductPrice
from .inventory import Stock

# 5. Customers and their ledger
from .crm import Customer, CustomerAccountEntry, AccountTransactionType, AccountReferenceType

# 6. Sales
from .sales import Sale, SaleLine, SalePayment, SaleStatus, SaleType, PaymentMethod

# 7. Purchases and suppliers
from .purchases import (
    Supplier, SupplierAccountEntry, Purchase, PurchaseLine, PurchasePayment,
    ExpenseCategory, ExpenseCurrency, PurchaseExpense, ProductCostHistory,
)
from .payment_receipts import SupplierPaymentReceipt, PaymentReceiptInstallment, ReceiptType, ReceiptStatus

# 8. Cash
from .treasury import Treasury, TreasuryTransaction, TreasuryType, TransactionType, TransactionSource

# 9. Payroll
from .payroll import Employee, SalaryPayment, EmployeeBonus, BonusType

# 10. Warehouse and returns
from .warehouse import DispatchOrder, DispatchOrderStatus, ACTIVE_DISPATCH_STATUSES
from .returns import SaleReturn, SaleReturnLine, ReturnStatus
