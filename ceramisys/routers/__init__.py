# ceramisys/routers/__init__.py

# Exposes the modules so "from ceramisys.routers import sales" works
from . import auth
from . import users
from . import companies
from . import products
from . import product_groups
from . import customers
from . import sales
from . import inter_company
from . import purchases
from . import expense_categories
from . import payment_receipts
from . import treasury
from . import payroll
from . import warehouse
from . import sale_returns
from . import reports
