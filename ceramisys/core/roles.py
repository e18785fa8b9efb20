# ceramisys/core/roles.py

# Permission strings checked by require_permissions
SALES_CREATE = "sales.create"
SALES_APPROVE = "sales.approve"
PRODUCTS_WRITE = "products.write"
INVENTORY_ADJUST = "inventory.adjust"
CUSTOMERS_WRITE = "customers.write"
PAYROLL_MANAGE = "payroll.manage"
TREASURY_MANAGE = "treasury.manage"
WAREHOUSE_MANAGE = "warehouse.manage"
RETURNS_MANAGE = "returns.manage"
REPORTS_VIEW = "reports.view"

# Seeded roles and their static permission lists; "all" grants everything
DEFAULT_ROLES = {
    "admin": {"description": "مدير النظام", "permissions": ["all"]},
    "manager": {
        "description": "مدير",
        "permissions": [
            SALES_CREATE, SALES_APPROVE, PRODUCTS_WRITE, INVENTORY_ADJUST, CUSTOMERS_WRITE,
            PAYROLL_MANAGE, TREASURY_MANAGE, WAREHOUSE_MANAGE, RETURNS_MANAGE, REPORTS_VIEW,
        ],
    },
    "accountant": {
        "description": "محاسب",
        "permissions": [
            SALES_CREATE, SALES_APPROVE, CUSTOMERS_WRITE, PAYROLL_MANAGE, TREASURY_MANAGE,
            RETURNS_MANAGE, REPORTS_VIEW,
        ],
    },
    "sales": {"description": "مبيعات", "permissions": [SALES_CREATE, CUSTOMERS_WRITE, RETURNS_MANAGE]},
    "purchase_manager": {"description": "مدير مشتريات", "permissions": [PRODUCTS_WRITE, INVENTORY_ADJUST]},
    "warehouse": {"description": "أمين مخزن", "permissions": [WAREHOUSE_MANAGE, INVENTORY_ADJUST]},
    "viewer": {"description": "مشاهد", "permissions": [REPORTS_VIEW]},
}

APPROVER_ROLES = ("admin", "manager", "accountant")
PURCHASE_WRITE_ROLES = ("admin", "manager", "purchase_manager")
PURCHASE_READ_ROLES = PURCHASE_WRITE_ROLES + ("accountant", "viewer")
PURCHASE_DELETE_ROLES = ("admin", "manager")
