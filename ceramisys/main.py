import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ceramisys.core.config import settings
from ceramisys.core.exceptions import CeramiSysError
from ceramisys.database import engine
from ceramisys.models import Base
from ceramisys.routers import (
    auth, users, companies, products, product_groups, customers, sales,
    inter_company, purchases, expense_categories, payment_receipts, treasury, payroll, warehouse,
    sale_returns, reports,
)
from ceramisys.utils.responses import fail

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("ceramisys")

# 1. AUTOMATIC TABLE CREATION
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    description="نظام إدارة موارد لموزعي السيراميك والبلاط: مبيعات، مشتريات، مخزون، رواتب وتقارير",
    version="1.0.0",
    debug=settings.DEBUG,
)

# 2. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# 3. ERROR HANDLING
@app.exception_handler(CeramiSysError)
async def ceramisys_error_handler(request: Request, exc: CeramiSysError):
    if exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message, exc.data))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": error.get("msg", "")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=fail("البيانات المدخلة غير صالحة", {"errors": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "حدث خطأ في الطلب"
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "المورد غير موجود"
    return JSONResponse(status_code=exc.status_code, content=fail(message), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=fail("حدث خطأ في الخادم"),
    )


# 4. ROUTERS
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(companies.router, prefix="/api/companies", tags=["Companies"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(product_groups.router, prefix="/api/product-groups", tags=["Product groups"])
app.include_router(customers.router, prefix="/api/customers", tags=["Customers"])
app.include_router(sales.router, prefix="/api/sales", tags=["Sales"])
app.include_router(inter_company.router, prefix="/api/complex-sales", tags=["Inter-company sales"])
app.include_router(purchases.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(purchases.suppliers_router, prefix="/api/suppliers", tags=["Suppliers"])
app.include_router(expense_categories.router, prefix="/api/expense-categories", tags=["Expense categories"])
app.include_router(payment_receipts.router, prefix="/api/payment-receipts", tags=["Payment receipts"])
app.include_router(treasury.router, prefix="/api/treasuries", tags=["Treasury"])
app.include_router(payroll.router, prefix="/api/payroll", tags=["Payroll"])
app.include_router(warehouse.router, prefix="/api/warehouse", tags=["Warehouse"])
app.include_router(sale_returns.router, prefix="/api/sale-returns", tags=["Sale returns"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
def health():
    return {"success": True, "message": "ok", "data": {"app": settings.APP_NAME, "environment": settings.ENVIRONMENT}}
