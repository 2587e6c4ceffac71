from pos.routers.categories import router as categories_router
from pos.routers.customers import router as customers_router
from pos.routers.data import router as data_router
from pos.routers.expenses import router as expenses_router
from pos.routers.health import router as health_router
from pos.routers.products import router as products_router
from pos.routers.reports import router as reports_router
from pos.routers.sales import router as sales_router
from pos.routers.stock import router as stock_router
from pos.routers.suppliers import router as suppliers_router

__all__ = [
    "categories_router",
    "customers_router",
    "data_router",
    "expenses_router",
    "health_router",
    "products_router",
    "reports_router",
    "sales_router",
    "stock_router",
    "suppliers_router",
]
