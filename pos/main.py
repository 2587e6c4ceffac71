from contextlib import asynccontextmanager

from fastapi import FastAPI

from pos.config import Settings, get_settings
from pos.core.logging import setup_logging
from pos.database import init_db
from pos.routers import (
    categories_router,
    customers_router,
    data_router,
    expenses_router,
    health_router,
    products_router,
    reports_router,
    sales_router,
    stock_router,
    suppliers_router,
)
from pos.services.import_service import ImportWatchService, ensure_import_dir, options_from_settings


setup_logging()
settings: Settings = get_settings()

init_db()

import_watch_service = ImportWatchService(
    watch_dir=settings.IMPORT_WATCH_DIR,
    poll_seconds=settings.IMPORT_POLL_SECONDS,
    options=options_from_settings(),
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.IMPORT_AUTO:
        ensure_import_dir(settings.IMPORT_WATCH_DIR)
        import_watch_service.start()
    try:
        yield
    finally:
        import_watch_service.stop()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(health_router)
app.include_router(categories_router)
app.include_router(suppliers_router)
app.include_router(products_router)
app.include_router(customers_router)
app.include_router(sales_router)
app.include_router(stock_router)
app.include_router(expenses_router)
app.include_router(reports_router)
app.include_router(data_router)


__all__ = ["app"]
