import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.config import get_settings
from pos.core.dates import isoformat, utc_now
from pos.database.session import get_db
from pos.models import Product, Sale

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Liveness plus a database round trip; never fails the request itself."""
    settings = get_settings()
    payload = {
        "status": "ok",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "currency": settings.CURRENCY_CODE,
        "time": isoformat(utc_now()),
    }
    try:
        db.execute(text("SELECT 1"))
        payload["database"] = {
            "ok": True,
            "products": db.scalar(select(func.count(Product.id))) or 0,
            "sales": db.scalar(select(func.count(Sale.id))) or 0,
        }
    except SQLAlchemyError as exc:
        logger.warning("Health database check failed: %s", exc)
        payload["status"] = "degraded"
        payload["database"] = {"ok": False, "error": str(exc)}
    return payload


__all__ = ["router"]
