from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from pos.core.dates import utc_now
from pos.dependencies import get_db, service_errors
from pos.services import analytics_service, report_service

router = APIRouter(prefix="/reports", tags=["Reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _window(start, end, days=30):
    end = end or utc_now()
    return start or end - timedelta(days=days), end


def _xlsx_response(workbook, filename):
    return Response(
        content=report_service.workbook_bytes(workbook),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/sales-analytics")
def sales_analytics(days: int = 30, db: Session = Depends(get_db)):
    with service_errors():
        return analytics_service.sales_analytics(db, days=days)


@router.get("/daily-sales")
def daily_sales(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    start, end = _window(start, end)
    return analytics_service.daily_sales(db, start, end)


@router.get("/payment-methods")
def payment_methods(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    start, end = _window(start, end)
    return analytics_service.payment_method_breakdown(db, start, end)


@router.get("/inventory-value")
def inventory_value(db: Session = Depends(get_db)):
    return analytics_service.inventory_value(db)


@router.get("/sales.xlsx")
def sales_workbook(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    workbook = report_service.build_sales_workbook(db, start=start, end=end)
    return _xlsx_response(workbook, "sales_list.xlsx")


@router.get("/sale-items.xlsx")
def sale_items_workbook(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    workbook = report_service.build_sale_items_workbook(db, start=start, end=end)
    return _xlsx_response(workbook, "sales_items.xlsx")


@router.get("/inventory.xlsx")
def inventory_workbook(db: Session = Depends(get_db)):
    return _xlsx_response(report_service.build_inventory_workbook(db), "inventory.xlsx")


__all__ = ["router"]
