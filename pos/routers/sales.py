from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.models.sale import Sale
from pos.schemas.sale import CartQuote, CartRequest, SaleCreate, SaleRead
from pos.services import receipt_service, sales_service

router = APIRouter(prefix="/sales", tags=["Sales"])


def serialize_sale(db: Session, sale: Sale) -> SaleRead:
    items = []
    for item, product_name in sales_service.sale_items_with_products(db, sale.id):
        row = {
            column.key: getattr(item, column.key)
            for column in item.__table__.columns
        }
        row["product_name"] = product_name
        items.append(row)
    return SaleRead(
        id=sale.id,
        total=sale.total,
        payment_method=sale.payment_method,
        note=sale.note,
        customer_id=sale.customer_id,
        customer_name=sale.customer.name if sale.customer else None,
        created_at=sale.created_at,
        items=items,
    )


@router.post("/quote", response_model=CartQuote)
def quote_cart(payload: CartRequest, db: Session = Depends(get_db)):
    with service_errors():
        return sales_service.quote_cart(db, payload.items)


@router.post("", response_model=SaleRead, status_code=201)
def create_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        sale = sales_service.create_sale(db, payload)
        return serialize_sale(db, sale)


@router.get("", response_model=list[SaleRead])
def list_sales(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    sales = sales_service.list_sales(
        db,
        start=start,
        end=end,
        customer_id=customer_id,
        payment_method=payment_method,
        limit=limit,
        offset=offset,
    )
    return [serialize_sale(db, sale) for sale in sales]


@router.get("/{sale_id}", response_model=SaleRead)
def get_sale(sale_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return serialize_sale(db, sales_service.get_sale(db, sale_id))


@router.delete("/{sale_id}", status_code=204)
def delete_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        sales_service.delete_sale(db, sale_id)


@router.get("/{sale_id}/receipt")
def get_receipt(
    sale_id: str,
    format: Literal["text", "escpos"] = "text",
    db: Session = Depends(get_db),
):
    with service_errors():
        receipt = receipt_service.build_receipt(db, sale_id)
    if format == "escpos":
        return Response(
            content=receipt_service.render_escpos(receipt),
            media_type="application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="receipt_{sale_id}.bin"'},
        )
    return PlainTextResponse(receipt_service.render_text_receipt(receipt))


__all__ = ["router", "serialize_sale"]
