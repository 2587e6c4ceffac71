"""Spreadsheet reports built with openpyxl."""

import logging
from io import BytesIO
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.services.catalog_service import is_low_stock
from pos.services.sales_service import list_sales

logger = logging.getLogger(__name__)

SALES_LIST_HEADERS = ["Sale ID", "Date", "Payment Method", "Customer", "Total Amount"]
SALE_ITEMS_HEADERS = [
    "Sale ID",
    "Date",
    "Product",
    "Quantity",
    "Sale Price",
    "Cost Price",
    "Discount",
    "Subtotal",
    "Profit",
]
INVENTORY_HEADERS = [
    "Product",
    "Barcode",
    "Category",
    "Supplier",
    "Quantity",
    "Min Stock",
    "Cost",
    "Price",
    "Stock Value",
    "Status",
]

_DATE_FORMAT = "%Y-%m-%d %H:%M"


def _format_date(value):
    return value.strftime(_DATE_FORMAT) if value else ""


def _write_header(worksheet, headers):
    worksheet.append(headers)
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
    worksheet.freeze_panes = "A2"


def _autosize(worksheet):
    for index, column in enumerate(worksheet.iter_cols(values_only=True), start=1):
        width = max((len(str(value)) for value in column if value is not None), default=8)
        worksheet.column_dimensions[get_column_letter(index)].width = min(width + 2, 50)


def _append_summary(worksheet, rows):
    worksheet.append([])
    for label, value in rows:
        worksheet.append([label, value])
        worksheet.cell(row=worksheet.max_row, column=1).font = Font(bold=True)


def _sale_item_rows(db: Session, sale_ids):
    if not sale_ids:
        return []
    return db.execute(
        select(SaleItem, Sale.created_at, Product.name)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .where(SaleItem.sale_id.in_(sale_ids))
        .order_by(Sale.created_at.desc(), Product.name)
    ).all()


def build_sales_workbook(db: Session, start=None, end=None) -> Workbook:
    sales = list_sales(db, start=start, end=end, limit=None)
    item_rows = _sale_item_rows(db, [sale.id for sale in sales])
    total_cost = sum(item.cost * item.quantity for item, _created, _name in item_rows)
    revenue = sum(sale.total for sale in sales)

    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Sales List"
    _write_header(worksheet, SALES_LIST_HEADERS)
    for sale in sales:
        worksheet.append(
            [
                sale.id,
                _format_date(sale.created_at),
                sale.payment_method,
                sale.customer.name if sale.customer else "",
                sale.total,
            ]
        )
    _append_summary(
        worksheet,
        [
            ("Total Sales", len(sales)),
            ("Total Revenue", revenue),
            ("Total Cost", total_cost),
            ("Total Profit", revenue - total_cost),
        ],
    )
    _autosize(worksheet)
    return workbook


def build_sale_items_workbook(db: Session, start=None, end=None) -> Workbook:
    sales = list_sales(db, start=start, end=end, limit=None)
    item_rows = _sale_item_rows(db, [sale.id for sale in sales])

    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Sales Items"
    _write_header(worksheet, SALE_ITEMS_HEADERS)
    total_quantity = 0
    total_subtotal = 0.0
    total_profit = 0.0
    for item, created_at, product_name in item_rows:
        profit = item.subtotal - item.cost * item.quantity
        worksheet.append(
            [
                item.sale_id,
                _format_date(created_at),
                product_name or "Unknown product",
                item.quantity,
                item.price,
                item.cost,
                item.discount,
                item.subtotal,
                profit,
            ]
        )
        total_quantity += item.quantity
        total_subtotal += item.subtotal
        total_profit += profit
    _append_summary(
        worksheet,
        [
            ("Total Items", total_quantity),
            ("Total Revenue", total_subtotal),
            ("Total Profit", total_profit),
        ],
    )
    _autosize(worksheet)
    return workbook


def build_inventory_workbook(db: Session) -> Workbook:
    products = db.execute(select(Product).order_by(Product.name)).scalars().all()

    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Inventory"
    _write_header(worksheet, INVENTORY_HEADERS)
    for product in products:
        worksheet.append(
            [
                product.name,
                product.barcode or "",
                product.category.name if product.category else "",
                product.supplier.name if product.supplier else "",
                product.quantity,
                product.min_stock,
                product.cost,
                product.price,
                product.cost * product.quantity,
                "Low Stock" if is_low_stock(product) else "In Stock",
            ]
        )
    _autosize(worksheet)
    return workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def save_workbook(workbook: Workbook, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)
    logger.info("Report written to %s", path)
    return path


__all__ = [
    "INVENTORY_HEADERS",
    "SALES_LIST_HEADERS",
    "SALE_ITEMS_HEADERS",
    "build_inventory_workbook",
    "build_sale_items_workbook",
    "build_sales_workbook",
    "save_workbook",
    "workbook_bytes",
]
