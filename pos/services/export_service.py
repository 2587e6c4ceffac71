import hashlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.config import get_settings
from pos.core.constants import (
    EXPORT_DATA_TYPE,
    EXPORT_DATA_TYPES,
    EXPORT_SECTIONS,
    EXPORT_VERSION,
    IMPORT_ORDER,
    REQUIRED_FIELDS,
)
from pos.core.dates import isoformat, utc_now
from pos.models.bulk_pricing import BulkPricing
from pos.models.category import Category
from pos.models.customer import Customer
from pos.models.expense import Expense, ExpenseCategory
from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.models.stock_movement import StockMovement
from pos.models.supplier import Supplier

logger = logging.getLogger(__name__)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

_PRODUCT_EXCLUDED = {"image_url", "created_at", "updated_at"}


@dataclass(frozen=True)
class ExportResult:
    path: Path
    filename: str
    record_count: int
    file_size: int


def _json_value(value):
    if isinstance(value, datetime):
        return isoformat(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return _CONTROL_CHARS_RE.sub("", value)
    return value


def model_to_dict(instance, exclude=()) -> dict:
    return {
        column.key: _json_value(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.key not in exclude
    }


def has_required_fields(section: str, record: dict) -> bool:
    for field in REQUIRED_FIELDS.get(section, ()):
        if record.get(field) is None or record.get(field) == "":
            return False
    return True


def _sanitize_section(section: str, records: list[dict]) -> list[dict]:
    kept = [record for record in records if has_required_fields(section, record)]
    dropped = len(records) - len(kept)
    if dropped:
        logger.warning("Dropped %d %s record(s) missing required fields", dropped, section)
    return kept


def _all(db: Session, model, *order_by):
    return db.execute(select(model).order_by(*order_by)).unique().scalars().all()


def resolve_data_type(data_type) -> tuple:
    """Sections exported for ``data_type``; ValueError for unknown types."""
    data_type = data_type or EXPORT_DATA_TYPE
    if data_type not in EXPORT_DATA_TYPES:
        raise ValueError(
            "data_type must be one of: {}".format(", ".join(EXPORT_DATA_TYPES))
        )
    return EXPORT_DATA_TYPES[data_type]


def _product_records(db: Session) -> list[dict]:
    product_records = []
    for product in _all(db, Product, Product.name):
        record = model_to_dict(product, exclude=_PRODUCT_EXCLUDED)
        record["category"] = product.category.name if product.category else None
        record["supplier"] = product.supplier.name if product.supplier else None
        product_records.append(record)
    return product_records


def _sale_records(db: Session) -> tuple[list[dict], list[dict]]:
    items_by_sale: dict[str, list[dict]] = {}
    item_records = []
    for item in _all(db, SaleItem, SaleItem.sale_id):
        record = model_to_dict(item)
        item_records.append(record)
        items_by_sale.setdefault(item.sale_id, []).append(record)

    sale_records = []
    for sale in _all(db, Sale, Sale.created_at):
        record = model_to_dict(sale)
        record["items"] = items_by_sale.get(sale.id, [])
        sale_records.append(record)
    return sale_records, item_records


def _expense_records(db: Session) -> list[dict]:
    records = []
    for expense in _all(db, Expense, Expense.date):
        record = model_to_dict(expense)
        record["category"] = expense.category.name if expense.category else None
        records.append(record)
    return records


def collect_export_data(db: Session, data_type: str = EXPORT_DATA_TYPE) -> dict:
    sections = resolve_data_type(data_type)
    data = {}
    if "sales" in sections or "saleItems" in sections:
        data["sales"], data["saleItems"] = _sale_records(db)
    loaders = {
        "categories": lambda: [model_to_dict(row) for row in _all(db, Category, Category.name)],
        "suppliers": lambda: [model_to_dict(row) for row in _all(db, Supplier, Supplier.name)],
        "products": lambda: _product_records(db),
        "customers": lambda: [model_to_dict(row) for row in _all(db, Customer, Customer.name)],
        "expenseCategories": lambda: [
            model_to_dict(row) for row in _all(db, ExpenseCategory, ExpenseCategory.name)
        ],
        "expenses": lambda: _expense_records(db),
        "bulkPricing": lambda: [
            model_to_dict(row)
            for row in _all(db, BulkPricing, BulkPricing.product_id, BulkPricing.min_quantity)
        ],
        "stockMovements": lambda: [
            model_to_dict(row) for row in _all(db, StockMovement, StockMovement.created_at)
        ],
    }
    return {
        section: _sanitize_section(
            section, data[section] if section in data else loaders[section]()
        )
        for section in EXPORT_SECTIONS
        if section in sections
    }


def compute_checksum(data: dict) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def verify_checksum(document: dict) -> Optional[bool]:
    """True/False when the document carries a checksum, None when it does not."""
    integrity = document.get("integrity") if isinstance(document, dict) else None
    expected = integrity.get("checksum") if isinstance(integrity, dict) else None
    if not expected or not isinstance(document.get("data"), dict):
        return None
    return compute_checksum(document["data"]) == expected


def build_relationships(data: dict) -> dict:
    return {
        "productCategories": {
            record["id"]: record.get("category") for record in data.get("products", [])
        },
        "productSuppliers": {
            record["id"]: record.get("supplier")
            for record in data.get("products", [])
            if record.get("supplier")
        },
        "saleCustomers": {
            record["id"]: record.get("customer_id")
            for record in data.get("sales", [])
            if record.get("customer_id")
        },
    }


def build_export_document(
    db: Session, now: Optional[datetime] = None, data_type: str = EXPORT_DATA_TYPE
) -> dict:
    data_type = data_type or EXPORT_DATA_TYPE
    exported_at = isoformat(now or utc_now())
    data = collect_export_data(db, data_type)
    record_counts = {section: len(records) for section, records in data.items()}
    # saleItems repeat the items nested in sales
    record_count = sum(count for section, count in record_counts.items() if section in IMPORT_ORDER)
    checksum = compute_checksum(data)
    return {
        "version": EXPORT_VERSION,
        "exportDate": exported_at,
        "dataType": data_type,
        "metadata": {
            "exportDate": exported_at,
            "dataType": data_type,
            "version": EXPORT_VERSION,
            "recordCount": record_count,
            "emptyExport": record_count == 0,
            "checksum": checksum,
        },
        "data": data,
        "relationships": build_relationships(data),
        "integrity": {
            "checksum": checksum,
            "recordCounts": record_counts,
            "validationRules": {
                section: list(fields) for section, fields in REQUIRED_FIELDS.items()
            },
        },
    }


def export_filename(document: dict) -> str:
    export_date = str(document.get("exportDate") or isoformat(utc_now()))[:10]
    return f"{document.get('dataType', EXPORT_DATA_TYPE)}_data_export_{export_date}.json"


def write_export_file(document: dict, export_dir=None, filename=None) -> ExportResult:
    export_dir = Path(export_dir or get_settings().EXPORT_DIR)
    export_dir.mkdir(parents=True, exist_ok=True)
    filename = filename or export_filename(document)
    path = export_dir / filename
    payload = json.dumps(document, indent=2, ensure_ascii=False)
    path.write_text(payload, encoding="utf-8")
    result = ExportResult(
        path=path,
        filename=filename,
        record_count=document["metadata"]["recordCount"],
        file_size=path.stat().st_size,
    )
    logger.info(
        "Exported %d record(s) to %s (%d bytes)",
        result.record_count,
        path,
        result.file_size,
    )
    return result


def export_to_file(
    db: Session, export_dir=None, filename=None, data_type: str = EXPORT_DATA_TYPE
) -> ExportResult:
    return write_export_file(
        build_export_document(db, data_type=data_type), export_dir, filename
    )


__all__ = [
    "ExportResult",
    "build_export_document",
    "build_relationships",
    "collect_export_data",
    "compute_checksum",
    "export_filename",
    "export_to_file",
    "has_required_fields",
    "model_to_dict",
    "resolve_data_type",
    "verify_checksum",
    "write_export_file",
]
