import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.config import get_settings
from pos.core.constants import (
    CONFLICT_ASK,
    CONFLICT_RESOLUTIONS,
    CONFLICT_SKIP,
    CONFLICT_UPDATE,
    ERROR_INVALID_DATA_TYPES,
    ERROR_MISSING_REFERENCE,
    ERROR_MISSING_REQUIRED_FIELDS,
    ERROR_PROCESSING,
    EXPORT_SECTIONS,
    IMPORT_ORDER,
    INTEGER_FIELDS,
    MOVEMENT_TYPES,
    NUMERIC_FIELDS,
    REFERENCE_FIELDS,
    REQUIRED_FIELDS,
)
from pos.core.dates import parse_datetime, utc_now
from pos.core.identifiers import is_valid_uuid
from pos.database import SessionLocal, init_db
from pos.models.bulk_pricing import BulkPricing
from pos.models.category import Category
from pos.models.customer import Customer
from pos.models.expense import Expense, ExpenseCategory
from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.models.stock_movement import StockMovement
from pos.models.supplier import Supplier
from pos.services import catalog_service, customer_service, expense_service
from pos.services.export_service import verify_checksum
from pos.services.pricing_service import PriceTier, validate_bulk_tiers

logger = logging.getLogger(__name__)

SECTION_MODELS = {
    "categories": Category,
    "suppliers": Supplier,
    "products": Product,
    "customers": Customer,
    "expenseCategories": ExpenseCategory,
    "sales": Sale,
    "expenses": Expense,
    "bulkPricing": BulkPricing,
    "stockMovements": StockMovement,
}

SECTION_LABELS = {
    "categories": "Category",
    "suppliers": "Supplier",
    "products": "Product",
    "customers": "Customer",
    "expenseCategories": "Expense category",
    "sales": "Sale",
    "expenses": "Expense",
    "bulkPricing": "Bulk pricing tier",
    "stockMovements": "Stock movement",
    "saleItems": "Sale item",
}

# Re-applying these would double count stock and revenue.
_INSERT_ONLY_SECTIONS = {"sales", "stockMovements"}

_SAMPLE_SIZE = 3
_SUMMARY_ISSUE_LIMIT = 10


@dataclass
class ImportOptions:
    conflict_resolution: str = CONFLICT_UPDATE
    batch_size: int = 100
    dry_run: bool = False

    def __post_init__(self):
        if self.conflict_resolution not in CONFLICT_RESOLUTIONS:
            raise ValueError(
                "conflict_resolution must be one of: {}".format(", ".join(CONFLICT_RESOLUTIONS))
            )
        if self.batch_size <= 0:
            raise ValueError("batch_size must be greater than 0")


@dataclass
class ImportIssue:
    record_type: str
    index: int
    code: str
    message: str


@dataclass
class ImportConflict:
    record_type: str
    index: int
    conflict_type: str
    message: str
    existing_id: Optional[str] = None
    matched_by: Optional[str] = None
    record: Optional[dict] = None


@dataclass
class TypeCounts:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class ImportValidation:
    is_valid: bool
    message: str
    available_types: list[str] = field(default_factory=list)
    record_counts: dict[str, int] = field(default_factory=dict)
    corrupted_sections: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checksum_valid: Optional[bool] = None


@dataclass
class ImportResult:
    success: bool
    message: str
    counts: dict[str, TypeCounts] = field(default_factory=dict)
    issues: list[ImportIssue] = field(default_factory=list)
    conflicts: list[ImportConflict] = field(default_factory=list)
    dry_run: bool = False

    @property
    def imported(self) -> int:
        return sum(item.imported for item in self.counts.values())

    @property
    def updated(self) -> int:
        return sum(item.updated for item in self.counts.values())

    @property
    def skipped(self) -> int:
        return sum(item.skipped for item in self.counts.values())

    @property
    def errors(self) -> int:
        return sum(item.errors for item in self.counts.values())


# ==============================
# Loading & validation
# ==============================

def load_import_file(path) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.suffix.lower() != ".json":
        raise ValueError("Only .json export files are supported.")
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path.name}: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(document, dict):
        raise ValueError("Import file must contain a JSON object")
    return document


def validate_import_document(document) -> ImportValidation:
    if not isinstance(document, dict):
        return ImportValidation(False, "Import file must contain a JSON object")
    data = document.get("data")
    if not isinstance(data, dict):
        return ImportValidation(False, "Import file has no data section")

    validation = ImportValidation(False, "")
    for section in EXPORT_SECTIONS:
        records = data.get(section)
        if records is None:
            continue
        if not isinstance(records, list):
            validation.corrupted_sections.append(section)
            continue
        validation.record_counts[section] = len(records)
        if records:
            validation.available_types.append(section)

    unknown = sorted(set(data) - set(EXPORT_SECTIONS))
    if unknown:
        validation.warnings.append("Ignoring unknown sections: {}".format(", ".join(unknown)))
    if validation.corrupted_sections:
        validation.warnings.append(
            "Corrupted sections: {}".format(", ".join(validation.corrupted_sections))
        )
    validation.checksum_valid = verify_checksum(document)
    if validation.checksum_valid is False:
        validation.warnings.append("Checksum mismatch: the file was modified after export")

    validation.is_valid = bool(validation.available_types)
    if validation.is_valid:
        total = sum(validation.record_counts.values())
        validation.message = "Found {} record(s) in {}".format(
            total, ", ".join(validation.available_types)
        )
    else:
        validation.message = "Import file contains no importable records"
    return validation


def normalize_record(section: str, record: dict) -> dict:
    record = dict(record)
    if section == "stockMovements" and record.get("type") is None:
        record["type"] = record.get("movement_type")
    return record


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integral(value) -> bool:
    return _is_number(value) and float(value).is_integer()


def _coerce_integers(section: str, record: dict) -> dict:
    for name in INTEGER_FIELDS.get(section, ()):
        if record.get(name) is not None:
            record[name] = int(record[name])
    return record


def validate_record(section: str, index: int, record) -> Optional[ImportIssue]:
    if not isinstance(record, dict):
        return ImportIssue(section, index, ERROR_INVALID_DATA_TYPES, "Record is not an object")
    missing = [
        name for name in REQUIRED_FIELDS.get(section, ())
        if record.get(name) is None or record.get(name) == ""
    ]
    if missing:
        return ImportIssue(
            section,
            index,
            ERROR_MISSING_REQUIRED_FIELDS,
            "Missing required fields: {}".format(", ".join(missing)),
        )
    invalid = [
        name for name in NUMERIC_FIELDS.get(section, ())
        if record.get(name) is not None and not _is_number(record.get(name))
    ]
    invalid += [
        name for name in INTEGER_FIELDS.get(section, ())
        if _is_number(record.get(name)) and not _is_integral(record.get(name))
    ]
    invalid += [
        name for name in REFERENCE_FIELDS
        if record.get(name) is not None and not isinstance(record.get(name), str)
    ]
    if "name" in record and record["name"] is not None and not isinstance(record["name"], str):
        invalid.append("name")
    if section == "stockMovements" and record.get("type") not in MOVEMENT_TYPES:
        invalid.append("type")
    if invalid:
        return ImportIssue(
            section,
            index,
            ERROR_INVALID_DATA_TYPES,
            "Invalid values for: {}".format(", ".join(invalid)),
        )
    return None


# ==============================
# Matching
# ==============================

def _find_by_name(db: Session, model, name):
    if not isinstance(name, str) or not name.strip():
        return None
    return (
        db.execute(select(model).where(func.lower(model.name) == name.strip().lower()))
        .unique()
        .scalars()
        .first()
    )


def find_existing_record(db: Session, section: str, record: dict, product_id=None):
    """Return ``(instance, matched_by)`` for the record, or ``(None, None)``.

    Records match by UUID first, then by name, then by an alternate key:
    barcode for products, phone for customers, and product plus minimum
    quantity for bulk pricing tiers.
    """
    model = SECTION_MODELS[section]
    record_id = record.get("id")
    if is_valid_uuid(record_id):
        instance = db.get(model, record_id)
        if instance is not None:
            return instance, "uuid"

    if section in ("products", "customers", "categories", "suppliers", "expenseCategories"):
        instance = _find_by_name(db, model, record.get("name"))
        if instance is not None:
            return instance, "name"

    if section == "products" and record.get("barcode"):
        instance = catalog_service.find_product_by_barcode(db, record["barcode"])
        if instance is not None:
            return instance, "barcode"
    elif section == "customers" and record.get("phone"):
        instance = customer_service.find_customer_by_phone(db, record["phone"])
        if instance is not None:
            return instance, "phone"
    elif section == "bulkPricing":
        product_id = product_id or record.get("product_id")
        instance = db.execute(
            select(BulkPricing).where(
                BulkPricing.product_id == product_id,
                BulkPricing.min_quantity == record.get("min_quantity"),
            )
        ).scalars().first()
        if instance is not None:
            return instance, "tier"
    return None, None


def conflict_message(section: str, record: dict, matched_by: str) -> str:
    label = SECTION_LABELS[section]
    if matched_by == "uuid":
        return f'{label} with id "{record.get("id")}" already exists'
    if matched_by == "tier":
        return (
            f'{label} for minimum quantity "{record.get("min_quantity")}" already exists'
        )
    return f'{label} with {matched_by} "{record.get(matched_by)}" already exists'


def _file_ids(data: dict, section: str) -> set:
    records = data.get(section)
    if not isinstance(records, list):
        return set()
    return {
        record["id"]
        for record in records
        if isinstance(record, dict) and isinstance(record.get("id"), str)
    }


def detect_conflicts(db: Session, document: dict) -> list[ImportConflict]:
    data = document.get("data") or {}
    file_products = _file_ids(data, "products")
    conflicts = []
    for section in IMPORT_ORDER:
        records = data.get(section)
        if not isinstance(records, list):
            continue
        for index, raw in enumerate(records):
            record = normalize_record(section, raw) if isinstance(raw, dict) else raw
            if validate_record(section, index, record) is not None:
                continue
            instance, matched_by = find_existing_record(db, section, record)
            if instance is not None:
                conflicts.append(
                    ImportConflict(
                        record_type=section,
                        index=index,
                        conflict_type="duplicate",
                        message=conflict_message(section, record, matched_by),
                        existing_id=instance.id,
                        matched_by=matched_by,
                        record=record,
                    )
                )
                continue
            for product_id in _referenced_products(section, record):
                if product_id in file_products or db.get(Product, product_id) is not None:
                    continue
                conflicts.append(
                    ImportConflict(
                        record_type=section,
                        index=index,
                        conflict_type="reference_missing",
                        message=f'Referenced product "{product_id}" does not exist',
                        record=record,
                    )
                )
    return conflicts


def _referenced_products(section: str, record: dict) -> list:
    if section in ("bulkPricing", "stockMovements"):
        return [record.get("product_id")]
    if section == "sales" and isinstance(record.get("items"), list):
        return [
            item.get("product_id")
            for item in record.get("items") or []
            if isinstance(item, dict) and isinstance(item.get("product_id"), str)
        ]
    return []


# ==============================
# Import
# ==============================

class _SectionError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code


class _Importer:
    def __init__(self, db: Session, options: ImportOptions, data: dict):
        self.db = db
        self.options = options
        self.data = data
        self.result = ImportResult(success=True, message="", dry_run=options.dry_run)
        self.id_map: dict[str, dict] = {section: {} for section in IMPORT_ORDER}
        self._items_by_sale = self._group_sale_items(data.get("saleItems"))
        self._processed = 0

    @staticmethod
    def _group_sale_items(records):
        grouped = {}
        if isinstance(records, list):
            for record in records:
                if isinstance(record, dict) and isinstance(record.get("sale_id"), str):
                    grouped.setdefault(record["sale_id"], []).append(record)
        return grouped

    def mapped(self, section, value):
        if value is None:
            return None
        return self.id_map[section].get(value, value)

    def run(self) -> ImportResult:
        for section in IMPORT_ORDER:
            records = self.data.get(section)
            if not isinstance(records, list) or not records:
                continue
            self.result.counts[section] = TypeCounts()
            for index, raw in enumerate(records):
                self._process(section, index, raw)
            logger.info("Imported section %s: %s", section, self.result.counts[section])
        return self.result

    def _process(self, section, index, raw):
        counts = self.result.counts[section]
        record = normalize_record(section, raw) if isinstance(raw, dict) else raw
        issue = validate_record(section, index, record)
        if issue is not None:
            counts.skipped += 1
            self.result.issues.append(issue)
            return

        record = _coerce_integers(section, record)

        # Each record gets a savepoint: a failure undoes the categories and
        # suppliers it created along the way, and the records before it stay.
        try:
            with self.db.begin_nested():
                instance, outcome = self._apply(section, index, record)
                self.db.flush()
        except _SectionError as exc:
            self._fail(section, index, exc.code, exc)
            return
        except (ValueError, LookupError, SQLAlchemyError) as exc:
            self._fail(section, index, ERROR_PROCESSING, exc)
            return

        setattr(counts, outcome, getattr(counts, outcome) + 1)
        if record.get("id"):
            self.id_map[section][record["id"]] = instance.id
        self._processed += 1
        if self._processed % self.options.batch_size == 0:
            logger.info(
                "Import progress: %d record(s) processed",
                self._processed,
                extra={"section": section},
            )

    def _apply(self, section, index, record):
        """Insert or update one record; returns ``(instance, count field)``."""
        product_id = None
        if section == "bulkPricing":
            product_id = self.mapped("products", record.get("product_id"))
        instance, matched_by = find_existing_record(self.db, section, record, product_id)
        if instance is None:
            return getattr(self, f"_insert_{section}")(record), "imported"

        self.result.conflicts.append(
            ImportConflict(
                record_type=section,
                index=index,
                conflict_type="duplicate",
                message=conflict_message(section, record, matched_by),
                existing_id=instance.id,
                matched_by=matched_by,
            )
        )
        if self.options.conflict_resolution == CONFLICT_SKIP or section in _INSERT_ONLY_SECTIONS:
            return instance, "skipped"
        getattr(self, f"_update_{section}")(instance, record)
        return instance, "updated"

    def _fail(self, section, index, code, exc):
        self.result.counts[section].errors += 1
        self.result.issues.append(ImportIssue(section, index, code, str(exc)))
        logger.warning("Import %s[%d] failed: %s", section, index, exc)

    @staticmethod
    def _new_id(record):
        record_id = record.get("id")
        return record_id if is_valid_uuid(record_id) else None

    # categories -------------------------------------------------------

    def _insert_categories(self, record):
        return catalog_service.create_category(
            self.db,
            {
                "id": self._new_id(record),
                "name": record["name"],
                "description": record.get("description"),
            },
            commit=False,
        )

    def _update_categories(self, instance, record):
        self._rename(instance, record, catalog_service.find_category_by_name)

    def _rename(self, instance, record, find_by_name):
        name = record["name"].strip()
        other = find_by_name(self.db, name)
        if other is None or other.id == instance.id:
            instance.name = name
        if "description" in record:
            instance.description = record.get("description")

    # suppliers --------------------------------------------------------

    _SUPPLIER_FIELDS = ("contact_name", "phone", "email", "address")

    def _insert_suppliers(self, record):
        values = {key: record.get(key) for key in self._SUPPLIER_FIELDS}
        values.update(id=self._new_id(record), name=record["name"])
        return catalog_service.create_supplier(self.db, values, commit=False)

    def _update_suppliers(self, instance, record):
        instance.name = record["name"].strip()
        for key in self._SUPPLIER_FIELDS:
            if key in record:
                setattr(instance, key, record.get(key))

    # products ---------------------------------------------------------

    def _resolve_category(self, record):
        category_id = self.mapped("categories", record.get("category_id"))
        if category_id and self.db.get(Category, category_id) is not None:
            return category_id
        name = record.get("category") or record.get("category_name")
        if isinstance(name, str) and name.strip():
            return catalog_service.get_or_create_category(self.db, name.strip()).id
        return None

    def _default_category(self, record):
        category = catalog_service.get_default_category(self.db)
        logger.warning(
            'Product "%s" has no usable category; using "%s"', record.get("name"), category.name
        )
        return category.id

    def _resolve_supplier(self, record):
        supplier_id = self.mapped("suppliers", record.get("supplier_id"))
        if supplier_id and self.db.get(Supplier, supplier_id) is not None:
            return supplier_id
        name = record.get("supplier") or record.get("supplier_name")
        if isinstance(name, str) and name.strip():
            supplier = catalog_service.find_supplier_by_name(self.db, name)
            if supplier is None:
                supplier = catalog_service.create_supplier(
                    self.db, {"name": name.strip()}, commit=False
                )
            return supplier.id
        return None

    def _product_values(self, record):
        values = {"name": record["name"], "price": record["price"], "cost": record["cost"]}
        category_id = self._resolve_category(record)
        if category_id:
            values["category_id"] = category_id
        supplier_id = self._resolve_supplier(record)
        if supplier_id:
            values["supplier_id"] = supplier_id
        for key in ("barcode", "quantity", "min_stock"):
            if record.get(key) is not None:
                values[key] = record[key]
        return values

    def _insert_products(self, record):
        values = self._product_values(record)
        if "category_id" not in values:
            values["category_id"] = self._default_category(record)
        values["id"] = self._new_id(record)
        return catalog_service.create_product(self.db, values, commit=False)

    def _update_products(self, instance, record):
        catalog_service.update_product(
            self.db, instance.id, self._product_values(record), commit=False
        )

    # customers --------------------------------------------------------

    _CUSTOMER_FIELDS = ("phone", "email", "address", "total_spent", "visit_count")

    def _insert_customers(self, record):
        values = {key: record.get(key) for key in self._CUSTOMER_FIELDS}
        values.update(id=self._new_id(record), name=record["name"])
        return customer_service.create_customer(self.db, values, commit=False)

    def _update_customers(self, instance, record):
        values = {key: record[key] for key in ("name", "phone", "email", "address") if key in record}
        customer_service.update_customer(self.db, instance.id, values, commit=False)

    # expenses ---------------------------------------------------------

    def _insert_expenseCategories(self, record):
        return expense_service.create_expense_category(
            self.db,
            {
                "id": self._new_id(record),
                "name": record["name"],
                "description": record.get("description"),
            },
            commit=False,
        )

    def _update_expenseCategories(self, instance, record):
        self._rename(instance, record, expense_service.find_expense_category_by_name)

    def _resolve_expense_category(self, record):
        category_id = self.mapped("expenseCategories", record.get("category_id"))
        if category_id and self.db.get(ExpenseCategory, category_id) is not None:
            return category_id
        name = record.get("category") or record.get("category_name")
        if not isinstance(name, str):
            name = None
        return expense_service.get_or_create_expense_category(self.db, name).id

    def _expense_values(self, record):
        values = {
            "category_id": self._resolve_expense_category(record),
            "amount": record["amount"],
            "description": record["description"],
        }
        if record.get("date") is not None:
            values["date"] = record["date"]
        return values

    def _insert_expenses(self, record):
        values = self._expense_values(record)
        values["id"] = self._new_id(record)
        return expense_service.create_expense(self.db, values, commit=False)

    def _update_expenses(self, instance, record):
        expense_service.update_expense(
            self.db, instance.id, self._expense_values(record), commit=False
        )

    # sales ------------------------------------------------------------

    def _require_product(self, product_id):
        product_id = self.mapped("products", product_id)
        product = self.db.get(Product, product_id) if product_id else None
        if product is None:
            raise _SectionError(
                ERROR_MISSING_REFERENCE, f'Referenced product "{product_id}" does not exist'
            )
        return product

    def _insert_sales(self, record):
        items = record.get("items")
        if not items:
            items = self._items_by_sale.get(record.get("id"), [])
        if not isinstance(items, list):
            raise _SectionError(ERROR_INVALID_DATA_TYPES, "items must be a list")
        sale_items = []
        for position, item in enumerate(items):
            issue = validate_record("saleItems", position, item)
            if issue is not None:
                raise _SectionError(issue.code, f"Item {position}: {issue.message}")
            product = self._require_product(item["product_id"])
            quantity = int(item["quantity"])
            if quantity <= 0:
                raise ValueError(f"Item {position}: quantity must be greater than 0")
            discount = item.get("discount") or 0.0
            subtotal = item.get("subtotal")
            if subtotal is None:
                subtotal = item["price"] * quantity - discount
            sale_items.append(
                SaleItem(
                    product_id=product.id,
                    quantity=quantity,
                    price=item["price"],
                    original_price=item.get("original_price", item["price"]),
                    bulk_discount=item.get("bulk_discount") or 0.0,
                    cost=item.get("cost") if item.get("cost") is not None else product.cost,
                    discount=discount,
                    subtotal=subtotal,
                )
            )

        customer_id = self.mapped("customers", record.get("customer_id"))
        if customer_id and self.db.get(Customer, customer_id) is None:
            logger.warning("Sale %s references unknown customer %s", record.get("id"), customer_id)
            customer_id = None
        sale = Sale(
            total=record["total"],
            payment_method=record["payment_method"],
            note=record.get("note"),
            customer_id=customer_id,
            created_at=parse_datetime(record.get("created_at")) or utc_now(),
        )
        new_id = self._new_id(record)
        if new_id:
            sale.id = new_id
        sale.items.extend(sale_items)
        self.db.add(sale)
        return sale

    # bulk pricing -----------------------------------------------------

    def _insert_bulkPricing(self, record):
        product = self._require_product(record["product_id"])
        tier = PriceTier(record["min_quantity"], float(record["bulk_price"]))
        errors = validate_bulk_tiers(
            product.price, [*catalog_service.product_tiers(product), tier]
        )
        if errors:
            raise ValueError("; ".join(errors))
        instance = BulkPricing(
            product_id=product.id,
            min_quantity=tier.min_quantity,
            bulk_price=tier.bulk_price,
        )
        new_id = self._new_id(record)
        if new_id:
            instance.id = new_id
        product.bulk_pricing.append(instance)
        return instance

    def _update_bulkPricing(self, instance, record):
        product = self._require_product(instance.product_id)
        others = [tier for tier in catalog_service.product_tiers(product) if tier.id != instance.id]
        tier = PriceTier(instance.min_quantity, float(record["bulk_price"]))
        errors = validate_bulk_tiers(product.price, [*others, tier])
        if errors:
            raise ValueError("; ".join(errors))
        instance.bulk_price = tier.bulk_price

    # stock movements --------------------------------------------------

    def _insert_stockMovements(self, record):
        product = self._require_product(record["product_id"])
        supplier_id = self.mapped("suppliers", record.get("supplier_id"))
        if supplier_id and self.db.get(Supplier, supplier_id) is None:
            supplier_id = None
        if record["quantity"] <= 0:
            raise ValueError("quantity must be greater than 0")
        movement = StockMovement(
            product_id=product.id,
            type=record["type"],
            quantity=record["quantity"],
            reason=record.get("reason"),
            supplier_id=supplier_id,
            reference_number=record.get("reference_number"),
            unit_cost=record.get("unit_cost"),
            created_at=parse_datetime(record.get("created_at")) or utc_now(),
        )
        new_id = self._new_id(record)
        if new_id:
            movement.id = new_id
        self.db.add(movement)
        return movement


def import_document(db: Session, document, options: Optional[ImportOptions] = None) -> ImportResult:
    options = options or ImportOptions()
    validation = validate_import_document(document)
    if not validation.is_valid:
        return ImportResult(success=False, message=validation.message, dry_run=options.dry_run)

    if options.conflict_resolution == CONFLICT_ASK:
        conflicts = [
            conflict for conflict in detect_conflicts(db, document)
            if conflict.conflict_type == "duplicate"
        ]
        if conflicts:
            return ImportResult(
                success=False,
                message=f"{len(conflicts)} conflict(s) need a resolution before importing",
                conflicts=conflicts,
                dry_run=options.dry_run,
            )

    importer = _Importer(db, options, document["data"])
    try:
        result = importer.run()
        if options.dry_run:
            db.rollback()
        else:
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    result.message = (
        f"Imported {result.imported}, updated {result.updated}, "
        f"skipped {result.skipped}, errors {result.errors}"
    )
    if validation.warnings:
        result.message += " ({})".format("; ".join(validation.warnings))
    logger.info("Import finished%s: %s", " (dry run)" if options.dry_run else "", result.message)
    return result


def preview_import(db: Session, document) -> dict:
    validation = validate_import_document(document)
    preview = {
        "validation": validation,
        "record_counts": validation.record_counts,
        "sample_data": {},
        "conflicts": [],
    }
    if not validation.is_valid:
        return preview
    data = document["data"]
    for section in validation.available_types:
        preview["sample_data"][section] = data[section][:_SAMPLE_SIZE]
    preview["conflicts"] = detect_conflicts(db, document)
    return preview


def generate_import_summary(result: ImportResult) -> str:
    if result.success:
        heading = "Import completed (dry run)" if result.dry_run else "Import completed"
    else:
        heading = f"Import failed: {result.message}"
    lines = [
        heading,
        f"Imported: {result.imported}",
        f"Updated: {result.updated}",
        f"Skipped: {result.skipped}",
        f"Errors: {result.errors}",
    ]
    for section, counts in result.counts.items():
        lines.append(
            f"  {section}: {counts.imported} imported, {counts.updated} updated, "
            f"{counts.skipped} skipped, {counts.errors} errors"
        )
    if result.conflicts:
        lines.append(f"Conflicts: {len(result.conflicts)}")
        if not result.success:
            for conflict in result.conflicts[:_SUMMARY_ISSUE_LIMIT]:
                lines.append(f"  - {conflict.message}")
    if result.issues:
        lines.append("Issues:")
        for issue in result.issues[:_SUMMARY_ISSUE_LIMIT]:
            lines.append(f"  - {issue.record_type}[{issue.index}] {issue.code}: {issue.message}")
        remaining = len(result.issues) - _SUMMARY_ISSUE_LIMIT
        if remaining > 0:
            lines.append(f"  ... and {remaining} more")
    return "\n".join(lines)


def import_file(path, options: Optional[ImportOptions] = None) -> ImportResult:
    document = load_import_file(path)
    init_db()
    db = SessionLocal()
    try:
        return import_document(db, document, options)
    finally:
        db.close()


def options_from_settings() -> ImportOptions:
    settings = get_settings()
    return ImportOptions(
        conflict_resolution=settings.IMPORT_CONFLICT_RESOLUTION,
        batch_size=settings.IMPORT_BATCH_SIZE,
    )


def ensure_import_dir(path):
    import_dir = Path(path)
    import_dir.mkdir(parents=True, exist_ok=True)
    return import_dir


class ImportWatchService:
    """Imports export files dropped into ``watch_dir``.

    A file is read once its ``(mtime, size)`` signature holds still for one
    poll. That signature is then settled whatever the outcome, so a file
    that failed is only read again after it changes. Documents whose
    integrity checksum was already imported are skipped, which makes a
    re-saved copy of the same export a no-op.
    """

    def __init__(
        self,
        watch_dir,
        poll_seconds=10,
        options: Optional[ImportOptions] = None,
        session_factory=SessionLocal,
    ):
        self.watch_dir = Path(watch_dir)
        self.poll_seconds = max(2, int(poll_seconds))
        self.options = options or ImportOptions()
        self.session_factory = session_factory
        self._stop_event = threading.Event()
        self._thread = None
        self._lock = threading.Lock()
        self._pending: dict[Path, tuple] = {}
        self._settled: dict[Path, tuple] = {}
        self._checksums: set[str] = set()

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        ensure_import_dir(self.watch_dir)
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="pos-auto-import",
            daemon=True,
        )
        self._thread.start()
        logger.info("Auto-import watching: %s", self.watch_dir)

    def stop(self):
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=self.poll_seconds + 1)
        self._thread = None
        logger.info("Auto-import stopped")

    def _run(self):
        while not self._stop_event.is_set():
            self.scan_once()
            self._stop_event.wait(self.poll_seconds)

    def scan_once(self) -> list[Path]:
        """Import every settled file once; returns the paths imported."""
        imported = []
        if not self.watch_dir.exists():
            return imported
        with self._lock:
            for file_path in sorted(self.watch_dir.glob("*.json")):
                signature = self._stable_signature(file_path)
                if signature is None:
                    continue
                self._settled[file_path] = signature
                if self._import(file_path):
                    imported.append(file_path)
        return imported

    def _stable_signature(self, file_path):
        if not file_path.is_file():
            return None
        try:
            stat = file_path.stat()
        except OSError:
            return None
        signature = (stat.st_mtime_ns, stat.st_size)
        if self._settled.get(file_path) == signature:
            return None
        previous = self._pending.get(file_path)
        self._pending[file_path] = signature
        return signature if previous == signature else None

    @staticmethod
    def _checksum(document):
        if verify_checksum(document) is not True:
            return None
        return document["integrity"]["checksum"]

    def _import(self, file_path) -> bool:
        try:
            document = load_import_file(file_path)
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read %s, waiting for it to change: %s", file_path.name, exc)
            return False

        checksum = self._checksum(document)
        if checksum is not None and checksum in self._checksums:
            logger.info("Skipping %s: export %s already imported", file_path.name, checksum[:12])
            return False

        db = self.session_factory()
        try:
            result = import_document(db, document, self.options)
        except SQLAlchemyError:
            logger.exception("Import of %s failed", file_path.name)
            return False
        finally:
            db.close()

        if not result.success:
            logger.warning("Import of %s rejected: %s", file_path.name, result.message)
            return False
        if checksum is not None:
            self._checksums.add(checksum)
        logger.info("Imported %s: %s", file_path.name, result.message)
        return True


__all__ = [
    "ImportConflict",
    "ImportIssue",
    "ImportOptions",
    "ImportResult",
    "ImportValidation",
    "ImportWatchService",
    "TypeCounts",
    "detect_conflicts",
    "find_existing_record",
    "generate_import_summary",
    "import_document",
    "import_file",
    "load_import_file",
    "options_from_settings",
    "preview_import",
    "validate_import_document",
    "validate_record",
]
