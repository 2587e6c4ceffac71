import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.config import get_settings
from pos.core.errors import RecordNotFoundError
from pos.models.bulk_pricing import BulkPricing
from pos.models.category import Category
from pos.models.product import Product
from pos.models.sale import SaleItem
from pos.models.supplier import Supplier
from pos.services.pricing_service import PriceTier, bulk_pricing_summary, validate_bulk_tiers

logger = logging.getLogger(__name__)

_PRODUCT_FIELDS = (
    "name",
    "barcode",
    "category_id",
    "supplier_id",
    "price",
    "cost",
    "quantity",
    "min_stock",
    "image_url",
)
_SUPPLIER_FIELDS = ("name", "contact_name", "phone", "email", "address")
_CATEGORY_FIELDS = ("name", "description")


def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _clean_name(value, field="name"):
    if value is None or not str(value).strip():
        raise ValueError(f"{field} is required")
    return str(value).strip()


def _apply_fields(instance, values, fields):
    for key in fields:
        if key in values:
            setattr(instance, key, values[key])


# ==============================
# Categories
# ==============================

def list_categories(db: Session) -> list[Category]:
    return list(db.execute(select(Category).order_by(Category.name)).scalars().all())


def get_category(db: Session, category_id) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise RecordNotFoundError("Category", category_id)
    return category


def find_category_by_name(db: Session, name) -> Optional[Category]:
    if not name:
        return None
    return (
        db.execute(
            select(Category).where(func.lower(Category.name) == str(name).strip().lower())
        )
        .scalars()
        .first()
    )


def _ensure_unique_category_name(db: Session, name, exclude_id=None):
    existing = find_category_by_name(db, name)
    if existing is not None and existing.id != exclude_id:
        raise ValueError(f'Category "{name}" already exists')


def create_category(db: Session, values: dict, *, commit=True) -> Category:
    name = _clean_name(values.get("name"))
    _ensure_unique_category_name(db, name)
    category = Category(name=name, description=values.get("description"))
    if values.get("id"):
        category.id = values["id"]
    db.add(category)
    if commit:
        _commit(db)
    else:
        db.flush()
    return category


def update_category(db: Session, category_id, values: dict) -> Category:
    category = get_category(db, category_id)
    if "name" in values:
        values = dict(values, name=_clean_name(values["name"]))
        _ensure_unique_category_name(db, values["name"], exclude_id=category.id)
    _apply_fields(category, values, _CATEGORY_FIELDS)
    _commit(db)
    return category


def delete_category(db: Session, category_id) -> None:
    category = get_category(db, category_id)
    in_use = db.execute(
        select(func.count(Product.id)).where(Product.category_id == category.id)
    ).scalar_one()
    if in_use:
        raise ValueError(
            f"Cannot delete category: {in_use} product(s) are using this category"
        )
    db.delete(category)
    _commit(db)


def get_or_create_category(db: Session, name) -> Category:
    category = find_category_by_name(db, name)
    if category is not None:
        return category
    logger.info("Creating category %s", name)
    return create_category(db, {"name": name}, commit=False)


def get_default_category(db: Session) -> Category:
    """First existing category, or the configured fallback created on demand."""
    category = db.execute(select(Category).order_by(Category.created_at)).scalars().first()
    if category is not None:
        return category
    return get_or_create_category(db, get_settings().DEFAULT_CATEGORY_NAME)


# ==============================
# Suppliers
# ==============================

def list_suppliers(db: Session, search=None, limit=None, offset=0) -> list[Supplier]:
    stmt = select(Supplier).order_by(Supplier.name)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Supplier.name.ilike(pattern),
                Supplier.contact_name.ilike(pattern),
                Supplier.phone.ilike(pattern),
            )
        )
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def get_supplier(db: Session, supplier_id) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if supplier is None:
        raise RecordNotFoundError("Supplier", supplier_id)
    return supplier


def find_supplier_by_name(db: Session, name) -> Optional[Supplier]:
    if not name:
        return None
    return (
        db.execute(
            select(Supplier).where(func.lower(Supplier.name) == str(name).strip().lower())
        )
        .scalars()
        .first()
    )


def create_supplier(db: Session, values: dict, *, commit=True) -> Supplier:
    values = dict(values, name=_clean_name(values.get("name")))
    supplier = Supplier()
    _apply_fields(supplier, values, _SUPPLIER_FIELDS)
    if values.get("id"):
        supplier.id = values["id"]
    db.add(supplier)
    if commit:
        _commit(db)
    else:
        db.flush()
    return supplier


def update_supplier(db: Session, supplier_id, values: dict) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    if "name" in values:
        values = dict(values, name=_clean_name(values["name"]))
    _apply_fields(supplier, values, _SUPPLIER_FIELDS)
    _commit(db)
    return supplier


def delete_supplier(db: Session, supplier_id) -> None:
    supplier = get_supplier(db, supplier_id)
    in_use = db.execute(
        select(func.count(Product.id)).where(Product.supplier_id == supplier.id)
    ).scalar_one()
    if in_use:
        raise ValueError(
            f"Cannot delete supplier: {in_use} product(s) are linked to this supplier"
        )
    db.delete(supplier)
    _commit(db)


def list_supplier_products(db: Session, supplier_id) -> list[Product]:
    get_supplier(db, supplier_id)
    return list(
        db.execute(
            select(Product).where(Product.supplier_id == supplier_id).order_by(Product.name)
        )
        .scalars()
        .all()
    )


# ==============================
# Products
# ==============================

def list_products(
    db: Session,
    search=None,
    category_id=None,
    supplier_id=None,
    limit=None,
    offset=0,
) -> list[Product]:
    stmt = select(Product).order_by(Product.name)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(pattern), Product.barcode.ilike(pattern)))
    if category_id:
        stmt = stmt.where(Product.category_id == category_id)
    if supplier_id:
        stmt = stmt.where(Product.supplier_id == supplier_id)
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).unique().scalars().all())


def get_product(db: Session, product_id) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise RecordNotFoundError("Product", product_id)
    return product


def find_product_by_barcode(db: Session, barcode) -> Optional[Product]:
    if not barcode:
        return None
    return (
        db.execute(select(Product).where(Product.barcode == str(barcode).strip()))
        .unique()
        .scalars()
        .first()
    )


def list_low_stock_products(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.quantity <= Product.min_stock)
            .order_by(Product.quantity, Product.name)
        )
        .unique()
        .scalars()
        .all()
    )


def is_low_stock(product: Product) -> bool:
    return (product.quantity or 0) <= (product.min_stock or 0)


def _validate_product_values(db: Session, values: dict):
    for field in ("price", "cost"):
        if field in values and (values[field] is None or values[field] < 0):
            raise ValueError(f"{field} must be non-negative")
    if "quantity" in values and (values["quantity"] is None or values["quantity"] < 0):
        raise ValueError("quantity must be non-negative")
    if "category_id" in values:
        get_category(db, values["category_id"])
    if values.get("supplier_id"):
        get_supplier(db, values["supplier_id"])
    barcode = values.get("barcode")
    if barcode is not None:
        values["barcode"] = str(barcode).strip() or None


def create_product(db: Session, values: dict, *, commit=True) -> Product:
    values = dict(values)
    values["name"] = _clean_name(values.get("name"))
    for field in ("category_id", "price", "cost"):
        if values.get(field) is None:
            raise ValueError(f"{field} is required")
    _validate_product_values(db, values)
    if values.get("min_stock") is None:
        values["min_stock"] = get_settings().DEFAULT_MIN_STOCK
    if values.get("quantity") is None:
        values["quantity"] = 0

    product = Product()
    _apply_fields(product, values, _PRODUCT_FIELDS)
    if values.get("id"):
        product.id = values["id"]
    db.add(product)
    db.flush()

    tiers = values.get("bulk_pricing") or []
    if tiers:
        _replace_tiers(db, product, tiers)
    if commit:
        _commit(db)
    return product


def update_product(db: Session, product_id, values: dict, *, commit=True) -> Product:
    product = get_product(db, product_id)
    values = dict(values)
    if "name" in values:
        values["name"] = _clean_name(values["name"])
    _validate_product_values(db, values)
    if "price" in values and product.bulk_pricing:
        tiers = [_to_tier(tier) for tier in product.bulk_pricing]
        errors = validate_bulk_tiers(values["price"], tiers)
        if errors:
            raise ValueError("; ".join(errors))
    _apply_fields(product, values, _PRODUCT_FIELDS)
    if commit:
        _commit(db)
    return product


def delete_product(db: Session, product_id) -> None:
    product = get_product(db, product_id)
    sold = db.execute(
        select(func.count(SaleItem.id)).where(SaleItem.product_id == product.id)
    ).scalar_one()
    if sold:
        raise ValueError("Cannot delete product: it appears in recorded sales")
    db.delete(product)
    _commit(db)


# ==============================
# Bulk pricing
# ==============================

def _to_tier(value) -> PriceTier:
    if isinstance(value, PriceTier):
        return value
    if isinstance(value, dict):
        return PriceTier(
            min_quantity=int(value["min_quantity"]),
            bulk_price=float(value["bulk_price"]),
            id=value.get("id"),
        )
    return PriceTier(
        min_quantity=value.min_quantity,
        bulk_price=value.bulk_price,
        id=getattr(value, "id", None),
    )


def product_tiers(product: Product) -> tuple[PriceTier, ...]:
    return tuple(_to_tier(tier) for tier in product.bulk_pricing)


def product_pricing_summary(product: Product) -> str:
    return bulk_pricing_summary(product.price, product_tiers(product))


def list_bulk_pricing(db: Session, product_id) -> list[BulkPricing]:
    get_product(db, product_id)
    return list(
        db.execute(
            select(BulkPricing)
            .where(BulkPricing.product_id == product_id)
            .order_by(BulkPricing.min_quantity)
        )
        .scalars()
        .all()
    )


def add_bulk_tier(db: Session, product_id, values: dict) -> BulkPricing:
    product = get_product(db, product_id)
    tier = _to_tier(values)
    errors = validate_bulk_tiers(product.price, [*product_tiers(product), tier])
    if errors:
        raise ValueError("; ".join(errors))
    record = BulkPricing(
        product_id=product.id,
        min_quantity=tier.min_quantity,
        bulk_price=tier.bulk_price,
    )
    product.bulk_pricing.append(record)
    _commit(db)
    return record


def update_bulk_tier(db: Session, tier_id, values: dict) -> BulkPricing:
    record = db.get(BulkPricing, tier_id)
    if record is None:
        raise RecordNotFoundError("Bulk pricing tier", tier_id)
    product = get_product(db, record.product_id)
    min_quantity = values.get("min_quantity")
    bulk_price = values.get("bulk_price")
    updated = PriceTier(
        min_quantity=int(min_quantity) if min_quantity is not None else record.min_quantity,
        bulk_price=float(bulk_price) if bulk_price is not None else record.bulk_price,
    )
    others = [tier for tier in product_tiers(product) if tier.id != record.id]
    errors = validate_bulk_tiers(product.price, [*others, updated])
    if errors:
        raise ValueError("; ".join(errors))
    record.min_quantity = updated.min_quantity
    record.bulk_price = updated.bulk_price
    _commit(db)
    return record


def delete_bulk_tier(db: Session, tier_id) -> None:
    record = db.get(BulkPricing, tier_id)
    if record is None:
        raise RecordNotFoundError("Bulk pricing tier", tier_id)
    db.delete(record)
    _commit(db)


def _replace_tiers(db: Session, product: Product, tiers) -> list[BulkPricing]:
    tiers = [_to_tier(tier) for tier in tiers]
    errors = validate_bulk_tiers(product.price, tiers)
    if errors:
        raise ValueError("; ".join(errors))
    product.bulk_pricing.clear()
    db.flush()
    for tier in sorted(tiers, key=lambda item: item.min_quantity):
        product.bulk_pricing.append(
            BulkPricing(min_quantity=tier.min_quantity, bulk_price=tier.bulk_price)
        )
    db.flush()
    return list(product.bulk_pricing)


def replace_bulk_tiers(db: Session, product_id, tiers) -> list[BulkPricing]:
    product = get_product(db, product_id)
    records = _replace_tiers(db, product, tiers)
    _commit(db)
    return records


__all__ = [
    "add_bulk_tier",
    "create_category",
    "create_product",
    "create_supplier",
    "delete_bulk_tier",
    "delete_category",
    "delete_product",
    "delete_supplier",
    "find_category_by_name",
    "find_product_by_barcode",
    "find_supplier_by_name",
    "get_category",
    "get_default_category",
    "get_or_create_category",
    "get_product",
    "get_supplier",
    "is_low_stock",
    "list_bulk_pricing",
    "list_categories",
    "list_low_stock_products",
    "list_products",
    "list_supplier_products",
    "list_suppliers",
    "product_pricing_summary",
    "product_tiers",
    "replace_bulk_tiers",
    "update_bulk_tier",
    "update_category",
    "update_product",
    "update_supplier",
]
