from pathlib import Path


POS_DIR = Path(__file__).resolve().parents[1]
PROJECT_ROOT = POS_DIR.parent

STOCK_IN = "stock_in"
STOCK_OUT = "stock_out"
MOVEMENT_TYPES = (STOCK_IN, STOCK_OUT)

EXPORT_VERSION = "2.0"
EXPORT_DATA_TYPE = "all"

# Dependency order: referenced records are imported before their dependants.
IMPORT_ORDER = (
    "categories",
    "suppliers",
    "products",
    "customers",
    "expenseCategories",
    "sales",
    "expenses",
    "bulkPricing",
    "stockMovements",
)
EXPORT_SECTIONS = IMPORT_ORDER[:6] + ("saleItems",) + IMPORT_ORDER[6:]

# Sections written for each export data type.
EXPORT_DATA_TYPES = {
    EXPORT_DATA_TYPE: EXPORT_SECTIONS,
    "products": ("categories", "suppliers", "products", "bulkPricing"),
    "customers": ("customers",),
    "sales": ("customers", "sales", "saleItems"),
    "expenses": ("expenseCategories", "expenses"),
    "stockMovements": ("stockMovements",),
}

CONFLICT_UPDATE = "update"
CONFLICT_SKIP = "skip"
CONFLICT_ASK = "ask"
CONFLICT_RESOLUTIONS = (CONFLICT_UPDATE, CONFLICT_SKIP, CONFLICT_ASK)

ERROR_MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
ERROR_INVALID_DATA_TYPES = "INVALID_DATA_TYPES"
ERROR_MISSING_REFERENCE = "MISSING_REFERENCE"
ERROR_PROCESSING = "PROCESSING_ERROR"

# Fields a record must carry to survive export sanitising and import validation.
REQUIRED_FIELDS = {
    "products": ("name", "price", "cost"),
    "sales": ("total", "payment_method"),
    "customers": ("name",),
    "categories": ("name",),
    "suppliers": ("name",),
    "expenseCategories": ("name",),
    "expenses": ("amount", "description"),
    "stockMovements": ("product_id", "type", "quantity"),
    "bulkPricing": ("product_id", "min_quantity", "bulk_price"),
    "saleItems": ("product_id", "quantity", "price"),
}

NUMERIC_FIELDS = {
    "products": ("price", "cost", "quantity", "min_stock"),
    "sales": ("total",),
    "customers": ("total_spent", "visit_count"),
    "expenses": ("amount",),
    "stockMovements": ("quantity", "unit_cost"),
    "bulkPricing": ("min_quantity", "bulk_price"),
    "saleItems": ("quantity", "price", "cost", "discount", "subtotal"),
}

# Numeric fields stored as integers; fractional values are rejected.
INTEGER_FIELDS = {
    "products": ("quantity", "min_stock"),
    "customers": ("visit_count",),
    "stockMovements": ("quantity",),
    "bulkPricing": ("min_quantity",),
    "saleItems": ("quantity",),
}

# Identifier fields; when present they must be strings.
REFERENCE_FIELDS = (
    "id",
    "product_id",
    "category_id",
    "supplier_id",
    "customer_id",
    "sale_id",
)
