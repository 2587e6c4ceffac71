from pos.services.export_service import build_export_document, export_to_file
from pos.services.import_service import ImportWatchService, import_document, import_file
from pos.services.pricing_service import Cart, calculate_bulk_price
from pos.services.sales_service import record_sale

__all__ = [
    "Cart",
    "ImportWatchService",
    "build_export_document",
    "calculate_bulk_price",
    "export_to_file",
    "import_document",
    "import_file",
    "record_sale",
]
