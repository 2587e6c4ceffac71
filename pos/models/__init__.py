from pos.models.bulk_pricing import BulkPricing
from pos.models.category import Category
from pos.models.customer import Customer
from pos.models.expense import Expense, ExpenseCategory
from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.models.stock_movement import StockMovement
from pos.models.supplier import Supplier

__all__ = [
    "BulkPricing",
    "Category",
    "Customer",
    "Expense",
    "ExpenseCategory",
    "Product",
    "Sale",
    "SaleItem",
    "StockMovement",
    "Supplier",
]
