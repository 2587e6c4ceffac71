import argparse
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running this script directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sqlalchemy import delete, select

from pos.core.constants import STOCK_IN
from pos.core.logging import setup_logging
from pos.database import SessionLocal, init_db
from pos.models import (
    BulkPricing,
    Category,
    Customer,
    Expense,
    ExpenseCategory,
    Product,
    Sale,
    SaleItem,
    StockMovement,
    Supplier,
)
from pos.services.catalog_service import create_category, create_product, create_supplier
from pos.services.customer_service import create_customer
from pos.services.expense_service import create_expense_category
from pos.services.stock_service import add_stock_movement


def parse_args():
    parser = argparse.ArgumentParser(description="Seed sample shop data.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear existing data before seeding.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    init_db()

    db = SessionLocal()
    try:
        if args.reset:
            for model in (
                SaleItem,
                Sale,
                StockMovement,
                BulkPricing,
                Product,
                Customer,
                Supplier,
                Category,
                Expense,
                ExpenseCategory,
            ):
                db.execute(delete(model))
            db.commit()

        has_product = db.execute(select(Product.id).limit(1)).first()
        if has_product:
            print("Seed skipped: products already exist.")
            return

        drinks = create_category(db, {"name": "Drinks"})
        snacks = create_category(db, {"name": "Snacks"})
        supplier = create_supplier(
            db,
            {"name": "Golden Valley Trading", "contact_name": "U Aung", "phone": "09-450001122"},
        )

        water = create_product(
            db,
            {
                "name": "Drinking Water 1L",
                "barcode": "8830000000011",
                "category_id": drinks.id,
                "supplier_id": supplier.id,
                "price": 500,
                "cost": 300,
                "bulk_pricing": [
                    {"min_quantity": 12, "bulk_price": 450},
                    {"min_quantity": 24, "bulk_price": 400},
                ],
            },
        )
        create_product(
            db,
            {
                "name": "Potato Chips",
                "barcode": "8830000000028",
                "category_id": snacks.id,
                "price": 1200,
                "cost": 800,
                "quantity": 40,
            },
        )
        add_stock_movement(
            db,
            water.id,
            STOCK_IN,
            120,
            reason="Opening stock",
            supplier_id=supplier.id,
            unit_cost=300,
        )
        create_customer(db, {"name": "Daw Hla", "phone": "09-420002233"})
        create_expense_category(db, {"name": "Rent", "description": "Shop rent"})
        print("Seed data created.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
