from datetime import datetime, timezone
from types import SimpleNamespace

from sqlalchemy.orm import sessionmaker

import pos.models  # noqa: F401
from pos.database.base import Base
from pos.database.engine import build_engine
from pos.services.catalog_service import create_category, create_product, create_supplier
from pos.services.customer_service import create_customer

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)


def make_session():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    return Session()


def seed_shop(db, quantity=50):
    category = create_category(db, {"name": "Drinks"})
    supplier = create_supplier(db, {"name": "Golden Valley", "phone": "09-111"})
    product = create_product(
        db,
        {
            "name": "Water",
            "barcode": "8830001",
            "category_id": category.id,
            "supplier_id": supplier.id,
            "price": 1000,
            "cost": 600,
            "quantity": quantity,
            "bulk_pricing": [
                {"min_quantity": 10, "bulk_price": 900},
                {"min_quantity": 20, "bulk_price": 800},
            ],
        },
    )
    customer = create_customer(db, {"name": "Daw Hla", "phone": "09-222"})
    return SimpleNamespace(
        category=category,
        supplier=supplier,
        product=product,
        customer=customer,
    )
