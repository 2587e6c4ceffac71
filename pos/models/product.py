from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from pos.core.identifiers import generate_id
from pos.database.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    barcode = Column(String)

    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"))

    price = Column(Float, nullable=False)
    cost = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=10)
    image_url = Column(String)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    category = relationship("Category", lazy="joined")
    supplier = relationship("Supplier", lazy="joined")
    bulk_pricing = relationship(
        "BulkPricing",
        order_by="BulkPricing.min_quantity",
        cascade="all, delete-orphan",
        back_populates="product",
    )

    __table_args__ = (
        Index("idx_products_barcode", "barcode"),
        Index("idx_products_name", "name"),
        Index("idx_products_category", "category_id"),
    )


__all__ = ["Product"]
