from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from pos.core.identifiers import generate_id
from pos.database.base import Base


class BulkPricing(Base):
    __tablename__ = "bulk_pricing"

    id = Column(String(36), primary_key=True, default=generate_id)
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    min_quantity = Column(Integer, nullable=False)
    bulk_price = Column(Float, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    product = relationship("Product", back_populates="bulk_pricing")

    __table_args__ = (
        UniqueConstraint("product_id", "min_quantity", name="uq_bulk_pricing_product_min_qty"),
    )


__all__ = ["BulkPricing"]
