from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String

from pos.core.identifiers import generate_id
from pos.database.base import Base


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(String(36), primary_key=True, default=generate_id)
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"))
    reference_number = Column(String)
    unit_cost = Column(Float)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("type IN ('stock_in', 'stock_out')", name="ck_stock_movements_type"),
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity"),
        Index("idx_stock_movements_product", "product_id"),
        Index("idx_stock_movements_created_at", "created_at"),
    )


__all__ = ["StockMovement"]
