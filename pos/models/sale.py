from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from pos.core.identifiers import generate_id
from pos.database.base import Base


class Sale(Base):
    __tablename__ = "sales"

    id = Column(String(36), primary_key=True, default=generate_id)
    total = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    note = Column(String)
    customer_id = Column(String(36), ForeignKey("customers.id"))

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    customer = relationship("Customer", lazy="joined")
    items = relationship(
        "SaleItem",
        cascade="all, delete-orphan",
        back_populates="sale",
    )

    __table_args__ = (
        Index("idx_sales_created_at", "created_at"),
        Index("idx_sales_customer", "customer_id"),
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    sale_id = Column(
        String(36),
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    # Effective unit price after the bulk tier was applied.
    price = Column(Float, nullable=False)
    original_price = Column(Float)
    bulk_discount = Column(Float, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0)
    discount = Column(Float, nullable=False, default=0)
    subtotal = Column(Float, nullable=False)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        Index("idx_sale_items_sale", "sale_id"),
        Index("idx_sale_items_product", "product_id"),
    )


__all__ = ["Sale", "SaleItem"]
