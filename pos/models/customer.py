from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from pos.core.identifiers import generate_id
from pos.database.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    phone = Column(String)
    email = Column(String)
    address = Column(String)

    total_spent = Column(Float, nullable=False, default=0)
    visit_count = Column(Integer, nullable=False, default=0)

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

    __table_args__ = (
        Index("idx_customers_name", "name"),
        Index("idx_customers_phone", "phone"),
    )


__all__ = ["Customer"]
