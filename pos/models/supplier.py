from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String

from pos.core.identifiers import generate_id
from pos.database.base import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    contact_name = Column(String)
    phone = Column(String)
    email = Column(String)
    address = Column(String)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_suppliers_name", "name"),
    )


__all__ = ["Supplier"]
