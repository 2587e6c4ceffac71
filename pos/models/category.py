from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from pos.core.identifiers import generate_id
from pos.database.base import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False, unique=True)
    description = Column(String)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


__all__ = ["Category"]
