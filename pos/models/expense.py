from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from pos.core.identifiers import generate_id
from pos.database.base import Base


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False, unique=True)
    description = Column(String)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=generate_id)
    category_id = Column(
        String(36),
        ForeignKey("expense_categories.id"),
        nullable=False,
    )
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=False)
    # When the money was spent; net profit windows filter on this.
    date = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

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

    category = relationship("ExpenseCategory", lazy="joined")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount"),
        Index("idx_expenses_date", "date"),
        Index("idx_expenses_category_id", "category_id"),
    )


__all__ = ["Expense", "ExpenseCategory"]
