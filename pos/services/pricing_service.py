"""Bulk pricing tiers and cart reconciliation.

Everything here is pure computation over in-memory values so the same rules
serve cart quotes, recorded sales and tests without a database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from pos.core.errors import InsufficientStockError, RecordNotFoundError
from pos.core.formatting import format_currency


@dataclass(frozen=True)
class PriceTier:
    min_quantity: int
    bulk_price: float
    id: Optional[str] = None


@dataclass(frozen=True)
class BulkPriceResult:
    original_price: float
    bulk_price: float
    total_savings: float
    discount_percentage: float
    applied_tier: Optional[PriceTier] = None


def _sorted_tiers(tiers: Iterable[PriceTier]) -> list[PriceTier]:
    return sorted(tiers or (), key=lambda tier: tier.min_quantity)


def find_applicable_tier(tiers, quantity) -> Optional[PriceTier]:
    applicable = None
    for tier in _sorted_tiers(tiers):
        if tier.min_quantity <= quantity:
            applicable = tier
    return applicable


def calculate_bulk_price(unit_price: float, tiers, quantity: int) -> BulkPriceResult:
    original = unit_price * quantity
    tier = find_applicable_tier(tiers, quantity) if quantity > 0 else None
    if tier is None:
        return BulkPriceResult(
            original_price=original,
            bulk_price=original,
            total_savings=0.0,
            discount_percentage=0.0,
        )
    bulk = tier.bulk_price * quantity
    savings = original - bulk
    percentage = (savings / original * 100) if original > 0 else 0.0
    return BulkPriceResult(
        original_price=original,
        bulk_price=bulk,
        total_savings=savings,
        discount_percentage=percentage,
        applied_tier=tier,
    )


def get_next_bulk_tier(tiers, quantity: int) -> Optional[PriceTier]:
    for tier in _sorted_tiers(tiers):
        if tier.min_quantity > quantity:
            return tier
    return None


def has_bulk_pricing(tiers) -> bool:
    return bool(tiers)


def bulk_pricing_summary(unit_price: float, tiers) -> str:
    ordered = _sorted_tiers(tiers)
    if not ordered or unit_price <= 0:
        return ""
    max_discount = max(
        (unit_price - tier.bulk_price) / unit_price * 100 for tier in ordered
    )
    return f"Buy {ordered[0].min_quantity}+ for up to {max_discount:.0f}% off"


def format_bulk_savings(savings: float, currency=None) -> str:
    if savings <= 0:
        return ""
    return f"Save {format_currency(savings, currency)}"


def validate_bulk_tiers(unit_price: float, tiers) -> list[str]:
    errors = []
    seen = set()
    for index, tier in enumerate(tiers, start=1):
        if tier.min_quantity <= 0:
            errors.append(f"Tier {index}: minimum quantity must be greater than 0")
        if tier.bulk_price <= 0:
            errors.append(f"Tier {index}: bulk price must be greater than 0")
        elif tier.bulk_price >= unit_price:
            errors.append(
                f"Tier {index}: bulk price must be less than regular price ({unit_price})"
            )
        if tier.min_quantity in seen:
            errors.append(f"Tier {index}: duplicate minimum quantity {tier.min_quantity}")
        seen.add(tier.min_quantity)
    return errors


@dataclass(frozen=True)
class CartProduct:
    product_id: str
    name: str
    unit_price: float
    cost: float = 0.0
    stock: int = 0
    tiers: tuple[PriceTier, ...] = ()
    barcode: Optional[str] = None


@dataclass
class CartLine:
    product: CartProduct
    quantity: int
    discount: float = 0.0

    @property
    def pricing(self) -> BulkPriceResult:
        return calculate_bulk_price(self.product.unit_price, self.product.tiers, self.quantity)

    @property
    def bulk_subtotal(self) -> float:
        return self.pricing.bulk_price

    @property
    def effective_unit_price(self) -> float:
        if self.quantity <= 0:
            return self.product.unit_price
        return self.bulk_subtotal / self.quantity

    @property
    def subtotal(self) -> float:
        return self.bulk_subtotal - self.discount


@dataclass(frozen=True)
class LineBreakdown:
    product_id: str
    name: str
    quantity: int
    unit_price: float
    effective_unit_price: float
    cost: float
    original_subtotal: float
    bulk_subtotal: float
    bulk_savings: float
    discount: float
    subtotal: float
    total_savings: float
    discount_percentage: float
    applied_tier: Optional[PriceTier] = None
    next_tier: Optional[PriceTier] = None


@dataclass(frozen=True)
class CartTotals:
    original_total: float = 0.0
    bulk_total: float = 0.0
    final_total: float = 0.0
    bulk_savings: float = 0.0
    manual_savings: float = 0.0
    total_savings: float = 0.0
    discount_percentage: float = 0.0
    item_count: int = 0
    lines: list[LineBreakdown] = field(default_factory=list)


def build_line_breakdown(line: CartLine) -> LineBreakdown:
    pricing = line.pricing
    total_savings = pricing.total_savings + line.discount
    percentage = 0.0
    if pricing.original_price > 0:
        percentage = total_savings / pricing.original_price * 100
    return LineBreakdown(
        product_id=line.product.product_id,
        name=line.product.name,
        quantity=line.quantity,
        unit_price=line.product.unit_price,
        effective_unit_price=line.effective_unit_price,
        cost=line.product.cost,
        original_subtotal=pricing.original_price,
        bulk_subtotal=pricing.bulk_price,
        bulk_savings=pricing.total_savings,
        discount=line.discount,
        subtotal=pricing.bulk_price - line.discount,
        total_savings=total_savings,
        discount_percentage=percentage,
        applied_tier=pricing.applied_tier,
        next_tier=get_next_bulk_tier(line.product.tiers, line.quantity),
    )


def calculate_cart_totals(lines: Iterable[CartLine]) -> CartTotals:
    breakdowns = [build_line_breakdown(line) for line in lines]
    original_total = sum(item.original_subtotal for item in breakdowns)
    bulk_total = sum(item.bulk_subtotal for item in breakdowns)
    final_total = sum(item.subtotal for item in breakdowns)
    bulk_savings = original_total - bulk_total
    manual_savings = sum(item.discount for item in breakdowns)
    total_savings = bulk_savings + manual_savings
    percentage = total_savings / original_total * 100 if original_total > 0 else 0.0
    return CartTotals(
        original_total=original_total,
        bulk_total=bulk_total,
        final_total=final_total,
        bulk_savings=bulk_savings,
        manual_savings=manual_savings,
        total_savings=total_savings,
        discount_percentage=percentage,
        item_count=sum(item.quantity for item in breakdowns),
        lines=breakdowns,
    )


class Cart:
    """Ordered cart lines keyed by product id."""

    def __init__(self):
        self._lines: dict[str, CartLine] = {}

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self):
        return len(self._lines)

    def __contains__(self, product_id):
        return product_id in self._lines

    def get_line(self, product_id) -> CartLine:
        line = self._lines.get(product_id)
        if line is None:
            raise RecordNotFoundError("Cart line", product_id)
        return line

    def add_product(self, product: CartProduct, quantity: int = 1) -> CartLine:
        if quantity <= 0:
            raise ValueError("quantity must be greater than 0")
        line = self._lines.get(product.product_id)
        if line is None:
            self._check_stock(product, quantity)
            line = CartLine(product=product, quantity=quantity)
            self._lines[product.product_id] = line
            return line
        new_quantity = line.quantity + quantity
        self._check_stock(product, new_quantity)
        line.product = product
        line.quantity = new_quantity
        return line

    def update_quantity(self, product_id, quantity: int) -> Optional[CartLine]:
        line = self.get_line(product_id)
        if quantity <= 0:
            del self._lines[product_id]
            return None
        self._check_stock(line.product, quantity)
        line.quantity = quantity
        # A smaller line total cannot carry the previous manual discount.
        if line.discount > line.bulk_subtotal:
            line.discount = line.bulk_subtotal
        return line

    def update_discount(self, product_id, discount: float) -> CartLine:
        line = self.get_line(product_id)
        if discount < 0:
            raise ValueError("Discount cannot be negative")
        if discount > line.bulk_subtotal:
            raise ValueError(
                f"Discount cannot exceed the line total ({line.bulk_subtotal})"
            )
        line.discount = discount
        return line

    def remove(self, product_id) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def totals(self) -> CartTotals:
        return calculate_cart_totals(self._lines.values())

    @staticmethod
    def _check_stock(product: CartProduct, quantity: int) -> None:
        if quantity > product.stock:
            raise InsufficientStockError(product.name, product.stock, quantity)


__all__ = [
    "BulkPriceResult",
    "Cart",
    "CartLine",
    "CartProduct",
    "CartTotals",
    "LineBreakdown",
    "PriceTier",
    "bulk_pricing_summary",
    "build_line_breakdown",
    "calculate_bulk_price",
    "calculate_cart_totals",
    "find_applicable_tier",
    "format_bulk_savings",
    "get_next_bulk_tier",
    "has_bulk_pricing",
    "validate_bulk_tiers",
]
