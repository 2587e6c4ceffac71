"""Receipt rendering for 58mm thermal printers.

Two renderings share one layout: plain text for previews and sharing, and an
ESC/POS byte stream that adds alignment, emphasis and the paper cut.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from pos.config import Settings, get_settings
from pos.core.formatting import format_currency
from pos.services.sales_service import get_sale, sale_items_with_products

ESC = "\x1b"
GS = "\x1d"
INIT = ESC + "@"
CUT = GS + "V\x00"
ALIGN_LEFT = ESC + "a\x00"
ALIGN_CENTER = ESC + "a\x01"
ALIGN_RIGHT = ESC + "a\x02"
BOLD_ON = ESC + "E\x01"
BOLD_OFF = ESC + "E\x00"
DOUBLE_HEIGHT_ON = ESC + "!\x10"
DOUBLE_HEIGHT_OFF = ESC + "!\x00"

RECEIPT_ENCODING = "cp437"


@dataclass(frozen=True)
class ReceiptLine:
    name: str
    quantity: int
    price: float
    discount: float
    subtotal: float


@dataclass(frozen=True)
class ReceiptData:
    receipt_number: str
    created_at: datetime
    payment_method: str
    total: float
    lines: list[ReceiptLine] = field(default_factory=list)
    customer_name: Optional[str] = None
    note: Optional[str] = None
    shop_name: str = ""
    shop_address: str = ""
    shop_phone: str = ""
    thank_you: str = ""
    footer: str = ""
    currency: str = ""


def build_receipt(db: Session, sale_id, settings: Optional[Settings] = None) -> ReceiptData:
    settings = settings or get_settings()
    sale = get_sale(db, sale_id)
    lines = [
        ReceiptLine(
            name=name or "Unknown product",
            quantity=item.quantity,
            price=item.price,
            discount=item.discount or 0.0,
            subtotal=item.subtotal,
        )
        for item, name in sale_items_with_products(db, sale.id)
    ]
    return ReceiptData(
        receipt_number=sale.id[:8].upper(),
        created_at=sale.created_at,
        payment_method=sale.payment_method,
        total=sale.total,
        lines=lines,
        customer_name=sale.customer.name if sale.customer else None,
        note=sale.note,
        shop_name=settings.SHOP_NAME,
        shop_address=settings.SHOP_ADDRESS,
        shop_phone=settings.SHOP_PHONE,
        thank_you=settings.RECEIPT_THANK_YOU,
        footer=settings.RECEIPT_FOOTER,
        currency=settings.CURRENCY_CODE,
    )


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."


def format_line(left: str, right: str, width: int) -> str:
    """Left text and right-aligned text on one line, truncating the left side."""
    space = width - len(right) - 1
    if space < 1:
        return truncate(f"{left} {right}", width)
    return truncate(left, space).ljust(space) + " " + right


def _money(amount, receipt: ReceiptData) -> str:
    return format_currency(amount, receipt.currency)


def _header_lines(receipt: ReceiptData) -> list[str]:
    return [value for value in (receipt.shop_address, receipt.shop_phone) if value]


def _detail_lines(receipt: ReceiptData, width: int) -> list[str]:
    rows = [
        format_line("Receipt #:", receipt.receipt_number, width),
        format_line("Date:", receipt.created_at.strftime("%Y-%m-%d %H:%M"), width),
        format_line("Payment:", receipt.payment_method.upper(), width),
    ]
    if receipt.customer_name:
        rows.append(format_line("Customer:", receipt.customer_name, width))
    return rows


def _item_lines(receipt: ReceiptData, width: int) -> list[str]:
    rows = []
    for line in receipt.lines:
        rows.append(truncate(line.name, width))
        rows.append(
            format_line(
                f"  {line.quantity} x {_money(line.price, receipt)}",
                _money(line.subtotal, receipt),
                width,
            )
        )
        if line.discount > 0:
            rows.append(format_line("  Discount", f"-{_money(line.discount, receipt)}", width))
    return rows


def render_text_receipt(receipt: ReceiptData, width: Optional[int] = None) -> str:
    width = width or get_settings().RECEIPT_WIDTH
    separator = "-" * width
    rows = [truncate(receipt.shop_name, width).center(width).rstrip()]
    rows.extend(value.center(width).rstrip() for value in _header_lines(receipt))
    rows.append(separator)
    rows.extend(_detail_lines(receipt, width))
    rows.append(separator)
    rows.extend(_item_lines(receipt, width))
    rows.append(separator)
    rows.append(format_line("TOTAL", _money(receipt.total, receipt), width))
    rows.append(separator)
    if receipt.note:
        rows.append(truncate(f"Note: {receipt.note}", width))
    for value in (receipt.thank_you, receipt.footer):
        if value:
            rows.append(value.center(width).rstrip())
    return "\n".join(rows) + "\n"


def render_escpos(receipt: ReceiptData, width: Optional[int] = None) -> bytes:
    width = width or get_settings().RECEIPT_WIDTH
    separator = "-" * width + "\n"
    parts = [INIT, ALIGN_CENTER, BOLD_ON, DOUBLE_HEIGHT_ON]
    parts.append(truncate(receipt.shop_name, width) + "\n")
    parts.extend([DOUBLE_HEIGHT_OFF, BOLD_OFF])
    parts.extend(value + "\n" for value in _header_lines(receipt))
    parts.extend([ALIGN_LEFT, separator])
    parts.extend(row + "\n" for row in _detail_lines(receipt, width))
    parts.append(separator)
    parts.extend(row + "\n" for row in _item_lines(receipt, width))
    parts.append(separator)
    parts.extend([BOLD_ON, DOUBLE_HEIGHT_ON])
    parts.append(format_line("TOTAL", _money(receipt.total, receipt), width) + "\n")
    parts.extend([DOUBLE_HEIGHT_OFF, BOLD_OFF, separator])
    if receipt.note:
        parts.append(truncate(f"Note: {receipt.note}", width) + "\n")
    parts.append(ALIGN_CENTER)
    for value in (receipt.thank_you, receipt.footer):
        if value:
            parts.append(value + "\n")
    parts.append("\n\n\n")
    parts.append(CUT)
    return "".join(parts).encode(RECEIPT_ENCODING, errors="replace")


__all__ = [
    "ReceiptData",
    "ReceiptLine",
    "build_receipt",
    "format_line",
    "render_escpos",
    "render_text_receipt",
    "truncate",
]
