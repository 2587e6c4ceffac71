from pos.config import get_settings


def format_currency(amount, currency=None) -> str:
    """Whole-unit amount with thousands separators, e.g. ``1,500 MMK``."""
    if currency is None:
        currency = get_settings().CURRENCY_CODE
    text = f"{round(amount or 0):,}"
    return f"{text} {currency}" if currency else text


def format_percentage(value, decimals=1) -> str:
    return f"{value:.{decimals}f}%"


def format_large_number(value) -> str:
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.1f}{suffix}"
    return str(round(value))


__all__ = ["format_currency", "format_large_number", "format_percentage"]
