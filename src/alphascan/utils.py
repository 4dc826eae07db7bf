import math
from typing import Any


def _to_float(value: Any) -> float | None:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(num) else num


def format_price(value: Any) -> str:
    """Format a price in USD, keeping six decimals for sub-cent prices"""
    num = _to_float(value)
    if num is None:
        return "$0.00"
    if num < 0.01:
        return f"${num:.6f}"

    # At least two decimals, at most six, thousands separators
    text = f"{num:,.6f}".rstrip("0")
    whole, _, decimals = text.partition(".")
    return f"${whole}.{decimals.ljust(2, '0')}"


def format_volume(value: Any) -> str:
    """Format a volume in USD with K and M suffixes"""
    num = _to_float(value)
    if num is None:
        return "$0.00"
    if num >= 1_000_000:
        return f"${num / 1_000_000:.2f}M"
    elif num >= 1_000:
        return f"${num / 1_000:.2f}K"
    else:
        return f"${num:.2f}"


def icon_fallback(symbol: str | None) -> str:
    """Text shown in place of a token icon that failed to load."""
    return symbol[0] if symbol else ""
