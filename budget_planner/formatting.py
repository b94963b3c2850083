"""Formatting utilities for currency and period display."""

from __future__ import annotations

import calendar
from typing import Union


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount with thousands separators.

    Negative amounts keep the minus sign ahead of the dollar sign.

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-75, include_sign=False)
        '-75.00'
    """
    formatted = f"{abs(amount):,.2f}"
    if include_sign:
        formatted = f"${formatted}"
    return f"-{formatted}" if amount < 0 else formatted


def month_label(month: int, year: int) -> str:
    """Human label for a budget month, e.g. ``'March 2024'``."""
    return f"{calendar.month_name[month]} {year}"
