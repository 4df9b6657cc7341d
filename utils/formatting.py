"""
Formatting utilities.
"""

from typing import Optional


def format_currency(amount: Optional[int], currency: str = "GBP") -> str:
    """
    Format an integer amount as currency.

    Args:
        amount: The amount in whole units (e.g., pounds, not pence).
        currency: Currency code (default GBP).

    Returns:
        Formatted currency string, or "n/a" when the amount is unknown.
    """
    if amount is None:
        return "n/a"
    symbols = {
        "GBP": "£",
        "USD": "$",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    return f"{symbol}{amount:,}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.
    """
    if value is None:
        return "n/a"
    return f"{value:.{decimals}f}%"


def format_area(sqm: Optional[float], estimated: bool = False) -> str:
    """Floor area in square metres, marked when estimated."""
    if sqm is None:
        return "n/a"
    text = f"{sqm:,.0f} m²"
    return f"~{text} (est.)" if estimated else text
