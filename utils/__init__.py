"""
Utility modules for the HMO deal engine.
"""

from .formatting import format_area, format_currency, format_percent
from .config import Config

__all__ = ["format_area", "format_currency", "format_percent", "Config"]
