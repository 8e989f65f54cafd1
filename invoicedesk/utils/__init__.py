"""Utility functions for InvoiceDesk."""

from .activity import log_activity
from .money import format_currency, parse_amount, to_minor_units
from .page_cache import cached_page_data, revalidate_path

__all__ = [
    "log_activity",
    "format_currency",
    "parse_amount",
    "to_minor_units",
    "cached_page_data",
    "revalidate_path",
]
