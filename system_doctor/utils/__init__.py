"""Utility modules for system doctor."""

from .formatters import format_file_size, format_date, truncate_string

__all__ = ["format_file_size", "format_date", "truncate_string"]
