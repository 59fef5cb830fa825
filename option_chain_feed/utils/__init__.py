# option_chain_feed/utils/__init__.py
"""Utility functions for the option_chain_feed package."""

from .logging_config import setup_logging
from .timestamps import parse_date_token, parse_instant

__all__ = [
    "setup_logging",
    "parse_instant",
    "parse_date_token",
]
