# option_chain_feed/models/__init__.py
"""Data models for the option_chain_feed package."""

from .option_row import OptionRow, RowKey
from .aggregates import ChangeSeriesPoint, ExpirySummary, LatestMeta, TimeSeriesPoint

__all__ = [
    "OptionRow",
    "RowKey",
    "ExpirySummary",
    "TimeSeriesPoint",
    "ChangeSeriesPoint",
    "LatestMeta",
]
