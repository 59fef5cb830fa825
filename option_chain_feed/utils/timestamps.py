"""Helpers turning wire timestamps and expiry tokens into comparable values."""

import math
from typing import Any, Optional

import pandas as pd

# Words pandas resolves against the wall clock
_RELATIVE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def _to_utc(ts: pd.Timestamp) -> pd.Timestamp:
    # Naive values are taken as UTC, the feed's own reference zone
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def parse_instant(value: Any) -> Optional[int]:
    """
    Parses a wire timestamp into epoch milliseconds.

    Numbers and numeric strings are read as epoch milliseconds. Any other
    string goes through pandas' datetime parser (ISO-8601, "18-Oct-2024
    15:30:00", ...). Two representations of the same instant yield the same
    integer, which makes the result safe for grouping and sorting.

    Args:
        value: The raw timestamp from the feed.

    Returns:
        Epoch milliseconds, or None if the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text or text.lower() in _RELATIVE_WORDS:
        return None
    try:
        number = float(text)
    except ValueError:
        pass
    else:
        return int(number) if math.isfinite(number) else None

    try:
        ts = pd.Timestamp(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return int(_to_utc(ts).value // 1_000_000)


def parse_date_token(token: str) -> Optional[pd.Timestamp]:
    """Parses an expiry token such as "2024-10-24" or "24-Oct-2024"; None if it is not a date."""
    if not isinstance(token, str) or token.strip().lower() in _RELATIVE_WORDS:
        return None
    try:
        ts = pd.Timestamp(token)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return _to_utc(ts)
