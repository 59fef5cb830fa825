"""Dataclasses for views derived from the row set."""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ExpirySummary:
    """Totals across all strikes of one expiry at its latest snapshot."""
    expiry_date: str
    total_ce_oi: float
    total_ce_change_in_oi: float
    total_ce_volume: float
    total_pe_oi: float
    total_pe_change_in_oi: float
    total_pe_volume: float
    pcr_oi: float  # total_pe_oi / total_ce_oi, 0 when there is no call OI


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Open interest and volume summed across strikes for one instant."""
    timestamp: int  # epoch ms
    ce_oi: float
    pe_oi: float
    ce_volume: float
    pe_volume: float


@dataclass(frozen=True)
class ChangeSeriesPoint:
    """Change in call (ccoi) and put (pcoi) open interest for one instant."""
    timestamp: int  # epoch ms
    ccoi: float
    pcoi: float


@dataclass(frozen=True)
class LatestMeta:
    """Timestamp and underlying value of the most recent row."""
    timestamp: Union[int, str]
    underlying_value: Optional[float]
