"""Dataclass for one canonical option chain row."""

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

RowKey = Tuple[float, str, int]


@dataclass(frozen=True)
class OptionRow:
    """One strike of one expiry at one snapshot timestamp.

    Additive fields (open interest, change in OI, volume) are 0 when the feed
    omits them, so sums are unaffected. Display fields (price, IV, ratios) are
    NaN when missing so that "unavailable" stays distinct from zero.
    """
    strike_price: float
    expiry_date: str
    # Raw wire value, epoch ms or an ISO-8601 string
    timestamp: Union[int, str]
    # timestamp parsed to epoch milliseconds (UTC), used for sorting and keying
    instant: int
    underlying_value: Optional[float]

    ce_open_interest: float = 0.0
    ce_change_in_oi: float = 0.0
    ce_change_in_oi_pct: float = 0.0
    ce_volume: float = 0.0
    ce_implied_volatility: float = math.nan
    ce_last_price: float = math.nan

    pe_open_interest: float = 0.0
    pe_change_in_oi: float = 0.0
    pe_change_in_oi_pct: float = 0.0
    pe_volume: float = 0.0
    pe_implied_volatility: float = math.nan
    pe_last_price: float = math.nan

    intraday_pcr: float = math.nan
    pcr: float = math.nan

    @property
    def key(self) -> RowKey:
        """Identity of the row within a snapshot."""
        return (self.strike_price, self.expiry_date, self.instant)
