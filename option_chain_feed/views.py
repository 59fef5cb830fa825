"""Selection helpers for whatever renders the chain (table, charts, status bar)."""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from option_chain_feed.aggregator import summarize_by_expiry
from option_chain_feed.collectors.stream_client import ConnectionState
from option_chain_feed.errors import FeedError
from option_chain_feed.models import ExpirySummary, OptionRow


@dataclass(frozen=True)
class StatusInfo:
    message: str
    level: str  # "info", "success", "warning" or "error"


def filter_rows(
    rows: Iterable[OptionRow],
    expiry: Optional[str] = None,
    min_strike: Optional[float] = None,
    max_strike: Optional[float] = None,
) -> List[OptionRow]:
    """Keeps rows of `expiry` (any expiry when None) within the inclusive strike bounds."""
    selected = []
    for row in rows:
        if expiry is not None and row.expiry_date != expiry:
            continue
        if min_strike is not None and row.strike_price < min_strike:
            continue
        if max_strike is not None and row.strike_price > max_strike:
            continue
        selected.append(row)
    return selected


def default_expiry(expiries: Sequence[str], selected: Optional[str] = None) -> Optional[str]:
    """The user's selection while it is still listed, otherwise the nearest expiry."""
    if selected is not None and selected in expiries:
        return selected
    return expiries[0] if expiries else None


def summarize_expiries(rows: Sequence[OptionRow], expiries: Sequence[str], limit: Optional[int] = 2) -> List[ExpirySummary]:
    """Summaries of the first `limit` expiries (all of them when limit is None)."""
    chosen = expiries if limit is None else expiries[:limit]
    return [summarize_by_expiry(rows, expiry) for expiry in chosen]


def status_message(
    state: ConnectionState,
    last_error: Optional[FeedError] = None,
    data_received: bool = False,
) -> StatusInfo:
    """Text and severity of the connection status banner."""
    if state is ConnectionState.CONNECTING:
        return StatusInfo("Connecting to data stream...", "info")
    if state is ConnectionState.CONNECTED:
        if data_received:
            return StatusInfo("Connected, streaming data", "success")
        return StatusInfo("Connected, waiting for data...", "success")
    if state is ConnectionState.RECEIVING:
        return StatusInfo("Live data stream active", "success")
    if state is ConnectionState.ERROR:
        return StatusInfo(str(last_error) if last_error else "Connection error", "error")
    if state is ConnectionState.CLOSED:
        return StatusInfo("Data stream stopped", "warning")
    return StatusInfo("Not connected", "info")
