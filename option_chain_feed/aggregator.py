"""Pure derivations over a set of option chain rows.

The caller filters rows (expiry, strike range) before handing them in; none
of these functions keep state between calls.
"""

from dataclasses import asdict, fields
from typing import Iterable, List, Sequence

import pandas as pd

from option_chain_feed.models import ChangeSeriesPoint, ExpirySummary, OptionRow, TimeSeriesPoint

ROW_COLUMNS = [f.name for f in fields(OptionRow)]


def rows_to_frame(rows: Iterable[OptionRow]) -> pd.DataFrame:
    """One DataFrame row per OptionRow, columns named after the dataclass fields."""
    return pd.DataFrame([asdict(row) for row in rows], columns=ROW_COLUMNS)


def _sum_by_instant(rows: Sequence[OptionRow], columns: List[str]) -> pd.DataFrame:
    # Grouping on the parsed instant merges differently formatted copies of one timestamp
    frame = rows_to_frame(rows).sort_values(["instant", "strike_price", "expiry_date"], kind="mergesort")
    return frame.groupby("instant", sort=True)[columns].sum()


def summarize_by_expiry(rows: Iterable[OptionRow], expiry: str) -> ExpirySummary:
    """
    Sums call and put totals for one expiry at its latest snapshot.

    Single pass: running totals restart whenever a newer instant for the
    expiry shows up.

    Args:
        rows: Candidate rows; rows of other expiries are ignored.
        expiry: The expiry date token to summarize.

    Returns:
        The ExpirySummary; all zero when the expiry has no rows.
    """
    latest_instant = None
    totals = [0.0] * 6
    for row in rows:
        if row.expiry_date != expiry:
            continue
        if latest_instant is None or row.instant > latest_instant:
            latest_instant = row.instant
            totals = [0.0] * 6
        elif row.instant < latest_instant:
            continue
        totals[0] += row.ce_open_interest
        totals[1] += row.ce_change_in_oi
        totals[2] += row.ce_volume
        totals[3] += row.pe_open_interest
        totals[4] += row.pe_change_in_oi
        totals[5] += row.pe_volume

    ce_oi, ce_change, ce_volume, pe_oi, pe_change, pe_volume = totals
    return ExpirySummary(
        expiry_date=expiry,
        total_ce_oi=ce_oi,
        total_ce_change_in_oi=ce_change,
        total_ce_volume=ce_volume,
        total_pe_oi=pe_oi,
        total_pe_change_in_oi=pe_change,
        total_pe_volume=pe_volume,
        pcr_oi=0.0 if ce_oi == 0 else pe_oi / ce_oi,
    )


def to_open_interest_series(rows: Iterable[OptionRow]) -> List[TimeSeriesPoint]:
    """Open interest and volume per instant, summed across strikes, oldest first."""
    rows = list(rows)
    if not rows:
        return []
    sums = _sum_by_instant(rows, ["ce_open_interest", "pe_open_interest", "ce_volume", "pe_volume"])
    return [
        TimeSeriesPoint(
            timestamp=int(point.Index),
            ce_oi=float(point.ce_open_interest),
            pe_oi=float(point.pe_open_interest),
            ce_volume=float(point.ce_volume),
            pe_volume=float(point.pe_volume),
        )
        for point in sums.itertuples()
    ]


def to_change_series(rows: Iterable[OptionRow]) -> List[ChangeSeriesPoint]:
    """Change in call / put open interest per instant, oldest first."""
    rows = list(rows)
    if not rows:
        return []
    sums = _sum_by_instant(rows, ["ce_change_in_oi", "pe_change_in_oi"])
    return [
        ChangeSeriesPoint(
            timestamp=int(point.Index),
            ccoi=float(point.ce_change_in_oi),
            pcoi=float(point.pe_change_in_oi),
        )
        for point in sums.itertuples()
    ]
