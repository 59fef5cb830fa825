"""In-memory store holding the current option chain snapshot."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from option_chain_feed.models import LatestMeta, OptionRow, RowKey
from option_chain_feed.utils.timestamps import parse_date_token


def sort_expiries(expiries: Iterable[str]) -> List[str]:
    """
    Sorts distinct expiry tokens ascending.

    Tokens that parse as dates are ordered chronologically, so "24-Oct-2024"
    comes before "07-Nov-2024". Tokens that are not dates follow, ordered as
    plain strings.
    """
    def sort_key(token: str):
        parsed = parse_date_token(token)
        if parsed is None:
            return (1, 0, token)
        return (0, parsed.value, token)

    return sorted(set(expiries), key=sort_key)


def find_latest(rows: Iterable[OptionRow]) -> Optional[LatestMeta]:
    """Meta of the row with the greatest instant; the first such row wins ties."""
    latest: Optional[OptionRow] = None
    for row in rows:
        if latest is None or row.instant > latest.instant:
            latest = row
    if latest is None:
        return None
    return LatestMeta(timestamp=latest.timestamp, underlying_value=latest.underlying_value)


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store: rows plus the state derived from them."""
    rows: Tuple[OptionRow, ...]
    expiries: Tuple[str, ...]
    latest: Optional[LatestMeta]
    version: int


class RowStore:
    """
    Holds the full set of canonical rows for the current feed snapshot.

    The feed sends full snapshots, not deltas, so the only mutation is
    `replace`, which swaps the whole row set together with the derived expiry
    list and latest meta. Readers get one StoreSnapshot and never observe a
    mix of two frames.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._snapshot = StoreSnapshot(rows=(), expiries=(), latest=None, version=0)

    def replace(self, rows: Iterable[OptionRow]) -> StoreSnapshot:
        """
        Atomically replaces the active row set.

        Args:
            rows: The rows of one ingested frame. Rows sharing a key collapse
                to the last one given.

        Returns:
            The snapshot now being served.
        """
        unique: Dict[RowKey, OptionRow] = {}
        for row in rows:
            unique[row.key] = row
        new_rows = tuple(unique.values())
        expiries = tuple(sort_expiries(row.expiry_date for row in new_rows))
        latest = find_latest(new_rows)

        with self._lock:
            self._snapshot = StoreSnapshot(
                rows=new_rows,
                expiries=expiries,
                latest=latest,
                version=self._snapshot.version + 1,
            )
            snapshot = self._snapshot

        self.logger.debug(
            f"Row store replaced: {len(new_rows)} rows, {len(expiries)} expiries (version {snapshot.version})"
        )
        return snapshot

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def rows(self) -> List[OptionRow]:
        return list(self.snapshot().rows)

    @property
    def version(self) -> int:
        return self.snapshot().version

    def current_expiries(self) -> List[str]:
        """Distinct expiry dates of the current rows, ascending."""
        return list(self.snapshot().expiries)

    def latest(self) -> Optional[LatestMeta]:
        """Timestamp and underlying value of the most recent row, None when empty."""
        return self.snapshot().latest

    def __len__(self) -> int:
        return len(self.snapshot().rows)
