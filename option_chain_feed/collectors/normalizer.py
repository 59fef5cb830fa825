"""Normalizes raw option chain frames into canonical OptionRow objects.

Two wire shapes are understood:

- Flat: every array element is one strike/expiry/timestamp record with
  directly named fields (``ceOpenInterest``, ``peLastPrice``, ...).
- Nested: every array element is one timestamp snapshot carrying a ``data``
  list of per-strike entries with ``CE`` / ``PE`` sub-objects.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from option_chain_feed.errors import MalformedFrameError, PartialRecordError
from option_chain_feed.models import OptionRow, RowKey
from option_chain_feed.utils.numbers import additive, display, percent_change, ratio, to_float
from option_chain_feed.utils.timestamps import parse_instant

logger = logging.getLogger(__name__)


class FrameShape(Enum):
    FLAT = "flat"
    NESTED = "nested"


SIDES = ("ce", "pe")

# Flat records: wire suffixes per side field, appended to "ce"/"pe". First present wins.
FLAT_SIDE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "open_interest": ("OpenInterest",),
    "change_in_oi": ("ChangeInOpenInterest",),
    "change_in_oi_pct": (
        "ChangeInOpenInterestPercentage",
        "ChangeInOpenInterestPct",
        "PChangeInOI",
        "PchangeinOpenInterest",
    ),
    "volume": ("TotalTradedVolume", "Volume"),
    "implied_volatility": ("ImpliedVolatility",),
    "last_price": ("LastPrice",),
}
FLAT_INTRADAY_PCR_ALIASES = ("intraDayPCR", "intradayPCR")

# Nested records: field names inside the CE / PE sub-objects
NESTED_SIDE_FIELDS: Dict[str, str] = {
    "open_interest": "openInterest",
    "change_in_oi": "changeinOpenInterest",
    "change_in_oi_pct": "pchangeinOpenInterest",
    "volume": "totalTradedVolume",
    "implied_volatility": "impliedVolatility",
    "last_price": "lastPrice",
}


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


def _lookup(record: Dict[str, Any], names) -> Any:
    for name in names:
        if _present(record.get(name)):
            return record[name]
    return None


def _first(name: str, *sources: Optional[Dict[str, Any]]) -> Any:
    for source in sources:
        if source and _present(source.get(name)):
            return source[name]
    return None


def _require(name: str, *sources: Optional[Dict[str, Any]]) -> Any:
    """Returns the first present value of `name` across sources, else raises PartialRecordError."""
    value = _first(name, *sources)
    if value is not None:
        return value
    raise PartialRecordError(f"missing '{name}'")


def _strike(value: Any) -> float:
    strike = to_float(value)
    if not math.isfinite(strike) or strike <= 0:
        raise PartialRecordError(f"invalid strikePrice {value!r}")
    return strike


def _instant(value: Any) -> int:
    instant = parse_instant(value)
    if instant is None:
        raise PartialRecordError(f"unparseable timestamp {value!r}")
    return instant


def _underlying(value: Any) -> Optional[float]:
    number = display(value)
    return None if math.isnan(number) else number


def _side(prefix: str, raw: Dict[str, Any]) -> Dict[str, float]:
    """Builds the coerced fields of one side; `raw` maps side field names to wire values."""
    open_interest = additive(raw.get("open_interest"))
    change = additive(raw.get("change_in_oi"))
    change_pct = display(raw.get("change_in_oi_pct"))
    if math.isnan(change_pct):
        change_pct = percent_change(change, open_interest)
    return {
        f"{prefix}_open_interest": open_interest,
        f"{prefix}_change_in_oi": change,
        f"{prefix}_change_in_oi_pct": change_pct,
        f"{prefix}_volume": additive(raw.get("volume")),
        f"{prefix}_implied_volatility": display(raw.get("implied_volatility")),
        f"{prefix}_last_price": display(raw.get("last_price")),
    }


def _ratios(fields: Dict[str, float], intraday_pcr: Any = None, pcr: Any = None) -> Dict[str, float]:
    """Feed-supplied ratios win when finite, otherwise they are derived from OI."""
    supplied_pcr = display(pcr)
    supplied_intraday = display(intraday_pcr)
    return {
        "pcr": supplied_pcr if not math.isnan(supplied_pcr)
        else ratio(fields["pe_open_interest"], fields["ce_open_interest"]),
        "intraday_pcr": supplied_intraday if not math.isnan(supplied_intraday)
        else ratio(fields["pe_change_in_oi"], fields["ce_change_in_oi"]),
    }


def _flat_row(record: Any) -> OptionRow:
    if not isinstance(record, dict):
        raise PartialRecordError("record is not an object")
    strike = _strike(_require("strikePrice", record))
    expiry = str(_require("expiryDate", record))
    timestamp = _require("timestamp", record)
    instant = _instant(timestamp)

    fields: Dict[str, float] = {}
    for prefix in SIDES:
        raw = {
            name: _lookup(record, [prefix + suffix for suffix in suffixes])
            for name, suffixes in FLAT_SIDE_ALIASES.items()
        }
        fields.update(_side(prefix, raw))
    fields.update(_ratios(fields, _lookup(record, FLAT_INTRADAY_PCR_ALIASES), record.get("pcr")))

    return OptionRow(
        strike_price=strike,
        expiry_date=expiry,
        timestamp=timestamp,
        instant=instant,
        underlying_value=_underlying(record.get("underlyingValue")),
        **fields,
    )


def _normalize_flat(frame: List[Any]) -> Tuple[List[OptionRow], int]:
    rows: Dict[RowKey, OptionRow] = {}
    skipped = 0
    for record in frame:
        try:
            row = _flat_row(record)
        except PartialRecordError as e:
            logger.debug(f"Dropping flat record: {e}")
            skipped += 1
            continue
        # A later record for the same key replaces the earlier one
        rows[row.key] = row
    return list(rows.values()), skipped


@dataclass
class _Fragment:
    """CE / PE pieces collected for one (strike, expiry, instant) key."""
    strike_price: float
    expiry_date: str
    timestamp: Any
    instant: int
    underlying_value: Optional[float]
    sides: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_row(self) -> OptionRow:
        fields: Dict[str, float] = {}
        for prefix in SIDES:
            raw = self.sides.get(prefix.upper(), {})
            fields.update(_side(prefix, {name: raw.get(wire) for name, wire in NESTED_SIDE_FIELDS.items()}))
        fields.update(_ratios(fields))
        return OptionRow(
            strike_price=self.strike_price,
            expiry_date=self.expiry_date,
            timestamp=self.timestamp,
            instant=self.instant,
            underlying_value=self.underlying_value,
            **fields,
        )


def _normalize_nested(frame: List[Any]) -> Tuple[List[OptionRow], int]:
    fragments: Dict[RowKey, _Fragment] = {}
    skipped = 0

    for snapshot in frame:
        try:
            if not isinstance(snapshot, dict):
                raise PartialRecordError("snapshot is not an object")
            entries = snapshot.get("data")
            if not isinstance(entries, list):
                raise PartialRecordError("missing 'data' array")
            timestamp = _require("timestamp", snapshot)
            instant = _instant(timestamp)
        except PartialRecordError as e:
            logger.debug(f"Dropping nested snapshot: {e}")
            skipped += 1
            continue

        snapshot_underlying = _underlying(snapshot.get("underlyingValue"))

        for entry in entries:
            try:
                if not isinstance(entry, dict):
                    raise PartialRecordError("entry is not an object")
                sides = {side: entry[side] for side in ("CE", "PE") if isinstance(entry.get(side), dict)}
                ce, pe = sides.get("CE"), sides.get("PE")
                strike = _strike(_require("strikePrice", entry, ce, pe))
                expiry = str(_require("expiryDate", entry, ce, pe))
            except PartialRecordError as e:
                logger.debug(f"Dropping nested entry at {timestamp!r}: {e}")
                skipped += 1
                continue

            underlying = snapshot_underlying
            if underlying is None:
                underlying = _underlying(_first("underlyingValue", ce, pe))

            key = (strike, expiry, instant)
            fragment = fragments.get(key)
            if fragment is None:
                fragment = _Fragment(strike, expiry, timestamp, instant, underlying)
                fragments[key] = fragment
            elif underlying is not None:
                fragment.underlying_value = underlying
            # CE-only and PE-only fragments coalesce; a repeated side replaces the earlier one
            fragment.sides.update(sides)

    return [fragment.to_row() for fragment in fragments.values()], skipped


def detect_shape(frame: List[Any]) -> FrameShape:
    """Nested frames carry a `data` list per element; anything else is read as flat."""
    for entry in frame:
        if isinstance(entry, dict):
            return FrameShape.NESTED if "data" in entry else FrameShape.FLAT
    return FrameShape.FLAT


def parse_frame(payload: Union[str, bytes]) -> Any:
    """Decodes the JSON text of one event.

    Raises:
        MalformedFrameError: If the payload is not valid JSON.
    """
    try:
        return json.loads(payload)
    except (ValueError, TypeError) as e:
        raise MalformedFrameError(f"Invalid JSON payload: {e}") from e


def normalize(raw_frame: Any, shape: Optional[Union[FrameShape, str]] = None) -> List[OptionRow]:
    """
    Converts one decoded frame into canonical rows.

    Records missing required keys are dropped; the rest of the frame is kept.

    Args:
        raw_frame: The decoded JSON value of one event.
        shape: FrameShape (or its value) of the frame; detected when omitted.

    Returns:
        The canonical rows, one per (strike, expiry, timestamp).

    Raises:
        MalformedFrameError: If the frame is not a non-empty list or no record survives.
    """
    if not isinstance(raw_frame, list) or not raw_frame:
        raise MalformedFrameError("Expected a non-empty array of records from the server.")

    shape = FrameShape(shape) if shape is not None else detect_shape(raw_frame)
    if shape is FrameShape.NESTED:
        rows, skipped = _normalize_nested(raw_frame)
    else:
        rows, skipped = _normalize_flat(raw_frame)

    if skipped:
        logger.debug(f"Skipped {skipped} incomplete record(s) in {shape.value} frame.")
    if not rows:
        raise MalformedFrameError(f"No usable records in {shape.value} frame ({skipped} skipped).")
    return rows


def normalize_payload(payload: Union[str, bytes], shape: Optional[Union[FrameShape, str]] = None) -> List[OptionRow]:
    """Decodes and normalizes the raw text of one event."""
    return normalize(parse_frame(payload), shape)
