"""Tests for the in-memory row store."""

import threading

from option_chain_feed.aggregator import to_open_interest_series
from option_chain_feed.models import LatestMeta
from option_chain_feed.storage.row_store import RowStore, sort_expiries


def test_empty_store():
    store = RowStore()
    assert len(store) == 0
    assert store.rows == []
    assert store.current_expiries() == []
    assert store.latest() is None
    assert store.version == 0


def test_replace_swaps_whole_row_set(make_row):
    """A new snapshot that omits a key makes that row disappear."""
    store = RowStore()
    store.replace([make_row(strike=100, ce_open_interest=10), make_row(strike=200, ce_open_interest=5)])
    assert to_open_interest_series(store.rows)[0].ce_oi == 15

    store.replace([make_row(strike=100, ce_open_interest=10)])
    assert [row.strike_price for row in store.rows] == [100]
    assert to_open_interest_series(store.rows)[0].ce_oi == 10
    assert store.version == 2


def test_replace_deduplicates_keys(make_row):
    store = RowStore()
    store.replace([make_row(ce_open_interest=1), make_row(ce_open_interest=2)])
    assert len(store) == 1
    assert store.rows[0].ce_open_interest == 2


def test_current_expiries_sorted_and_distinct(make_row):
    store = RowStore()
    store.replace([
        make_row(expiry="2024-10-31"),
        make_row(expiry="2024-10-03", strike=200),
        make_row(expiry="2024-10-31", strike=300),
    ])
    assert store.current_expiries() == ["2024-10-03", "2024-10-31"]


def test_expiry_tokens_sort_chronologically():
    """Date tokens sort by date, not by spelling; non-dates come last."""
    tokens = ["07-Nov-2024", "24-Oct-2024", "weekly", "31-Oct-2024", "24-Oct-2024"]
    assert sort_expiries(tokens) == ["24-Oct-2024", "31-Oct-2024", "07-Nov-2024", "weekly"]


def test_latest_picks_max_instant(make_row):
    store = RowStore()
    store.replace([
        make_row(instant=1000, underlying=10.0),
        make_row(instant=3000, timestamp="later", underlying=30.0, strike=200),
        make_row(instant=2000, underlying=20.0, strike=300),
    ])
    assert store.latest() == LatestMeta(timestamp="later", underlying_value=30.0)


def test_latest_tie_breaks_on_first_occurrence(make_row):
    store = RowStore()
    store.replace([
        make_row(strike=100, instant=5000, underlying=1.0),
        make_row(strike=200, instant=5000, underlying=2.0),
    ])
    assert store.latest().underlying_value == 1.0


def test_snapshot_is_consistent_across_threads(make_row):
    """Readers always see rows, expiries and latest from the same frame."""
    store = RowStore()
    frames = [
        [make_row(strike=s, expiry=f"E{n}", instant=n) for s in (100, 200, 300)]
        for n in range(1, 50)
    ]
    errors = []

    def writer():
        for rows in frames:
            store.replace(rows)

    def reader():
        for _ in range(500):
            snapshot = store.snapshot()
            if snapshot.rows:
                expiry = snapshot.rows[0].expiry_date
                if list(snapshot.expiries) != [expiry] or snapshot.latest.timestamp != snapshot.rows[0].instant:
                    errors.append(snapshot.version)

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []


def test_relative_expiry_words_sort_as_plain_tokens():
    assert sort_expiries(["today", "31-Oct-2024", "24-Oct-2024"]) == ["24-Oct-2024", "31-Oct-2024", "today"]
