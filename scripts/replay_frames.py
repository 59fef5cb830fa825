import json
import logging
import os
import sys

import pandas as pd

from option_chain_feed.aggregator import to_change_series, to_open_interest_series
from option_chain_feed.collectors.normalizer import normalize_payload
from option_chain_feed.errors import MalformedFrameError
from option_chain_feed.storage.row_store import RowStore
from option_chain_feed.utils.logging_config import setup_logging
from option_chain_feed.views import filter_rows, summarize_expiries

logger = logging.getLogger(__name__)

# Recorded stream: one JSON frame per line, as received from the event stream
FRAMES_FILE_PATH = 'data/frames.jsonl'
OUTPUT_DIR = 'data/replay'


def replay_frames(frames_path: str = FRAMES_FILE_PATH, output_dir: str = OUTPUT_DIR):
    """
    Replays a recorded stream through the normalizer and row store, then
    writes the expiry summaries and the nearest expiry's OI / change-in-OI
    series as CSV files.
    """
    if not os.path.exists(frames_path):
        logger.error(f"Frames file not found at {frames_path}")
        sys.exit(1)

    store = RowStore()
    accepted = rejected = 0
    with open(frames_path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                store.replace(normalize_payload(line))
                accepted += 1
            except MalformedFrameError as e:
                rejected += 1
                logger.warning(f"Line {line_number}: {e}")

    logger.info(f"Replayed {accepted} frames ({rejected} rejected); store holds {len(store)} rows.")
    if not len(store):
        return

    snapshot = store.snapshot()
    os.makedirs(output_dir, exist_ok=True)

    summaries = pd.DataFrame([vars(s) for s in summarize_expiries(snapshot.rows, snapshot.expiries, limit=None)])
    summaries.to_csv(os.path.join(output_dir, "expiry_summaries.csv"), index=False)

    nearest = filter_rows(snapshot.rows, snapshot.expiries[0])
    oi_series = pd.DataFrame([vars(p) for p in to_open_interest_series(nearest)])
    change_series = pd.DataFrame([vars(p) for p in to_change_series(nearest)])
    for frame in (oi_series, change_series):
        frame["time"] = pd.to_datetime(frame["timestamp"], unit="ms", utc=True)
    oi_series.to_csv(os.path.join(output_dir, "oi_series.csv"), index=False)
    change_series.to_csv(os.path.join(output_dir, "change_series.csv"), index=False)

    meta = snapshot.latest
    logger.info(f"Latest snapshot {meta.timestamp}, underlying {meta.underlying_value}")
    logger.info(f"Wrote summaries and series for {snapshot.expiries[0]} to {output_dir}")
    print(json.dumps({"frames": accepted, "rejected": rejected, "rows": len(store)}))


if __name__ == "__main__":
    setup_logging()
    replay_frames(*sys.argv[1:3])
