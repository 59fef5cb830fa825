"""Live option chain feed: stream ingestion, normalization and aggregation."""

from .collector import OptionChainFeed
from .collectors.stream_client import ConnectionState, ReconnectPolicy, StreamClient
from .config import FeedSettings, load_settings
from .errors import FeedError, MalformedFrameError, PartialRecordError, RetryExhaustedError, TransportError
from .storage.row_store import RowStore

__all__ = [
    "OptionChainFeed",
    "StreamClient",
    "ConnectionState",
    "ReconnectPolicy",
    "RowStore",
    "FeedSettings",
    "load_settings",
    "FeedError",
    "TransportError",
    "RetryExhaustedError",
    "MalformedFrameError",
    "PartialRecordError",
]
