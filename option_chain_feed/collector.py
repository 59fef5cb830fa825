"""Main module wiring the live stream into the row store and its derived views."""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from option_chain_feed.aggregator import summarize_by_expiry, to_change_series, to_open_interest_series
from option_chain_feed.collectors.normalizer import normalize_payload
from option_chain_feed.collectors.sse import AiohttpEventSource
from option_chain_feed.collectors.stream_client import ConnectionState, ReconnectPolicy, StreamClient
from option_chain_feed.config import FeedSettings, load_settings
from option_chain_feed.errors import FeedError
from option_chain_feed.models import ChangeSeriesPoint, ExpirySummary, LatestMeta, OptionRow, TimeSeriesPoint
from option_chain_feed.storage.row_store import RowStore
from option_chain_feed.views import StatusInfo, default_expiry, filter_rows, status_message, summarize_expiries


class OptionChainFeed:
    """Main class for following a live option chain.

    Every frame from the stream is normalized and swapped into the RowStore.
    The read side (rows, expiries, series, summaries) is computed on demand
    from one consistent store snapshot.
    """

    def __init__(
        self,
        settings: FeedSettings,
        transport: Optional[Any] = None,
        store: Optional[RowStore] = None,
        call_later: Optional[Callable] = None,
    ):
        """Initialize the feed.

        Args:
            settings: Stream URL and retry configuration.
            transport: Event stream transport; aiohttp when omitted.
            store: Row store to fill; a fresh one when omitted.
            call_later: Retry scheduler passed through to the StreamClient.
        """
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.store = store or RowStore()

        policy = ReconnectPolicy(
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
        )
        if transport is None:
            transport = AiohttpEventSource(
                connect_timeout=settings.connect_timeout,
                read_timeout=settings.read_timeout,
            )
        self.client = StreamClient(
            settings.url,
            self.process,
            transport=transport,
            policy=policy,
            call_later=call_later,
        )

    @classmethod
    def from_config(cls, config_path: Optional[str] = None, **kwargs) -> "OptionChainFeed":
        """Builds a feed from a YAML file and OPTION_CHAIN_FEED_* environment variables."""
        return cls(load_settings(config_path), **kwargs)

    def process(self, payload: str) -> List[OptionRow]:
        """Normalizes one event payload and replaces the store contents with it.

        Args:
            payload: JSON text of one event.

        Returns:
            The rows now held by the store.

        Raises:
            MalformedFrameError: If the payload yields no usable rows; the
                store keeps its previous contents.
        """
        rows = normalize_payload(payload)
        snapshot = self.store.replace(rows)
        self.logger.info(
            f"Ingested frame: {len(snapshot.rows)} rows across {len(snapshot.expiries)} expiries"
        )
        return list(snapshot.rows)

    # Lifecycle

    def start(self) -> None:
        self.client.start()

    def stop(self) -> None:
        self.client.stop()

    def restart(self) -> None:
        self.client.restart()

    def add_listener(self, listener: Callable[[StreamClient], None]) -> None:
        self.client.add_listener(listener)

    async def run(self) -> None:
        """Starts the stream and returns once it is stopped; cancelling run() stops it too."""
        closed = asyncio.Event()

        def on_change(client: StreamClient) -> None:
            if client.state is ConnectionState.CLOSED:
                closed.set()

        self.client.add_listener(on_change)
        self.start()
        try:
            await closed.wait()
        finally:
            self.client.remove_listener(on_change)
            self.stop()
            await self.client.wait_closed()

    # Read side

    @property
    def rows(self) -> List[OptionRow]:
        return self.store.rows

    @property
    def expiries(self) -> List[str]:
        return self.store.current_expiries()

    @property
    def latest_meta(self) -> Optional[LatestMeta]:
        return self.store.latest()

    @property
    def connection_state(self) -> ConnectionState:
        return self.client.state

    @property
    def last_error(self) -> Optional[FeedError]:
        return self.client.last_error

    def status(self) -> StatusInfo:
        return status_message(self.client.state, self.client.last_error, self.client.frames_received > 0)

    def select(
        self,
        expiry: Optional[str] = None,
        min_strike: Optional[float] = None,
        max_strike: Optional[float] = None,
    ) -> List[OptionRow]:
        """Rows of the chosen expiry (nearest when None) within the strike bounds."""
        snapshot = self.store.snapshot()
        chosen = default_expiry(snapshot.expiries, expiry)
        return filter_rows(snapshot.rows, chosen, min_strike, max_strike)

    def expiry_summary(self, expiry: Optional[str] = None) -> Optional[ExpirySummary]:
        snapshot = self.store.snapshot()
        chosen = default_expiry(snapshot.expiries, expiry)
        if chosen is None:
            return None
        return summarize_by_expiry(snapshot.rows, chosen)

    def summaries(self, limit: Optional[int] = 2) -> List[ExpirySummary]:
        """Summaries of the nearest `limit` expiries."""
        snapshot = self.store.snapshot()
        return summarize_expiries(snapshot.rows, snapshot.expiries, limit)

    def open_interest_series(
        self,
        expiry: Optional[str] = None,
        min_strike: Optional[float] = None,
        max_strike: Optional[float] = None,
    ) -> List[TimeSeriesPoint]:
        return to_open_interest_series(self.select(expiry, min_strike, max_strike))

    def change_series(
        self,
        expiry: Optional[str] = None,
        min_strike: Optional[float] = None,
        max_strike: Optional[float] = None,
    ) -> List[ChangeSeriesPoint]:
        return to_change_series(self.select(expiry, min_strike, max_strike))
