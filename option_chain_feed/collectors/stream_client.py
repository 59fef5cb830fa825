"""Subscription lifecycle for the live option chain event stream."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional

import backoff

from option_chain_feed.collectors.sse import AiohttpEventSource
from option_chain_feed.errors import FeedError, MalformedFrameError, RetryExhaustedError, TransportError


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECEIVING = "receiving"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential reconnect schedule: min(base * 2**attempt, cap) for attempts 1..max_retries."""
    max_retries: int = 5
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    def delays(self) -> Iterator[float]:
        """Yields the delay in milliseconds before each retry, then stops."""
        # Attempt numbering starts at 1, so the first delay is already base * 2
        wait = backoff.expo(base=2, factor=self.base_delay_ms * 2, max_value=self.max_delay_ms)
        wait.send(None)
        for _ in range(self.max_retries):
            yield next(wait)


class StreamClient:
    """
    Keeps a subscription to a server-sent event stream alive.

    State machine: IDLE -> CONNECTING -> CONNECTED -> RECEIVING, with ERROR
    reachable from every live state and CONNECTING re-entered from ERROR
    through a scheduled retry. `stop()` moves to CLOSED from anywhere and
    nothing happens afterwards.

    Each event payload is handed to `on_payload`. A MalformedFrameError (or
    any other exception) raised there moves the client to ERROR but keeps
    the subscription open. Transport failures close the stream and schedule
    a reconnect using the ReconnectPolicy; once the policy runs out the
    client stays in ERROR with a RetryExhaustedError until `restart()`.

    All methods must be called from the event loop thread.

    Args:
        url: Event stream endpoint.
        on_payload: Called with the data of every non-empty message event.
        transport: Object with `async open(url, last_event_id)` returning an
            async-iterable stream with `async close()`. Defaults to aiohttp.
        policy: Reconnect schedule.
        call_later: `(delay_seconds, callback) -> handle` used to schedule
            retries; defaults to the running loop's call_later.
    """

    def __init__(
        self,
        url: str,
        on_payload: Callable[[str], Any],
        transport: Optional[Any] = None,
        policy: Optional[ReconnectPolicy] = None,
        call_later: Optional[Callable[[float, Callable[[], None]], Any]] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url
        self.on_payload = on_payload
        self.transport = transport or AiohttpEventSource()
        self.policy = policy or ReconnectPolicy()
        self._call_later = call_later

        self.state = ConnectionState.IDLE
        self.last_error: Optional[FeedError] = None
        self.retry_attempt = 0
        self.retries_exhausted = False
        self.frames_received = 0
        self.last_event_id: Optional[str] = None

        self._delays = self.policy.delays()
        self._listeners: List[Callable[["StreamClient"], None]] = []
        self._task: Optional[asyncio.Task] = None
        self._retry_handle: Optional[Any] = None

    def add_listener(self, listener: Callable[["StreamClient"], None]) -> None:
        """Registers a callback run after every state change and every ingested frame."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[["StreamClient"], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        """Opens the subscription: IDLE -> CONNECTING."""
        if self.state is not ConnectionState.IDLE:
            self.logger.warning(f"start() ignored in state {self.state.value}")
            return
        self.logger.info(f"Starting event stream client for {self.url}")
        self._connect()

    def restart(self) -> None:
        """Manual reconnect from ERROR, typically after the retries ran out."""
        if self.state is not ConnectionState.ERROR:
            self.logger.warning(f"restart() ignored in state {self.state.value}")
            return
        self.logger.info(f"Restarting event stream client for {self.url}")
        self._cancel_pending()
        self._delays = self.policy.delays()
        self.retry_attempt = 0
        self.retries_exhausted = False
        self._connect()

    def stop(self) -> None:
        """Closes the subscription and cancels any scheduled retry. Terminal."""
        if self.state is ConnectionState.CLOSED:
            return
        self._cancel_pending()
        self._set_state(ConnectionState.CLOSED)
        self.logger.info(f"Event stream client for {self.url} stopped.")

    async def wait_closed(self) -> None:
        """Waits until the connection task has finished unwinding after stop()."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def handle_payload(self, data: str) -> None:
        """Processes one message event payload."""
        if self.state is ConnectionState.CLOSED:
            return
        if not data or not data.strip():
            if self.state is ConnectionState.CONNECTED:
                self._set_state(ConnectionState.RECEIVING)
            return

        try:
            self.on_payload(data)
        except MalformedFrameError as e:
            self.logger.warning(f"Rejected frame: {e}")
            self._fail(e)
            return
        except Exception as e:
            self.logger.exception("Unexpected error while processing frame")
            self._fail(MalformedFrameError(f"Data processing error: {e}"))
            return

        self.frames_received += 1
        self.last_error = None
        if not self._set_state(ConnectionState.RECEIVING):
            self._notify()

    def _cancel_pending(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _connect(self) -> None:
        self._retry_handle = None
        if self.state is ConnectionState.CLOSED:
            return
        self.last_error = None
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            stream = await self.transport.open(self.url, last_event_id=self.last_event_id)
        except Exception as e:
            self._on_transport_error(self._as_transport_error(e, "Connection error"))
            return

        self._on_open()
        try:
            async for event in stream:
                if event.id is not None:
                    self.last_event_id = event.id
                if event.retry is not None:
                    self.logger.debug(f"Ignoring server retry hint of {event.retry} ms; the reconnect policy applies")
                if event.event != "message":
                    self.logger.debug(f"Ignoring '{event.event}' event")
                    continue
                self.handle_payload(event.data)
        except Exception as e:
            error = self._as_transport_error(e, "Connection lost")
        else:
            error = TransportError("Connection closed by server.")
        finally:
            await self._close_stream(stream)
        self._on_transport_error(error)

    async def _close_stream(self, stream: Any) -> None:
        try:
            await stream.close()
        except Exception as e:
            self.logger.warning(f"Error while closing event stream: {e}")

    def _on_open(self) -> None:
        self.logger.info(f"Connected to {self.url}")
        self.retry_attempt = 0
        self.retries_exhausted = False
        self._delays = self.policy.delays()
        self.last_error = None
        self._set_state(ConnectionState.CONNECTED)

    def _on_transport_error(self, error: TransportError) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.logger.warning(f"Event stream transport error: {error}")
        self._fail(error)
        self._schedule_retry()

    def _schedule_retry(self) -> None:
        delay_ms = next(self._delays, None)
        if delay_ms is None:
            self.retries_exhausted = True
            self.last_error = RetryExhaustedError("Failed to connect after multiple attempts.")
            self.logger.error(f"Giving up on {self.url} after {self.retry_attempt} reconnect attempts.")
            self._notify()
            return

        self.retry_attempt += 1
        self.logger.info(
            f"Reconnecting to {self.url} in {delay_ms} ms "
            f"(attempt {self.retry_attempt} of {self.policy.max_retries})"
        )
        call_later = self._call_later or asyncio.get_running_loop().call_later
        self._retry_handle = call_later(delay_ms / 1000.0, self._connect)

    def _fail(self, error: FeedError) -> None:
        self.last_error = error
        if not self._set_state(ConnectionState.ERROR):
            self._notify()

    @staticmethod
    def _as_transport_error(error: Exception, context: str) -> TransportError:
        if isinstance(error, TransportError):
            return error
        return TransportError(f"{context}: {str(error) or type(error).__name__}")

    def _set_state(self, state: ConnectionState) -> bool:
        """Moves to `state`; returns True (after notifying listeners) if it changed."""
        if state is self.state:
            return False
        self.logger.debug(f"Stream state {self.state.value} -> {state.value}")
        self.state = state
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                self.logger.exception("Stream listener failed")
