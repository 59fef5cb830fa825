"""Server-sent event decoding and an aiohttp based event stream transport."""

import codecs
import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional

import aiohttp

from option_chain_feed.errors import TransportError

_LINE_END = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class ServerSentEvent:
    """One dispatched event from a text/event-stream body."""
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None  # reconnection time in ms, if the server sent one


class SSEDecoder:
    """
    Incremental text/event-stream parser.

    Feed it decoded text in chunks of any size; it returns each event once the
    blank line terminating it has arrived. Handles CRLF, CR and LF line ends,
    comments, multi-line data and the persistent last-event-id.
    """

    def __init__(self):
        self._buffer = ""
        self._data: List[str] = []
        self._event_type = ""
        self._retry: Optional[int] = None
        self.last_event_id: Optional[str] = None

    def feed(self, chunk: str) -> List[ServerSentEvent]:
        self._buffer += chunk
        events = []
        while True:
            match = _LINE_END.search(self._buffer)
            if match is None:
                break
            # A trailing CR may be the first half of a CRLF split across chunks
            if match.group() == "\r" and match.end() == len(self._buffer):
                break
            line = self._buffer[:match.start()]
            self._buffer = self._buffer[match.end():]
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def _process_line(self, line: str) -> Optional[ServerSentEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event_type = value
        elif name == "id":
            if "\x00" not in value:
                self.last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data:
            self._event_type = ""
            return None
        event = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event_type or "message",
            id=self.last_event_id,
            retry=self._retry,
        )
        self._data = []
        self._event_type = ""
        self._retry = None
        return event


class AiohttpEventStream:
    """An open text/event-stream response; async-iterate it for events."""

    def __init__(self, session: aiohttp.ClientSession, response: aiohttp.ClientResponse, chunk_size: int = 65536):
        self._session = session
        self._response = response
        self._chunk_size = chunk_size

    def __aiter__(self) -> AsyncIterator[ServerSentEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[ServerSentEvent]:
        decoder = SSEDecoder()
        text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        async for chunk in self._response.content.iter_chunked(self._chunk_size):
            for event in decoder.feed(text.decode(chunk)):
                yield event
        for event in decoder.feed(text.decode(b"", final=True)):
            yield event

    async def close(self) -> None:
        self._response.release()
        await self._session.close()


class AiohttpEventSource:
    """
    Opens event streams over HTTP with aiohttp.

    Args:
        connect_timeout: Seconds allowed to establish the connection.
        read_timeout: Seconds allowed between two reads; None waits forever,
            which suits streams that can stay quiet between snapshots.
        headers: Extra request headers.
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.timeout = aiohttp.ClientTimeout(total=None, connect=connect_timeout, sock_read=read_timeout)
        self.headers = dict(headers or {})

    async def open(self, url: str, last_event_id: Optional[str] = None) -> AiohttpEventStream:
        """
        Connects to `url` and returns the stream once the response headers are in.

        Raises:
            TransportError: On a non-200 status or a non event-stream content type.
            aiohttp.ClientError: If the connection itself fails.
        """
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache", **self.headers}
        if last_event_id:
            headers["Last-Event-ID"] = last_event_id

        session = aiohttp.ClientSession(timeout=self.timeout)
        try:
            response = await session.get(url, headers=headers)
            if response.status != 200:
                response.release()
                raise TransportError(f"Unexpected HTTP status {response.status} from {url}")
            if response.content_type != "text/event-stream":
                response.release()
                raise TransportError(f"Unexpected content type '{response.content_type}' from {url}")
        except BaseException:
            await session.close()
            raise

        self.logger.info(f"Event stream opened: {url}")
        return AiohttpEventStream(session, response)
