"""Integration tests running the feed against a local aiohttp event stream server."""

import asyncio
import logging

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from option_chain_feed import ConnectionState, FeedSettings, OptionChainFeed
from option_chain_feed.collectors.sse import AiohttpEventSource
from option_chain_feed.errors import TransportError
from option_chain_feed.utils.logging_config import setup_logging

pytestmark = pytest.mark.integration

setup_logging(logging.DEBUG)
logger = logging.getLogger(__name__)


def make_app(frames, hold=True):
    """An app serving `frames` on /api/data, then holding the stream open until released."""
    app = web.Application()
    app["frames"] = frames
    app["seen_ids"] = []
    app["release"] = asyncio.Event()

    async def stream(request):
        request.app["seen_ids"].append(request.headers.get("Last-Event-ID"))
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"})
        await response.prepare(request)
        for n, frame in enumerate(request.app["frames"], 1):
            await response.write(f": tick\nid: {n}\ndata: {frame}\n\n".encode())
        if hold:
            await request.app["release"].wait()
        return response

    async def plain(request):
        return web.Response(text="not a stream")

    app.router.add_get("/api/data", stream)
    app.router.add_get("/plain", plain)
    return app


async def wait_until(condition, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def test_feed_ingests_live_stream(flat_payload):
    """A frame sent by the server ends up in the store and the derived views."""
    async def scenario():
        app = make_app([flat_payload])
        server = TestServer(app)
        await server.start_server()
        try:
            feed = OptionChainFeed(FeedSettings(url=str(server.make_url("/api/data"))))
            task = asyncio.get_running_loop().create_task(feed.run())
            await wait_until(lambda: len(feed.rows) == 2)
            result = (feed.connection_state, feed.summaries(), feed.client.last_event_id)
            feed.stop()
            await task
            return result
        finally:
            app["release"].set()
            await server.close()

    state, summaries, last_event_id = asyncio.run(scenario())
    assert state is ConnectionState.RECEIVING
    assert summaries[0].total_ce_oi == 250000
    assert last_event_id == "1"


def test_feed_reconnects_with_last_event_id(flat_payload):
    """When the server ends the response the client reconnects and resumes from the last id."""
    async def scenario():
        app = make_app([flat_payload], hold=False)
        server = TestServer(app)
        await server.start_server()
        try:
            feed = OptionChainFeed(FeedSettings(url=str(server.make_url("/api/data")), base_delay_ms=10))
            task = asyncio.get_running_loop().create_task(feed.run())
            await wait_until(lambda: len(app["seen_ids"]) >= 2)
            feed.stop()
            await task
            return list(app["seen_ids"]), feed
        finally:
            await server.close()

    seen_ids, feed = asyncio.run(scenario())
    assert seen_ids[:2] == [None, "1"]
    assert len(feed.rows) == 2


@pytest.mark.parametrize("path", ["/plain", "/missing"])
def test_event_source_rejects_non_stream_responses(path):
    async def scenario():
        server = TestServer(make_app([]))
        await server.start_server()
        try:
            with pytest.raises(TransportError):
                await AiohttpEventSource(connect_timeout=2.0).open(str(server.make_url(path)))
        finally:
            await server.close()

    asyncio.run(scenario())


def test_unreachable_server_gives_up_after_retries():
    async def scenario():
        server = TestServer(make_app([]))
        await server.start_server()
        url = str(server.make_url("/api/data"))
        await server.close()

        settings = FeedSettings(url=url, max_retries=2, base_delay_ms=5, connect_timeout=1.0)
        feed = OptionChainFeed(settings)
        feed.start()
        await wait_until(lambda: feed.client.retries_exhausted)
        status = feed.status()
        feed.stop()
        await feed.client.wait_closed()
        return status

    status = asyncio.run(scenario())
    assert status.message == "Failed to connect after multiple attempts."
    assert status.level == "error"
