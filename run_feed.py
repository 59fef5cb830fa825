"""
Script to follow the live option chain stream and log what arrives.

Usage: python run_feed.py [config.yaml]

The stream URL comes from the config file's `stream.url` or from the
OPTION_CHAIN_FEED_URL environment variable (a .env file is honoured).
"""

import asyncio
import logging
import sys

from option_chain_feed import OptionChainFeed, StreamClient, load_settings
from option_chain_feed.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def log_update(feed: OptionChainFeed):
    """Returns a stream listener logging status, latest meta and the nearest expiries."""
    last_version = {"value": 0}

    def listener(client: StreamClient) -> None:
        status = feed.status()
        logger.info(f"[{client.state.value}] {status.message}")
        if feed.store.version == last_version["value"]:
            return
        last_version["value"] = feed.store.version

        meta = feed.latest_meta
        if meta is not None:
            logger.info(f"Last updated {meta.timestamp}, underlying {meta.underlying_value}")
        for summary in feed.summaries(limit=2):
            logger.info(
                f"{summary.expiry_date}: CE OI {summary.total_ce_oi:,.0f} "
                f"PE OI {summary.total_pe_oi:,.0f} PCR {summary.pcr_oi:.2f}"
            )

    return listener


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    settings = load_settings(config_path)
    setup_logging(settings.log_level)

    feed = OptionChainFeed(settings)
    feed.add_listener(log_update(feed))
    try:
        asyncio.run(feed.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, stream stopped.")


if __name__ == "__main__":
    main()
