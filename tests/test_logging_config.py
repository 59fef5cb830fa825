"""Tests for the logging setup helper."""

import logging

import pytest

from option_chain_feed.utils.logging_config import setup_logging


def test_string_level_is_accepted():
    root = logging.getLogger()
    previous = root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert logging.getLogger("aiohttp.client").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_unknown_level_names_the_given_value():
    with pytest.raises(ValueError, match="Unknown log level: FOO$"):
        setup_logging("FOO")
