"""Error taxonomy for the option chain feed."""


class FeedError(Exception):
    """Base class for every error raised by the feed pipeline."""


class TransportError(FeedError):
    """The event stream could not be opened or was dropped.

    Recovered automatically with exponential backoff until the retry
    ceiling is reached.
    """


class RetryExhaustedError(TransportError):
    """Reconnection gave up after the configured number of attempts."""


class MalformedFrameError(FeedError):
    """A received frame was not valid JSON, not a list, or had no usable records.

    The connection stays open and the previous row set is retained.
    """


class PartialRecordError(FeedError):
    """A single record inside an otherwise valid frame is missing required keys."""
