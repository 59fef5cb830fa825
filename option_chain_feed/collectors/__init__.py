"""Stream transport, frame normalization and the subscription state machine."""

from .normalizer import FrameShape, detect_shape, normalize, normalize_payload, parse_frame
from .sse import AiohttpEventSource, ServerSentEvent, SSEDecoder
from .stream_client import ConnectionState, ReconnectPolicy, StreamClient

__all__ = [
    "FrameShape",
    "detect_shape",
    "normalize",
    "normalize_payload",
    "parse_frame",
    "AiohttpEventSource",
    "ServerSentEvent",
    "SSEDecoder",
    "ConnectionState",
    "ReconnectPolicy",
    "StreamClient",
]
