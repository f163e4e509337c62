"""
dhan-feed - Client for a binary market-data feed.

This package provides:
- formats: Byte layouts and code constants
- codec: Authorization and subscription packet builders
- decoder: Inbound frame decoding (quote, open interest, disconnection)
- cache: Last-known quote per instrument
- session: Connection state machine and listener interface
- transport: WebSocket transport
- config: YAML configuration with environment variable support
- cli: Command-line interface
"""

__version__ = "1.0.0"

from .core import (
    ErrorCode,
    FeedError,
    DhanFeedError,
    InvalidArgument,
    TransportFailure,
    AuthorizationTimeout,
    SessionStateError,
)
from .formats import RequestCode, MessageType, DisconnectCode
from .codec import (
    Instrument,
    SubscriptionMode,
    build_header,
    build_authorization_packet,
    build_subscription_packet,
)
from .decoder import (
    MessageDecoder,
    Quote,
    OpenInterest,
    Disconnection,
    UnknownMessage,
    MalformedFrame,
)
from .cache import TickerCache
from .session import FeedSession, SessionState, SessionListener, DisconnectEvent
from .transport import FeedTransport, WebSocketTransport
from .config import FeedConfig, load_config

__all__ = [
    # Version
    '__version__',
    # Errors
    'ErrorCode',
    'FeedError',
    'DhanFeedError',
    'InvalidArgument',
    'TransportFailure',
    'AuthorizationTimeout',
    'SessionStateError',
    # Formats
    'RequestCode',
    'MessageType',
    'DisconnectCode',
    # Codec
    'Instrument',
    'SubscriptionMode',
    'build_header',
    'build_authorization_packet',
    'build_subscription_packet',
    # Decoder
    'MessageDecoder',
    'Quote',
    'OpenInterest',
    'Disconnection',
    'UnknownMessage',
    'MalformedFrame',
    # Cache
    'TickerCache',
    # Session
    'FeedSession',
    'SessionState',
    'SessionListener',
    'DisconnectEvent',
    # Transport
    'FeedTransport',
    'WebSocketTransport',
    # Config
    'FeedConfig',
    'load_config',
]
