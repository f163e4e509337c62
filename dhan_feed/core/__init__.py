"""Shared error types."""

from .errors import (
    ErrorCode,
    ERROR_METADATA,
    FeedError,
    DhanFeedError,
    InvalidArgument,
    TransportFailure,
    AuthorizationTimeout,
    SessionStateError,
    ConfigError,
)

__all__ = [
    'ErrorCode',
    'ERROR_METADATA',
    'FeedError',
    'DhanFeedError',
    'InvalidArgument',
    'TransportFailure',
    'AuthorizationTimeout',
    'SessionStateError',
    'ConfigError',
]
