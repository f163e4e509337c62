"""
Error codes and exceptions for dhan-feed.

Structured error codes for machine-parseable results.

Format: E{category}{number}
- E1xxx: Inbound frame errors (recovered locally, processing continues)
- E2xxx: Encode errors (surfaced to the caller, no packet sent)
- E3xxx: Configuration errors
- E4xxx: Transport and session errors
- E5xxx: Server-initiated disconnections
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class ErrorCode(Enum):
    """Structured error codes."""

    # E1xxx: Frame errors
    E1001_EMPTY_FRAME = "E1001"
    E1002_TRUNCATED_FRAME = "E1002"

    # E2xxx: Encode errors
    E2001_TOO_MANY_INSTRUMENTS = "E2001"
    E2002_FIELD_TOO_LONG = "E2002"
    E2003_INVALID_SEGMENT = "E2003"
    E2004_INVALID_INSTRUMENT = "E2004"

    # E3xxx: Configuration errors
    E3001_INVALID_CONFIG = "E3001"
    E3002_MISSING_CREDENTIALS = "E3002"

    # E4xxx: Transport / session errors
    E4001_TRANSPORT_FAILED = "E4001"
    E4002_TRANSPORT_CLOSED = "E4002"
    E4003_AUTHORIZATION_TIMEOUT = "E4003"
    E4004_INVALID_STATE = "E4004"

    # E5xxx: Server disconnections
    E5001_SERVER_DISCONNECT = "E5001"


# Error code metadata
ERROR_METADATA = {
    ErrorCode.E1001_EMPTY_FRAME: {
        'severity': 'warning',
        'message': 'Frame too short to read message type',
        'recoverable': True,
    },
    ErrorCode.E1002_TRUNCATED_FRAME: {
        'severity': 'warning',
        'message': 'Frame shorter than minimum for its message type',
        'recoverable': True,
    },
    ErrorCode.E2001_TOO_MANY_INSTRUMENTS: {
        'severity': 'error',
        'message': 'Too many instruments for one subscription packet',
        'recoverable': False,
    },
    ErrorCode.E2002_FIELD_TOO_LONG: {
        'severity': 'error',
        'message': 'Field exceeds its fixed byte width',
        'recoverable': False,
    },
    ErrorCode.E2003_INVALID_SEGMENT: {
        'severity': 'error',
        'message': 'Exchange segment outside u8 range',
        'recoverable': False,
    },
    ErrorCode.E2004_INVALID_INSTRUMENT: {
        'severity': 'error',
        'message': 'Instrument is not SEGMENT:SECURITY_ID',
        'recoverable': False,
    },
    ErrorCode.E3001_INVALID_CONFIG: {
        'severity': 'error',
        'message': 'Invalid configuration',
        'recoverable': False,
    },
    ErrorCode.E3002_MISSING_CREDENTIALS: {
        'severity': 'error',
        'message': 'Client id or access token not configured',
        'recoverable': False,
    },
    ErrorCode.E4001_TRANSPORT_FAILED: {
        'severity': 'error',
        'message': 'Transport error',
        'recoverable': False,
    },
    ErrorCode.E4002_TRANSPORT_CLOSED: {
        'severity': 'warning',
        'message': 'Transport closed',
        'recoverable': False,
    },
    ErrorCode.E4003_AUTHORIZATION_TIMEOUT: {
        'severity': 'error',
        'message': 'Authorization not confirmed in time',
        'recoverable': False,
    },
    ErrorCode.E4004_INVALID_STATE: {
        'severity': 'error',
        'message': 'Operation not allowed in current session state',
        'recoverable': False,
    },
    ErrorCode.E5001_SERVER_DISCONNECT: {
        'severity': 'error',
        'message': 'Server requested disconnection',
        'recoverable': False,
    },
}


@dataclass
class FeedError:
    """
    Structured error with context.

    Example:
        error = FeedError(
            code=ErrorCode.E1002_TRUNCATED_FRAME,
            context={'message_type': 4, 'length': 49, 'required': 50},
        )
    """
    code: ErrorCode
    context: Optional[dict] = None

    @property
    def severity(self) -> str:
        return ERROR_METADATA.get(self.code, {}).get('severity', 'error')

    @property
    def message(self) -> str:
        base_msg = ERROR_METADATA.get(self.code, {}).get('message', 'Unknown error')
        if self.context:
            return f"{base_msg}: {self.context}"
        return base_msg

    @property
    def recoverable(self) -> bool:
        return ERROR_METADATA.get(self.code, {}).get('recoverable', False)

    def to_dict(self) -> dict:
        return {
            'code': self.code.value,
            'severity': self.severity,
            'message': self.message,
            'recoverable': self.recoverable,
            'context': self.context,
        }


class DhanFeedError(Exception):
    """Base class for raised feed errors."""

    default_code = ErrorCode.E4001_TRANSPORT_FAILED

    def __init__(self, message: str, code: Optional[ErrorCode] = None,
                 context: Optional[dict] = None):
        super().__init__(message)
        self.error = FeedError(code=code or self.default_code, context=context)

    @property
    def code(self) -> ErrorCode:
        return self.error.code


class InvalidArgument(DhanFeedError, ValueError):
    """Packet inputs violate a size or count constraint."""

    default_code = ErrorCode.E2002_FIELD_TOO_LONG


class TransportFailure(DhanFeedError):
    """Underlying socket failed or closed."""

    default_code = ErrorCode.E4001_TRANSPORT_FAILED


class AuthorizationTimeout(TransportFailure):
    """Authorized gate did not open within the configured wait."""

    default_code = ErrorCode.E4003_AUTHORIZATION_TIMEOUT


class SessionStateError(DhanFeedError):
    """Operation issued in a state that does not allow it."""

    default_code = ErrorCode.E4004_INVALID_STATE


class ConfigError(DhanFeedError):
    """Configuration could not be loaded or is invalid."""

    default_code = ErrorCode.E3001_INVALID_CONFIG
