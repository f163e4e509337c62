"""
Feed code constants.

Outbound packets carry a request code in byte 0 of the header:
- AUTHORIZE: Authorization packet (header + access token + auth type)
- SUBSCRIBE: Add instruments to the feed
- UNSUBSCRIBE: Remove instruments from the feed

Inbound frames carry a message type in byte 0:
- QUOTE: Last trade and session OHLC for one instrument
- OPEN_INTEREST: Open interest update for one instrument
- DISCONNECTION: Server-initiated disconnection notice
"""


class RequestCode:
    """Outbound request code constants."""

    AUTHORIZE = 11
    SUBSCRIBE = 17
    UNSUBSCRIBE = 18

    @classmethod
    def name(cls, code: int) -> str:
        """Get human-readable name for a request code."""
        names = {
            cls.AUTHORIZE: 'AUTHORIZE',
            cls.SUBSCRIBE: 'SUBSCRIBE',
            cls.UNSUBSCRIBE: 'UNSUBSCRIBE',
        }
        return names.get(code, f'UNKNOWN({code})')


class MessageType:
    """Inbound message type constants."""

    QUOTE = 4
    OPEN_INTEREST = 5
    DISCONNECTION = 50

    @classmethod
    def name(cls, type_value: int) -> str:
        """Get human-readable name for a message type."""
        names = {
            cls.QUOTE: 'QUOTE',
            cls.OPEN_INTEREST: 'OPEN_INTEREST',
            cls.DISCONNECTION: 'DISCONNECTION',
        }
        return names.get(type_value, f'UNKNOWN({type_value})')

    @classmethod
    def is_known(cls, type_value: int) -> bool:
        """Check if message type has a typed decoder."""
        return type_value in (cls.QUOTE, cls.OPEN_INTEREST, cls.DISCONNECTION)


class DisconnectCode:
    """Server disconnection codes. All known codes force teardown."""

    CONNECTION_LIMIT_EXCEEDED = 805
    SUBSCRIPTION_REQUIRED = 806
    TOKEN_EXPIRED = 807
    INVALID_CLIENT_ID = 808
    AUTHENTICATION_FAILED = 809

    REASONS = {
        CONNECTION_LIMIT_EXCEEDED: 'No. of active websocket connections exceeded',
        SUBSCRIPTION_REQUIRED: 'Subscribe to Data APIs to continue',
        TOKEN_EXPIRED: 'Access Token is expired',
        INVALID_CLIENT_ID: 'Invalid Client ID',
        AUTHENTICATION_FAILED: 'Authentication Failed - check',
    }

    @classmethod
    def reason(cls, code: int) -> str:
        """Human-readable reason, without the "Disconnected: " prefix."""
        return cls.REASONS.get(code, f'Unknown disconnection code: {code}')

    @classmethod
    def forces_teardown(cls, code: int) -> bool:
        """Only documented codes tear the session down."""
        return code in cls.REASONS
