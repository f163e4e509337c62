"""Wire layouts and code constants."""

from .codes import RequestCode, MessageType, DisconnectCode
from .layout import (
    FieldSpec,
    FrameLayout,
    HEADER,
    HEADER_SIZE,
    AUTH_PAYLOAD,
    AUTH_PACKET_SIZE,
    INSTRUMENT_COUNT,
    INSTRUMENT_SLOT,
    MAX_INSTRUMENTS,
    SUBSCRIPTION_PACKET_SIZE,
    QUOTE,
    QUOTE_SIZE,
    OPEN_INTEREST,
    OPEN_INTEREST_SIZE,
    DISCONNECTION,
    DISCONNECTION_SIZE,
)

__all__ = [
    'RequestCode',
    'MessageType',
    'DisconnectCode',
    'FieldSpec',
    'FrameLayout',
    'HEADER',
    'HEADER_SIZE',
    'AUTH_PAYLOAD',
    'AUTH_PACKET_SIZE',
    'INSTRUMENT_COUNT',
    'INSTRUMENT_SLOT',
    'MAX_INSTRUMENTS',
    'SUBSCRIPTION_PACKET_SIZE',
    'QUOTE',
    'QUOTE_SIZE',
    'OPEN_INTEREST',
    'OPEN_INTEREST_SIZE',
    'DISCONNECTION',
    'DISCONNECTION_SIZE',
]
