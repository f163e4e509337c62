"""Inbound message decoding."""

from .messages import (
    DecodedMessage,
    Quote,
    OpenInterest,
    Disconnection,
    UnknownMessage,
    MalformedFrame,
    format_price,
    format_utc_time,
)
from .decoder import MessageDecoder

__all__ = [
    'DecodedMessage',
    'Quote',
    'OpenInterest',
    'Disconnection',
    'UnknownMessage',
    'MalformedFrame',
    'format_price',
    'format_utc_time',
    'MessageDecoder',
]
