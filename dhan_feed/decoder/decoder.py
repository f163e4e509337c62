"""
Inbound frame decoder.

Usage:
    cache = TickerCache()
    decoder = MessageDecoder(cache)
    msg = decoder.decode(frame)
    if msg.kind == 'quote':
        print(msg.ltp)

decode() never raises on frame content: short frames come back as
MalformedFrame and unknown types as UnknownMessage, so one bad frame cannot
stop the stream.
"""

import logging
import struct
from typing import Callable, Dict, Optional

from ..cache.ticker_cache import TickerCache
from ..formats.codes import DisconnectCode, MessageType
from ..formats.layout import (
    DISCONNECTION,
    DISCONNECTION_SIZE,
    FrameLayout,
    OPEN_INTEREST,
    OPEN_INTEREST_SIZE,
    QUOTE,
    QUOTE_SIZE,
)
from .messages import (
    DecodedMessage,
    Disconnection,
    MalformedFrame,
    OpenInterest,
    Quote,
    UnknownMessage,
)

logger = logging.getLogger(__name__)

DISCONNECT_PREFIX = 'Disconnected: '


class MessageDecoder:
    """
    Dispatch frames by their leading type byte.

    Quotes are merged into the ticker cache (when one is attached) before
    being returned.
    """

    MIN_SIZES = {
        MessageType.QUOTE: QUOTE_SIZE,
        MessageType.OPEN_INTEREST: OPEN_INTEREST_SIZE,
        MessageType.DISCONNECTION: DISCONNECTION_SIZE,
    }

    def __init__(self, cache: Optional[TickerCache] = None):
        self.cache = cache
        self._decoders: Dict[int, Callable[[bytes], DecodedMessage]] = {
            MessageType.QUOTE: self._decode_quote,
            MessageType.OPEN_INTEREST: self._decode_open_interest,
            MessageType.DISCONNECTION: self._decode_disconnection,
        }

    def decode(self, frame: bytes) -> DecodedMessage:
        """
        Decode one frame.

        Args:
            frame: Raw bytes of one inbound message

        Returns:
            Quote, OpenInterest, Disconnection, UnknownMessage or MalformedFrame
        """
        data = bytes(frame)

        if len(data) < 1:
            logger.warning("Insufficient data length for determining message type")
            return MalformedFrame(message_type=None, length=0, required=1)

        message_type = data[0]
        handler = self._decoders.get(message_type)

        if handler is None:
            logger.info(f"Unknown message type: {message_type}")
            return UnknownMessage(message_type=message_type, raw_hex=data.hex())

        required = self.MIN_SIZES[message_type]
        if len(data) < required:
            logger.warning(
                f"Insufficient data length for {MessageType.name(message_type)}: "
                f"{len(data)} < {required}"
            )
            return MalformedFrame(
                message_type=message_type, length=len(data), required=required,
            )

        return handler(data)

    @staticmethod
    def _unpack(layout: FrameLayout, data: bytes) -> dict:
        # Trailing bytes past the layout are ignored
        values = struct.unpack(layout.format, data[:layout.size])
        return dict(zip(layout.field_names, values))

    def _decode_quote(self, data: bytes) -> Quote:
        quote = Quote(**self._unpack(QUOTE, data))
        if self.cache is not None:
            self.cache.upsert(quote)
        return quote

    def _decode_open_interest(self, data: bytes) -> OpenInterest:
        return OpenInterest(**self._unpack(OPEN_INTEREST, data))

    def _decode_disconnection(self, data: bytes) -> Disconnection:
        fields = self._unpack(DISCONNECTION, data)
        code = fields['code']
        return Disconnection(
            **fields,
            reason=DISCONNECT_PREFIX + DisconnectCode.reason(code),
            teardown=DisconnectCode.forces_teardown(code),
        )
