"""
Decoded inbound message records.

Every decode produces exactly one of these. Quote keeps the raw wire values
(float32 prices, epoch seconds); formatting to two decimals and to a UTC
time of day happens in to_dict(formatted=True) and the helper properties.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, Union

from ..core.errors import ErrorCode, FeedError


def format_price(value: float) -> str:
    """Two-decimal presentation of a price field."""
    return f"{value:.2f}"


def format_utc_time(epoch_seconds: int) -> str:
    """Epoch seconds to UTC time of day, HH:MM:SS."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime('%H:%M:%S')


@dataclass(frozen=True)
class Quote:
    """
    Quote packet (message type 4).

    Attributes:
        exchange_segment: Segment code
        security_id: Numeric security id
        ltp: Last traded price
        ltq: Last traded quantity
        ltt: Last traded time, epoch seconds
        avg_price: Average traded price
        volume: Traded volume
        total_sell_qty: Aggregate sell quantity
        total_buy_qty: Aggregate buy quantity
        open, close, high, low: Session prices
    """
    message_type: int
    message_length: int
    exchange_segment: int
    security_id: int
    ltp: float
    ltq: int
    ltt: int
    avg_price: float
    volume: int
    total_sell_qty: int
    total_buy_qty: int
    open: float
    close: float
    high: float
    low: float

    kind = 'quote'

    PRICE_FIELDS = ('ltp', 'avg_price', 'open', 'close', 'high', 'low')

    @property
    def key(self):
        return (self.exchange_segment, self.security_id)

    @property
    def ltt_time(self) -> str:
        return format_utc_time(self.ltt)

    def to_dict(self, formatted: bool = False) -> dict:
        data = {'kind': self.kind, **asdict(self)}
        if formatted:
            for name in self.PRICE_FIELDS:
                data[name] = format_price(data[name])
            data['ltt'] = self.ltt_time
        return data


@dataclass(frozen=True)
class OpenInterest:
    """Open interest packet (message type 5). Not cached."""
    message_type: int
    message_length: int
    exchange_segment: int
    security_id: int
    open_interest: int

    kind = 'open_interest'

    def to_dict(self, formatted: bool = False) -> dict:
        return {'kind': self.kind, **asdict(self)}


@dataclass(frozen=True)
class Disconnection:
    """Server disconnection notice (message type 50)."""
    message_type: int
    message_length: int
    exchange_segment: int
    security_id: int
    code: int
    reason: str
    teardown: bool

    kind = 'disconnection'

    def to_dict(self, formatted: bool = False) -> dict:
        return {'kind': self.kind, **asdict(self)}


@dataclass(frozen=True)
class UnknownMessage:
    """Passthrough for message types without a decoder."""
    message_type: int
    raw_hex: str

    kind = 'unknown'

    def to_dict(self, formatted: bool = False) -> dict:
        return {'kind': self.kind, **asdict(self)}


@dataclass(frozen=True)
class MalformedFrame:
    """
    Frame too short for its declared type.

    message_type is None when the frame was too short to carry one.
    """
    message_type: Optional[int]
    length: int
    required: int

    kind = 'malformed'

    @property
    def error(self) -> FeedError:
        code = (ErrorCode.E1001_EMPTY_FRAME if self.message_type is None
                else ErrorCode.E1002_TRUNCATED_FRAME)
        return FeedError(code=code, context={
            'message_type': self.message_type,
            'length': self.length,
            'required': self.required,
        })

    def to_dict(self, formatted: bool = False) -> dict:
        return {'kind': self.kind, **asdict(self), 'error': self.error.to_dict()}


DecodedMessage = Union[Quote, OpenInterest, Disconnection, UnknownMessage, MalformedFrame]
