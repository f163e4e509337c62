"""
Outbound packet construction.

Every outbound packet starts with the same 83-byte header (see
formats/layout.py). Builders are pure functions of their inputs.

Oversized inputs are rejected with InvalidArgument rather than truncated:
a truncated security id would silently subscribe to a different instrument.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Tuple, Union

from ..core.errors import ErrorCode, InvalidArgument
from ..formats.codes import RequestCode
from ..formats.layout import (
    ACCESS_TOKEN_SIZE,
    AUTH_PACKET_SIZE,
    AUTH_PAYLOAD,
    AUTH_TYPE,
    CLIENT_ID_SIZE,
    HEADER,
    HEADER_SIZE,
    INSTRUMENT_COUNT,
    INSTRUMENT_SLOT,
    INSTRUMENT_SLOT_SIZE,
    MAX_INSTRUMENTS,
    RESERVED_AUTH_SIZE,
    SECURITY_ID_SIZE,
    SUBSCRIPTION_PACKET_SIZE,
    SUBSCRIPTION_PREFIX_SIZE,
)


def _fixed_utf8(value: str, width: int, field_name: str) -> bytes:
    """Encode to UTF-8, rejecting anything wider than the field."""
    raw = value.encode('utf-8')
    if len(raw) > width:
        raise InvalidArgument(
            f"{field_name} is {len(raw)} bytes, max {width}",
            code=ErrorCode.E2002_FIELD_TOO_LONG,
            context={'field': field_name, 'length': len(raw), 'max': width},
        )
    # struct pads 's' fields with zeros
    return raw


class SubscriptionMode(Enum):
    """Subscription direction, valued by request code."""
    SUBSCRIBE = RequestCode.SUBSCRIBE
    UNSUBSCRIBE = RequestCode.UNSUBSCRIBE


@dataclass(frozen=True)
class Instrument:
    """
    An (exchange segment, security id) pair.

    Attributes:
        exchange_segment: Segment code (u8)
        security_id: Exchange security id, at most 20 UTF-8 bytes
    """
    exchange_segment: int
    security_id: str

    def __post_init__(self):
        if isinstance(self.security_id, int):
            object.__setattr__(self, 'security_id', str(self.security_id))
        if not 0 <= int(self.exchange_segment) <= 0xFF:
            raise InvalidArgument(
                f"Exchange segment out of range: {self.exchange_segment}",
                code=ErrorCode.E2003_INVALID_SEGMENT,
                context={'exchange_segment': self.exchange_segment},
            )
        _fixed_utf8(self.security_id, SECURITY_ID_SIZE, 'security_id')

    @classmethod
    def parse(cls, text: str) -> 'Instrument':
        """Parse "SEGMENT:SECURITY_ID", e.g. "1:1333"."""
        segment, sep, security_id = text.partition(':')
        if not sep or not segment.strip().isdigit() or not security_id.strip():
            raise InvalidArgument(
                f"Expected SEGMENT:SECURITY_ID, got {text!r}",
                code=ErrorCode.E2004_INVALID_INSTRUMENT,
                context={'value': text},
            )
        return cls(int(segment), security_id.strip())

    def encode(self) -> bytes:
        """Encode as one 21-byte instrument slot."""
        return struct.pack(
            INSTRUMENT_SLOT.format,
            self.exchange_segment,
            self.security_id.encode('utf-8'),
        )


InstrumentLike = Union[Instrument, Tuple[int, Union[str, int]]]


def as_instruments(items: Iterable[InstrumentLike]) -> List[Instrument]:
    """Normalize (segment, security_id) tuples to Instrument values."""
    result = []
    for item in items:
        if isinstance(item, Instrument):
            result.append(item)
        else:
            segment, security_id = item
            result.append(Instrument(segment, security_id))
    return result


@dataclass
class PacketHeader:
    """Outbound packet header (83 bytes)."""

    request_code: int
    message_length: int
    client_id: str = ''

    def encode(self) -> bytes:
        """Encode header to bytes. The reserved auth block is always zero."""
        if not 0 <= self.message_length <= 0xFFFF:
            raise InvalidArgument(
                f"Message length out of range: {self.message_length}",
                code=ErrorCode.E2002_FIELD_TOO_LONG,
                context={'message_length': self.message_length},
            )
        return struct.pack(
            HEADER.format,
            self.request_code,
            self.message_length,
            _fixed_utf8(self.client_id, CLIENT_ID_SIZE, 'client_id'),
            b'\x00' * RESERVED_AUTH_SIZE,
        )

    @classmethod
    def decode(cls, data: bytes) -> 'PacketHeader':
        """Decode header from the first 83 bytes of a packet."""
        if len(data) < HEADER_SIZE:
            raise ValueError(f"Header too small: {len(data)} < {HEADER_SIZE}")

        request_code, message_length, client_id, _reserved = struct.unpack(
            HEADER.format, data[:HEADER_SIZE]
        )
        return cls(
            request_code=request_code,
            message_length=message_length,
            client_id=client_id.rstrip(b'\x00').decode('utf-8'),
        )


def build_header(request_code: int, message_length: int, client_id: str) -> bytes:
    """Build the 83-byte header shared by all outbound packets."""
    return PacketHeader(request_code, message_length, client_id).encode()


def build_authorization_packet(client_id: str, access_token: str) -> bytes:
    """
    Build the authorization packet.

    Layout: header (request code 11) + 500-byte zero-padded access token
    + authentication type "2P". Total 585 bytes.

    Raises:
        InvalidArgument: client_id > 30 bytes or access_token > 500 bytes
    """
    payload = struct.pack(
        AUTH_PAYLOAD.format,
        _fixed_utf8(access_token, ACCESS_TOKEN_SIZE, 'access_token'),
        AUTH_TYPE,
    )
    header = build_header(RequestCode.AUTHORIZE, AUTH_PACKET_SIZE, client_id)
    return header + payload


def build_subscription_packet(
    client_id: str,
    instruments: Sequence[InstrumentLike],
    mode: SubscriptionMode = SubscriptionMode.SUBSCRIBE,
) -> bytes:
    """
    Build a subscribe/unsubscribe packet.

    The instrument table always has 100 slots, so the packet is always
    83 + 4 + 2100 = 2187 bytes; unused slots are zero.

    Raises:
        InvalidArgument: more than 100 instruments, or an invalid instrument
    """
    instruments = as_instruments(instruments)
    if len(instruments) > MAX_INSTRUMENTS:
        raise InvalidArgument(
            f"Too many instruments: {len(instruments)} > {MAX_INSTRUMENTS}",
            code=ErrorCode.E2001_TOO_MANY_INSTRUMENTS,
            context={'count': len(instruments), 'max': MAX_INSTRUMENTS},
        )

    mode = SubscriptionMode(mode)
    header = build_header(mode.value, SUBSCRIPTION_PACKET_SIZE, client_id)
    count = struct.pack(INSTRUMENT_COUNT.format, len(instruments))

    table = b''.join(inst.encode() for inst in instruments)
    table += b'\x00' * ((MAX_INSTRUMENTS - len(instruments)) * INSTRUMENT_SLOT_SIZE)

    packet = header + count + table
    assert len(packet) == SUBSCRIPTION_PACKET_SIZE
    return packet


@dataclass
class SubscriptionPacket:
    """Decoded view of a subscription packet, used for inspection."""

    header: PacketHeader
    instruments: List[Instrument]

    @property
    def mode(self) -> SubscriptionMode:
        return SubscriptionMode(self.header.request_code)

    @classmethod
    def decode(cls, data: bytes) -> 'SubscriptionPacket':
        """Decode a packet produced by build_subscription_packet()."""
        if len(data) < SUBSCRIPTION_PACKET_SIZE:
            raise ValueError(
                f"Packet too small: {len(data)} < {SUBSCRIPTION_PACKET_SIZE}"
            )

        header = PacketHeader.decode(data)
        (count,) = struct.unpack_from(INSTRUMENT_COUNT.format, data, HEADER_SIZE)
        if count > MAX_INSTRUMENTS:
            raise ValueError(f"Invalid instrument count: {count}")

        instruments = []
        for i in range(count):
            offset = SUBSCRIPTION_PREFIX_SIZE + i * INSTRUMENT_SLOT_SIZE
            segment, raw_id = struct.unpack_from(INSTRUMENT_SLOT.format, data, offset)
            instruments.append(Instrument(segment, raw_id.rstrip(b'\x00').decode('utf-8')))

        return cls(header=header, instruments=instruments)
