"""
Byte layouts for the market feed protocol.

All multi-byte fields are little-endian. Every layout lists its fields with
explicit offsets; the struct format is built from the same table and the
offsets are checked against struct.calcsize() at import.

Outbound header (83 bytes):
    Byte 0:       request_code    (i8)
    Bytes 1-2:    message_length  (u16)
    Bytes 3-32:   client_id       (30 bytes, zero-padded UTF-8)
    Bytes 33-82:  reserved_auth   (50 bytes, zero)

Subscription body (2104 bytes):
    Bytes 0-3:    instrument_count (u32)
    Bytes 4-2103: 100 slots of 21 bytes: segment (u8) + security_id (20s)

Quote (50 bytes):
    Byte 0:       message_type    (u8)
    Bytes 1-2:    message_length  (u16)
    Byte 3:       exchange_segment (u8)
    Bytes 4-7:    security_id     (u32)
    Bytes 8-11:   ltp             (f32)
    Bytes 12-13:  ltq             (u16)
    Bytes 14-17:  ltt             (u32, epoch seconds)
    Bytes 18-21:  avg_price       (f32)
    Bytes 22-25:  volume          (u32)
    Bytes 26-29:  total_sell_qty  (u32)
    Bytes 30-33:  total_buy_qty   (u32)
    Bytes 34-37:  open            (f32)
    Bytes 38-41:  close           (f32)
    Bytes 42-45:  high            (f32)
    Bytes 46-49:  low             (f32)

Open interest (12 bytes): type, length, segment, security_id, oi (u32)
Disconnection (10 bytes): type, length, segment, security_id, code (u16)
"""

import struct
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class FieldSpec:
    """One fixed-offset field."""
    name: str
    offset: int
    code: str  # struct code, e.g. 'H' or '30s'

    @property
    def width(self) -> int:
        return struct.calcsize('<' + self.code)


@dataclass(frozen=True)
class FrameLayout:
    """Fixed layout of one frame kind."""
    name: str
    fields: Tuple[FieldSpec, ...]

    @property
    def format(self) -> str:
        return '<' + ''.join(f.code for f in self.fields)

    @property
    def size(self) -> int:
        return struct.calcsize(self.format)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.name} has no field {name!r}")

    def verify(self) -> None:
        """Check that the declared offsets match the packed struct."""
        prefix = '<'
        for spec in self.fields:
            actual = struct.calcsize(prefix)
            assert actual == spec.offset, \
                f"{self.name}.{spec.name} offset mismatch: {actual} != {spec.offset}"
            prefix += spec.code


# === Outbound ===

CLIENT_ID_SIZE = 30
RESERVED_AUTH_SIZE = 50
ACCESS_TOKEN_SIZE = 500
AUTH_TYPE = b'2P'
SECURITY_ID_SIZE = 20
MAX_INSTRUMENTS = 100

HEADER = FrameLayout('Header', (
    FieldSpec('request_code', 0, 'b'),
    FieldSpec('message_length', 1, 'H'),
    FieldSpec('client_id', 3, f'{CLIENT_ID_SIZE}s'),
    FieldSpec('reserved_auth', 33, f'{RESERVED_AUTH_SIZE}s'),
))
HEADER_SIZE = 83

AUTH_PAYLOAD = FrameLayout('AuthorizationPayload', (
    FieldSpec('access_token', 0, f'{ACCESS_TOKEN_SIZE}s'),
    FieldSpec('authentication_type', 500, f'{len(AUTH_TYPE)}s'),
))
AUTH_PACKET_SIZE = HEADER_SIZE + 502

INSTRUMENT_COUNT = FrameLayout('InstrumentCount', (
    FieldSpec('instrument_count', 0, 'I'),
))

INSTRUMENT_SLOT = FrameLayout('InstrumentSlot', (
    FieldSpec('exchange_segment', 0, 'B'),
    FieldSpec('security_id', 1, f'{SECURITY_ID_SIZE}s'),
))
INSTRUMENT_SLOT_SIZE = 21
INSTRUMENT_TABLE_SIZE = MAX_INSTRUMENTS * INSTRUMENT_SLOT_SIZE

# Header + count field; the table follows
SUBSCRIPTION_PREFIX_SIZE = HEADER_SIZE + 4
SUBSCRIPTION_PACKET_SIZE = SUBSCRIPTION_PREFIX_SIZE + INSTRUMENT_TABLE_SIZE


# === Inbound ===

MESSAGE_TYPE = FrameLayout('MessageType', (
    FieldSpec('message_type', 0, 'B'),
))

QUOTE = FrameLayout('Quote', (
    FieldSpec('message_type', 0, 'B'),
    FieldSpec('message_length', 1, 'H'),
    FieldSpec('exchange_segment', 3, 'B'),
    FieldSpec('security_id', 4, 'I'),
    FieldSpec('ltp', 8, 'f'),
    FieldSpec('ltq', 12, 'H'),
    FieldSpec('ltt', 14, 'I'),
    FieldSpec('avg_price', 18, 'f'),
    FieldSpec('volume', 22, 'I'),
    FieldSpec('total_sell_qty', 26, 'I'),
    FieldSpec('total_buy_qty', 30, 'I'),
    FieldSpec('open', 34, 'f'),
    FieldSpec('close', 38, 'f'),
    FieldSpec('high', 42, 'f'),
    FieldSpec('low', 46, 'f'),
))
QUOTE_SIZE = 50

OPEN_INTEREST = FrameLayout('OpenInterest', (
    FieldSpec('message_type', 0, 'B'),
    FieldSpec('message_length', 1, 'H'),
    FieldSpec('exchange_segment', 3, 'B'),
    FieldSpec('security_id', 4, 'I'),
    FieldSpec('open_interest', 8, 'I'),
))
OPEN_INTEREST_SIZE = 12

DISCONNECTION = FrameLayout('Disconnection', (
    FieldSpec('message_type', 0, 'B'),
    FieldSpec('message_length', 1, 'H'),
    FieldSpec('exchange_segment', 3, 'B'),
    FieldSpec('security_id', 4, 'I'),
    FieldSpec('code', 8, 'H'),
))
DISCONNECTION_SIZE = 10


# Verify every layout at module load
for _layout, _size in (
    (HEADER, HEADER_SIZE),
    (AUTH_PAYLOAD, AUTH_PACKET_SIZE - HEADER_SIZE),
    (INSTRUMENT_COUNT, 4),
    (INSTRUMENT_SLOT, INSTRUMENT_SLOT_SIZE),
    (QUOTE, QUOTE_SIZE),
    (OPEN_INTEREST, OPEN_INTEREST_SIZE),
    (DISCONNECTION, DISCONNECTION_SIZE),
):
    _layout.verify()
    assert _layout.size == _size, \
        f"{_layout.name} format size mismatch: {_layout.size} != {_size}"
