"""Outbound packet codec."""

from .packets import (
    Instrument,
    InstrumentLike,
    PacketHeader,
    SubscriptionMode,
    SubscriptionPacket,
    as_instruments,
    build_header,
    build_authorization_packet,
    build_subscription_packet,
)

__all__ = [
    'Instrument',
    'InstrumentLike',
    'PacketHeader',
    'SubscriptionMode',
    'SubscriptionPacket',
    'as_instruments',
    'build_header',
    'build_authorization_packet',
    'build_subscription_packet',
]
