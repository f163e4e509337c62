"""Pytest fixtures: in-memory transport and frame builders."""

import asyncio
import struct
from typing import List, Optional

import pytest

from dhan_feed.core.errors import ErrorCode, TransportFailure
from dhan_feed.transport.base import FeedTransport
from dhan_feed.session.events import SessionListener


_CLOSE = object()


class FakeTransport(FeedTransport):
    """
    Transport backed by an asyncio.Queue.

    feed() queues an inbound frame, finish() ends the stream cleanly and
    break_connection() ends it with a TransportFailure.
    """

    def __init__(self, fail_open: Optional[Exception] = None,
                 hold_open: bool = False,
                 fail_send: Optional[Exception] = None):
        self.fail_open = fail_open
        self.fail_send = fail_send
        self.hold_open = hold_open
        self.release: Optional[asyncio.Event] = None
        self.sent: List[bytes] = []
        self.inbound: Optional[asyncio.Queue] = None
        self.opened = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed

    async def open(self) -> None:
        self.inbound = asyncio.Queue()
        if self.hold_open:
            self.release = asyncio.Event()
            await self.release.wait()
        if self.fail_open is not None:
            raise self.fail_open
        self.opened = True
        self.closed = False

    async def send(self, data: bytes) -> None:
        if not self.is_open:
            raise TransportFailure("Transport is not open",
                                   code=ErrorCode.E4002_TRANSPORT_CLOSED)
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(bytes(data))

    async def frames(self):
        while True:
            item = await self.inbound.get()
            if item is _CLOSE:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True

    def feed(self, *frames: bytes) -> None:
        for frame in frames:
            self.inbound.put_nowait(frame)

    def finish(self) -> None:
        self.inbound.put_nowait(_CLOSE)

    def break_connection(self, reason: str = "connection reset") -> None:
        self.inbound.put_nowait(
            TransportFailure(reason, code=ErrorCode.E4002_TRANSPORT_CLOSED))


class RecordingListener(SessionListener):
    """Collects messages and disconnect events; create inside a running loop."""

    def __init__(self):
        self.messages = []
        self.events = []
        self.disconnected = asyncio.Event()

    def on_message(self, message):
        self.messages.append(message)

    def on_disconnected(self, event):
        self.events.append(event)
        self.disconnected.set()


def quote_frame(security_id=1333, ltp=101.5, segment=1, ltq=25, ltt=1700000000,
                avg_price=100.75, volume=1000, total_sell_qty=500,
                total_buy_qty=600, open_=100.0, close=99.5, high=102.25,
                low=98.75) -> bytes:
    return struct.pack(
        '<BHBIfHIfIIIffff',
        4, 50, segment, security_id, ltp, ltq, ltt, avg_price,
        volume, total_sell_qty, total_buy_qty, open_, close, high, low,
    )


def oi_frame(security_id=43225, open_interest=123456, segment=2) -> bytes:
    return struct.pack('<BHBII', 5, 12, segment, security_id, open_interest)


def disconnection_frame(code: int) -> bytes:
    return struct.pack('<BHBIH', 50, 10, 0, 0, code)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
