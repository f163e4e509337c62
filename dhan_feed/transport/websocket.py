"""WebSocket transport for the market feed."""

import logging
from typing import AsyncIterator, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from ..core.errors import ErrorCode, TransportFailure
from .base import FeedTransport

logger = logging.getLogger(__name__)

DEFAULT_URL = 'wss://api-feed.dhan.co'


class WebSocketTransport(FeedTransport):
    """
    Binary-frame transport over a websocket.

    Example:
        transport = WebSocketTransport(DEFAULT_URL)
        await transport.open()
        await transport.send(packet)
        async for frame in transport.frames():
            ...
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 10.0,
        close_timeout: float = 10.0,
        max_size: int = 2**20,
    ):
        self.url = url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.close_timeout = close_timeout
        self.max_size = max_size
        self.websocket = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.websocket is not None and not self._closed

    async def open(self) -> None:
        logger.info(f"Connecting to {self.url}")
        try:
            self.websocket = await websockets.connect(
                self.url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                close_timeout=self.close_timeout,
                max_size=self.max_size,
                compression=None,
            )
        except (OSError, WebSocketException) as e:
            raise TransportFailure(
                f"Failed to connect to {self.url}: {e}",
                code=ErrorCode.E4001_TRANSPORT_FAILED,
                context={'url': self.url},
            ) from e
        self._closed = False
        logger.info("WebSocket connected")

    async def send(self, data: bytes) -> None:
        if not self.is_open:
            raise TransportFailure("Transport is not open",
                                   code=ErrorCode.E4002_TRANSPORT_CLOSED)
        try:
            await self.websocket.send(data)
        except ConnectionClosed as e:
            self._closed = True
            raise TransportFailure(f"Send failed, connection closed: {e}",
                                   code=ErrorCode.E4002_TRANSPORT_CLOSED) from e
        except (OSError, WebSocketException) as e:
            raise TransportFailure(f"Send failed: {e}",
                                   code=ErrorCode.E4001_TRANSPORT_FAILED) from e

    async def frames(self) -> AsyncIterator[bytes]:
        if self.websocket is None:
            raise TransportFailure("Transport is not open",
                                   code=ErrorCode.E4002_TRANSPORT_CLOSED)
        try:
            async for message in self.websocket:
                if isinstance(message, str):
                    message = message.encode('utf-8')
                yield message
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as e:
            raise TransportFailure(f"Connection closed: {e}",
                                   code=ErrorCode.E4002_TRANSPORT_CLOSED) from e
        finally:
            self._closed = True
        logger.info("WebSocket disconnected")

    async def close(self) -> None:
        self._closed = True
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None
