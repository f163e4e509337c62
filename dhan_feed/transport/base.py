"""
Base class for feed transports.

A transport delivers ordered, complete binary frames once open. It does not
reconnect; a closed transport stays closed.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator


class FeedTransport(ABC):
    """
    Abstract byte-frame transport.

    frames() ends normally on a clean close and raises TransportFailure on
    an abnormal one.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    async def open(self) -> None:
        """
        Open the connection.

        Raises:
            TransportFailure: If the connection cannot be established
        """
        pass

    @abstractmethod
    async def send(self, data: bytes) -> None:
        """
        Send one frame.

        Raises:
            TransportFailure: If the transport is closed or the write fails
        """
        pass

    @abstractmethod
    def frames(self) -> AsyncIterator[bytes]:
        """Iterate inbound frames in arrival order."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
