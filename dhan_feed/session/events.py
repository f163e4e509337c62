"""Session events and the listener interface."""

from dataclasses import dataclass
from typing import Optional

from ..decoder.messages import DecodedMessage


@dataclass(frozen=True)
class DisconnectEvent:
    """
    Emitted once when an authorized session goes down.

    Attributes:
        reason: Human-readable reason
        source: 'server' (disconnection message), 'transport' or 'client'
        code: Server disconnection code, None for transport/client closes
    """
    reason: str
    source: str
    code: Optional[int] = None


class SessionListener:
    """
    Observer for session output. Override what you need.

    Messages are delivered in decode order, on the frame-processing path.
    Exceptions raised here are logged and do not stop the stream.
    """

    def on_message(self, message: DecodedMessage) -> None:
        pass

    def on_disconnected(self, event: DisconnectEvent) -> None:
        pass
