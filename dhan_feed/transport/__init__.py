"""Frame transports."""

from .base import FeedTransport
from .websocket import WebSocketTransport, DEFAULT_URL

__all__ = ['FeedTransport', 'WebSocketTransport', 'DEFAULT_URL']
