"""Session state machine and client."""

from .state import SessionState, TRANSITIONS, check_transition
from .gate import AuthorizationGate
from .events import DisconnectEvent, SessionListener
from .client import FeedSession

__all__ = [
    'SessionState',
    'TRANSITIONS',
    'check_transition',
    'AuthorizationGate',
    'DisconnectEvent',
    'SessionListener',
    'FeedSession',
]
