"""
Session lifecycle states.

    IDLE -> CONNECTING -> AUTHORIZING -> AUTHORIZED -> DISCONNECTED
                 |             |
                 +-> FAILED <--+

FAILED and DISCONNECTED may start a new attempt (-> CONNECTING).
"""

from enum import Enum

from ..core.errors import ErrorCode, SessionStateError


class SessionState(Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    AUTHORIZING = 'authorizing'
    AUTHORIZED = 'authorized'
    FAILED = 'failed'
    DISCONNECTED = 'disconnected'


TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.AUTHORIZING, SessionState.FAILED},
    SessionState.AUTHORIZING: {SessionState.AUTHORIZED, SessionState.FAILED},
    SessionState.AUTHORIZED: {SessionState.DISCONNECTED},
    SessionState.FAILED: {SessionState.CONNECTING},
    SessionState.DISCONNECTED: {SessionState.CONNECTING},
}


def check_transition(current: SessionState, target: SessionState) -> None:
    """Raise SessionStateError unless current -> target is allowed."""
    if target not in TRANSITIONS[current]:
        raise SessionStateError(
            f"Invalid session transition: {current.value} -> {target.value}",
            code=ErrorCode.E4004_INVALID_STATE,
            context={'from': current.value, 'to': target.value},
        )
