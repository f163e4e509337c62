"""
Feed session: connect, authorize, subscribe, and stream decoded messages.

Example:
    class Printer(SessionListener):
        def on_message(self, message):
            print(message.to_dict(formatted=True))

    session = FeedSession(client_id, access_token)
    session.add_listener(Printer())
    await session.connect()
    await session.subscribe([(1, '1333'), (2, '43225')])
    ...
    await session.close()

Authorization has no acknowledgement frame: the session marks itself
authorized as soon as the authorization packet is written. A rejected token
shows up later as a Disconnection message (codes 805-809).
"""

import asyncio
import logging
from collections import Counter
from typing import List, Optional, Sequence, Set, TYPE_CHECKING

from ..cache.ticker_cache import TickerCache
from ..codec.packets import (
    Instrument,
    InstrumentLike,
    SubscriptionMode,
    as_instruments,
    build_authorization_packet,
    build_subscription_packet,
)
from ..core.errors import (
    AuthorizationTimeout,
    ErrorCode,
    SessionStateError,
    TransportFailure,
)
from ..decoder.decoder import MessageDecoder
from ..decoder.messages import DecodedMessage, Disconnection
from ..transport.base import FeedTransport
from ..transport.websocket import WebSocketTransport
from .events import DisconnectEvent, SessionListener
from .gate import AuthorizationGate
from .state import SessionState, check_transition

if TYPE_CHECKING:
    from ..config.schema import FeedConfig

logger = logging.getLogger(__name__)


class FeedSession:
    """
    One logical feed connection.

    Owns the ticker cache, the decoder and the transport. Frames are
    processed strictly in arrival order on a single reader task.
    """

    def __init__(
        self,
        client_id: str,
        access_token: str,
        transport: Optional[FeedTransport] = None,
        cache: Optional[TickerCache] = None,
        authorization_timeout: Optional[float] = 30.0,
    ):
        self.client_id = client_id
        self.access_token = access_token
        self.transport = transport or WebSocketTransport()
        self.cache = cache if cache is not None else TickerCache()
        self.decoder = MessageDecoder(self.cache)
        self.authorization_timeout = authorization_timeout

        self.state = SessionState.IDLE
        self.subscriptions: Set[Instrument] = set()

        self._gate: Optional[AuthorizationGate] = None
        self._reader: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._aborted_by_timeout = False
        self._listeners: List[SessionListener] = []

        # Statistics
        self.frames_received = 0
        self.messages_by_kind: Counter = Counter()
        self.listener_errors = 0

    @classmethod
    def from_config(cls, config: 'FeedConfig',
                    transport: Optional[FeedTransport] = None) -> 'FeedSession':
        """Build a session from loaded configuration."""
        conn = config.connection
        if transport is None:
            transport = WebSocketTransport(
                url=conn.url,
                ping_interval=conn.ping_interval,
                ping_timeout=conn.ping_timeout,
                max_size=conn.max_size,
            )
        return cls(
            client_id=config.credentials.client_id,
            access_token=config.credentials.access_token,
            transport=transport,
            authorization_timeout=config.session.authorization_timeout,
        )

    # === Listeners ===

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        self._listeners.remove(listener)

    def _notify(self, method: str, payload) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, method)(payload)
            except Exception:
                self.listener_errors += 1
                logger.exception(f"Listener {method} failed")

    # === Lifecycle ===

    @property
    def is_authorized(self) -> bool:
        return self.state is SessionState.AUTHORIZED

    def _set_state(self, target: SessionState) -> None:
        check_transition(self.state, target)
        logger.debug(f"Session state {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self, error: Exception) -> None:
        """Fail the current attempt before authorization."""
        self._set_state(SessionState.FAILED)
        if self._gate is not None:
            self._gate.fail(error)
        logger.error(f"Authorization failed: {error}")

    async def connect(self) -> None:
        """
        Open the transport and send the authorization packet.

        Any failure, including cancellation or an authorization timeout seen
        by a waiter, fails the gate and closes the transport before the
        error propagates.

        Raises:
            InvalidArgument: Credentials do not fit the header/token fields
            TransportFailure: Transport could not be opened or written
            AuthorizationTimeout: A waiter timed out while this attempt was pending
        """
        self._set_state(SessionState.CONNECTING)
        gate = self._gate = AuthorizationGate()
        self._aborted_by_timeout = False

        try:
            packet = build_authorization_packet(self.client_id, self.access_token)
        except Exception as e:
            self._fail(e)
            raise

        self._connect_task = asyncio.current_task()
        try:
            await self.transport.open()
            gate.raise_if_failed()
            self._set_state(SessionState.AUTHORIZING)
            await self.transport.send(packet)
            gate.raise_if_failed()
        except asyncio.CancelledError:
            await self._abandon_attempt(TransportFailure(
                "Connection attempt cancelled", code=ErrorCode.E4002_TRANSPORT_CLOSED))
            if self._aborted_by_timeout and gate.failure is not None:
                raise gate.failure from None
            raise
        except Exception as e:
            await self._abandon_attempt(e)
            raise
        finally:
            self._connect_task = None

        self._set_state(SessionState.AUTHORIZED)
        gate.open()
        logger.info("Authorization successful")

        self._reader = asyncio.create_task(self._read_loop())

    async def _abandon_attempt(self, error: Exception) -> None:
        """Fail a pending attempt (unless already failed) and close the transport."""
        if self.state in (SessionState.CONNECTING, SessionState.AUTHORIZING):
            self._fail(error)
        try:
            await self.transport.close()
        except Exception:
            logger.exception("Transport close failed after aborted connect")

    def _on_authorization_timeout(self, gate: AuthorizationGate,
                                  error: AuthorizationTimeout) -> None:
        if gate is not self._gate:
            return
        if self.state in (SessionState.CONNECTING, SessionState.AUTHORIZING):
            self._fail(error)
            task = self._connect_task
            if task is not None and not task.done():
                self._aborted_by_timeout = True
                task.cancel()

    async def wait_authorized(self, timeout: Optional[float] = None) -> None:
        """
        Suspend until the current connection attempt is authorized.

        A timeout fails the whole attempt: the session moves to FAILED and
        a pending connect() is aborted.

        Args:
            timeout: Seconds to wait; defaults to authorization_timeout

        Raises:
            SessionStateError: connect() was never called
            TransportFailure: The attempt failed
            AuthorizationTimeout: Nothing signaled within the timeout
        """
        gate = self._gate
        if gate is None:
            raise SessionStateError(
                "Connection not initiated. Call connect() first.",
                code=ErrorCode.E4004_INVALID_STATE,
            )
        if timeout is None:
            timeout = self.authorization_timeout
        try:
            await gate.wait(timeout)
        except AuthorizationTimeout as e:
            self._on_authorization_timeout(gate, e)
            raise

    async def subscribe(self, instruments: Sequence[InstrumentLike]) -> None:
        """Subscribe to up to 100 instruments."""
        await self._send_subscription(instruments, SubscriptionMode.SUBSCRIBE)

    async def unsubscribe(self, instruments: Sequence[InstrumentLike]) -> None:
        """Unsubscribe from up to 100 instruments."""
        await self._send_subscription(instruments, SubscriptionMode.UNSUBSCRIBE)

    async def _send_subscription(self, instruments: Sequence[InstrumentLike],
                                 mode: SubscriptionMode) -> None:
        # Build first: invalid input fails without waiting or sending
        instruments = as_instruments(instruments)
        packet = build_subscription_packet(self.client_id, instruments, mode)

        await self.wait_authorized()
        if self.state is not SessionState.AUTHORIZED:
            raise SessionStateError(
                f"Cannot {mode.name.lower()} in state {self.state.value}",
                code=ErrorCode.E4004_INVALID_STATE,
                context={'state': self.state.value},
            )

        await self.transport.send(packet)
        if mode is SubscriptionMode.SUBSCRIBE:
            self.subscriptions.update(instruments)
        else:
            self.subscriptions.difference_update(instruments)
        logger.info(f"Sent {mode.name} for {len(instruments)} instruments")

    async def close(self) -> None:
        """Tear the session down and clear the ticker cache."""
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        self._reader = None

        await self.transport.close()

        if self.state is SessionState.AUTHORIZED:
            self._disconnect(DisconnectEvent(reason='Closed by client', source='client'))
        elif self.state in (SessionState.CONNECTING, SessionState.AUTHORIZING):
            self._fail(TransportFailure("Closed by client",
                                        code=ErrorCode.E4002_TRANSPORT_CLOSED))

        self.cache.clear()
        self.subscriptions.clear()

    async def __aenter__(self) -> 'FeedSession':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # === Inbound ===

    def decode(self, frame: bytes) -> DecodedMessage:
        """
        Decode one frame, update the cache, and notify listeners.

        Never raises on frame content.
        """
        self.frames_received += 1
        message = self.decoder.decode(frame)
        self.messages_by_kind[message.kind] += 1
        logger.debug(f"Frame {self.frames_received}: {message.kind} ({len(frame)} bytes)")

        self._notify('on_message', message)

        if isinstance(message, Disconnection) and message.teardown:
            self._handle_server_disconnection(message)

        return message

    def get_last_traded_price(self, security_id: int,
                              exchange_segment: Optional[int] = None) -> float:
        """Latest LTP for an instrument, 0.0 if none received."""
        return self.cache.last_traded_price(security_id, exchange_segment)

    def _handle_server_disconnection(self, message: Disconnection) -> None:
        logger.warning(message.reason)
        event = DisconnectEvent(reason=message.reason, source='server', code=message.code)

        if self.state in (SessionState.CONNECTING, SessionState.AUTHORIZING):
            self._fail(TransportFailure(message.reason,
                                        code=ErrorCode.E5001_SERVER_DISCONNECT,
                                        context={'code': message.code}))
        elif self.state is SessionState.AUTHORIZED:
            self._disconnect(event)
        else:
            # No live connection to tear down; still report it
            self._notify('on_disconnected', event)

    def _disconnect(self, event: DisconnectEvent) -> None:
        self._set_state(SessionState.DISCONNECTED)
        logger.info(f"Session disconnected ({event.source}): {event.reason}")
        self._notify('on_disconnected', event)

    def _on_transport_closed(self, reason: str) -> None:
        if self.state in (SessionState.CONNECTING, SessionState.AUTHORIZING):
            self._fail(TransportFailure(reason, code=ErrorCode.E4002_TRANSPORT_CLOSED))
        elif self.state is SessionState.AUTHORIZED:
            self._disconnect(DisconnectEvent(reason=reason, source='transport'))

    async def _read_loop(self) -> None:
        """Consume frames until the transport or the server ends the session."""
        try:
            async for frame in self.transport.frames():
                self.decode(frame)
                if self.state is SessionState.DISCONNECTED:
                    await self.transport.close()
                    return
        except TransportFailure as e:
            logger.error(f"Transport error: {e}")
            self._on_transport_closed(str(e))
            return

        self._on_transport_closed('Transport closed')

    # === Introspection ===

    def stats(self) -> dict:
        """Session statistics."""
        return {
            'state': self.state.value,
            'frames_received': self.frames_received,
            'messages': dict(self.messages_by_kind),
            'malformed_frames': self.messages_by_kind.get('malformed', 0),
            'listener_errors': self.listener_errors,
            'subscriptions': len(self.subscriptions),
            'cached_instruments': len(self.cache),
        }
