"""
Tests for FeedSession lifecycle over an in-memory transport.

CRITICAL TESTS:
1. test_subscribe_waits_for_authorization - no subscription byte before auth
2. test_connect_failure_fails_waiters - waiters never hang on a failed attempt
3. test_server_disconnect_807 - teardown codes end the session
"""

import asyncio

import pytest

from conftest import (
    FakeTransport,
    RecordingListener,
    quote_frame,
    oi_frame,
    disconnection_frame,
)
from dhan_feed.core.errors import (
    AuthorizationTimeout,
    ErrorCode,
    InvalidArgument,
    SessionStateError,
    TransportFailure,
)
from dhan_feed.formats.codes import RequestCode
from dhan_feed.formats.layout import AUTH_PACKET_SIZE, SUBSCRIPTION_PACKET_SIZE
from dhan_feed.session import FeedSession, SessionListener, SessionState
from dhan_feed.session.gate import AuthorizationGate


async def drain(listener, count, timeout=1.0):
    """Wait until the listener has seen count messages."""
    async def _poll():
        while len(listener.messages) < count:
            await asyncio.sleep(0)
    await asyncio.wait_for(_poll(), timeout)


async def held_connect(session, transport):
    """Start connect() against a hold_open transport and wait until it blocks."""
    task = asyncio.create_task(session.connect())
    while transport.release is None:
        await asyncio.sleep(0)
    return task


def make_session(transport, **kwargs):
    return FeedSession('1000000001', 'token-abc', transport=transport, **kwargs)


class TestConnect:
    """Authorization flow."""

    def test_connect_sends_authorization(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            await session.connect()

            assert session.state is SessionState.AUTHORIZED
            assert session.is_authorized
            assert len(transport.sent) == 1
            packet = transport.sent[0]
            assert len(packet) == AUTH_PACKET_SIZE
            assert packet[0] == RequestCode.AUTHORIZE
            await session.wait_authorized()
            await session.close()

        asyncio.run(scenario())

    def test_subscribe_before_connect(self):
        async def scenario():
            session = make_session(FakeTransport())
            with pytest.raises(SessionStateError, match="Connection not initiated"):
                await session.subscribe([(1, '1333')])

        asyncio.run(scenario())

    def test_wait_before_connect(self):
        async def scenario():
            session = make_session(FakeTransport())
            with pytest.raises(SessionStateError) as exc_info:
                await session.wait_authorized()
            assert exc_info.value.code == ErrorCode.E4004_INVALID_STATE

        asyncio.run(scenario())

    def test_subscribe_waits_for_authorization(self):
        async def scenario():
            transport = FakeTransport(hold_open=True)
            session = make_session(transport)
            connecting = await held_connect(session, transport)

            subscribing = asyncio.create_task(session.subscribe([(1, '1333')]))
            await asyncio.sleep(0.01)
            assert not subscribing.done()
            assert transport.sent == []

            transport.release.set()
            await connecting
            await subscribing

            assert [p[0] for p in transport.sent] == \
                [RequestCode.AUTHORIZE, RequestCode.SUBSCRIBE]
            assert len(transport.sent[1]) == SUBSCRIPTION_PACKET_SIZE
            await session.close()

        asyncio.run(scenario())

    def test_connect_failure_fails_waiters(self):
        async def scenario():
            refused = TransportFailure("connection refused")
            transport = FakeTransport(fail_open=refused)
            session = make_session(transport)

            with pytest.raises(TransportFailure):
                await session.connect()

            assert session.state is SessionState.FAILED
            with pytest.raises(TransportFailure) as exc_info:
                await session.subscribe([(1, '1333')])
            assert exc_info.value is refused
            assert transport.sent == []

        asyncio.run(scenario())

    def test_pending_waiters_see_failure(self):
        async def scenario():
            transport = FakeTransport(hold_open=True,
                                      fail_open=TransportFailure("handshake failed"))
            session = make_session(transport)
            connecting = await held_connect(session, transport)

            waiters = [asyncio.create_task(session.wait_authorized()) for _ in range(3)]
            await asyncio.sleep(0)
            transport.release.set()

            with pytest.raises(TransportFailure):
                await connecting
            results = await asyncio.gather(*waiters, return_exceptions=True)
            assert all(isinstance(r, TransportFailure) for r in results)

        asyncio.run(scenario())

    def test_authorization_timeout(self):
        async def scenario():
            transport = FakeTransport(hold_open=True)
            session = make_session(transport, authorization_timeout=0.05)
            connecting = await held_connect(session, transport)

            with pytest.raises(AuthorizationTimeout) as exc_info:
                await session.subscribe([(1, '1333')])
            assert exc_info.value.code == ErrorCode.E4003_AUTHORIZATION_TIMEOUT
            assert session.state is SessionState.FAILED

            # The gate stays failed for later waiters
            with pytest.raises(AuthorizationTimeout):
                await session.wait_authorized(timeout=1.0)

            # The pending connect is aborted with the same error
            with pytest.raises(AuthorizationTimeout):
                await connecting
            assert transport.sent == []
            assert transport.closed

        asyncio.run(scenario())

    def test_timeout_then_transport_opens(self):
        async def scenario():
            transport = FakeTransport(hold_open=True)
            session = make_session(transport, authorization_timeout=0.05)
            connecting = await held_connect(session, transport)

            with pytest.raises(AuthorizationTimeout):
                await session.wait_authorized()

            # A late open must not resurrect the timed-out attempt
            transport.release.set()
            with pytest.raises(AuthorizationTimeout):
                await connecting
            assert session.state is SessionState.FAILED
            assert not session.is_authorized
            assert transport.sent == []

            # A fresh attempt gets a fresh gate
            transport.hold_open = False
            await session.connect()
            await session.subscribe([(1, '1333')])
            assert [p[0] for p in transport.sent] == \
                [RequestCode.AUTHORIZE, RequestCode.SUBSCRIBE]
            await session.close()

        asyncio.run(scenario())

    def test_cancelled_connect_can_retry(self):
        async def scenario():
            transport = FakeTransport(hold_open=True)
            session = make_session(transport)
            connecting = await held_connect(session, transport)
            waiter = asyncio.create_task(session.wait_authorized())
            await asyncio.sleep(0)

            connecting.cancel()
            with pytest.raises(asyncio.CancelledError):
                await connecting
            assert session.state is SessionState.FAILED
            assert transport.closed
            with pytest.raises(TransportFailure, match="cancelled"):
                await waiter

            transport.hold_open = False
            await session.connect()
            assert session.is_authorized
            await session.close()

        asyncio.run(scenario())

    def test_send_failure_closes_transport(self):
        async def scenario():
            transport = FakeTransport(fail_send=TransportFailure("broken pipe"))
            session = make_session(transport)

            with pytest.raises(TransportFailure, match="broken pipe"):
                await session.connect()

            assert session.state is SessionState.FAILED
            assert transport.opened
            assert not transport.is_open
            with pytest.raises(TransportFailure):
                await session.wait_authorized()

        asyncio.run(scenario())

    def test_invalid_credentials(self):
        async def scenario():
            transport = FakeTransport()
            session = FeedSession('x' * 31, 'token', transport=transport)

            with pytest.raises(InvalidArgument):
                await session.connect()
            assert session.state is SessionState.FAILED
            assert not transport.opened

        asyncio.run(scenario())

    def test_context_manager(self):
        async def scenario():
            transport = FakeTransport()
            async with make_session(transport) as session:
                assert session.is_authorized
            assert transport.closed
            assert session.state is SessionState.DISCONNECTED

        asyncio.run(scenario())


class TestSubscriptions:
    """Subscribe and unsubscribe."""

    def test_too_many_instruments_sends_nothing(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            await session.connect()

            with pytest.raises(InvalidArgument) as exc_info:
                await session.subscribe([(1, str(i)) for i in range(101)])
            assert exc_info.value.code == ErrorCode.E2001_TOO_MANY_INSTRUMENTS
            assert len(transport.sent) == 1
            await session.close()

        asyncio.run(scenario())

    def test_invalid_input_rejected_before_connect(self):
        async def scenario():
            session = make_session(FakeTransport())
            with pytest.raises(InvalidArgument):
                await session.subscribe([(300, '1333')])

        asyncio.run(scenario())

    def test_subscribe_and_unsubscribe(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            await session.connect()

            await session.subscribe([(1, '1333'), (2, '43225')])
            assert len(session.subscriptions) == 2

            await session.unsubscribe([(1, '1333')])
            assert len(session.subscriptions) == 1
            assert transport.sent[-1][0] == RequestCode.UNSUBSCRIBE
            await session.close()

        asyncio.run(scenario())

    def test_subscribe_after_disconnect(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(disconnection_frame(807))
            await asyncio.wait_for(listener.disconnected.wait(), 1.0)

            with pytest.raises(SessionStateError):
                await session.subscribe([(1, '1333')])
            assert len(transport.sent) == 1

        asyncio.run(scenario())


class TestInbound:
    """Frame processing on the reader task."""

    def test_messages_delivered_in_order(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(quote_frame(security_id=1, ltp=10.0),
                           oi_frame(security_id=2),
                           b'',
                           quote_frame(security_id=1, ltp=11.0))
            await drain(listener, 4)

            assert [m.kind for m in listener.messages] == \
                ['quote', 'open_interest', 'malformed', 'quote']
            assert session.get_last_traded_price(1) == 11.0
            assert session.state is SessionState.AUTHORIZED

            stats = session.stats()
            assert stats['frames_received'] == 4
            assert stats['malformed_frames'] == 1
            assert stats['cached_instruments'] == 1
            await session.close()

        asyncio.run(scenario())

    def test_server_disconnect_807(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(disconnection_frame(807))
            await asyncio.wait_for(listener.disconnected.wait(), 1.0)

            assert session.state is SessionState.DISCONNECTED
            event = listener.events[0]
            assert event.source == 'server'
            assert event.code == 807
            assert 'expired' in event.reason
            assert transport.closed

        asyncio.run(scenario())

    def test_unknown_disconnect_code_keeps_session(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(disconnection_frame(999), quote_frame())
            await drain(listener, 2)

            assert session.state is SessionState.AUTHORIZED
            assert listener.events == []
            assert listener.messages[0].teardown is False
            await session.close()

        asyncio.run(scenario())

    def test_transport_break(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.break_connection("connection reset")
            await asyncio.wait_for(listener.disconnected.wait(), 1.0)

            assert session.state is SessionState.DISCONNECTED
            assert listener.events[0].source == 'transport'
            assert 'connection reset' in listener.events[0].reason

        asyncio.run(scenario())

    def test_clean_end_of_stream(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.finish()
            await asyncio.wait_for(listener.disconnected.wait(), 1.0)
            assert listener.events[0].source == 'transport'

        asyncio.run(scenario())

    def test_listener_errors_are_contained(self):
        class Broken(SessionListener):
            def on_message(self, message):
                raise RuntimeError("listener bug")

        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            session.add_listener(Broken())
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(quote_frame(), quote_frame(ltp=5.0))
            await drain(listener, 2)

            assert session.listener_errors == 2
            assert session.get_last_traded_price(1333) == 5.0
            await session.close()

        asyncio.run(scenario())

    def test_remove_listener(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            removed = RecordingListener()
            kept = RecordingListener()
            session.add_listener(removed)
            session.add_listener(kept)
            session.remove_listener(removed)
            await session.connect()

            transport.feed(quote_frame())
            await drain(kept, 1)
            assert removed.messages == []
            await session.close()

        asyncio.run(scenario())

    def test_close_clears_cache(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            listener = RecordingListener()
            session.add_listener(listener)
            await session.connect()

            transport.feed(quote_frame(security_id=1333, ltp=101.5))
            await drain(listener, 1)
            assert session.get_last_traded_price(1333) == 101.5

            await session.close()
            assert session.get_last_traded_price(1333) == 0.0
            assert session.state is SessionState.DISCONNECTED
            assert listener.events[-1].source == 'client'
            assert transport.closed

        asyncio.run(scenario())

    def test_reconnect_after_disconnect(self):
        async def scenario():
            transport = FakeTransport()
            session = make_session(transport)
            await session.connect()
            await session.close()

            await session.connect()
            assert session.is_authorized
            assert [p[0] for p in transport.sent] == \
                [RequestCode.AUTHORIZE, RequestCode.AUTHORIZE]
            await session.close()

        asyncio.run(scenario())

    def test_decode_without_connection(self):
        session = make_session(FakeTransport())
        message = session.decode(quote_frame(security_id=9, ltp=3.5))

        assert message.kind == 'quote'
        assert session.get_last_traded_price(9) == 3.5
        assert session.state is SessionState.IDLE


class TestAuthorizationGate:
    """One-shot gate semantics."""

    def test_open_once(self):
        async def scenario():
            gate = AuthorizationGate()
            assert gate.open() is True
            assert gate.open() is False
            assert gate.fail(RuntimeError("late")) is False
            assert gate.is_open
            await gate.wait(0.1)

        asyncio.run(scenario())

    def test_fail_once(self):
        async def scenario():
            gate = AuthorizationGate()
            error = TransportFailure("down")
            assert gate.fail(error) is True
            assert gate.open() is False
            assert gate.is_signaled
            assert not gate.is_open
            with pytest.raises(TransportFailure):
                await gate.wait(0.1)

        asyncio.run(scenario())

    def test_timeout(self):
        async def scenario():
            gate = AuthorizationGate()
            with pytest.raises(AuthorizationTimeout):
                await gate.wait(0.01)
            assert gate.is_signaled

        asyncio.run(scenario())


def test_last_traded_price_for_non_numeric_id():
    session = make_session(FakeTransport())
    session.decode(quote_frame(security_id=1333, ltp=101.5))

    assert session.get_last_traded_price('NIFTY') == 0.0
    assert session.get_last_traded_price('1333') == 101.5
