"""
Unit tests for ConnectionLifecycle
==================================
Each exit path of the CONNECTING -> OPEN -> CLOSED state machine, driven
through in-memory channels.
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from registry import ChannelClosed
from signaling import CloseReason, ConnectionLifecycle, ConnectionState, WebSocketChannel


async def wait_for(predicate, timeout=1.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0)
    await asyncio.wait_for(poll(), timeout)


async def wait_until_open(lifecycle):
    await wait_for(lambda: lifecycle.state is ConnectionState.OPEN)


class TestLifecycleTransitions:

    def test_starts_connecting_and_unregistered(self, registry, router, make_channel):
        lifecycle = ConnectionLifecycle(make_channel(), registry, router)

        assert lifecycle.state is ConnectionState.CONNECTING
        assert lifecycle.connection is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_open_connection_is_registered(self, registry, router, make_channel):
        channel = make_channel()
        lifecycle = ConnectionLifecycle(channel, registry, router)
        task = asyncio.create_task(lifecycle.run())

        await wait_until_open(lifecycle)
        assert registry.lookup(lifecycle.connection.session_id) is lifecycle.connection

        channel.close()
        assert await task is CloseReason.REMOTE_CLOSED

    @pytest.mark.asyncio
    async def test_remote_close_deregisters(self, registry, router, make_channel):
        channel = make_channel([{"action": "create_session"}])
        channel.close()
        lifecycle = ConnectionLifecycle(channel, registry, router)

        reason = await lifecycle.run()

        assert reason is CloseReason.REMOTE_CLOSED
        assert lifecycle.state is ConnectionState.CLOSED
        assert registry.lookup(lifecycle.connection.session_id) is None
        assert channel.messages == [
            {"action": "session_created", "session_id": lifecycle.connection.session_id, "target": ""}
        ]

    @pytest.mark.asyncio
    async def test_decode_error_closes_without_reply(self, registry, router, make_channel):
        channel = make_channel(["{not json", {"action": "create_session"}])
        lifecycle = ConnectionLifecycle(channel, registry, router)

        reason = await lifecycle.run()

        assert reason is CloseReason.DECODE_ERROR
        assert lifecycle.state is ConnectionState.CLOSED
        assert channel.sent == []
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_transport_error_deregisters(self, registry, router, make_channel):
        channel = make_channel()
        channel.fail(ConnectionResetError("reset by peer"))
        lifecycle = ConnectionLifecycle(channel, registry, router)

        reason = await lifecycle.run()

        assert reason is CloseReason.TRANSPORT_ERROR
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_unknown_action_keeps_connection_open(self, registry, router, make_channel):
        channel = make_channel([{"action": "dance"}, {"action": "create_session"}])
        channel.close()
        lifecycle = ConnectionLifecycle(channel, registry, router)

        reason = await lifecycle.run()

        assert reason is CloseReason.REMOTE_CLOSED
        assert [m["action"] for m in channel.messages] == ["session_created"]

    @pytest.mark.asyncio
    async def test_cancellation_still_deregisters(self, registry, router, make_channel):
        lifecycle = ConnectionLifecycle(make_channel(), registry, router)
        task = asyncio.create_task(lifecycle.run())
        await wait_until_open(lifecycle)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert lifecycle.state is ConnectionState.CLOSED
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_remove_runs_exactly_once(self, router, make_channel):
        registry = Mock(wraps=router.registry)
        channel = make_channel(["oops"])

        await ConnectionLifecycle(channel, registry, router).run()

        registry.remove.assert_called_once()

    @pytest.mark.asyncio
    async def test_lifecycle_cannot_be_rerun(self, registry, router, make_channel):
        channel = make_channel()
        channel.close()
        lifecycle = ConnectionLifecycle(channel, registry, router)
        await lifecycle.run()

        with pytest.raises(RuntimeError):
            await lifecycle.run()

    @pytest.mark.asyncio
    async def test_messages_are_routed_in_arrival_order(self, registry, make_channel):
        router = Mock()
        seen = []
        router.dispatch = AsyncMock(side_effect=lambda connection, message: seen.append(message.target))
        channel = make_channel([{"action": "join_session", "target": str(i)} for i in range(20)])
        channel.close()

        await ConnectionLifecycle(channel, registry, router).run()

        assert seen == [str(i) for i in range(20)]


class TestTwoPeerScenario:

    @pytest.mark.asyncio
    async def test_full_handshake_between_two_peers(self, registry, router, make_channel):
        peer1, peer2 = make_channel(), make_channel()
        first = ConnectionLifecycle(peer1, registry, router)
        second = ConnectionLifecycle(peer2, registry, router)
        tasks = [asyncio.create_task(first.run()), asyncio.create_task(second.run())]
        await wait_until_open(first)
        await wait_until_open(second)
        s1, s2 = first.connection.session_id, second.connection.session_id

        peer2.push({"action": "join_session", "target": s1})
        await wait_for(lambda: len(peer1.sent) == 1)
        peer1.push({"action": "offer", "target": s2, "sdp": "v=0...", "session_id": "spoofed"})
        await wait_for(lambda: len(peer2.sent) == 1)
        peer2.push({"action": "answer", "target": s1, "sdp": "v=0 answer"})
        await wait_for(lambda: len(peer1.sent) == 2)
        peer1.close()
        peer2.close()
        await asyncio.gather(*tasks)

        assert peer1.messages == [
            {"action": "peer_joined", "session_id": s2, "target": s1},
            {"action": "answer", "session_id": s2, "target": s1, "sdp": "v=0 answer"},
        ]
        assert peer2.messages == [
            {"action": "offer", "session_id": s1, "target": s2, "sdp": "v=0..."},
        ]
        assert len(registry) == 0


class TestWebSocketChannel:

    @pytest.mark.asyncio
    async def test_text_frame(self):
        websocket = Mock()
        websocket.receive = AsyncMock(return_value={"type": "websocket.receive", "text": "{}"})

        assert await WebSocketChannel(websocket).receive() == "{}"

    @pytest.mark.asyncio
    async def test_binary_frame(self):
        websocket = Mock()
        websocket.receive = AsyncMock(return_value={"type": "websocket.receive", "bytes": b"{}"})

        assert await WebSocketChannel(websocket).receive() == b"{}"

    @pytest.mark.asyncio
    async def test_disconnect_raises_channel_closed(self):
        websocket = Mock()
        websocket.receive = AsyncMock(return_value={"type": "websocket.disconnect", "code": 1001})

        with pytest.raises(ChannelClosed) as excinfo:
            await WebSocketChannel(websocket).receive()
        assert excinfo.value.code == 1001

    @pytest.mark.asyncio
    async def test_send_writes_text(self):
        websocket = Mock()
        websocket.send_text = AsyncMock()

        await WebSocketChannel(websocket).send('{"action": "error"}')

        websocket.send_text.assert_awaited_once_with('{"action": "error"}')
