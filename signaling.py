import logging
from enum import Enum
from typing import Optional, Union

from fastapi import WebSocket, WebSocketDisconnect, status

from models.messages import MessageDecodeError, decode_message
from registry import ChannelClosed, Connection, ConnectionRegistry, MessageChannel
from router import MessageRouter

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(Enum):
    REMOTE_CLOSED = "remote_closed"
    DECODE_ERROR = "decode_error"
    TRANSPORT_ERROR = "transport_error"


CLOSE_CODES = {
    CloseReason.DECODE_ERROR: status.WS_1003_UNSUPPORTED_DATA,
    CloseReason.TRANSPORT_ERROR: status.WS_1011_INTERNAL_ERROR,
}


class WebSocketChannel:
    """Adapts an accepted Starlette WebSocket to the registry's channel interface"""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def receive(self) -> Union[str, bytes]:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ChannelClosed(message.get("code"))
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def send(self, data: str) -> None:
        await self.websocket.send_text(data)


class ConnectionLifecycle:
    """
    Drives one peer connection through CONNECTING -> OPEN -> CLOSED.

    Frames are decoded and routed one at a time, in the order they arrive.
    The connection is removed from the registry exactly once, however the
    receive loop ends.
    """

    def __init__(self, channel: MessageChannel, registry: ConnectionRegistry, router: MessageRouter):
        self.channel = channel
        self.registry = registry
        self.router = router
        self.state = ConnectionState.CONNECTING
        self.connection: Optional[Connection] = None
        self.close_reason: Optional[CloseReason] = None

    async def run(self) -> CloseReason:
        if self.state is not ConnectionState.CONNECTING:
            raise RuntimeError(f"Connection lifecycle already {self.state.value}")

        self.connection = self.registry.register(self.channel)
        self.state = ConnectionState.OPEN
        session_id = self.connection.session_id
        logger.info(f"Connection opened with session ID: {session_id}")

        try:
            self.close_reason = await self._receive_loop()
        finally:
            self.registry.remove(session_id)
            self.state = ConnectionState.CLOSED
            logger.info(f"Connection with session ID: {session_id} closed ({self.close_reason})")
        return self.close_reason

    async def _receive_loop(self) -> CloseReason:
        while True:
            try:
                raw = await self.channel.receive()
            except ChannelClosed:
                return CloseReason.REMOTE_CLOSED
            except Exception as e:
                logger.error(f"Error reading from {self.connection.session_id}: {e}")
                return CloseReason.TRANSPORT_ERROR

            try:
                message = decode_message(raw)
            except MessageDecodeError as e:
                logger.warning(f"Dropping connection {self.connection.session_id}: {e}")
                return CloseReason.DECODE_ERROR

            await self.router.dispatch(self.connection, message)


async def signaling_endpoint(websocket: WebSocket):
    registry: ConnectionRegistry = websocket.app.state.registry
    router: MessageRouter = websocket.app.state.router

    await websocket.accept()
    lifecycle = ConnectionLifecycle(WebSocketChannel(websocket), registry, router)
    reason = await lifecycle.run()

    close_code = CLOSE_CODES.get(reason)
    if close_code is None:
        return
    try:
        await websocket.close(code=close_code)
    except (RuntimeError, WebSocketDisconnect) as e:
        logger.debug(f"Socket already closed: {e}")
