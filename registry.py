import asyncio
import itertools
import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol, Union

from models.schemas import SignalMessage

logger = logging.getLogger(__name__)


class ChannelClosed(Exception):
    """Raised by a channel's receive() when the remote side has gone away"""

    def __init__(self, code: Optional[int] = None):
        super().__init__(f"channel closed (code={code})")
        self.code = code


class MessageChannel(Protocol):
    async def receive(self) -> Union[str, bytes]:
        ...

    async def send(self, data: str) -> None:
        ...


class SendResult(Enum):
    """Outcome of a best-effort send: nothing is acknowledged or retried"""
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class Connection:
    session_id: str
    channel: MessageChannel
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def send(self, message: SignalMessage) -> SendResult:
        try:
            async with self._send_lock:
                await self.channel.send(message.to_json())
        except Exception as e:
            logger.warning(f"Failed to send {message.action.value} to {self.session_id}: {e}")
            return SendResult.FAILED
        return SendResult.DELIVERED


class SessionIdGenerator:
    """Timestamp ids with a counter and random suffix so one clock tick can't collide"""

    def __init__(self):
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            sequence = next(self._counter)
        return f"{time.time_ns()}{sequence:06d}{secrets.token_hex(4)}"


class ConnectionRegistry:
    def __init__(self, id_generator: Optional[SessionIdGenerator] = None):
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._ids = id_generator or SessionIdGenerator()

    def register(self, channel: MessageChannel) -> Connection:
        with self._lock:
            session_id = self._ids.generate()
            while session_id in self._connections:
                session_id = self._ids.generate()
            connection = Connection(session_id=session_id, channel=channel)
            self._connections[session_id] = connection
        return connection

    def remove(self, session_id: str):
        with self._lock:
            self._connections.pop(session_id, None)

    def lookup(self, session_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(session_id)

    def active_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def __len__(self) -> int:
        return self.active_count()

    def __contains__(self, session_id: str) -> bool:
        return self.lookup(session_id) is not None
