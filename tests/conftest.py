import asyncio
import json

import pytest

from registry import ChannelClosed, ConnectionRegistry
from router import MessageRouter


class FakeChannel:
    """In-memory channel: tests push inbound frames and read what was sent"""

    def __init__(self, frames=None, fail_sends=False):
        self.inbound = asyncio.Queue()
        self.sent = []
        self.fail_sends = fail_sends
        for frame in frames or []:
            self.push(frame)

    def push(self, frame):
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self.inbound.put_nowait(frame)

    def close(self):
        self.inbound.put_nowait(ChannelClosed(1000))

    def fail(self, error):
        self.inbound.put_nowait(error)

    async def receive(self):
        item = await self.inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data):
        if self.fail_sends:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    @property
    def messages(self):
        return [json.loads(data) for data in self.sent]


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(registry):
    return MessageRouter(registry)


@pytest.fixture
def make_channel():
    return FakeChannel
