"""Shared fakes for session and transport tests."""

import pytest

from device.session import DeviceSession
from protocol.errors import TransportFailure


ID_REPLY = b"\rPM100 1 5\n"
STATUS_REPLY = b"\rPM1001020300\n"
TEMPERATURE_REPLY = b"\rPM100128\n"


class FakeTransport:
    """Records every call and replays canned replies in order."""

    def __init__(self, replies=None, fail_on_write=None):
        self.replies = list(replies or [])
        self.writes = []
        self.events = []
        self.fail_on_write = fail_on_write

    def flush_input(self):
        self.events.append(("flush", None))

    def write(self, data):
        if self.fail_on_write is not None and len(self.writes) == self.fail_on_write:
            raise TransportFailure("link down")
        self.writes.append(bytes(data))
        self.events.append(("write", bytes(data)))

    def read_until(self, terminator=b"\n"):
        self.events.append(("read", terminator))
        if not self.replies:
            raise TransportFailure("Timed out waiting for reply")
        return self.replies.pop(0)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def shown():
    return []


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport, sleeps, shown):
    return DeviceSession(transport, 0, sleep=sleeps.append, display_fn=shown.append)


@pytest.fixture
def identified(session, transport, sleeps):
    """A session that has been connected, reset and identified."""
    transport.replies.append(ID_REPLY)
    session.connect()
    session.reset()
    session.identify()
    transport.writes.clear()
    transport.events.clear()
    sleeps.clear()
    return session
