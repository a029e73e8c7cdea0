"""Shared test fixtures and configuration for relay tests."""
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from relay.chat.events import EventRouter
from relay.chat.state import RelayState
from relay.main import create_app


class RecordingChannel:
    """Outbound channel that records events instead of writing to a socket."""

    def __init__(self, connection_id: str) -> None:
        self.id = connection_id
        self.events: List[Tuple[str, dict]] = []
        self.closed = False

    def enqueue(self, event: str, data: dict) -> bool:
        if self.closed:
            return False
        self.events.append((event, data))
        return True

    def close(self) -> None:
        self.closed = True

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, event: Optional[str] = None) -> dict:
        for name, data in reversed(self.events):
            if event is None or name == event:
                return data
        raise AssertionError(f"no {event or 'event'} received by {self.id}")


@pytest.fixture
def relay_state():
    """A fresh, isolated relay state."""
    return RelayState()


@pytest.fixture
def events(relay_state):
    return EventRouter(relay_state)


@pytest.fixture
def channel_factory(events):
    """Create recording channels already registered with the event router."""
    def _make(connection_id: str) -> RecordingChannel:
        channel = RecordingChannel(connection_id)
        events.connect(channel)
        return channel
    return _make


@pytest.fixture
def api_client(relay_state):
    """Provide a TestClient for an app serving ``relay_state``.

    Entered as a context manager so that every WebSocket session shares one
    event loop.
    """
    with TestClient(create_app(relay_state)) as client:
        yield client
