"""Pytest configuration and fixtures."""

import inspect
import logging
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

BASE_TIME = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)


def make_message(
    message_id: str | None,
    sender: str,
    receiver: str,
    text: str = "hello",
    seconds: int = 0,
):
    """Build a server-style text message at BASE_TIME + seconds."""
    from messaging_core.models import Message, TextBody

    return Message(
        id=message_id,
        sender_id=sender,
        receiver_id=receiver,
        body=TextBody(text=text),
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )


def wire_message(
    message_id: str,
    sender: str,
    receiver: str,
    content: str = "hello",
    created_at: datetime | None = None,
    **extra: Any,
) -> dict:
    """Backend-shaped new_message payload."""
    created_at = created_at or BASE_TIME
    payload = {
        "_id": message_id,
        "content": content,
        "sender": {"_id": sender, "username": sender},
        "receiver": {"_id": receiver, "username": receiver},
        "createdAt": created_at.isoformat().replace("+00:00", "Z"),
        "read": False,
    }
    payload.update(extra)
    return payload


class FakeTransport:
    """In-process stand-in for the Socket.IO client."""

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.connected = False
        self.connect_calls = 0
        self.connect_results: list[Exception | None] = []
        self.emitted: list[tuple[str, Any]] = []

    def on(self, event: str, handler) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str) -> None:
        self.connect_calls += 1
        outcome = self.connect_results.pop(0) if self.connect_results else None
        if isinstance(outcome, Exception):
            raise outcome
        self.connected = True
        await self.fire("connect")

    async def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        await self.fire("disconnect")

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    async def fire(self, event: str, *args: Any) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            return
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    async def drop(self) -> None:
        """Simulate an unexpected close from the server side."""
        self.connected = False
        await self.fire("disconnect", "transport close")

    def emitted_events(self, event: str) -> list[Any]:
        return [data for name, data in self.emitted if name == event]


@pytest.fixture
def fake_transport():
    """Create a fake socket transport."""
    return FakeTransport()


@pytest_asyncio.fixture
async def session(fake_transport):
    """Create TransportSession over the fake transport, no reconnect delay."""
    from messaging_core.transport import TransportSession

    s = TransportSession(
        transport=fake_transport,
        url="http://test",
        reconnect_attempts=5,
        reconnect_delay=0,
        auth_timeout=5.0,
    )
    yield s
    await s.disconnect()


@pytest.fixture
def store():
    """Create ConversationStore for user c1 with p1 active."""
    from messaging_core.conversation import ConversationStore

    st = ConversationStore(self_id="c1", echo_match_window=30.0)
    st.set_active_peer("p1")
    return st


@pytest.fixture
def roster():
    """Create RosterTracker loaded with two parents."""
    from messaging_core.models import Peer, Role, RosterEntry
    from messaging_core.roster import RosterTracker

    rt = RosterTracker()
    rt.load(
        [
            RosterEntry(peer=Peer(id="p1", display_name="Parent One", role=Role.PARENT)),
            RosterEntry(peer=Peer(id="p2", display_name="Parent Two", role=Role.PARENT)),
        ]
    )
    return rt


@pytest.fixture
def coach_peer():
    from messaging_core.models import Peer, Role

    return Peer(id="c1", display_name="Coach", role=Role.COACH)


@pytest.fixture
def mock_rest(coach_peer):
    """Create mock REST client."""
    from messaging_core.models import Peer, Role, RosterEntry

    rest = Mock()
    rest.get_current_user = AsyncMock(return_value=coach_peer)
    rest.get_coach = AsyncMock(return_value=coach_peer)
    rest.get_parents = AsyncMock(
        return_value=[
            RosterEntry(peer=Peer(id="p1", display_name="Parent One", role=Role.PARENT)),
            RosterEntry(peer=Peer(id="p2", display_name="Parent Two", role=Role.PARENT)),
        ]
    )
    rest.get_history = AsyncMock(return_value=[])
    rest.post_message = AsyncMock()
    rest.close = AsyncMock()
    return rest


@pytest.fixture
def mock_attachments():
    """Create mock attachment transfer."""
    attachments = Mock()
    attachments.upload = AsyncMock()
    attachments.download = AsyncMock()
    return attachments


@pytest.fixture
def settings():
    from messaging_core.config import MessagingSettings

    return MessagingSettings(reconnect_delay=0, auth_timeout=5.0)


@pytest_asyncio.fixture
async def make_facade(mock_rest, mock_attachments, fake_transport, settings):
    """Factory for MessagingFacade over the fake transport."""
    from messaging_core.facade import MessagingFacade
    from messaging_core.transport import TransportSession

    created = []

    def factory(settings_override=None, reconnect_attempts: int = 5, clock=None):
        used = settings_override or settings

        def session_factory():
            return TransportSession(
                transport=fake_transport,
                url="http://test",
                reconnect_attempts=reconnect_attempts,
                reconnect_delay=0,
                auth_timeout=used.auth_timeout,
            )

        facade = MessagingFacade(
            rest_client=mock_rest,
            attachments=mock_attachments,
            session_factory=session_factory,
            settings=used,
            clock=clock or time.monotonic,
        )
        created.append(facade)
        return facade

    yield factory
    for facade in created:
        await facade.close()


@pytest_asyncio.fixture
async def coach_facade(make_facade, fake_transport):
    """Coach facade, authenticated, with p1 selected."""
    facade = make_facade()
    await facade.initialize("token-123", "coach", self_id="c1")
    await fake_transport.fire("authenticated")
    await facade.select_peer("p1")
    return facade


@pytest.fixture
def package_logger():
    """Package logger, restored after the test."""
    from messaging_core.logging_config import PACKAGE_LOGGER

    logger = logging.getLogger(PACKAGE_LOGGER)
    saved_handlers = list(logger.handlers)
    saved_level, saved_propagate = logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)
    logger.propagate = saved_propagate
