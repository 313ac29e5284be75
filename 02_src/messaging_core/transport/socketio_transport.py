"""Socket.IO adapter for TransportSession."""

from typing import Any, Awaitable, Callable, Protocol

import socketio

from ..errors import TransportError
from ..logging_config import get_logger

logger = get_logger(__name__)


TransportHandler = Callable[..., Awaitable[None] | None]


class ISocketTransport(Protocol):
    """Raw bidirectional event channel. Does not reconnect on its own."""

    @property
    def connected(self) -> bool:
        """True while the underlying connection is open."""
        ...

    def on(self, event: str, handler: TransportHandler) -> None:
        """Register the handler for a server event (one per event)."""
        ...

    async def connect(self, url: str) -> None:
        """Open the connection. Raises TransportError on failure."""
        ...

    async def disconnect(self) -> None:
        """Close the connection if open."""
        ...

    async def emit(self, event: str, data: Any = None) -> None:
        """Send an event. Raises TransportError if the channel is closed."""
        ...


class SocketIOTransport:
    """python-socketio AsyncClient with built-in reconnection disabled."""

    def __init__(
        self,
        socketio_path: str = "socket.io",
        client: socketio.AsyncClient | None = None,
    ):
        self._socketio_path = socketio_path
        self._sio = client or socketio.AsyncClient(reconnection=False, logger=False)

    @property
    def connected(self) -> bool:
        return self._sio.connected

    def on(self, event: str, handler: TransportHandler) -> None:
        self._sio.on(event, handler)

    async def connect(self, url: str) -> None:
        try:
            await self._sio.connect(
                url,
                socketio_path=self._socketio_path,
                transports=["websocket", "polling"],
            )
        except socketio.exceptions.ConnectionError as e:
            raise TransportError(f"Cannot connect to {url}: {e}") from e

    async def disconnect(self) -> None:
        if self._sio.connected:
            await self._sio.disconnect()

    async def emit(self, event: str, data: Any = None) -> None:
        try:
            await self._sio.emit(event, data)
        except socketio.exceptions.SocketIOError as e:
            raise TransportError(f"Cannot emit {event}: {e}") from e
