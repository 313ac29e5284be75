"""TransportSession: one authenticated socket connection per user session."""

import asyncio
from typing import Any, Protocol

from pydantic import ValidationError

from ..api.schemas import WireMessage
from ..errors import (
    AuthError,
    AuthTimeoutError,
    ConnectionLostError,
    SendError,
    TransportError,
)
from ..event_bus import EventBus, EventHandler, IEventBus
from ..logging_config import get_logger, redact_token
from ..models import ConnectionState, SessionEvent, SocketEvent
from .socketio_transport import ISocketTransport

logger = get_logger(__name__)

_ACTIVE_STATES = (
    ConnectionState.CONNECTING,
    ConnectionState.AUTHENTICATING,
    ConnectionState.AUTHENTICATED,
    ConnectionState.RECONNECTING,
)


class ITransportSession(Protocol):
    """Connect, authenticate, reconnect and exchange raw events."""

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    async def connect(self, credential_token: str) -> None:
        """Open and authenticate. No-op while already connecting or connected."""
        ...

    async def disconnect(self) -> None:
        """Tear down the connection and stop reconnecting. Always safe."""
        ...

    async def send(self, kind: str, payload: Any) -> bool:
        """Emit an event; queue it while authentication is in progress."""
        ...

    def on(self, kind: SessionEvent, handler: EventHandler) -> None:
        """Subscribe to a session event."""
        ...


def _reason(data: Any, default: str) -> str:
    if isinstance(data, str) and data:
        return data
    if isinstance(data, dict):
        for key in ("message", "error", "reason"):
            if data.get(key):
                return str(data[key])
    return default


class TransportSession:
    """Owns one logical connection to the messaging server.

    States: disconnected -> connecting -> authenticating -> authenticated.
    An unexpected close moves to reconnecting; each successful reconnect
    re-sends the last token. After ``reconnect_attempts`` failures the
    session is disconnected and publishes CONNECTION_LOST.
    """

    def __init__(
        self,
        transport: ISocketTransport,
        url: str,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        auth_timeout: float = 10.0,
        event_bus: IEventBus | None = None,
    ):
        self._transport = transport
        self._url = url
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._auth_timeout = auth_timeout
        self._events = event_bus or EventBus("transport_session")

        self._state = ConnectionState.DISCONNECTED
        self._token: str | None = None
        self._closing = False
        self._attempt = 0
        self._queue: list[tuple[str, Any]] = []
        self._reconnect_task: asyncio.Task | None = None
        self._auth_timer: asyncio.Task | None = None

        # Registered once for the lifetime of the session
        self._transport.on(SocketEvent.CONNECT.value, self._on_open)
        self._transport.on(SocketEvent.DISCONNECT.value, self._on_close)
        self._transport.on(SocketEvent.CONNECT_ERROR.value, self._on_connect_error)
        self._transport.on(SocketEvent.AUTHENTICATED.value, self._on_authenticated)
        self._transport.on(SocketEvent.AUTH_ERROR.value, self._on_auth_error)
        self._transport.on(SocketEvent.NEW_MESSAGE.value, self._on_new_message)
        self._transport.on(SocketEvent.MESSAGE_ERROR.value, self._on_message_error)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def token(self) -> str | None:
        return self._token

    def on(self, kind: SessionEvent, handler: EventHandler) -> None:
        """Subscribe to a session event. Handlers run in emission order."""
        self._events.subscribe(kind, handler)

    def off(self, kind: SessionEvent, handler: EventHandler) -> None:
        self._events.unsubscribe(kind, handler)

    async def connect(self, credential_token: str) -> None:
        """Open and authenticate. No-op while already connecting or connected.

        A session left unauthenticated by a rejected token re-authenticates
        on the open transport with the new token.
        """
        self._token = credential_token
        if self._state in _ACTIVE_STATES:
            return
        if self._state == ConnectionState.UNAUTHENTICATED and self._transport.connected:
            await self._authenticate()
            return

        self._closing = False
        self._attempt = 0
        self._set_state(ConnectionState.CONNECTING)
        if not await self._dial():
            self._start_reconnect()

    async def disconnect(self) -> None:
        """Tear down the connection and stop reconnecting. Always safe."""
        self._closing = True
        self._cancel_reconnect()
        self._cancel_auth_timer()
        self._drop_queue("disconnected")
        try:
            await self._transport.disconnect()
        except TransportError as e:
            logger.warning("Error while closing transport: %s", e)
        self._set_state(ConnectionState.DISCONNECTED)

    async def send(self, kind: str, payload: Any) -> bool:
        """Emit an event; queue it while authentication is in progress.

        Returns False when the event was neither sent nor queued. Queued
        events are dropped (published as SEND_ERROR) if the connection
        closes before authentication completes.
        """
        if self._state == ConnectionState.AUTHENTICATED:
            try:
                await self._transport.emit(kind, payload)
            except TransportError as e:
                logger.warning("Emit of %s failed: %s", kind, e)
                return False
            return True

        if self._state in (ConnectionState.CONNECTING, ConnectionState.AUTHENTICATING):
            self._queue.append((kind, payload))
            logger.debug("Queued %s until authenticated", kind)
            return True

        logger.warning("Cannot send %s while %s", kind, self._state.value)
        return False

    # State helpers

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.info("Connection state %s -> %s", self._state.value, state.value)
        self._state = state
        self._events.publish(SessionEvent.STATE_CHANGED, state)

    async def _dial(self) -> bool:
        try:
            await self._transport.connect(self._url)
        except TransportError as e:
            logger.warning("Connection attempt to %s failed: %s", self._url, e)
            return False
        return True

    async def _authenticate(self) -> None:
        self._set_state(ConnectionState.AUTHENTICATING)
        self._cancel_auth_timer()
        self._auth_timer = asyncio.create_task(self._auth_watchdog())
        logger.info("Authenticating with token %s", redact_token(self._token))
        try:
            await self._transport.emit(SocketEvent.AUTHENTICATE.value, self._token)
        except TransportError as e:
            # The close event that follows drives the reconnect
            logger.warning("Authenticate emit failed: %s", e)

    async def _auth_watchdog(self) -> None:
        await asyncio.sleep(self._auth_timeout)
        if self._state != ConnectionState.AUTHENTICATING:
            return
        self._auth_timer = None
        logger.warning("Authentication timed out after %ss", self._auth_timeout)
        self._drop_queue("authentication timed out")
        self._set_state(ConnectionState.UNAUTHENTICATED)
        self._events.publish(SessionEvent.AUTH_ERROR, AuthTimeoutError(self._auth_timeout))

    def _cancel_auth_timer(self) -> None:
        timer, self._auth_timer = self._auth_timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    def _start_reconnect(self) -> None:
        self._set_state(ConnectionState.RECONNECTING)
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect_loop(self) -> None:
        while self._attempt < self._reconnect_attempts:
            self._attempt += 1
            await asyncio.sleep(self._reconnect_delay * self._attempt)
            if self._closing:
                return
            logger.info(
                "Reconnect attempt %d of %d", self._attempt, self._reconnect_attempts
            )
            if await self._dial():
                return

        logger.error("Giving up after %d reconnect attempts", self._attempt)
        self._set_state(ConnectionState.DISCONNECTED)
        self._events.publish(SessionEvent.CONNECTION_LOST, ConnectionLostError(self._attempt))

    def _drop_queue(self, reason: str) -> None:
        queued, self._queue = self._queue, []
        for kind, payload in queued:
            token = payload.get("clientToken") if isinstance(payload, dict) else None
            logger.warning("Dropping queued %s: %s", kind, reason)
            self._events.publish(
                SessionEvent.SEND_ERROR, SendError(f"Not sent: {reason}", correlation_token=token)
            )

    async def _flush_queue(self) -> None:
        queued, self._queue = self._queue, []
        for kind, payload in queued:
            await self.send(kind, payload)

    # Transport handlers

    async def _on_open(self, *args: Any) -> None:
        if self._closing:
            return
        if self._state != ConnectionState.CONNECTING:
            self._set_state(ConnectionState.CONNECTING)
        if self._token is None:
            logger.warning("Transport open without a credential token")
            self._set_state(ConnectionState.UNAUTHENTICATED)
            return
        await self._authenticate()

    async def _on_close(self, *args: Any) -> None:
        self._cancel_auth_timer()
        if self._closing or self._state == ConnectionState.DISCONNECTED:
            return
        logger.warning("Transport closed unexpectedly")
        self._drop_queue("connection closed")
        self._start_reconnect()

    async def _on_connect_error(self, data: Any = None, *args: Any) -> None:
        logger.warning("Transport connect error: %s", _reason(data, "unknown"))

    async def _on_authenticated(self, *args: Any) -> None:
        self._cancel_auth_timer()
        self._attempt = 0
        self._set_state(ConnectionState.AUTHENTICATED)
        await self._flush_queue()

    async def _on_auth_error(self, data: Any = None, *args: Any) -> None:
        self._cancel_auth_timer()
        reason = _reason(data, "authentication rejected")
        logger.warning("Authentication rejected: %s", reason)
        self._drop_queue("authentication rejected")
        self._set_state(ConnectionState.UNAUTHENTICATED)
        self._events.publish(SessionEvent.AUTH_ERROR, AuthError(reason))

    async def _on_new_message(self, data: Any = None, *args: Any) -> None:
        try:
            message = WireMessage.model_validate(data).to_message()
        except ValidationError as e:
            logger.warning("Malformed new_message payload: %s", e)
            return
        logger.debug("Received message %s", message.id)
        self._events.publish(SessionEvent.MESSAGE_RECEIVED, message)

    async def _on_message_error(self, data: Any = None, *args: Any) -> None:
        token = None
        if isinstance(data, dict):
            token = data.get("clientToken") or data.get("client_token")
        self._events.publish(
            SessionEvent.SEND_ERROR,
            SendError(_reason(data, "message rejected"), correlation_token=token),
        )
