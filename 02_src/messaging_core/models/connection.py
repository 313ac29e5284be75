"""Connection and lifecycle state models."""

from enum import Enum


class ConnectionState(str, Enum):
    """TransportSession state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    # Transport open, credential rejected; waiting for a fresh token.
    UNAUTHENTICATED = "unauthenticated"
    RECONNECTING = "reconnecting"


class FacadeState(str, Enum):
    """MessagingFacade state."""

    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    PEER_SELECTED = "peer_selected"
    ERROR = "error"


class SessionEvent(str, Enum):
    """Event kinds published by TransportSession."""

    MESSAGE_RECEIVED = "message_received"
    SEND_ERROR = "send_error"
    STATE_CHANGED = "state_changed"
    AUTH_ERROR = "auth_error"
    CONNECTION_LOST = "connection_lost"


class SocketEvent(str, Enum):
    """Socket.IO event names exchanged with the messaging server."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    CONNECT_ERROR = "connect_error"
    AUTHENTICATE = "authenticate"
    AUTHENTICATED = "authenticated"
    AUTH_ERROR = "auth_error"
    SEND_MESSAGE = "send_message"
    NEW_MESSAGE = "new_message"
    MESSAGE_ERROR = "message_error"
