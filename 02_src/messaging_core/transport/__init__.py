"""Transport module."""

from .session import ITransportSession, TransportSession
from .socketio_transport import ISocketTransport, SocketIOTransport, TransportHandler

__all__ = [
    "ISocketTransport",
    "ITransportSession",
    "SocketIOTransport",
    "TransportHandler",
    "TransportSession",
]
