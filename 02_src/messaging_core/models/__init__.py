"""Core data models for the messaging client."""

from .connection import ConnectionState, FacadeState, SessionEvent, SocketEvent
from .messages import (
    AttachmentBody,
    AttachmentRef,
    BinaryBlob,
    Conversation,
    DeliveryState,
    Message,
    MessageBody,
    TextBody,
)
from .peers import MessageSummary, Peer, Role, RosterEntry

__all__ = [
    # Messages
    "AttachmentBody",
    "AttachmentRef",
    "BinaryBlob",
    "Conversation",
    "DeliveryState",
    "Message",
    "MessageBody",
    "TextBody",
    # Peers
    "MessageSummary",
    "Peer",
    "Role",
    "RosterEntry",
    # Connection
    "ConnectionState",
    "FacadeState",
    "SessionEvent",
    "SocketEvent",
]
