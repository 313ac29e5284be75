"""Real-time messaging client core."""

from .app import IApplication, MessagingApplication
from .attachments import AttachmentTransfer, IAttachmentTransfer
from .config import MessagingSettings, load_settings
from .logging_config import get_logger, setup_logging
from .conversation import ConversationStore, IConversationStore
from .errors import (
    AttachmentNotFoundError,
    AuthError,
    AuthTimeoutError,
    ConnectionLostError,
    LoadError,
    MessagingError,
    SendError,
    TransferError,
    TransferNetworkError,
    TransportError,
)
from .event_bus import EventBus, IEventBus
from .facade import FacadeEvent, IMessagingFacade, MessagingFacade
from .models import (
    AttachmentBody,
    AttachmentRef,
    BinaryBlob,
    ConnectionState,
    Conversation,
    DeliveryState,
    FacadeState,
    Message,
    MessageSummary,
    Peer,
    Role,
    RosterEntry,
    SessionEvent,
    TextBody,
)
from .roster import IRosterTracker, RosterTracker
from .transport import ISocketTransport, ITransportSession, SocketIOTransport, TransportSession

__all__ = [
    # Application
    "IApplication",
    "MessagingApplication",
    "MessagingSettings",
    "load_settings",
    "setup_logging",
    "get_logger",
    # Models
    "AttachmentBody",
    "AttachmentRef",
    "BinaryBlob",
    "ConnectionState",
    "Conversation",
    "DeliveryState",
    "FacadeState",
    "Message",
    "MessageSummary",
    "Peer",
    "Role",
    "RosterEntry",
    "SessionEvent",
    "TextBody",
    # Errors
    "AttachmentNotFoundError",
    "AuthError",
    "AuthTimeoutError",
    "ConnectionLostError",
    "LoadError",
    "MessagingError",
    "SendError",
    "TransferError",
    "TransferNetworkError",
    "TransportError",
    # Components
    "IEventBus",
    "EventBus",
    "ISocketTransport",
    "SocketIOTransport",
    "ITransportSession",
    "TransportSession",
    "IConversationStore",
    "ConversationStore",
    "IAttachmentTransfer",
    "AttachmentTransfer",
    "IRosterTracker",
    "RosterTracker",
    "IMessagingFacade",
    "MessagingFacade",
    "FacadeEvent",
]
