"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


class DeliveryState(str, Enum):
    """Delivery state of a message in a transcript."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class AttachmentRef:
    """Server-side attachment handle. Content is fetched only on request."""

    id: str
    file_name: str
    content_ref: str
    size_bytes: int | None = None


@dataclass
class BinaryBlob:
    """Attachment payload held in memory for one upload or download."""

    file_name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class TextBody:
    """Plain text message body."""

    text: str


@dataclass(frozen=True)
class AttachmentBody:
    """Message body carrying an attachment and an optional caption."""

    attachment: AttachmentRef
    text: str = ""


MessageBody = Union[TextBody, AttachmentBody]


@dataclass
class Message:
    """A single message between two users.

    ``id`` is assigned by the server. A locally created message has no id
    until it is reconciled and is keyed by ``correlation_token`` instead.
    """

    id: str | None
    sender_id: str
    receiver_id: str
    body: MessageBody
    created_at: datetime
    delivery_state: DeliveryState = DeliveryState.SENT
    correlation_token: str | None = None
    read: bool = False

    @property
    def text(self) -> str:
        return self.body.text

    @property
    def preview(self) -> str:
        """Short text used for roster summaries."""
        if isinstance(self.body, AttachmentBody):
            return self.body.text or self.body.attachment.file_name
        return self.body.text

    def involves(self, user_a: str, user_b: str) -> bool:
        """True when the message was exchanged between the two users."""
        return {self.sender_id, self.receiver_id} == {user_a, user_b}

    def peer_of(self, self_id: str) -> str:
        """The counterpart of ``self_id`` in this message."""
        return self.receiver_id if self.sender_id == self_id else self.sender_id


@dataclass
class Conversation:
    """Ordered transcript with one peer."""

    peer_id: str
    messages: list[Message] = field(default_factory=list)
    loaded: bool = False
