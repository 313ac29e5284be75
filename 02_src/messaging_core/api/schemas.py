"""Wire schemas for REST and socket payloads."""

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..models import (
    AttachmentBody,
    AttachmentRef,
    DeliveryState,
    Message,
    MessageSummary,
    Peer,
    Role,
    RosterEntry,
    TextBody,
)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class WireModel(BaseModel):
    """Base for backend payloads: tolerate unknown fields, accept field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WireUserRef(WireModel):
    """Embedded user reference inside a message."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    username: str = ""


class WireLastMessage(WireModel):
    """Last message preview attached to a roster user."""

    content: str = ""
    created_at: datetime = Field(validation_alias=AliasChoices("createdAt", "created_at"))


class WireUser(WireUserRef):
    """User record returned by the directory endpoints."""

    email: str | None = None
    role: Role = Role.PARENT
    avatar: str | None = None
    last_message: WireLastMessage | None = Field(
        default=None, validation_alias=AliasChoices("lastMessage", "last_message")
    )

    def to_peer(self) -> Peer:
        return Peer(
            id=self.id,
            display_name=self.username,
            role=self.role,
            avatar_ref=self.avatar or None,
        )

    def to_roster_entry(self) -> RosterEntry:
        summary = None
        if self.last_message is not None:
            summary = MessageSummary(
                preview=self.last_message.content,
                created_at=_aware(self.last_message.created_at),
            )
        return RosterEntry(peer=self.to_peer(), last_message=summary)


class WireAttachment(WireModel):
    """Attachment reference as stored by the backend."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    file_name: str = Field(
        default="attachment",
        validation_alias=AliasChoices("fileName", "filename", "originalName", "file_name"),
    )
    size: int | None = Field(default=None, validation_alias=AliasChoices("size", "sizeBytes"))
    content_ref: str = Field(
        default="", validation_alias=AliasChoices("contentRef", "url", "path", "content_ref")
    )

    @classmethod
    def from_ref(cls, ref: AttachmentRef) -> "WireAttachment":
        return cls(id=ref.id, file_name=ref.file_name, size=ref.size_bytes, content_ref=ref.content_ref)

    def to_ref(self) -> AttachmentRef:
        return AttachmentRef(
            id=self.id,
            file_name=self.file_name,
            content_ref=self.content_ref or self.id,
            size_bytes=self.size,
        )

    def to_wire(self) -> dict:
        payload = {"_id": self.id, "fileName": self.file_name, "contentRef": self.content_ref}
        if self.size is not None:
            payload["size"] = self.size
        return payload


class WireUploadResponse(WireModel):
    """Response of the multipart upload endpoint."""

    attachment: WireAttachment


class WireMessage(WireModel):
    """Message record from history, REST send or the new_message event."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    content: str = ""
    sender: WireUserRef | str
    receiver: WireUserRef | str
    created_at: datetime = Field(validation_alias=AliasChoices("createdAt", "created_at"))
    read: bool = False
    attachment: WireAttachment | None = None
    client_token: str | None = Field(
        default=None, validation_alias=AliasChoices("clientToken", "client_token")
    )

    @staticmethod
    def _user_id(value: WireUserRef | str) -> str:
        return value if isinstance(value, str) else value.id

    def to_message(self) -> Message:
        if self.attachment is not None:
            body = AttachmentBody(attachment=self.attachment.to_ref(), text=self.content)
        else:
            body = TextBody(text=self.content)
        return Message(
            id=self.id,
            sender_id=self._user_id(self.sender),
            receiver_id=self._user_id(self.receiver),
            body=body,
            created_at=_aware(self.created_at),
            delivery_state=DeliveryState.SENT,
            correlation_token=self.client_token,
            read=self.read,
        )


def build_send_payload(message: Message) -> dict:
    """Outbound send_message payload for a locally created message."""
    payload = {
        "sender": message.sender_id,
        "receiver": message.receiver_id,
        "content": message.text,
        "clientToken": message.correlation_token,
    }
    if isinstance(message.body, AttachmentBody):
        payload["attachment"] = WireAttachment.from_ref(message.body.attachment).to_wire()
    return payload
