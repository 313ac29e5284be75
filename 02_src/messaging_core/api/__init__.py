"""REST collaborator and wire schemas."""

from .rest_client import IRestClient, RestClient
from .schemas import (
    WireAttachment,
    WireLastMessage,
    WireMessage,
    WireUploadResponse,
    WireUser,
    WireUserRef,
    build_send_payload,
)

__all__ = [
    "IRestClient",
    "RestClient",
    "WireAttachment",
    "WireLastMessage",
    "WireMessage",
    "WireUploadResponse",
    "WireUser",
    "WireUserRef",
    "build_send_payload",
]
