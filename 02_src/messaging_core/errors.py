"""Error taxonomy for the messaging core."""


class MessagingError(Exception):
    """Base class for all messaging failures."""


class TransportError(MessagingError):
    """Transport-level failure; retried by the session up to its bound."""


class ConnectionLostError(TransportError):
    """Reconnection attempts exhausted."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Connection lost after {attempts} reconnect attempt(s)")


class AuthError(MessagingError):
    """Credential rejected by the server. Never retried automatically."""

    def __init__(self, reason: str = "authentication rejected"):
        self.reason = reason
        super().__init__(reason)


class AuthTimeoutError(AuthError):
    """No authentication acknowledgement within the configured bound."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No authentication acknowledgement within {timeout}s")


class SendError(MessagingError):
    """A specific outbound message was rejected or could not be sent."""

    def __init__(self, reason: str, correlation_token: str | None = None):
        self.reason = reason
        self.correlation_token = correlation_token
        super().__init__(reason)


class TransferError(MessagingError):
    """Attachment upload or download failed."""


class AttachmentNotFoundError(TransferError):
    """The server has no attachment with the requested id."""

    def __init__(self, attachment_id: str):
        self.attachment_id = attachment_id
        super().__init__(f"Attachment {attachment_id} not found")


class TransferNetworkError(TransferError):
    """Attachment transfer failed for any reason other than a missing attachment."""


class LoadError(MessagingError):
    """History, roster or counterpart fetch failed."""

    def __init__(self, message: str, peer_id: str | None = None):
        self.peer_id = peer_id
        super().__init__(message)
