"""Application bootstrap and lifecycle management."""

from typing import Callable, Protocol

import httpx

from .api import RestClient
from .attachments import AttachmentTransfer
from .config import MessagingSettings, load_settings
from .facade import MessagingFacade
from .logging_config import get_logger, setup_logging
from .models import Role
from .transport import ISocketTransport, SocketIOTransport, TransportSession

logger = get_logger(__name__)


SocketTransportFactory = Callable[[], ISocketTransport]


class IApplication(Protocol):
    """Bootstrap and lifecycle of one authenticated user session."""

    async def start(self, credential_token: str, role: Role | str, self_id: str | None = None) -> MessagingFacade:
        """Build components in dependency order and initialize the facade."""
        ...

    async def stop(self) -> None:
        """Dispose of the session (logout)."""
        ...


class MessagingApplication:
    """Wires settings, REST client, socket transport and the facade."""

    def __init__(
        self,
        settings: MessagingSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        socket_transport_factory: SocketTransportFactory | None = None,
    ):
        self._settings = settings or load_settings()
        self._http_transport = http_transport
        self._socket_transport_factory = socket_transport_factory or self._default_socket_transport

        self._rest: RestClient | None = None
        self._attachments: AttachmentTransfer | None = None
        self._facade: MessagingFacade | None = None

    def _default_socket_transport(self) -> ISocketTransport:
        return SocketIOTransport(socketio_path=self._settings.socket_path)

    def _create_session(self) -> TransportSession:
        return TransportSession(
            transport=self._socket_transport_factory(),
            url=self._settings.socket_url,
            reconnect_attempts=self._settings.reconnect_attempts,
            reconnect_delay=self._settings.reconnect_delay,
            auth_timeout=self._settings.auth_timeout,
        )

    async def start(
        self,
        credential_token: str,
        role: Role | str,
        self_id: str | None = None,
    ) -> MessagingFacade:
        """Build components in dependency order and initialize the facade."""
        if self._facade is not None:
            raise RuntimeError("Application already started")
        if self._settings.log_level:
            setup_logging(self._settings.log_level, self._settings.log_file)
        logger.info("Starting messaging application")

        # 1. REST client (bearer token from the auth collaborator)
        self._rest = RestClient(
            base_url=self._settings.api_base_url,
            token=credential_token,
            timeout=self._settings.http_timeout,
            transport=self._http_transport,
        )

        # 2. Attachments share the REST client's connection pool
        self._attachments = AttachmentTransfer(self._rest.http)

        # 3. Facade owns the session, store and roster
        self._facade = MessagingFacade(
            rest_client=self._rest,
            attachments=self._attachments,
            session_factory=self._create_session,
            settings=self._settings,
        )
        await self._facade.initialize(credential_token, role, self_id)
        return self._facade

    async def stop(self) -> None:
        """Dispose of the session (logout)."""
        if self._facade is not None:
            await self._facade.close()
            logger.info("Messaging application stopped")
        self._facade = None
        self._attachments = None
        self._rest = None

    @property
    def facade(self) -> MessagingFacade:
        """Get the facade instance."""
        if not self._facade:
            raise RuntimeError("Application not started")
        return self._facade
