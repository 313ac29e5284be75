"""MessagingFacade: public surface for the presentation layer."""

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Protocol

from ..api import IRestClient, build_send_payload
from ..attachments import IAttachmentTransfer
from ..config import MessagingSettings
from ..conversation import ConversationStore
from ..errors import LoadError, MessagingError, SendError, TransferError
from ..event_bus import EventBus, EventHandler
from ..logging_config import get_logger
from ..models import (
    AttachmentBody,
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
    SocketEvent,
    TextBody,
)
from ..roster import RosterTracker
from ..transport import ITransportSession

logger = get_logger(__name__)


SessionFactory = Callable[[], ITransportSession]


class FacadeEvent(str, Enum):
    """Observer channels exposed to the presentation layer."""

    CONNECTION_STATE = "connection_state"
    STATE = "state"
    ROSTER = "roster"
    CONVERSATION = "conversation"
    ERROR = "error"


class IMessagingFacade(Protocol):
    """Select a peer, send and receive messages, observe state."""

    async def initialize(self, credential_token: str, role: Role | str, self_id: str | None = None) -> None:
        """Connect the session and load the counterpart(s) for the role."""
        ...

    async def select_peer(self, peer_id: str) -> None:
        """Open the conversation with peer_id and load its history."""
        ...

    async def send_message(self, text: str, file: BinaryBlob | None = None) -> str | None:
        """Send to the active peer. Returns the correlation token, or None if nothing was sent."""
        ...

    def on_connection_state_change(self, handler: EventHandler) -> None:
        """Observe ConnectionState changes."""
        ...

    def on_roster_change(self, handler: EventHandler) -> None:
        """Observe roster updates."""
        ...

    def on_conversation_change(self, handler: EventHandler) -> None:
        """Observe the active conversation."""
        ...

    async def close(self) -> None:
        """Disconnect and release resources."""
        ...


class MessagingFacade:
    """Composes TransportSession, ConversationStore, AttachmentTransfer and RosterTracker.

    Session events are subscribed once per session; handlers read the
    current peer and user from the store when they run. Failures reach
    ``on_error`` observers and are never raised from public coroutines.
    """

    def __init__(
        self,
        rest_client: IRestClient,
        attachments: IAttachmentTransfer,
        session_factory: SessionFactory,
        settings: MessagingSettings | None = None,
        store: ConversationStore | None = None,
        roster: RosterTracker | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or MessagingSettings()
        self._rest = rest_client
        self._attachments = attachments
        self._session_factory = session_factory
        self._store = store or ConversationStore(echo_match_window=self._settings.echo_match_window)
        self._roster = roster or RosterTracker()
        self._observers = EventBus("messaging_facade")

        self._session: ITransportSession | None = None
        self._state = FacadeState.IDLE
        self._role: Role | None = None
        self._self_id: str | None = None
        self._counterpart: Peer | None = None
        self._clock = clock
        self._closed = False
        self._in_flight: dict[str, float] = {}  # correlation token -> emitted at, oldest first

    # Read model

    @property
    def state(self) -> FacadeState:
        return self._state

    @property
    def connection_state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.DISCONNECTED
        return self._session.state

    @property
    def role(self) -> Role | None:
        return self._role

    @property
    def self_id(self) -> str | None:
        return self._self_id

    @property
    def counterpart(self) -> Peer | None:
        """The parent's coach. None for coaches or when unassigned."""
        return self._counterpart

    @property
    def active_peer_id(self) -> str | None:
        return self._store.active_peer_id

    @property
    def roster(self) -> list[RosterEntry]:
        return self._roster.list()

    @property
    def conversation(self) -> Conversation | None:
        return self._store.conversation()

    # Observers

    def on_connection_state_change(self, handler: EventHandler) -> None:
        self._observers.subscribe(FacadeEvent.CONNECTION_STATE, handler)

    def on_state_change(self, handler: EventHandler) -> None:
        self._observers.subscribe(FacadeEvent.STATE, handler)

    def on_roster_change(self, handler: EventHandler) -> None:
        self._observers.subscribe(FacadeEvent.ROSTER, handler)

    def on_conversation_change(self, handler: EventHandler) -> None:
        self._observers.subscribe(FacadeEvent.CONVERSATION, handler)

    def on_error(self, handler: EventHandler) -> None:
        self._observers.subscribe(FacadeEvent.ERROR, handler)

    # Lifecycle

    async def initialize(
        self,
        credential_token: str,
        role: Role | str,
        self_id: str | None = None,
    ) -> None:
        """Connect the session and load the counterpart(s) for the role."""
        if self._closed:
            raise RuntimeError("MessagingFacade is closed; create a new one to log in again")
        if self._session is not None:
            logger.warning("MessagingFacade already initialized")
            return

        self._role = Role(role)
        self._set_state(FacadeState.CONNECTING)

        if self_id is None:
            try:
                self_id = (await self._rest.get_current_user()).id
            except LoadError as e:
                self._report(e)
                self._set_state(FacadeState.ERROR)
                return
        self._self_id = self_id
        self._store.set_self(self_id)

        session = self._session_factory()
        session.on(SessionEvent.STATE_CHANGED, self._handle_state_changed)
        session.on(SessionEvent.MESSAGE_RECEIVED, self._handle_message)
        session.on(SessionEvent.SEND_ERROR, self._handle_send_error)
        session.on(SessionEvent.AUTH_ERROR, self._handle_fatal)
        session.on(SessionEvent.CONNECTION_LOST, self._handle_fatal)
        self._session = session

        logger.info("Initializing messaging for %s %s", self._role.value, self_id)
        await session.connect(credential_token)
        await self._load_counterparts()

    async def reauthenticate(self, credential_token: str) -> None:
        """Retry the session with a fresh token after an auth or connection failure."""
        if self._session is None:
            logger.warning("reauthenticate() called before initialize()")
            return
        await self._session.connect(credential_token)

    async def close(self) -> None:
        """Disconnect the session, close the REST client and return to idle.

        A closed facade cannot be initialized again.
        """
        self._closed = True
        session, self._session = self._session, None
        if session is not None:
            await session.disconnect()
        await self._rest.close()
        self._in_flight.clear()
        self._set_state(FacadeState.IDLE)

    async def _load_counterparts(self) -> None:
        if self._role == Role.COACH:
            try:
                entries = await self._rest.get_parents()
            except LoadError as e:
                self._report(e)
                return
            self._roster.load(entries)
            self._observers.publish(FacadeEvent.ROSTER, self._roster.list())
            return

        try:
            coach = await self._rest.get_coach()
        except LoadError as e:
            self._report(e)
            return
        if coach is None:
            logger.info("No coach assigned to %s", self._self_id)
            return
        self._counterpart = coach
        await self.select_peer(coach.id)

    # Conversation

    async def select_peer(self, peer_id: str) -> None:
        """Open the conversation with peer_id and load its history."""
        self._store.set_active_peer(peer_id)
        self._sync_state()
        self._notify_conversation(peer_id)

        try:
            await self._store.load_history(peer_id, lambda: self._rest.get_history(peer_id))
        except LoadError as e:
            self._report(e)
            return
        # Another peer may have been selected while the history was loading
        self._notify_conversation(peer_id)

    async def send_message(self, text: str, file: BinaryBlob | None = None) -> str | None:
        """Send to the active peer.

        With a file, the upload runs first; if it fails nothing is appended
        and nothing is emitted. Returns the correlation token of the
        optimistic message, or None if nothing was sent.
        """
        peer_id = self._store.active_peer_id
        if peer_id is None or self._self_id is None:
            self._report(SendError("No conversation selected"))
            return None

        text = text.strip()
        if not text and file is None:
            return None

        token = uuid.uuid4().hex
        body = TextBody(text=text)
        if file is not None:
            try:
                ref = await self._attachments.upload(file, token)
            except TransferError as e:
                self._report(e)
                return None
            body = AttachmentBody(attachment=ref, text=text)

        draft = Message(
            id=None,
            sender_id=self._self_id,
            receiver_id=peer_id,
            body=body,
            created_at=datetime.now(timezone.utc),
        )
        self._store.append_optimistic(draft, token=token)
        self._touch_roster(peer_id, draft)
        self._notify_conversation(peer_id)

        await self._emit_send(token)
        return token

    async def resend(self, token: str) -> bool:
        """Send a failed message again under the same token."""
        message = self._store.get_by_token(token)
        if message is None or message.delivery_state != DeliveryState.FAILED:
            return False
        self._store.mark_pending(token)
        self._notify_conversation(message.receiver_id)
        await self._emit_send(token)
        return True

    def discard(self, token: str) -> bool:
        """Remove a failed message from the transcript."""
        message = self._store.get_by_token(token)
        if message is None or not self._store.discard(token):
            return False
        self._notify_conversation(message.receiver_id)
        return True

    async def download_attachment(self, attachment_id: str) -> BinaryBlob | None:
        """Fetch an attachment's content. Failures go to on_error observers."""
        try:
            return await self._attachments.download(attachment_id)
        except TransferError as e:
            self._report(e)
            return None

    async def _emit_send(self, token: str) -> None:
        message = self._store.get_by_token(token)
        if message is None:
            return

        self._in_flight.pop(token, None)
        self._in_flight[token] = self._clock()
        accepted = False
        if self._session is not None:
            accepted = await self._session.send(
                SocketEvent.SEND_MESSAGE.value, build_send_payload(message)
            )
        if accepted:
            return
        self._forget(token)

        if self._settings.rest_send_fallback and isinstance(message.body, TextBody):
            logger.info("Socket unavailable, sending %s over REST", token)
            try:
                record = await self._rest.post_message(message.receiver_id, message.text)
            except SendError as e:
                self._fail_send(token, SendError(e.reason, correlation_token=token))
                return
            self._store.reconcile(token, record)
            self._notify_conversation(message.receiver_id)
            return

        self._fail_send(token, SendError("Not connected", correlation_token=token))

    def _fail_send(self, token: str, error: SendError) -> None:
        message = self._store.get_by_token(token)
        if self._store.reconcile(token, error) and message is not None:
            self._notify_conversation(message.receiver_id)
        self._report(error)

    def _forget(self, token: str) -> None:
        self._in_flight.pop(token, None)

    def _expire_in_flight(self) -> None:
        cutoff = self._clock() - self._settings.echo_match_window
        for token, emitted_at in list(self._in_flight.items()):
            if emitted_at >= cutoff:
                break
            logger.debug("No echo for %s within the match window", token)
            del self._in_flight[token]

    # Session event handlers

    def _handle_state_changed(self, state: ConnectionState) -> None:
        self._observers.publish(FacadeEvent.CONNECTION_STATE, state)
        self._sync_state()

    def _handle_fatal(self, error: MessagingError) -> None:
        self._set_state(FacadeState.ERROR)
        self._report(error)

    def _handle_message(self, message: Message) -> None:
        self_id = self._self_id
        if self_id is None:
            return
        peer_id = message.peer_of(self_id)

        changed = False
        token = self._store.match_pending(message) if message.sender_id == self_id else None
        if token is not None:
            self._forget(token)
            changed = self._store.reconcile(token, message)
        else:
            changed = self._store.append_inbound(message)

        if changed:
            self._notify_conversation(peer_id)
        self._touch_roster(peer_id, message)

    def _handle_send_error(self, error: SendError) -> None:
        token = error.correlation_token
        if token is None:
            # Server did not echo the token; the oldest recent send is the best match
            self._expire_in_flight()
            token = next(iter(self._in_flight), None)
        if token is None:
            self._report(error)
            return
        self._forget(token)
        self._fail_send(token, SendError(error.reason, correlation_token=token))

    # Helpers

    def _touch_roster(self, peer_id: str, message: Message) -> None:
        if self._role != Role.COACH:
            return
        summary = MessageSummary(preview=message.preview, created_at=message.created_at)
        if self._roster.touch(peer_id, summary):
            self._observers.publish(FacadeEvent.ROSTER, self._roster.list())

    def _notify_conversation(self, peer_id: str) -> None:
        if peer_id != self._store.active_peer_id:
            return
        self._observers.publish(FacadeEvent.CONVERSATION, self._store.conversation(peer_id))

    def _report(self, error: MessagingError) -> None:
        logger.warning("%s: %s", type(error).__name__, error)
        self._observers.publish(FacadeEvent.ERROR, error)

    def _set_state(self, state: FacadeState) -> None:
        if state == self._state:
            return
        logger.info("Messaging state %s -> %s", self._state.value, state.value)
        self._state = state
        self._observers.publish(FacadeEvent.STATE, state)

    def _sync_state(self) -> None:
        if self._session is None or self._state == FacadeState.IDLE:
            return
        connection = self._session.state
        if connection == ConnectionState.AUTHENTICATED:
            if self._store.active_peer_id is not None:
                self._set_state(FacadeState.PEER_SELECTED)
            else:
                self._set_state(FacadeState.READY)
        elif connection in (
            ConnectionState.CONNECTING,
            ConnectionState.AUTHENTICATING,
            ConnectionState.RECONNECTING,
        ):
            self._set_state(FacadeState.CONNECTING)
