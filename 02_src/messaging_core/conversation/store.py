"""ConversationStore implementation."""

import bisect
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, Protocol

from ..errors import LoadError
from ..logging_config import get_logger
from ..models import Conversation, DeliveryState, Message

logger = get_logger(__name__)


HistoryFetch = Callable[[], Awaitable[list[Message]]]


def _created_at(message: Message) -> datetime:
    return message.created_at


class IConversationStore(Protocol):
    """Ordered per-peer transcripts with optimistic-send reconciliation."""

    def set_active_peer(self, peer_id: str | None) -> None:
        """Make peer_id the conversation that inbound messages are stored into."""
        ...

    async def load_history(self, peer_id: str, fetch_fn: HistoryFetch) -> None:
        """Replace the peer's transcript with the fetched snapshot."""
        ...

    def append_inbound(self, message: Message) -> bool:
        """Store an inbound message for the active peer. Return True if stored."""
        ...

    def append_optimistic(self, draft: Message, token: str | None = None) -> str:
        """Insert a pending message and return its correlation token."""
        ...

    def reconcile(self, token: str, outcome: Message | Exception) -> bool:
        """Replace a pending message with the server record, or mark it failed."""
        ...


class ConversationStore:
    """Canonical ordered transcript per peer.

    Messages are kept sorted by ``created_at``; equal timestamps keep
    arrival order. Server ids are unique within a conversation.
    """

    def __init__(self, self_id: str | None = None, echo_match_window: float = 30.0):
        self._self_id = self_id
        self._echo_match_window = echo_match_window
        self._conversations: dict[str, Conversation] = {}
        self._active_peer_id: str | None = None
        self._token_peers: dict[str, str] = {}  # correlation token -> peer_id

    @property
    def self_id(self) -> str | None:
        return self._self_id

    def set_self(self, self_id: str) -> None:
        """Set the local user id used to classify messages."""
        self._self_id = self_id

    @property
    def active_peer_id(self) -> str | None:
        return self._active_peer_id

    def set_active_peer(self, peer_id: str | None) -> None:
        """Make peer_id the conversation that inbound messages are stored into.

        Other peers' transcripts are kept.
        """
        self._active_peer_id = peer_id
        if peer_id is not None:
            self._ensure(peer_id)

    def conversation(self, peer_id: str | None = None) -> Conversation | None:
        """Snapshot of a peer's conversation (defaults to the active peer)."""
        peer_id = peer_id if peer_id is not None else self._active_peer_id
        if peer_id is None or peer_id not in self._conversations:
            return None
        conv = self._conversations[peer_id]
        return Conversation(peer_id=conv.peer_id, messages=list(conv.messages), loaded=conv.loaded)

    def evict(self, peer_id: str) -> None:
        """Drop a peer's transcript from memory."""
        conv = self._conversations.pop(peer_id, None)
        if conv is None:
            return
        for message in conv.messages:
            if message.correlation_token:
                self._token_peers.pop(message.correlation_token, None)

    async def load_history(self, peer_id: str, fetch_fn: HistoryFetch) -> None:
        """Replace the peer's transcript with the fetched snapshot.

        Locally created messages the server has not acknowledged yet
        (pending or failed) are kept and merged into the snapshot, as are
        server messages that arrived while the fetch was running. On
        failure the previous transcript is left untouched.
        """
        existing = self._conversations.get(peer_id)
        known_ids = {m.id for m in existing.messages if m.id is not None} if existing else set()

        try:
            fetched = await fetch_fn()
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(f"History fetch failed: {e}", peer_id=peer_id) from e

        conv = self._ensure(peer_id)
        snapshot: list[Message] = []
        seen: set[str] = set()
        for message in sorted(fetched, key=_created_at):
            if message.id is not None:
                if message.id in seen:
                    continue
                seen.add(message.id)
            snapshot.append(message)

        carried = [
            m for m in conv.messages
            if m.id is None or (m.id not in known_ids and m.id not in seen)
        ]
        for message in carried:
            bisect.insort_right(snapshot, message, key=_created_at)

        conv.messages = snapshot
        conv.loaded = True
        logger.debug("Loaded %d messages for peer %s", len(fetched), peer_id)

    def append_inbound(self, message: Message) -> bool:
        """Store an inbound message for the active peer. Return True if stored.

        Messages for other conversations are not stored. Duplicate
        deliveries of the same server id are ignored.
        """
        peer_id = self._active_peer_id
        if peer_id is None or self._self_id is None:
            return False
        if not message.involves(self._self_id, peer_id):
            return False

        conv = self._ensure(peer_id)
        if message.id is not None and self._index_of_id(conv, message.id) is not None:
            logger.debug("Duplicate message %s ignored", message.id)
            return False

        bisect.insort_right(conv.messages, message, key=_created_at)
        return True

    def append_optimistic(self, draft: Message, token: str | None = None) -> str:
        """Insert a pending message and return its correlation token."""
        token = token or uuid.uuid4().hex
        peer_id = draft.receiver_id
        pending = replace(
            draft,
            id=None,
            delivery_state=DeliveryState.PENDING,
            correlation_token=token,
        )
        conv = self._ensure(peer_id)
        bisect.insort_right(conv.messages, pending, key=_created_at)
        self._token_peers[token] = peer_id
        return token

    def reconcile(self, token: str, outcome: Message | Exception) -> bool:
        """Replace a pending message with the server record, or mark it failed.

        A failed message stays in the transcript. Returns False when the
        token is unknown.
        """
        located = self._locate(token)
        if located is None:
            logger.debug("Reconcile for unknown token %s", token)
            return False
        conv, index = located
        current = conv.messages[index]

        if isinstance(outcome, Exception):
            conv.messages[index] = replace(current, delivery_state=DeliveryState.FAILED)
            logger.info("Message %s marked failed: %s", token, outcome)
            return True

        if outcome.id is not None and self._index_of_id(conv, outcome.id) is not None:
            # The authoritative record is already stored; drop the placeholder.
            del conv.messages[index]
            self._token_peers.pop(token, None)
            return True

        conv.messages[index] = replace(
            outcome,
            delivery_state=DeliveryState.SENT,
            correlation_token=token,
        )
        self._restore_order(conv, index)
        self._token_peers.pop(token, None)
        return True

    def match_pending(self, message: Message) -> str | None:
        """Token of the pending placeholder that message echoes, if any.

        Uses the echoed correlation token when present, otherwise the oldest
        pending message with the same sender, receiver and text whose client
        timestamp is within the echo window.
        """
        if message.correlation_token and self._locate(message.correlation_token):
            return message.correlation_token
        if self._self_id is None or message.sender_id != self._self_id:
            return None

        conv = self._conversations.get(message.receiver_id)
        if conv is None:
            return None
        for candidate in conv.messages:
            if (
                candidate.delivery_state == DeliveryState.PENDING
                and candidate.correlation_token
                and candidate.receiver_id == message.receiver_id
                and candidate.text == message.text
                and abs((message.created_at - candidate.created_at).total_seconds())
                <= self._echo_match_window
            ):
                return candidate.correlation_token
        return None

    def get_by_token(self, token: str) -> Message | None:
        located = self._locate(token)
        if located is None:
            return None
        conv, index = located
        return conv.messages[index]

    def mark_pending(self, token: str) -> bool:
        """Put a failed message back into pending for a resend."""
        located = self._locate(token)
        if located is None:
            return False
        conv, index = located
        conv.messages[index] = replace(conv.messages[index], delivery_state=DeliveryState.PENDING)
        return True

    def discard(self, token: str) -> bool:
        """Remove a failed message the user chose not to resend."""
        located = self._locate(token)
        if located is None:
            return False
        conv, index = located
        if conv.messages[index].delivery_state != DeliveryState.FAILED:
            return False
        del conv.messages[index]
        self._token_peers.pop(token, None)
        return True

    def _ensure(self, peer_id: str) -> Conversation:
        conv = self._conversations.get(peer_id)
        if conv is None:
            conv = Conversation(peer_id=peer_id)
            self._conversations[peer_id] = conv
        return conv

    def _locate(self, token: str) -> tuple[Conversation, int] | None:
        peer_id = self._token_peers.get(token)
        conv = self._conversations.get(peer_id) if peer_id is not None else None
        if conv is None:
            return None
        for index, message in enumerate(conv.messages):
            if message.id is None and message.correlation_token == token:
                return conv, index
        return None

    @staticmethod
    def _index_of_id(conv: Conversation, message_id: str) -> int | None:
        for index, message in enumerate(conv.messages):
            if message.id == message_id:
                return index
        return None

    @staticmethod
    def _restore_order(conv: Conversation, index: int) -> None:
        messages = conv.messages
        current = messages[index].created_at
        before_ok = index == 0 or messages[index - 1].created_at <= current
        after_ok = index == len(messages) - 1 or current <= messages[index + 1].created_at
        if before_ok and after_ok:
            return
        moved = messages.pop(index)
        bisect.insort_right(messages, moved, key=_created_at)
