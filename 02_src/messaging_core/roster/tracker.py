"""RosterTracker implementation."""

from typing import Protocol

from ..logging_config import get_logger
from ..models import MessageSummary, RosterEntry

logger = get_logger(__name__)


class IRosterTracker(Protocol):
    """Coach-side list of peers with last message summaries."""

    def load(self, entries: list[RosterEntry]) -> None:
        """Replace the roster with a freshly fetched list."""
        ...

    def touch(self, peer_id: str, summary: MessageSummary) -> bool:
        """Record summary if newer than the stored one. Return True on change."""
        ...

    def list(self) -> list[RosterEntry]:
        """Entries in load order."""
        ...


class RosterTracker:
    """Keeps the last message per peer, independent of the open conversation.

    Order is the order of the last load; new messages do not re-sort.
    """

    def __init__(self):
        self._entries: dict[str, RosterEntry] = {}

    def load(self, entries: list[RosterEntry]) -> None:
        """Replace the roster with a freshly fetched list."""
        self._entries = {entry.peer.id: entry for entry in entries}
        logger.info("Roster loaded with %d peers", len(self._entries))

    def touch(self, peer_id: str, summary: MessageSummary) -> bool:
        """Record summary if newer than the stored one. Return True on change."""
        entry = self._entries.get(peer_id)
        if entry is None:
            logger.debug("Ignoring summary for peer %s not in roster", peer_id)
            return False

        current = entry.last_message
        if current is not None and summary.created_at <= current.created_at:
            return False

        entry.last_message = summary
        return True

    def get(self, peer_id: str) -> RosterEntry | None:
        return self._entries.get(peer_id)

    def __contains__(self, peer_id: str) -> bool:
        return peer_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def list(self) -> list[RosterEntry]:
        """Entries in load order."""
        return [
            RosterEntry(peer=entry.peer, last_message=entry.last_message)
            for entry in self._entries.values()
        ]
