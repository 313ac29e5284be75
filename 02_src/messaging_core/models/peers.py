"""Peer and roster data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """User role."""

    PARENT = "parent"
    COACH = "coach"


@dataclass(frozen=True)
class Peer:
    """Counterpart user, supplied by the external directory."""

    id: str
    display_name: str
    role: Role
    avatar_ref: str | None = None


@dataclass(frozen=True)
class MessageSummary:
    """Most recent message preview for a roster entry."""

    preview: str
    created_at: datetime


@dataclass
class RosterEntry:
    """A peer in the coach's roster with its last message summary."""

    peer: Peer
    last_message: MessageSummary | None = None
