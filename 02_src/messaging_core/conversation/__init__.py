"""Conversation module."""

from .store import ConversationStore, HistoryFetch, IConversationStore

__all__ = ["ConversationStore", "HistoryFetch", "IConversationStore"]
