"""Roster module."""

from .tracker import IRosterTracker, RosterTracker

__all__ = ["IRosterTracker", "RosterTracker"]
