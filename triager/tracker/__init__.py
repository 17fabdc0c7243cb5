"""Ticket tracker adapters (base and Linear implementation)."""

from triager.tracker.base import MutationFailed, TrackerAdapter, TrackerError
from triager.tracker.linear import LinearAdapter

__all__ = ["LinearAdapter", "MutationFailed", "TrackerAdapter", "TrackerError"]
