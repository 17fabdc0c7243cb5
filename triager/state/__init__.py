"""Per-issue triage state records (.triager/issues/)."""

from triager.state.record import AWAITING_INFO, FRESH, TRIAGED, IssueRecord
from triager.state.store import IssueStateStore

__all__ = ["AWAITING_INFO", "FRESH", "TRIAGED", "IssueRecord", "IssueStateStore"]
