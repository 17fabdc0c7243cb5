"""Abstract base for ticket tracker adapters."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from triager.models import Comment, Issue


class TrackerError(Exception):
    """Raised when a tracker API call fails (transport, HTTP or GraphQL errors)."""

    pass


class MutationFailed(TrackerError):
    """A tracker write did not report success."""

    def __init__(self, operation: str, issue_id: str, reason: str = "") -> None:
        message = f"{operation} failed for issue {issue_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.operation = operation
        self.issue_id = issue_id


class TrackerAdapter(ABC):
    """Remote operations the triage flow needs from the tracker.

    Write methods raise MutationFailed when the tracker answers without
    success and TrackerError on any other failure.
    """

    @abstractmethod
    async def get_issue(self, issue_id: str) -> Issue:
        """Fetch issue with its current label ids."""
        ...

    @abstractmethod
    async def get_comments(self, issue_id: str) -> List[Comment]:
        """Fetch all comments on an issue, oldest first."""
        ...

    @abstractmethod
    async def get_viewer_id(self) -> str:
        """Id of the user the API key belongs to (the bot)."""
        ...

    @abstractmethod
    async def update_issue(self, issue_id: str, fields: Dict[str, Any]) -> None:
        """Apply IssueUpdateInput fields."""
        ...

    @abstractmethod
    async def create_subtask(self, parent_id: str, title: str, team_id: str | None = None) -> str:
        """Create a sub-issue; returns its id."""
        ...

    @abstractmethod
    async def create_comment(self, issue_id: str, body: str) -> str:
        """Post a comment; returns its id."""
        ...

    @abstractmethod
    async def add_label(self, issue_id: str, label_id: str) -> None:
        """Attach one label without touching the others."""
        ...

    @abstractmethod
    async def subscribe(self, issue_id: str, user_id: str) -> None:
        """Subscribe a user to issue notifications."""
        ...

    @abstractmethod
    async def add_reaction(self, issue_id: str, emoji: str) -> None:
        """React to the issue."""
        ...

    async def aclose(self) -> None:
        """Release network resources. Override if needed."""
        return None
