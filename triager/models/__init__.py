"""Data models for issues, comments, webhook events, plans and knowledge base (Pydantic)."""

from triager.models.events import CommentCreated, IssueCreated, WebhookPayload
from triager.models.issue import Comment, Issue
from triager.models.knowledge import Label, LabelKnowledgeBase, TeamKnowledgeBase, TeamRule
from triager.models.plan import FIBONACCI_ESTIMATES, Priority, Rewrite, TriagePlan

__all__ = [
    "FIBONACCI_ESTIMATES",
    "Comment",
    "CommentCreated",
    "Issue",
    "IssueCreated",
    "Label",
    "LabelKnowledgeBase",
    "Priority",
    "Rewrite",
    "TeamKnowledgeBase",
    "TeamRule",
    "TriagePlan",
    "WebhookPayload",
]
