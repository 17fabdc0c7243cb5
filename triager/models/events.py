"""Event schemas for Linear data-change webhooks.

Processed events:
- Issue create: triage a new issue
- Comment create: re-triage an issue waiting for user input

Everything else (update, remove, other types) is acknowledged and ignored.
Linear sends nested objects (team, creator, issue, user) in some payloads and
flat ids (teamId, creatorId, parentId, issueId, userId) in others; both are accepted.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator

ACTION_CREATE = "create"
TYPE_ISSUE = "Issue"
TYPE_COMMENT = "Comment"


def _nested_id(data: Dict[str, Any], nested: str, flat: str) -> str | None:
    obj = data.get(nested)
    if isinstance(obj, dict) and obj.get("id"):
        return obj["id"]
    return data.get(flat)


class WebhookPayload(BaseModel):
    """Envelope of every Linear webhook delivery."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
    organization_id: str | None = Field(default=None, alias="organizationId")
    created_at: str | None = Field(default=None, alias="createdAt")

    @property
    def is_issue_created(self) -> bool:
        return self.action == ACTION_CREATE and self.type == TYPE_ISSUE

    @property
    def is_comment_created(self) -> bool:
        return self.action == ACTION_CREATE and self.type == TYPE_COMMENT


class IssueCreated(BaseModel):
    """Issue create event (type=Issue, action=create)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    description: str | None = None
    team_id: str | None = None
    creator_id: str | None = None
    parent_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "id": data.get("id"),
            "title": data.get("title") or "",
            "description": data.get("description"),
            "team_id": _nested_id(data, "team", "teamId"),
            "creator_id": _nested_id(data, "creator", "creatorId"),
            "parent_id": _nested_id(data, "parent", "parentId"),
        }


class CommentCreated(BaseModel):
    """Comment create event (type=Comment, action=create)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    body: str = ""
    issue_id: str
    user_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "id": data.get("id"),
            "body": data.get("body") or "",
            "issue_id": _nested_id(data, "issue", "issueId"),
            "user_id": _nested_id(data, "user", "userId"),
        }
