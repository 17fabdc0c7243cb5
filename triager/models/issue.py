"""Linear issue and comment as seen by the triage flow."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class Issue(BaseModel):
    """Linear issue; label ids are fetched on demand and never cached."""

    id: str
    title: str = ""
    description: str | None = None
    team_id: str | None = None
    creator_id: str | None = None
    label_ids: List[str] = Field(default_factory=list)


class Comment(BaseModel):
    """Comment on an issue. Immutable once created."""

    id: str
    body: str = ""
    author_id: str | None = None
    author_name: str | None = None
    issue_id: str | None = None
    created_at: datetime | None = None
