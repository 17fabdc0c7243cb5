"""Per-issue triage record as stored in .triager/issues/{issue_id}.yaml."""

from pydantic import BaseModel, Field

FRESH = "fresh"
AWAITING_INFO = "awaiting_info"
TRIAGED = "triaged"

STATES = (FRESH, AWAITING_INFO, TRIAGED)


class IssueRecord(BaseModel):
    """Explicit state of one issue, mirrored from the awaiting-info label."""

    issue_id: str = Field(..., description="Linear issue id")
    state: str = Field(default=FRESH, description="fresh, awaiting_info or triaged")
    title: str = Field(default="", description="Issue title when last seen")
    clarification_rounds: int = Field(default=0, ge=0, description="Clarification comments posted")
    last_event: str | None = Field(default=None, description="issue_created or comment_created")
    last_error: str | None = Field(default=None, description="Error of the last failed event, if any")
    created_at: int = Field(..., description="Unix timestamp when the record was created")
    updated_at: int = Field(..., description="Unix timestamp of last update")

    model_config = {"extra": "forbid"}
