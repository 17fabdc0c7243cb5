"""Triage plan: the structured output requested from the language model.

Field names follow the JSON the model is asked to emit (camelCase); the
Python attributes are snake_case aliases of them.
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Priority = Literal["Urgent", "High", "Medium", "Low", "No priority"]

FIBONACCI_ESTIMATES = (0, 1, 2, 3, 5, 8, 13)


class Rewrite(BaseModel):
    """Replacement content for the issue."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, description="A clear, specific title for the issue.")
    description: str | None = Field(default=None, description="A detailed, actionable description.")


class TriagePlan(BaseModel):
    """Model decision for one issue: either a full triage or a question."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    rewrite: Rewrite | None = Field(default=None, description="Rewritten title/description.")
    priority: Priority | None = Field(default=None, description="The issue's priority.")
    team_id: str | None = Field(default=None, description="Id of the team that should own the issue.")
    label_ids: List[str] | None = Field(default=None, description="Relevant label ids.")
    estimate: int | float | None = Field(
        default=None, description="Fibonacci point estimate (0, 1, 2, 3, 5, 8, 13)."
    )
    assignee_id: str | None = Field(default=None, description="Id of a specific person to assign.")
    subtasks: List[str] | None = Field(default=None, description="Titles of sub-issues to create.")
    needs_clarification: bool = Field(description="True if information is missing.")
    clarification_comment: str | None = Field(
        default=None, description="Question for the reporter; ends with the bot marker."
    )

    @model_validator(mode="after")
    def _clarification_has_comment(self) -> "TriagePlan":
        if self.needs_clarification and not (self.clarification_comment or "").strip():
            raise ValueError("clarificationComment is required when needsClarification is true")
        return self
