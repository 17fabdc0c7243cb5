"""Plan reconciliation: turn raw model output into values safe to write back.

Pure computation over already-fetched data:
- label ids are filtered against the label knowledge base
- priority names are mapped to Linear's numeric scale
- on re-triage the awaiting-info label is swapped for the new labels
"""

import logging
from typing import Iterable, List

from pydantic import BaseModel, Field

from triager.knowledge import filter_label_ids
from triager.models import LabelKnowledgeBase, TeamKnowledgeBase, TriagePlan

LOG = logging.getLogger("triager.reconcile")

PRIORITY_MAP = {
    "No priority": 0,
    "Urgent": 1,
    "High": 2,
    "Medium": 3,
    "Low": 4,
}


class IssueUpdate(BaseModel):
    """Fields of an issueUpdate mutation; None means "leave unchanged"."""

    title: str | None = None
    description: str | None = None
    team_id: str | None = None
    label_ids: List[str] | None = None
    estimate: int | None = None
    priority: int | None = None
    assignee_id: str | None = None

    def to_input(self) -> dict:
        """IssueUpdateInput variables, without unset fields."""
        fields = {
            "title": self.title,
            "description": self.description,
            "teamId": self.team_id,
            "labelIds": self.label_ids,
            "estimate": self.estimate,
            "priority": self.priority,
            "assigneeId": self.assignee_id,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def is_empty(self) -> bool:
        return not self.to_input()


class ExecutionPlan(BaseModel):
    """What the dispatcher should do for one event.

    Exactly one of ``clarification`` and ``update`` is set.
    """

    clarification: str | None = None
    update: IssueUpdate | None = None
    subtasks: List[str] = Field(default_factory=list)

    @property
    def needs_clarification(self) -> bool:
        return self.clarification is not None


def map_priority(priority: str | None) -> int | None:
    """Priority name -> Linear priority number; absent stays absent."""
    if priority is None:
        return None
    return PRIORITY_MAP[priority]


def coerce_estimate(estimate: int | float | str | None) -> int | None:
    """Linear estimates are integers; the model sometimes sends 3.0 or "3".

    Infinite and NaN values are dropped.
    """
    if estimate is None:
        return None
    try:
        return int(float(estimate))
    except (TypeError, ValueError, OverflowError):
        LOG.warning("Dropping non-integral estimate %r", estimate)
        return None


def merge_labels(current: Iterable[str], new: Iterable[str], marker: str | None) -> List[str]:
    """(current - marker) | new, keeping order of first appearance, no duplicates."""
    merged: List[str] = []
    for label_id in list(current) + list(new):
        if label_id == marker or label_id in merged:
            continue
        merged.append(label_id)
    return merged


def ensure_marker(comment: str, marker: str) -> str:
    """Clarification comments must end with the bot marker for loop prevention."""
    if not marker or comment.rstrip().endswith(marker):
        return comment
    return f"{comment.rstrip()}\n\n{marker}"


def reconcile(
    plan: TriagePlan,
    label_kb: LabelKnowledgeBase,
    current_label_ids: List[str] | None = None,
    awaiting_label_id: str | None = None,
    bot_marker: str = "",
    team_kb: TeamKnowledgeBase | None = None,
) -> ExecutionPlan:
    """Build the execution plan.

    ``current_label_ids`` is None on first triage and the issue's labels on
    re-triage, where the final label set always replaces the current one.
    """
    if plan.needs_clarification:
        return ExecutionPlan(clarification=ensure_marker(plan.clarification_comment or "", bot_marker))

    valid_labels = filter_label_ids(label_kb, plan.label_ids or [])
    dropped = [label_id for label_id in plan.label_ids or [] if label_id not in valid_labels]
    if dropped:
        LOG.info("Dropped unknown label ids: %s", dropped)

    if current_label_ids is None:
        label_ids = valid_labels or None
    else:
        label_ids = merge_labels(current_label_ids, valid_labels, awaiting_label_id)

    # Team ids are trusted as given; unknown ones are only reported.
    if plan.team_id and team_kb is not None and not team_kb.has_team(plan.team_id):
        LOG.warning("Plan team id %s is not in the team knowledge base", plan.team_id)

    rewrite = plan.rewrite
    update = IssueUpdate(
        title=rewrite.title if rewrite else None,
        description=rewrite.description if rewrite else None,
        team_id=plan.team_id,
        label_ids=label_ids,
        estimate=coerce_estimate(plan.estimate),
        priority=map_priority(plan.priority),
        assignee_id=plan.assignee_id,
    )
    subtasks = [title.strip() for title in plan.subtasks or [] if title and title.strip()]
    return ExecutionPlan(update=update, subtasks=subtasks)
