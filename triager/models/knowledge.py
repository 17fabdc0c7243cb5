"""Knowledge base documents: team routing rules and the authoritative labels.

Both keep the raw parsed document for the prompt next to the typed view used
for validation.
"""

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field, ValidationError

LOG = logging.getLogger("triager.models.knowledge")


class TeamRule(BaseModel):
    """Routing hints for one team."""

    name: str
    keywords: List[str] = Field(default_factory=list)
    domains: List[str] = Field(default_factory=list)


class Label(BaseModel):
    """Workspace label."""

    id: str
    name: str = ""


class TeamKnowledgeBase(BaseModel):
    """Team id -> routing rules."""

    raw: Dict[str, Any] = Field(default_factory=dict)
    teams: Dict[str, TeamRule] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, raw: Any) -> "TeamKnowledgeBase":
        """Build from the parsed JSON document; malformed entries are skipped."""
        if not isinstance(raw, dict):
            LOG.error("Team knowledge base is not a JSON object: %r", type(raw).__name__)
            return cls(raw={}, teams={})
        teams: Dict[str, TeamRule] = {}
        for team_id, rule in raw.items():
            try:
                teams[team_id] = TeamRule.model_validate(rule)
            except ValidationError as e:
                LOG.warning("Skipping malformed team rule %s: %s", team_id, e)
        return cls(raw=raw, teams=teams)

    def has_team(self, team_id: str) -> bool:
        return team_id in self.teams


class LabelKnowledgeBase(BaseModel):
    """Authoritative label list, in the shape of Linear's issueLabels query.

    ``labels`` is None when the document does not have the expected
    ``data.issueLabels.nodes`` structure.
    """

    raw: Any = None
    labels: List[Label] | None = None

    @classmethod
    def from_document(cls, raw: Any) -> "LabelKnowledgeBase":
        """Build from the parsed JSON document."""
        try:
            nodes = raw["data"]["issueLabels"]["nodes"]
        except (KeyError, TypeError):
            return cls(raw=raw, labels=None)
        if not isinstance(nodes, list):
            return cls(raw=raw, labels=None)
        try:
            labels = [Label.model_validate(n) for n in nodes]
        except ValidationError:
            return cls(raw=raw, labels=None)
        return cls(raw=raw, labels=labels)

    @property
    def is_valid(self) -> bool:
        return self.labels is not None

    def label_ids(self) -> set[str]:
        return {label.id for label in self.labels or []}
