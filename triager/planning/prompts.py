"""System prompt and issue content for plan generation."""

import json
from typing import Iterable

from triager.models import FIBONACCI_ESTIMATES, Comment, Issue, LabelKnowledgeBase, TeamKnowledgeBase

DEFAULT_SPEAKER = "User"

SYSTEM_PROMPT_TEMPLATE = """You triage incoming issues for an engineering organisation. Every issue must be
clear enough for an engineer to start on it before it reaches a team.

Never invent information. If a detail is not in the issue, the conversation or
the knowledge base below, ask for it instead of guessing.

1. Decide whether the issue is actionable.
   - If anything essential is ambiguous or missing (scope, affected system,
     expected behaviour, acceptance criteria), ask for clarification.
   - If it is specific and actionable, triage it.

2. Produce a TriagePlan.
   - Needs clarification: set "needsClarification" to true and write specific,
     friendly questions in "clarificationComment" using markdown lists. Leave
     every other field out. The comment MUST end with {marker}
   - Actionable: set "needsClarification" to false and fill in the team, labels,
     priority and estimate. Use "rewrite" to turn the issue into a clean,
     actionable title and a markdown description with headings and bullet points.

3. Conversations. When the reporter has answered your questions, use the whole
   conversation to rewrite the title and description into their final form and
   complete the triage.

TriagePlan JSON fields:
- "rewrite" (optional): {{"title": string, "description": string}}
- "priority": one of "Urgent", "High", "Medium", "Low", "No priority"
- "teamId": id of the owning team, taken from the team knowledge base
- "labelIds": list of label ids, taken from the label knowledge base
- "estimate": Fibonacci points, one of {estimates}
- "assigneeId" (optional): a person's id, only when you are highly confident
- "subtasks" (optional): list of sub-issue titles when the issue is an epic
- "needsClarification": boolean
- "clarificationComment" (optional): your question, ending with {marker}

Respond with the JSON TriagePlan object only."""


def default_system_prompt(marker: str) -> str:
    """Built-in instructions, with the bot marker the model must append."""
    estimates = ", ".join(str(e) for e in FIBONACCI_ESTIMATES)
    return SYSTEM_PROMPT_TEMPLATE.format(marker=marker, estimates=estimates)


def build_system_prompt(template: str, team_kb: TeamKnowledgeBase, label_kb: LabelKnowledgeBase) -> str:
    """Instruction text followed by both knowledge bases as pretty JSON."""
    team_json = json.dumps(team_kb.raw, indent=2, ensure_ascii=False)
    label_json = json.dumps(label_kb.raw, indent=2, ensure_ascii=False)
    return f"{template}\n\nTeam Knowledge Base:\n{team_json}\n\nLabel Knowledge Base:\n{label_json}"


def build_issue_content(title: str, description: str | None) -> str:
    """Task input for a fresh issue."""
    return f"Title: {title}\n\nDescription: {description or ''}"


def render_transcript(comments: Iterable[Comment]) -> str:
    """Chronological "<speaker>: <body>" lines separated by blank lines."""
    return "\n\n".join(f"{c.author_name or DEFAULT_SPEAKER}: {c.body}" for c in comments)


def build_retriage_content(issue: Issue, comments: Iterable[Comment]) -> str:
    """Task input after the reporter replied: original content plus conversation."""
    return (
        "The reporter has replied to the clarification request. Here is the full context.\n\n"
        f"Original Title: {issue.title}\n\n"
        f"Original Description: {issue.description or ''}\n\n"
        f"Conversation History:\n{render_transcript(comments)}"
    )
