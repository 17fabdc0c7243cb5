"""Plan generation: prompts, output parsing and the retrying generator."""

from triager.planning.generator import (
    KnowledgeSnapshot,
    PlanGenerationFailed,
    PlanGenerator,
    RetryPolicy,
)
from triager.planning.parsing import PlanValidationError, parse_plan
from triager.planning.prompts import (
    build_issue_content,
    build_retriage_content,
    build_system_prompt,
    default_system_prompt,
    render_transcript,
)

__all__ = [
    "KnowledgeSnapshot",
    "PlanGenerationFailed",
    "PlanGenerator",
    "PlanValidationError",
    "RetryPolicy",
    "build_issue_content",
    "build_retriage_content",
    "build_system_prompt",
    "default_system_prompt",
    "parse_plan",
    "render_transcript",
]
