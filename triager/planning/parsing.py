"""Parse and validate raw model output into a TriagePlan.

Pure functions, no network: malformed output is detected here and turned into
PlanValidationError, which the generator treats as transient.
"""

import json
from typing import Any

from pydantic import ValidationError

from triager.models import TriagePlan


class PlanValidationError(Exception):
    """Model output is not JSON or does not match the TriagePlan schema."""

    pass


def _strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines)


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse model text as a single JSON object."""
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as e:
        raise PlanValidationError(f"Model output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PlanValidationError(f"Model output must be a JSON object, got {type(data).__name__}")
    return data


def parse_plan(raw: str) -> TriagePlan:
    """Parse and schema-validate model output."""
    data = parse_json_object(raw)
    try:
        return TriagePlan.model_validate(data)
    except ValidationError as e:
        raise PlanValidationError(f"Invalid triage plan: {e}") from e
