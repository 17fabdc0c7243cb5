"""Plan generator: prompt the model and retry until a valid TriagePlan comes back.

Issues no tracker mutations; the only side effect is the outbound model call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from triager.llm import ChatModel, ModelError
from triager.models import LabelKnowledgeBase, TeamKnowledgeBase, TriagePlan
from triager.planning.parsing import PlanValidationError, parse_plan
from triager.planning.prompts import build_system_prompt

LOG = logging.getLogger("triager.planning.generator")

MAX_ATTEMPTS = 3
BASE_DELAY = 1.0  # seconds


class PlanGenerationFailed(Exception):
    """No valid plan after exhausting all attempts."""

    def __init__(self, attempts: int, last_error: Exception | None = None) -> None:
        super().__init__(f"Failed to get a valid triage plan after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass
class RetryPolicy:
    """Bounded attempts with linear backoff: attempt N (1-based) waits N * base_delay."""

    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = BASE_DELAY
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        return attempt * self.base_delay


@dataclass
class KnowledgeSnapshot:
    """Knowledge base documents loaded for one event."""

    team: TeamKnowledgeBase
    label: LabelKnowledgeBase


class PlanGenerator:
    """Builds the prompt, calls the model and validates the result."""

    def __init__(self, model: ChatModel, retry: RetryPolicy | None = None) -> None:
        self._model = model
        self._retry = retry or RetryPolicy()

    async def generate_plan(self, system_prompt: str, kb: KnowledgeSnapshot, issue_content: str) -> TriagePlan:
        """Return a validated plan or raise PlanGenerationFailed."""
        instructions = build_system_prompt(system_prompt, kb.team, kb.label)
        last_error: Exception | None = None
        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                raw = await self._model.complete(instructions, issue_content)
                plan = parse_plan(raw)
                LOG.debug("Plan on attempt %s: %s", attempt, plan.model_dump_json(by_alias=True, exclude_none=True))
                return plan
            except (ModelError, PlanValidationError) as e:
                last_error = e
                LOG.warning("Plan generation attempt %s/%s failed: %s", attempt, attempts, e)
            if attempt < attempts:
                await self._retry.sleep(self._retry.delay_for(attempt))
        raise PlanGenerationFailed(attempts, last_error) from last_error
