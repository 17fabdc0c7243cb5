"""Process-wide wiring: build every component from AppConfig and close them on shutdown."""

import logging
from dataclasses import dataclass
from pathlib import Path

from triager.config import AppConfig
from triager.dispatcher import ActionDispatcher
from triager.knowledge import FileKeyValueStore, KnowledgeBase
from triager.llm import OpenAIChatClient
from triager.orchestrator import TriageOrchestrator, TriageSettings
from triager.planning import PlanGenerator, RetryPolicy
from triager.state import IssueStateStore
from triager.tracker import LinearAdapter

LOG = logging.getLogger("triager.app")


class MissingSecret(ValueError):
    """A required API key is not configured."""


def build_knowledge_base(config: AppConfig) -> KnowledgeBase:
    kb_config = config.knowledge_base
    return KnowledgeBase(
        FileKeyValueStore(Path(kb_config.directory)),
        team_key=kb_config.team_key,
        label_key=kb_config.label_key,
        cache_ttl=kb_config.cache_ttl_seconds,
    )


def build_settings(config: AppConfig) -> TriageSettings:
    triage = config.triage
    awaiting_label = config.awaiting_info_label_resolved
    if not awaiting_label:
        LOG.warning("No awaiting-info label configured; replies will never trigger re-triage")
    return TriageSettings(
        awaiting_info_label_id=awaiting_label,
        bot_marker=triage.bot_marker,
        completion_emoji=triage.completion_emoji,
        system_prompt=config.system_prompt_override,
        skip_own_issues=triage.skip_own_issues,
        serialize_per_issue=triage.serialize_per_issue,
    )


@dataclass
class Services:
    """Long-lived clients and the orchestrator that uses them."""

    tracker: LinearAdapter
    model: OpenAIChatClient
    orchestrator: TriageOrchestrator

    @classmethod
    def from_config(cls, config: AppConfig) -> "Services":
        linear_key = config.linear_api_key_resolved
        if not linear_key:
            raise MissingSecret("LINEAR_API_KEY is not set")
        openai_key = config.openai_api_key_resolved
        if not openai_key:
            raise MissingSecret("OPENAI_API_KEY is not set")

        tracker = LinearAdapter(config.linear, linear_key)
        model = OpenAIChatClient(config.openai, openai_key)
        generator = PlanGenerator(
            model,
            RetryPolicy(
                max_attempts=config.triage.max_attempts,
                base_delay=config.triage.retry_delay_seconds,
            ),
        )
        state_store = IssueStateStore(Path(config.state.directory)) if config.state.enabled else None
        orchestrator = TriageOrchestrator(
            tracker=tracker,
            dispatcher=ActionDispatcher(tracker),
            knowledge_base=build_knowledge_base(config),
            generator=generator,
            settings=build_settings(config),
            state_store=state_store,
        )
        return cls(tracker=tracker, model=model, orchestrator=orchestrator)

    async def aclose(self) -> None:
        await self.tracker.aclose()
        await self.model.aclose()
