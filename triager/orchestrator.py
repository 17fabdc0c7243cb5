"""Triage orchestrator: the per-issue state machine.

States are derived from the awaiting-info label on the tracker:

    fresh --(plan asks a question)--> awaiting_info --(reply, complete plan)--> triaged
    fresh --(complete plan)--> triaged
    awaiting_info --(reply, still unclear)--> awaiting_info

Issue created: knowledge base -> plan -> reconcile -> either clarification
(comment, then awaiting-info label) or completion (update, subtasks,
subscribe creator, reaction).

Comment created: ignored when it carries the bot marker or when the issue is
not awaiting info; otherwise the whole conversation is re-evaluated and the
issue is completed (update with merged labels, subtasks, reaction) or asked
again (comment only).

No mutation is issued before a valid plan exists. Any failure aborts the
event, is logged and recorded, and never propagates to the caller.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

from pydantic import ValidationError

from triager.dispatcher import ActionDispatcher, SubtaskOutcome
from triager.knowledge import ConfigurationMissing, KnowledgeBase
from triager.models import CommentCreated, IssueCreated, WebhookPayload
from triager.planning import (
    KnowledgeSnapshot,
    PlanGenerationFailed,
    PlanGenerator,
    build_issue_content,
    build_retriage_content,
    default_system_prompt,
)
from triager.reconcile import ExecutionPlan, reconcile
from triager.state import AWAITING_INFO, TRIAGED, IssueStateStore
from triager.tracker import MutationFailed, TrackerAdapter, TrackerError

LOG = logging.getLogger("triager.orchestrator")

EVENT_ISSUE_CREATED = "issue_created"
EVENT_COMMENT_CREATED = "comment_created"

SKIPPED = "skipped"
CLARIFICATION_REQUESTED = "clarification_requested"
TRIAGED_OUTCOME = "triaged"
FAILED = "failed"

DEFAULT_BOT_MARKER = "<!-- bot -->"
DEFAULT_COMPLETION_EMOJI = "✅"


@dataclass
class TriageSettings:
    """Inputs to the state machine that come from configuration."""

    awaiting_info_label_id: str | None = None
    bot_marker: str = DEFAULT_BOT_MARKER
    completion_emoji: str = DEFAULT_COMPLETION_EMOJI
    system_prompt: str | None = None
    skip_own_issues: bool = True
    serialize_per_issue: bool = True

    def resolved_prompt(self) -> str:
        return self.system_prompt or default_system_prompt(self.bot_marker)


@dataclass
class TriageResult:
    """What happened to one event."""

    issue_id: str | None
    outcome: str
    reason: str = ""
    subtasks: List[SubtaskOutcome] = field(default_factory=list)


class _IssueLock:
    """Hashable holder so locks can live in a WeakValueDictionary."""

    def __init__(self) -> None:
        self.lock = asyncio.Lock()


class TriageOrchestrator:
    """Drives one event from receipt to tracker mutations."""

    def __init__(
        self,
        tracker: TrackerAdapter,
        dispatcher: ActionDispatcher,
        knowledge_base: KnowledgeBase,
        generator: PlanGenerator,
        settings: TriageSettings,
        state_store: IssueStateStore | None = None,
    ) -> None:
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._kb = knowledge_base
        self._generator = generator
        self._settings = settings
        self._state = state_store
        self._locks: "weakref.WeakValueDictionary[str, _IssueLock]" = weakref.WeakValueDictionary()

    async def handle_event(self, payload: WebhookPayload) -> TriageResult:
        """Route a webhook payload; never raises."""
        if payload.is_issue_created:
            try:
                issue_event = IssueCreated.model_validate(payload.data)
            except ValidationError as e:
                LOG.warning("Ignoring malformed Issue payload: %s", e)
                return TriageResult(None, SKIPPED, "malformed payload")
            return await self._run(issue_event.id, EVENT_ISSUE_CREATED, lambda: self.handle_new_issue(issue_event))

        if payload.is_comment_created:
            try:
                comment_event = CommentCreated.model_validate(payload.data)
            except ValidationError as e:
                LOG.warning("Ignoring malformed Comment payload: %s", e)
                return TriageResult(None, SKIPPED, "malformed payload")
            return await self._run(
                comment_event.issue_id, EVENT_COMMENT_CREATED, lambda: self.handle_comment(comment_event)
            )

        LOG.debug("Ignoring %s %s event", payload.action, payload.type)
        return TriageResult(None, SKIPPED, f"{payload.action} {payload.type} not handled")

    async def _run(
        self,
        issue_id: str,
        event: str,
        handler: Callable[[], Awaitable[TriageResult]],
    ) -> TriageResult:
        """Run handler under the issue lock; log and record any failure."""
        try:
            if self._settings.serialize_per_issue:
                holder = self._locks.get(issue_id)
                if holder is None:
                    holder = _IssueLock()
                    self._locks[issue_id] = holder
                async with holder.lock:
                    return await handler()
            return await handler()
        except ConfigurationMissing as e:
            LOG.error("[%s] Knowledge base misconfigured, event dropped: %s", issue_id, e)
            error = str(e)
        except PlanGenerationFailed as e:
            LOG.error("[%s] Plan generation failed, issue left unchanged: %s", issue_id, e)
            error = str(e)
        except MutationFailed as e:
            LOG.error("[%s] Tracker mutation failed, remaining actions aborted: %s", issue_id, e)
            error = str(e)
        except TrackerError as e:
            LOG.error("[%s] Tracker read failed, event dropped: %s", issue_id, e)
            error = str(e)
        except Exception as e:
            LOG.exception("[%s] Unexpected error while handling %s", issue_id, event)
            error = f"{type(e).__name__}: {e}"
        await self._record_failure(issue_id, event, error)
        return TriageResult(issue_id, FAILED, error)

    async def _record_failure(self, issue_id: str, event: str, error: str) -> None:
        if self._state is None:
            return
        try:
            await self._state.arecord_failure(issue_id, event, error)
        except (OSError, ValueError) as e:
            LOG.warning("[%s] Could not record failure: %s", issue_id, e)

    async def _transition(self, issue_id: str, state: str, event: str, title: str | None) -> None:
        if self._state is None:
            return
        try:
            await self._state.atransition(issue_id, state, event, title)
        except (OSError, ValueError) as e:
            LOG.warning("[%s] Could not record state %s: %s", issue_id, state, e)

    async def _load_kb(self) -> KnowledgeSnapshot:
        team = await self._kb.load_team_kb()
        label = await self._kb.load_label_kb()
        return KnowledgeSnapshot(team=team, label=label)

    async def _is_own_subtask(self, event: IssueCreated) -> bool:
        """Sub-issue created by the API key's user, i.e. by a previous triage.

        Top-level issues are always triaged: a personal API key shares its
        user with the operator, who files issues too.
        """
        if not self._settings.skip_own_issues or not event.parent_id or not event.creator_id:
            return False
        try:
            return event.creator_id == await self._tracker.get_viewer_id()
        except TrackerError as e:
            LOG.warning("Could not resolve bot user id, assuming issue is not the bot's: %s", e)
            return False

    async def handle_new_issue(self, event: IssueCreated) -> TriageResult:
        """Fresh issue: ask for clarification or triage it fully."""
        issue_id = event.id
        if await self._is_own_subtask(event):
            LOG.info("[%s] Ignoring sub-issue created by the bot under %s", issue_id, event.parent_id)
            return TriageResult(issue_id, SKIPPED, "sub-issue created by bot")

        LOG.info("[%s] Triaging new issue: %s", issue_id, event.title)
        kb = await self._load_kb()
        content = build_issue_content(event.title, event.description)
        plan = await self._generator.generate_plan(self._settings.resolved_prompt(), kb, content)
        execution = reconcile(
            plan,
            kb.label,
            current_label_ids=None,
            awaiting_label_id=self._settings.awaiting_info_label_id,
            bot_marker=self._settings.bot_marker,
            team_kb=kb.team,
        )

        if execution.needs_clarification:
            await self._dispatcher.create_comment(issue_id, execution.clarification or "")
            if self._settings.awaiting_info_label_id:
                await self._dispatcher.add_label(issue_id, self._settings.awaiting_info_label_id)
            LOG.info("[%s] Asked for clarification", issue_id)
            await self._transition(issue_id, AWAITING_INFO, EVENT_ISSUE_CREATED, event.title)
            return TriageResult(issue_id, CLARIFICATION_REQUESTED)

        subtasks = await self._complete(issue_id, execution, fallback_team_id=event.team_id)
        if event.creator_id:
            await self._dispatcher.subscribe(issue_id, event.creator_id)
        await self._dispatcher.add_reaction(issue_id, self._settings.completion_emoji)
        LOG.info("[%s] Triage complete", issue_id)
        await self._transition(issue_id, TRIAGED, EVENT_ISSUE_CREATED, event.title)
        return TriageResult(issue_id, TRIAGED_OUTCOME, subtasks=subtasks)

    async def handle_comment(self, event: CommentCreated) -> TriageResult:
        """Reply on an issue: re-triage it if it is waiting for information."""
        issue_id = event.issue_id
        marker = self._settings.bot_marker
        if marker and marker in event.body:
            LOG.debug("[%s] Ignoring comment %s from bot", issue_id, event.id)
            return TriageResult(issue_id, SKIPPED, "bot comment")

        awaiting_label = self._settings.awaiting_info_label_id
        if not awaiting_label:
            LOG.debug("[%s] Ignoring comment: no awaiting-info label configured", issue_id)
            return TriageResult(issue_id, SKIPPED, "awaiting-info label not configured")

        issue = await self._tracker.get_issue(issue_id)
        if awaiting_label not in issue.label_ids:
            LOG.info("[%s] Ignoring comment: issue not awaiting info", issue_id)
            return TriageResult(issue_id, SKIPPED, "not awaiting info")

        LOG.info("[%s] Processing reply to re-triage issue", issue_id)
        kb = await self._load_kb()
        comments = await self._tracker.get_comments(issue_id)
        content = build_retriage_content(issue, comments)
        plan = await self._generator.generate_plan(self._settings.resolved_prompt(), kb, content)
        execution = reconcile(
            plan,
            kb.label,
            current_label_ids=issue.label_ids,
            awaiting_label_id=awaiting_label,
            bot_marker=marker,
            team_kb=kb.team,
        )

        if execution.needs_clarification:
            await self._dispatcher.create_comment(issue_id, execution.clarification or "")
            LOG.info("[%s] Still needs clarification, asked again", issue_id)
            await self._transition(issue_id, AWAITING_INFO, EVENT_COMMENT_CREATED, issue.title)
            return TriageResult(issue_id, CLARIFICATION_REQUESTED)

        subtasks = await self._complete(issue_id, execution, fallback_team_id=issue.team_id)
        await self._dispatcher.add_reaction(issue_id, self._settings.completion_emoji)
        LOG.info("[%s] Re-triage complete", issue_id)
        await self._transition(issue_id, TRIAGED, EVENT_COMMENT_CREATED, issue.title)
        return TriageResult(issue_id, TRIAGED_OUTCOME, subtasks=subtasks)

    async def _complete(
        self,
        issue_id: str,
        execution: ExecutionPlan,
        fallback_team_id: str | None,
    ) -> List[SubtaskOutcome]:
        """Issue update first, then subtasks parented to the issue."""
        update = execution.update
        if update is not None:
            await self._dispatcher.update_issue(issue_id, update)
        if not execution.subtasks:
            return []
        team_id = (update.team_id if update else None) or fallback_team_id
        LOG.info("[%s] Creating %s subtasks", issue_id, len(execution.subtasks))
        return await self._dispatcher.create_subtasks(issue_id, execution.subtasks, team_id=team_id)
