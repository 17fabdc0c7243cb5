"""Action dispatcher: the concrete tracker side effects of a triage plan.

Each single mutation either succeeds or raises MutationFailed; the dispatcher
never retries. Subtask creation is batched: all titles are attempted
concurrently and per-item outcomes are returned instead of raising.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, List, TypeVar

from triager.reconcile import IssueUpdate
from triager.tracker import MutationFailed, TrackerAdapter, TrackerError

LOG = logging.getLogger("triager.dispatcher")

T = TypeVar("T")


@dataclass
class SubtaskOutcome:
    """Result of creating one subtask."""

    title: str
    issue_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ActionDispatcher:
    """Issues tracker mutations and surfaces failure per call."""

    def __init__(self, tracker: TrackerAdapter) -> None:
        self._tracker = tracker

    async def _call(self, operation: str, issue_id: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except MutationFailed:
            raise
        except TrackerError as e:
            raise MutationFailed(operation, issue_id, str(e)) from e

    async def update_issue(self, issue_id: str, update: IssueUpdate) -> None:
        fields = update.to_input()
        if not fields:
            LOG.info("[%s] Nothing to update", issue_id)
            return
        await self._call("issueUpdate", issue_id, self._tracker.update_issue(issue_id, fields))
        LOG.info("[%s] Updated fields: %s", issue_id, sorted(fields))

    async def create_subtasks(
        self,
        parent_id: str,
        titles: List[str],
        team_id: str | None = None,
    ) -> List[SubtaskOutcome]:
        """Create all subtasks concurrently; a failure does not block the others."""
        if not titles:
            return []
        results = await asyncio.gather(
            *(self._tracker.create_subtask(parent_id, title, team_id=team_id) for title in titles),
            return_exceptions=True,
        )
        outcomes: List[SubtaskOutcome] = []
        for title, result in zip(titles, results):
            if isinstance(result, Exception):
                LOG.error("[%s] Subtask creation failed for %r: %s", parent_id, title, result)
                outcomes.append(SubtaskOutcome(title=title, error=str(result)))
            else:
                outcomes.append(SubtaskOutcome(title=title, issue_id=result))
        created = sum(1 for o in outcomes if o.ok)
        LOG.info("[%s] Created %s/%s subtasks", parent_id, created, len(outcomes))
        return outcomes

    async def create_comment(self, issue_id: str, body: str) -> str:
        comment_id = await self._call("commentCreate", issue_id, self._tracker.create_comment(issue_id, body))
        LOG.info("[%s] Posted comment %s", issue_id, comment_id)
        return comment_id

    async def add_label(self, issue_id: str, label_id: str) -> None:
        await self._call("issueAddLabel", issue_id, self._tracker.add_label(issue_id, label_id))
        LOG.info("[%s] Added label %s", issue_id, label_id)

    async def subscribe(self, issue_id: str, user_id: str) -> None:
        await self._call("issueSubscribe", issue_id, self._tracker.subscribe(issue_id, user_id))
        LOG.info("[%s] Subscribed %s", issue_id, user_id)

    async def add_reaction(self, issue_id: str, emoji: str) -> None:
        await self._call("reactionCreate", issue_id, self._tracker.add_reaction(issue_id, emoji))
        LOG.info("[%s] Reacted %s", issue_id, emoji)
