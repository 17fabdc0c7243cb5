"""Tests for ActionDispatcher (mutations, error wrapping, batched subtasks)."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from triager.dispatcher import ActionDispatcher
from triager.reconcile import IssueUpdate
from triager.tracker import MutationFailed, TrackerAdapter, TrackerError


@pytest.fixture
def tracker() -> AsyncMock:
    return AsyncMock(spec=TrackerAdapter)


def test_update_issue_sends_only_set_fields(tracker: AsyncMock) -> None:
    dispatcher = ActionDispatcher(tracker)
    asyncio.run(dispatcher.update_issue("I1", IssueUpdate(priority=2, label_ids=["A"])))
    tracker.update_issue.assert_awaited_once_with("I1", {"priority": 2, "labelIds": ["A"]})


def test_empty_update_is_skipped(tracker: AsyncMock) -> None:
    asyncio.run(ActionDispatcher(tracker).update_issue("I1", IssueUpdate()))
    tracker.update_issue.assert_not_awaited()


def test_tracker_error_becomes_mutation_failed(tracker: AsyncMock) -> None:
    tracker.add_label.side_effect = TrackerError("502: bad gateway")
    with pytest.raises(MutationFailed) as exc:
        asyncio.run(ActionDispatcher(tracker).add_label("I1", "AW"))
    assert exc.value.operation == "issueAddLabel"
    assert "bad gateway" in str(exc.value)


def test_mutation_failed_passes_through(tracker: AsyncMock) -> None:
    original = MutationFailed("commentCreate", "I1", "success=false")
    tracker.create_comment.side_effect = original
    with pytest.raises(MutationFailed) as exc:
        asyncio.run(ActionDispatcher(tracker).create_comment("I1", "hi"))
    assert exc.value is original


def test_subtasks_partial_failure_reports_each(tracker: AsyncMock) -> None:
    """One failed subtask does not stop the others."""

    async def create(parent_id: str, title: str, team_id: str | None = None) -> str:
        if title == "B":
            raise MutationFailed("issueCreate", parent_id, "success=false")
        return f"S-{title}"

    tracker.create_subtask.side_effect = create
    outcomes = asyncio.run(ActionDispatcher(tracker).create_subtasks("I1", ["A", "B", "C"], team_id="T1"))

    assert [(o.title, o.issue_id, o.ok) for o in outcomes] == [
        ("A", "S-A", True),
        ("B", None, False),
        ("C", "S-C", True),
    ]
    assert tracker.create_subtask.await_count == 3
    for call in tracker.create_subtask.await_args_list:
        assert call.kwargs["team_id"] == "T1"


def test_no_subtasks_makes_no_calls(tracker: AsyncMock) -> None:
    assert asyncio.run(ActionDispatcher(tracker).create_subtasks("I1", [])) == []
    tracker.create_subtask.assert_not_awaited()


def test_subscribe_and_reaction(tracker: AsyncMock) -> None:
    dispatcher = ActionDispatcher(tracker)

    async def calls() -> None:
        await dispatcher.subscribe("I1", "U1")
        await dispatcher.add_reaction("I1", "✅")

    asyncio.run(calls())
    tracker.subscribe.assert_awaited_once_with("I1", "U1")
    tracker.add_reaction.assert_awaited_once_with("I1", "✅")
