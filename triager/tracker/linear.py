"""Linear GraphQL API adapter."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from triager.config import LinearConfig
from triager.models import Comment, Issue
from triager.tracker.base import MutationFailed, TrackerAdapter, TrackerError

LOG = logging.getLogger("triager.tracker.linear")

ENDPOINT = "https://api.linear.app/graphql"

_GET_ISSUE = """
query Issue($id: String!) {
  issue(id: $id) {
    id
    title
    description
    team { id }
    creator { id }
    labels { nodes { id } }
  }
}
"""

_GET_COMMENTS = """
query IssueComments($id: String!) {
  issue(id: $id) {
    comments(first: 250) {
      nodes {
        id
        body
        createdAt
        user { id name }
      }
    }
  }
}
"""

_VIEWER = """
query Viewer {
  viewer { id }
}
"""

_ISSUE_UPDATE = """
mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
    issue { id }
  }
}
"""

_ISSUE_CREATE = """
mutation IssueCreate($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue { id title }
  }
}
"""

_COMMENT_CREATE = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id }
  }
}
"""

_ISSUE_ADD_LABEL = """
mutation IssueAddLabel($id: String!, $labelId: String!) {
  issueAddLabel(id: $id, labelId: $labelId) {
    success
  }
}
"""

_ISSUE_SUBSCRIBE = """
mutation IssueSubscribe($id: String!, $userId: String) {
  issueSubscribe(id: $id, userId: $userId) {
    success
  }
}
"""

_REACTION_CREATE = """
mutation ReactionCreate($input: ReactionCreateInput!) {
  reactionCreate(input: $input) {
    success
    reaction { id }
  }
}
"""


def _parse_iso(s: str | None) -> datetime | None:
    if not s:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _issue_from_node(node: Dict[str, Any]) -> Issue:
    team = node.get("team") or {}
    creator = node.get("creator") or {}
    labels = (node.get("labels") or {}).get("nodes") or []
    return Issue(
        id=node["id"],
        title=node.get("title") or "",
        description=node.get("description"),
        team_id=team.get("id"),
        creator_id=creator.get("id"),
        label_ids=[label["id"] for label in labels if label.get("id")],
    )


def _comment_from_node(node: Dict[str, Any], issue_id: str) -> Comment:
    user = node.get("user") or {}
    return Comment(
        id=node["id"],
        body=node.get("body") or "",
        author_id=user.get("id"),
        author_name=user.get("name"),
        issue_id=issue_id,
        created_at=_parse_iso(node.get("createdAt")),
    )


class LinearAdapter(TrackerAdapter):
    """Linear implementation over a shared httpx.AsyncClient."""

    def __init__(self, config: LinearConfig, api_key: str) -> None:
        if not api_key:
            raise ValueError("Linear api key is required")
        self._api_key = api_key
        self._api_url = config.api_url or ENDPOINT
        self._timeout = config.timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._viewer_id: str | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={
                    "Authorization": self._api_key,
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _gql(self, query: str, variables: Dict[str, Any] | None = None) -> Dict[str, Any]:
        try:
            response = await self._get_client().post(
                self._api_url,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.RequestError as e:
            raise TrackerError(f"Linear request failed: {e}") from e
        if response.status_code >= 400:
            raise TrackerError(f"{response.status_code}: {response.text or response.reason_phrase}")
        try:
            data = response.json()
        except ValueError as e:
            raise TrackerError(f"Linear returned invalid JSON: {e}") from e
        if data.get("errors"):
            raise TrackerError(f"Linear API error: {data['errors']}")
        return data.get("data") or {}

    async def _mutate(
        self,
        operation: str,
        issue_id: str,
        query: str,
        variables: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Run a mutation and return its payload; success=false raises MutationFailed."""
        data = await self._gql(query, variables)
        result = data.get(operation) or {}
        if not result.get("success"):
            raise MutationFailed(operation, issue_id, "success=false")
        return result

    async def get_issue(self, issue_id: str) -> Issue:
        data = await self._gql(_GET_ISSUE, {"id": issue_id})
        node = data.get("issue")
        if not node:
            raise TrackerError(f"Issue '{issue_id}' not found in Linear")
        return _issue_from_node(node)

    async def get_comments(self, issue_id: str) -> List[Comment]:
        data = await self._gql(_GET_COMMENTS, {"id": issue_id})
        nodes = ((data.get("issue") or {}).get("comments") or {}).get("nodes")
        if nodes is None:
            raise TrackerError(f"Failed to fetch comments for issue {issue_id}")
        comments = [_comment_from_node(n, issue_id) for n in nodes]
        comments.sort(key=lambda c: c.created_at.timestamp() if c.created_at else 0.0)
        return comments

    async def get_viewer_id(self) -> str:
        if self._viewer_id:
            return self._viewer_id
        data = await self._gql(_VIEWER)
        viewer_id = (data.get("viewer") or {}).get("id")
        if not viewer_id:
            raise TrackerError("Could not fetch the bot's own user id")
        self._viewer_id = viewer_id
        return viewer_id

    async def update_issue(self, issue_id: str, fields: Dict[str, Any]) -> None:
        await self._mutate("issueUpdate", issue_id, _ISSUE_UPDATE, {"id": issue_id, "input": fields})

    async def create_subtask(self, parent_id: str, title: str, team_id: str | None = None) -> str:
        payload: Dict[str, Any] = {"parentId": parent_id, "title": title}
        if team_id:
            payload["teamId"] = team_id
        result = await self._mutate("issueCreate", parent_id, _ISSUE_CREATE, {"input": payload})
        return (result.get("issue") or {}).get("id", "")

    async def create_comment(self, issue_id: str, body: str) -> str:
        result = await self._mutate(
            "commentCreate",
            issue_id,
            _COMMENT_CREATE,
            {"input": {"issueId": issue_id, "body": body}},
        )
        return (result.get("comment") or {}).get("id", "")

    async def add_label(self, issue_id: str, label_id: str) -> None:
        await self._mutate("issueAddLabel", issue_id, _ISSUE_ADD_LABEL, {"id": issue_id, "labelId": label_id})

    async def subscribe(self, issue_id: str, user_id: str) -> None:
        await self._mutate("issueSubscribe", issue_id, _ISSUE_SUBSCRIBE, {"id": issue_id, "userId": user_id})

    async def add_reaction(self, issue_id: str, emoji: str) -> None:
        await self._mutate(
            "reactionCreate",
            issue_id,
            _REACTION_CREATE,
            {"input": {"issueId": issue_id, "emoji": emoji}},
        )
