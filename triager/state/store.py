"""Issue state storage in .triager/issues/ as YAML files.

One file per issue: {issue_id}.yaml with state, clarification rounds and the
last error. Records are informational; the awaiting-info label on the tracker
stays the source of truth for the comment guard.
"""

import asyncio
import logging
import re
from datetime import UTC, datetime
from pathlib import Path

import yaml

from triager.state.record import AWAITING_INFO, FRESH, STATES, IssueRecord

LOG = logging.getLogger("triager.state.store")

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def _now() -> int:
    return int(datetime.now(UTC).timestamp())


class IssueStateStore:
    """Load and update per-issue records under a directory."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    def _path(self, issue_id: str) -> Path:
        if not _SAFE_ID.match(issue_id):
            raise ValueError(f"Unsafe issue id for state file: {issue_id!r}")
        return self._base_dir / f"{issue_id}.yaml"

    def load(self, issue_id: str) -> IssueRecord | None:
        """Load record; returns None if missing or invalid."""
        path = self._path(issue_id)
        if not path.is_file():
            return None
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if not data:
                return None
            data.setdefault("issue_id", issue_id)
            return IssueRecord.model_validate(data)
        except (OSError, yaml.YAMLError, ValueError) as e:
            LOG.warning("Failed to load state %s: %s", path, e)
            return None

    def save(self, record: IssueRecord) -> Path:
        """Write record; creates dir if needed."""
        path = self._path(record.issue_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        raw = yaml.dump(
            record.model_dump(mode="json", exclude_none=True),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            width=1000,
        )
        path.write_text(raw, encoding="utf-8")
        LOG.debug("Saved state for issue %s to %s", record.issue_id, path)
        return path

    def _load_or_new(self, issue_id: str) -> IssueRecord:
        record = self.load(issue_id)
        if record is None:
            now = _now()
            record = IssueRecord(issue_id=issue_id, state=FRESH, created_at=now, updated_at=now)
        return record

    def transition(
        self,
        issue_id: str,
        state: str,
        event: str,
        title: str | None = None,
    ) -> IssueRecord:
        """Move issue to state after a successful event; clears last_error."""
        if state not in STATES:
            raise ValueError(f"Unknown state: {state}")
        record = self._load_or_new(issue_id)
        previous = record.state
        record.state = state
        record.last_event = event
        record.last_error = None
        if title:
            record.title = title
        if state == AWAITING_INFO:
            record.clarification_rounds += 1
        record.updated_at = _now()
        self.save(record)
        LOG.info("Issue %s state: %s -> %s", issue_id, previous, state)
        return record

    def record_failure(self, issue_id: str, event: str, error: str) -> IssueRecord:
        """Keep the current state and remember why the event failed."""
        record = self._load_or_new(issue_id)
        record.last_event = event
        record.last_error = error
        record.updated_at = _now()
        self.save(record)
        return record

    def list_by_state(self, state: str) -> list[IssueRecord]:
        """All records in the given state (e.g. issues still awaiting info)."""
        if not self._base_dir.is_dir():
            return []
        out = []
        for f in sorted(self._base_dir.glob("*.yaml")):
            record = self.load(f.stem)
            if record and record.state == state:
                out.append(record)
        return out

    async def atransition(self, issue_id: str, state: str, event: str, title: str | None = None) -> IssueRecord:
        return await asyncio.to_thread(self.transition, issue_id, state, event, title)

    async def arecord_failure(self, issue_id: str, event: str, error: str) -> IssueRecord:
        return await asyncio.to_thread(self.record_failure, issue_id, event, error)
