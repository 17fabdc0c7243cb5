"""Knowledge base accessor: team routing rules and the authoritative label set.

Documents are cached process-wide for ``cache_ttl`` seconds; a missing or
unparseable document is an operator error and raises ConfigurationMissing.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Tuple

from triager.knowledge.store import KeyValueStore
from triager.models import LabelKnowledgeBase, TeamKnowledgeBase

LOG = logging.getLogger("triager.knowledge")

TEAM_KB_KEY = "team_rules.json"
LABEL_KB_KEY = "labels.json"


class ConfigurationMissing(Exception):
    """Raised when a required knowledge base entry is absent or unreadable."""

    def __init__(self, key: str, reason: str = "not found") -> None:
        super().__init__(f"Knowledge base entry {key!r} {reason}")
        self.key = key


def filter_label_ids(label_kb: LabelKnowledgeBase, candidates: Iterable[str]) -> List[str]:
    """Keep only ids present in the label KB, preserving input order.

    Returns an empty list when the label KB is malformed.
    """
    if not label_kb.is_valid:
        LOG.error("Invalid label knowledge base structure: %s", json.dumps(label_kb.raw, default=str)[:500])
        return []
    valid = label_kb.label_ids()
    return [label_id for label_id in candidates if label_id in valid]


class KnowledgeBase:
    """Loads and caches the team and label knowledge bases."""

    def __init__(
        self,
        store: KeyValueStore,
        team_key: str = TEAM_KB_KEY,
        label_key: str = LABEL_KB_KEY,
        cache_ttl: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._team_key = team_key
        self._label_key = label_key
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Any]] = {}

    async def _load_document(self, key: str) -> Any:
        if self._cache_ttl > 0:
            cached = self._cache.get(key)
            if cached is not None and self._clock() - cached[0] < self._cache_ttl:
                return cached[1]
        raw = await self._store.get(key)
        if not raw:
            raise ConfigurationMissing(key)
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationMissing(key, f"is not valid JSON: {e}") from e
        if self._cache_ttl > 0:
            self._cache[key] = (self._clock(), document)
        return document

    def invalidate(self) -> None:
        """Drop cached documents; the next load reads the store again."""
        self._cache.clear()

    async def load_team_kb(self) -> TeamKnowledgeBase:
        """Load team routing rules."""
        return TeamKnowledgeBase.from_document(await self._load_document(self._team_key))

    async def load_label_kb(self) -> LabelKnowledgeBase:
        """Load the authoritative label set."""
        return LabelKnowledgeBase.from_document(await self._load_document(self._label_key))

    async def validate_label_ids(self, candidates: Iterable[str]) -> List[str]:
        """Filter candidate label ids down to ones present in the label KB."""
        return filter_label_ids(await self.load_label_kb(), candidates)
