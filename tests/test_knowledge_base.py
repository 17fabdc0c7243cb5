"""Tests for the knowledge base accessor and key-value stores."""

import asyncio
import json
from pathlib import Path

import pytest

from triager.knowledge import (
    ConfigurationMissing,
    FileKeyValueStore,
    KnowledgeBase,
    MemoryKeyValueStore,
    filter_label_ids,
)
from triager.models import LabelKnowledgeBase, TeamKnowledgeBase

LABELS = {"data": {"issueLabels": {"nodes": [{"id": "L1", "name": "Bug"}, {"id": "L2", "name": "Feature"}]}}}
TEAMS = {
    "T1": {"name": "Platform", "keywords": ["deploy"], "domains": ["backend"]},
    "T2": {"name": "Web", "keywords": ["css"]},
}


def _store(**docs: object) -> MemoryKeyValueStore:
    store = MemoryKeyValueStore()
    for key, doc in docs.items():
        store.put(f"{key}.json", doc if isinstance(doc, str) else json.dumps(doc))
    return store


class TestLoad:
    def test_loads_both_documents(self) -> None:
        kb = KnowledgeBase(_store(team_rules=TEAMS, labels=LABELS))
        team_kb = asyncio.run(kb.load_team_kb())
        label_kb = asyncio.run(kb.load_label_kb())
        assert set(team_kb.teams) == {"T1", "T2"}
        assert team_kb.teams["T1"].keywords == ["deploy"]
        assert team_kb.raw == TEAMS
        assert label_kb.label_ids() == {"L1", "L2"}

    def test_missing_document_raises_configuration_missing(self) -> None:
        kb = KnowledgeBase(_store(labels=LABELS))
        with pytest.raises(ConfigurationMissing) as exc:
            asyncio.run(kb.load_team_kb())
        assert exc.value.key == "team_rules.json"

    def test_invalid_json_raises_configuration_missing(self) -> None:
        kb = KnowledgeBase(_store(team_rules="{not json", labels=LABELS))
        with pytest.raises(ConfigurationMissing, match="not valid JSON"):
            asyncio.run(kb.load_team_kb())

    def test_malformed_team_rules_are_skipped(self) -> None:
        team_kb = TeamKnowledgeBase.from_document({"T1": {"name": "A"}, "T2": "oops"})
        assert list(team_kb.teams) == ["T1"]
        assert team_kb.has_team("T1")
        assert not team_kb.has_team("T2")


class TestCache:
    def test_cache_hit_within_ttl(self) -> None:
        now = [0.0]
        store = _store(team_rules=TEAMS, labels=LABELS)
        kb = KnowledgeBase(store, cache_ttl=60, clock=lambda: now[0])
        asyncio.run(kb.load_team_kb())
        store.put("team_rules.json", json.dumps({"T9": {"name": "New"}}))
        now[0] = 30.0
        assert set(asyncio.run(kb.load_team_kb()).teams) == {"T1", "T2"}
        now[0] = 61.0
        assert set(asyncio.run(kb.load_team_kb()).teams) == {"T9"}

    def test_zero_ttl_always_reads_store(self) -> None:
        store = _store(team_rules=TEAMS, labels=LABELS)
        kb = KnowledgeBase(store)
        asyncio.run(kb.load_team_kb())
        store.put("team_rules.json", json.dumps({"T9": {"name": "New"}}))
        assert set(asyncio.run(kb.load_team_kb()).teams) == {"T9"}

    def test_invalidate_drops_cache(self) -> None:
        store = _store(team_rules=TEAMS, labels=LABELS)
        kb = KnowledgeBase(store, cache_ttl=600)
        asyncio.run(kb.load_team_kb())
        store.put("team_rules.json", json.dumps({"T9": {"name": "New"}}))
        kb.invalidate()
        assert set(asyncio.run(kb.load_team_kb()).teams) == {"T9"}


class TestLabelValidation:
    def test_filters_unknown_ids_preserving_order(self) -> None:
        kb = KnowledgeBase(_store(team_rules=TEAMS, labels=LABELS))
        assert asyncio.run(kb.validate_label_ids(["L2", "X", "L1"])) == ["L2", "L1"]

    def test_empty_candidates(self) -> None:
        label_kb = LabelKnowledgeBase.from_document(LABELS)
        assert filter_label_ids(label_kb, []) == []

    def test_malformed_label_kb_returns_empty(self) -> None:
        label_kb = LabelKnowledgeBase.from_document({"labels": ["L1"]})
        assert not label_kb.is_valid
        assert filter_label_ids(label_kb, ["L1"]) == []

    def test_non_list_nodes_is_malformed(self) -> None:
        label_kb = LabelKnowledgeBase.from_document({"data": {"issueLabels": {"nodes": "L1"}}})
        assert not label_kb.is_valid


class TestFileKeyValueStore:
    def test_reads_file_by_key(self, tmp_path: Path) -> None:
        (tmp_path / "labels.json").write_text(json.dumps(LABELS), encoding="utf-8")
        store = FileKeyValueStore(tmp_path)
        assert json.loads(asyncio.run(store.get("labels.json"))) == LABELS

    def test_missing_key_returns_none(self, tmp_path: Path) -> None:
        assert asyncio.run(FileKeyValueStore(tmp_path).get("nope.json")) is None

    def test_key_outside_directory_rejected(self, tmp_path: Path) -> None:
        store = FileKeyValueStore(tmp_path / "kb")
        with pytest.raises(ValueError, match="escapes"):
            asyncio.run(store.get("../secrets.json"))

    def test_example_knowledge_base_is_valid(self) -> None:
        """The shipped kb.example documents load cleanly."""
        root = Path(__file__).resolve().parent.parent / "kb.example"
        kb = KnowledgeBase(FileKeyValueStore(root))
        assert asyncio.run(kb.load_team_kb()).teams
        assert asyncio.run(kb.load_label_kb()).is_valid
