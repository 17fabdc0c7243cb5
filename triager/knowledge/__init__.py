"""Knowledge base: key-value stores and the team/label accessor."""

from triager.knowledge.base import (
    LABEL_KB_KEY,
    TEAM_KB_KEY,
    ConfigurationMissing,
    KnowledgeBase,
    filter_label_ids,
)
from triager.knowledge.store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore

__all__ = [
    "LABEL_KB_KEY",
    "TEAM_KB_KEY",
    "ConfigurationMissing",
    "FileKeyValueStore",
    "KeyValueStore",
    "KnowledgeBase",
    "MemoryKeyValueStore",
    "filter_label_ids",
]
