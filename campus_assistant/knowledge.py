"""Loader for the static topic, keyword and synonym tables."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Set, Tuple

import yaml

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_KNOWLEDGE_FILE = DATA_DIR / "knowledge.yaml"


@dataclass(frozen=True)
class SearchTriggers:
    """Cheap lexical signals that a query is worth an article search."""

    terms: Tuple[str, ...]
    patterns: Tuple[str, ...]
    question_markers: Tuple[str, ...]
    question_min_length: int


@dataclass(frozen=True)
class KnowledgeBase:
    """Immutable view over the tables in ``knowledge.yaml``.

    ``topics`` keeps the file order, which is the classification tie-break.
    ``synonyms`` is symmetric: if ``a`` lists ``b`` then ``b`` lists ``a``.
    """

    default_topic: str
    topics: Mapping[str, Tuple[str, ...]]
    contexts: Mapping[str, str]
    important_terms: Tuple[str, ...]
    synonyms: Mapping[str, FrozenSet[str]]
    search: SearchTriggers

    def topic_keywords(self, topic: str) -> Tuple[str, ...]:
        return self.topics.get(topic, ())

    def context_for(self, topic: str) -> str:
        return self.contexts.get(topic) or self.contexts.get(self.default_topic, "")

    def are_synonyms(self, first: str, second: str) -> bool:
        if first == second:
            return True
        return second in self.synonyms.get(first, frozenset())


def build_synonyms(groups: Mapping[str, Iterable[str]]) -> Mapping[str, FrozenSet[str]]:
    """Close the declared synonym lists under reversal."""
    table: Dict[str, Set[str]] = {}
    for term, equivalents in groups.items():
        for other in equivalents:
            if other == term:
                continue
            table.setdefault(term, set()).add(other)
            table.setdefault(other, set()).add(term)
    return MappingProxyType({term: frozenset(others) for term, others in table.items()})


def load_knowledge_base(path: Optional[Path] = None) -> KnowledgeBase:
    """Parse a knowledge YAML file into a :class:`KnowledgeBase`.

    Raises:
        FileNotFoundError: when the file does not exist.
        ValueError: when the file is not valid YAML or lacks the topic table.
    """
    source = Path(path) if path else DEFAULT_KNOWLEDGE_FILE
    try:
        with open(source, "r", encoding="utf-8") as handle:
            raw: Dict[str, Any] = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Knowledge file not found: {source}")
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in knowledge file: {exc}")

    topics_raw = raw.get("topics") or {}
    if not topics_raw:
        raise ValueError(f"Knowledge file {source} defines no topics")

    default_topic = str(raw.get("default_topic", "general"))
    topics = MappingProxyType(
        {str(topic): tuple(str(word) for word in words or ()) for topic, words in topics_raw.items()}
    )
    contexts = MappingProxyType(
        {str(topic): str(text) for topic, text in (raw.get("contexts") or {}).items()}
    )
    search_raw = raw.get("search") or {}

    return KnowledgeBase(
        default_topic=default_topic,
        topics=topics,
        contexts=contexts,
        important_terms=tuple(str(term) for term in raw.get("important_terms") or ()),
        synonyms=build_synonyms(
            {str(k): [str(v) for v in values or ()] for k, values in (raw.get("synonyms") or {}).items()}
        ),
        search=SearchTriggers(
            terms=tuple(str(term) for term in search_raw.get("triggers") or ()),
            patterns=tuple(str(term) for term in search_raw.get("patterns") or ()),
            question_markers=tuple(str(term) for term in search_raw.get("question_markers") or ()),
            question_min_length=int(search_raw.get("question_min_length", 10)),
        ),
    )


@lru_cache(maxsize=1)
def get_knowledge_base() -> KnowledgeBase:
    """Return the packaged knowledge base, loading it on first use."""
    return load_knowledge_base()


__all__ = [
    "KnowledgeBase",
    "SearchTriggers",
    "build_synonyms",
    "get_knowledge_base",
    "load_knowledge_base",
]
