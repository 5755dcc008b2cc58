"""Topic detection and confidence scoring."""

from __future__ import annotations

from typing import Optional

from .knowledge import KnowledgeBase, get_knowledge_base

BASE_CONFIDENCE = 0.3
KEYWORD_BONUS = 0.15
MAX_LENGTH_BONUS = 0.2
LENGTH_BONUS_DIVISOR = 500
MAX_CONFIDENCE = 0.95
EMPTY_QUERY_CONFIDENCE = 1.0


class TopicClassifier:
    """Maps a query to the first topic whose trigger terms it contains."""

    def __init__(self, knowledge: Optional[KnowledgeBase] = None) -> None:
        self.knowledge = knowledge or get_knowledge_base()

    @property
    def default_topic(self) -> str:
        return self.knowledge.default_topic

    def classify(self, query: str) -> str:
        lowered = query.lower()
        for topic, keywords in self.knowledge.topics.items():
            if any(keyword.lower() in lowered for keyword in keywords):
                return topic
        return self.knowledge.default_topic


class ConfidenceScorer:
    """Scores how strongly a query supports its detected topic.

    ``0.3 + 0.15 per matched trigger + min(0.2, len/500)``, capped at 0.95.
    Longer questions tend to be more specific, hence the length bonus.
    """

    def __init__(self, knowledge: Optional[KnowledgeBase] = None) -> None:
        self.knowledge = knowledge or get_knowledge_base()

    def match_count(self, query: str, topic: str) -> int:
        lowered = query.lower()
        return sum(
            1 for keyword in self.knowledge.topic_keywords(topic) if keyword.lower() in lowered
        )

    def score(self, query: str, topic: str) -> float:
        keyword_bonus = self.match_count(query, topic) * KEYWORD_BONUS
        length_bonus = min(MAX_LENGTH_BONUS, len(query) / LENGTH_BONUS_DIVISOR)
        return min(MAX_CONFIDENCE, BASE_CONFIDENCE + keyword_bonus + length_bonus)


__all__ = [
    "ConfidenceScorer",
    "EMPTY_QUERY_CONFIDENCE",
    "TopicClassifier",
]
