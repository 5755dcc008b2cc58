"""Keyword-based article search."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from .keywords import KeywordExtractor
from .knowledge import KnowledgeBase, get_knowledge_base
from .models import Article, SearchResult

logger = structlog.get_logger(__name__)

RELEVANCE_THRESHOLD = 0.05
DEFAULT_SEARCH_LIMIT = 3
ARTICLE_LINK_PREFIX = "/smartcampus/articles"

TITLE_WEIGHT = 3
LABEL_WEIGHT = 2
CONTENT_WEIGHT = 1
MAX_FIELD_WEIGHT = TITLE_WEIGHT


class ArticleSearchEngine:
    """Scores an in-memory article collection against free-text queries.

    Each query keyword is credited once, for the highest priority field it
    matches (title 3, label 2, content 1). A keyword matches a field keyword
    when either contains the other or the two are declared synonyms. The
    final score is normalised by ``3 * len(query_keywords)``.
    """

    def __init__(
        self,
        articles: Optional[Iterable[Article]] = None,
        *,
        knowledge: Optional[KnowledgeBase] = None,
        extractor: Optional[KeywordExtractor] = None,
        threshold: float = RELEVANCE_THRESHOLD,
        link_prefix: str = ARTICLE_LINK_PREFIX,
    ) -> None:
        self.knowledge = knowledge or get_knowledge_base()
        self.extractor = extractor or KeywordExtractor(self.knowledge)
        self.threshold = threshold
        self.link_prefix = link_prefix.rstrip("/")
        self._articles: Tuple[Article, ...] = tuple(articles or ())

    @property
    def articles(self) -> Tuple[Article, ...]:
        return self._articles

    def update_articles(self, articles: Iterable[Article]) -> None:
        """Replace the whole collection."""
        self._articles = tuple(articles)

    # Gate ---------------------------------------------------------------

    def should_search(self, query: str) -> bool:
        """Cheap check for whether a query is worth searching articles for."""
        lowered = query.lower()
        triggers = self.knowledge.search

        direct_matches = [term for term in triggers.terms if term in lowered]
        pattern_matches = [pattern for pattern in triggers.patterns if pattern in lowered]
        is_question = any(marker in lowered for marker in triggers.question_markers)
        long_question = is_question and len(lowered) > triggers.question_min_length

        decision = bool(direct_matches or pattern_matches or long_question)
        logger.debug(
            "Article search gate evaluated",
            query=query[:50],
            direct_matches=direct_matches,
            pattern_matches=pattern_matches,
            is_question=is_question,
            should_search=decision,
        )
        return decision

    # Scoring ------------------------------------------------------------

    def _field_matches(self, word: str, field_keywords: Sequence[str]) -> bool:
        return any(
            candidate in word or word in candidate or self.knowledge.are_synonyms(word, candidate)
            for candidate in field_keywords
        )

    def score_article(
        self, query_keywords: Sequence[str], article: Article
    ) -> Tuple[float, List[str]]:
        """Return the normalised relevance score and the keywords that matched."""
        if not query_keywords:
            return 0.0, []

        fields = (
            (self.extractor.extract(article.title), TITLE_WEIGHT),
            (self.extractor.extract(article.introduction.label), LABEL_WEIGHT),
            (self.extractor.extract(article.content), CONTENT_WEIGHT),
        )

        total = 0
        matched: List[str] = []
        for word in query_keywords:
            for field_keywords, weight in fields:
                if self._field_matches(word, field_keywords):
                    total += weight
                    matched.append(word)
                    break

        score = total / (MAX_FIELD_WEIGHT * len(query_keywords))
        return min(1.0, max(0.0, score)), list(dict.fromkeys(matched))

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[SearchResult]:
        """Rank articles for ``query``; at most ``limit`` results above threshold."""
        if not query.strip():
            logger.debug("Empty query, skipping article search")
            return []
        if not self._articles:
            logger.debug("No articles available for search")
            return []
        if limit <= 0:
            return []

        query_keywords = self.extractor.extract(query)
        results: List[SearchResult] = []
        for article in self._articles:
            score, matched = self.score_article(query_keywords, article)
            if score > self.threshold:
                results.append(
                    SearchResult(article=article, relevance_score=score, matched_keywords=matched)
                )

        # sorted() is stable, so ties keep collection order.
        ranked = sorted(results, key=lambda item: item.relevance_score, reverse=True)[:limit]
        logger.info(
            "Article search completed",
            query=query[:50],
            keyword_count=len(query_keywords),
            candidates=len(self._articles),
            matches=len(results),
            returned=[
                {"id": item.article.id, "score": round(item.relevance_score, 3)} for item in ranked
            ],
        )
        return ranked

    # Rendering ----------------------------------------------------------

    def article_link(self, article: Article) -> str:
        return f"{self.link_prefix}/{article.id}"

    def format_recommendations(self, results: Sequence[SearchResult]) -> str:
        """Render results as a Markdown recommendation block ('' when empty)."""
        if not results:
            return ""

        lines = ["", "", "📚 **相关文章推荐**：", ""]
        for index, result in enumerate(results, start=1):
            article = result.article
            percent = int(result.relevance_score * 100 + 0.5)
            lines.extend(
                [
                    f"{index}. **{article.title}**",
                    f"   📝 {article.introduction.label}",
                    f"   👤 作者：{article.introduction.author}",
                    f"   🎯 匹配关键词：{', '.join(result.matched_keywords)}",
                    f"   📊 相关度：{percent}%",
                    f"   🔗 [点击查看文章]({self.article_link(article)})",
                    "",
                ]
            )
        return "\n".join(lines) + "\n"


__all__ = [
    "ArticleSearchEngine",
    "DEFAULT_SEARCH_LIMIT",
    "RELEVANCE_THRESHOLD",
]
