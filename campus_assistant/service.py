"""Core assistant orchestration logic."""

from __future__ import annotations

import random
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence, Tuple

import structlog

from .config import Settings
from .errors import ConfigurationError, ProviderError, ValidationError
from .keywords import KeywordExtractor
from .knowledge import KnowledgeBase, get_knowledge_base
from .models import (
    Article,
    ConversationEntry,
    ConversationStats,
    ProviderMessage,
    QueryResult,
    SearchResult,
)
from .providers import GenerationProvider
from .search import ArticleSearchEngine
from .store import ConversationStore
from .templates import GUIDANCE_REPLY, TemplateResponder
from .topics import EMPTY_QUERY_CONFIDENCE, ConfidenceScorer, TopicClassifier

logger = structlog.get_logger(__name__)

DISABLED_REPLY = "LLM 服务当前已禁用。请联系管理员启用服务。"
MISSING_KEY_REPLY = "LLM 服务缺少 API 密钥配置。请联系管理员检查服务配置。"
UNSUPPORTED_PROVIDER_REPLY = "LLM 服务提供商配置无效。请联系管理员检查服务配置。"

TOPIC_LABELS = {
    "programming": "编程与软件开发",
    "ai": "人工智能与机器学习",
    "web": "Web 开发",
    "general": "学习与校园生活",
}
ARTICLE_SUMMARY_LENGTH = 200


class ArticleStore(Protocol):
    async def fetch_all(self) -> List[Article]:
        ...


def require_query(query: Optional[str]) -> str:
    """Reject a missing or empty query; whitespace-only input passes through."""
    if not query:
        raise ValidationError(code="QUERY_REQUIRED", message="Query is required")
    return query


class AssistantService:
    """Encapsulates query understanding, retrieval and reply generation."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        knowledge: Optional[KnowledgeBase] = None,
        article_store: Optional[ArticleStore] = None,
        provider: Optional[GenerationProvider] = None,
        conversations: Optional[ConversationStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.knowledge = knowledge or get_knowledge_base()
        self.extractor = KeywordExtractor(self.knowledge)
        self.classifier = TopicClassifier(self.knowledge)
        self.scorer = ConfidenceScorer(self.knowledge)
        self.search_engine = ArticleSearchEngine(knowledge=self.knowledge, extractor=self.extractor)
        self.responder = TemplateResponder(self.knowledge, rng=rng)
        self.article_store = article_store
        self.provider = provider
        self.conversations = conversations or ConversationStore()
        self.total_requests = 0

    async def aclose(self) -> None:
        """Close async resources."""
        if self.provider is not None:
            await self.provider.aclose()
        aclose = getattr(self.article_store, "aclose", None)
        if aclose is not None:
            await aclose()

    def ensure_available(self) -> None:
        """Raise ``ConfigurationError`` when requests must not be processed."""
        if not self.settings.service_enabled:
            raise ConfigurationError(code="SERVICE_DISABLED", message=DISABLED_REPLY)
        if self.settings.provider_enabled and not self.settings.deepseek_api_key:
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message=MISSING_KEY_REPLY,
                provider=self.settings.llm_provider,
            )
        if self.settings.provider_enabled and self.provider is None:
            raise ConfigurationError(
                code="UNSUPPORTED_PROVIDER",
                message=UNSUPPORTED_PROVIDER_REPLY,
                provider=self.settings.llm_provider,
            )

    # Business logic -----------------------------------------------------

    async def process_query(self, query: str, *, force_search: bool = False) -> QueryResult:
        """Answer one query and record it in the conversation ledger."""
        started = time.perf_counter()
        self.total_requests += 1

        if not query.strip():
            return QueryResult(
                reply=GUIDANCE_REPLY,
                topic=self.classifier.default_topic,
                confidence=EMPTY_QUERY_CONFIDENCE,
                processing_time=self._elapsed_ms(started),
                source="guidance",
            )

        topic = self.classifier.classify(query)
        confidence = self.scorer.score(query, topic)
        recommendations = await self.find_articles(query, force=force_search)

        messages = self.build_messages(query, topic, recommendations)
        reply, source = await self.generate_reply(query, topic, messages)
        if recommendations:
            reply += self.search_engine.format_recommendations(recommendations)

        entry = ConversationEntry(
            id=uuid.uuid4().hex,
            query=query,
            reply=reply,
            topic=topic,
            confidence=confidence,
            timestamp=datetime.now(timezone.utc),
        )
        await self.conversations.append(entry)

        processing_time = self._elapsed_ms(started)
        logger.info(
            "Query processed",
            request=self.total_requests,
            query=query[:50],
            topic=topic,
            confidence=confidence,
            source=source,
            recommendations=len(recommendations),
            processing_time=processing_time,
        )
        return QueryResult(
            reply=reply,
            topic=topic,
            confidence=confidence,
            processing_time=processing_time,
            recommendations=recommendations,
            source=source,
        )

    async def find_articles(
        self, query: str, *, force: bool = False, limit: Optional[int] = None
    ) -> List[SearchResult]:
        """Refresh the engine from the article store and search it."""
        if self.article_store is None or not self.settings.article_search_enabled:
            return []
        if not force and not self.search_engine.should_search(query):
            return []

        articles = await self.article_store.fetch_all()
        self.search_engine.update_articles(articles)
        return self.search_engine.search(query, limit or self.settings.article_search_limit)

    def build_messages(
        self, query: str, topic: str, recommendations: Sequence[SearchResult] = ()
    ) -> List[ProviderMessage]:
        """System instruction, recent turns, then the (augmented) query."""
        label = TOPIC_LABELS.get(topic, TOPIC_LABELS["general"])
        system = (
            f"你是一个专业的智能校园助手，擅长回答{label}相关的问题。"
            "请用简体中文给出清晰、准确、有条理的回答，必要时使用 Markdown 组织内容。"
        )
        if recommendations:
            system += "如果提供了相关文章，请在回答中自然地引用和推荐这些文章。"

        messages = [ProviderMessage(role="system", content=system)]
        for entry in self.conversations.recent(self.settings.context_turns):
            messages.append(ProviderMessage(role="user", content=entry.query))
            messages.append(ProviderMessage(role="assistant", content=entry.reply))

        content = query
        if recommendations:
            content += "\n\n以下是与问题相关的文章，请结合这些文章回答：\n"
            content += "\n".join(
                self._summarise(index, result)
                for index, result in enumerate(recommendations, start=1)
            )
        messages.append(ProviderMessage(role="user", content=content))
        return messages

    async def generate_reply(
        self, query: str, topic: str, messages: Sequence[ProviderMessage]
    ) -> Tuple[str, str]:
        """Return ``(reply, source)``; provider failures fall back to templates."""
        if self.provider is not None:
            try:
                result = await self.provider.generate(messages)
                return result.content, "provider"
            except ProviderError as exc:
                logger.error(
                    "Provider generation failed, using template",
                    error=exc.message,
                    code=exc.code,
                    provider=self.provider.name,
                )
            except Exception as exc:
                logger.error(
                    "Unexpected provider failure, using template",
                    error=str(exc),
                    provider=self.provider.name,
                )
        return self.responder.respond(query, topic), "template"

    # History ------------------------------------------------------------

    def conversation_history(self) -> List[ConversationEntry]:
        return self.conversations.history()

    async def clear_history(self) -> None:
        await self.conversations.clear()
        logger.info("Conversation history cleared")

    def stats(self) -> ConversationStats:
        """Ledger statistics plus the process-wide request counter."""
        return self.conversations.stats().model_copy(
            update={"total_requests": self.total_requests}
        )

    # Helpers ------------------------------------------------------------

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return max(0, int((time.perf_counter() - started) * 1000))

    @staticmethod
    def _summarise(index: int, result: SearchResult) -> str:
        article = result.article
        intro = article.introduction
        summary = article.content[:ARTICLE_SUMMARY_LENGTH]
        return f"{index}. 《{article.title}》（{intro.label}，作者：{intro.author}）：{summary}"


__all__ = [
    "AssistantService",
    "DISABLED_REPLY",
    "UNSUPPORTED_PROVIDER_REPLY",
    "require_query",
]
