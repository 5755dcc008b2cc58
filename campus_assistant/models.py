"""Domain and API models for the campus assistant."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArticleIntroduction(WireModel):
    """Byline block shown with every article."""

    author: str = ""
    date: str = Field(default="", alias="data")
    label: str = ""
    like_number: int = 0
    comment_number: int = 0


class Article(WireModel):
    """Article record owned by the external article store."""

    id: str
    title: str
    content: str = ""
    introduction: ArticleIntroduction = Field(default_factory=ArticleIntroduction)
    cover: Optional[str] = None


class SearchResult(WireModel):
    """Article hit with its lexical relevance score."""

    article: Article
    relevance_score: float
    matched_keywords: List[str] = []


class ConversationEntry(WireModel):
    """One processed exchange kept in the conversation ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    query: str
    reply: str
    topic: str
    confidence: float
    timestamp: datetime


class ConversationStats(WireModel):
    """Aggregates derived from the retained conversation entries."""

    total_requests: int = 0
    conversation_count: int = 0
    topic_distribution: Dict[str, int] = {}
    average_confidence: float = 0.0
    last_activity: Optional[datetime] = None


class QueryResult(WireModel):
    """Outcome of processing one query."""

    reply: str
    topic: str
    confidence: float
    processing_time: int
    recommendations: List[SearchResult] = []
    source: Literal["provider", "template", "guidance"] = "template"


class ProviderMessage(BaseModel):
    """Chat message sent to the generation provider."""

    role: Literal["system", "user", "assistant"]
    content: str


class GenerationUsage(WireModel):
    """Token accounting reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class GenerationResult(WireModel):
    """Provider reply normalised across vendors."""

    content: str
    model: str
    usage: Optional[GenerationUsage] = None
    finish_reason: Optional[str] = None


class ChatRequest(WireModel):
    """Incoming chat payload."""

    query: Optional[str] = None
    context: Optional[str] = None


class ChatResponse(WireModel):
    """Single-response chat envelope."""

    reply: str
    timestamp: datetime
    topic: Optional[str] = None
    confidence: Optional[float] = None
    processing_time: Optional[int] = None


class ErrorResponse(WireModel):
    """Error envelope; ``reply`` always carries a user-facing sentence."""

    error: str
    reply: str
    timestamp: datetime
    detail: Optional[str] = None


class StreamMetadata(WireModel):
    """Summary attached to the terminal ``end`` stream message."""

    topic: str
    confidence: float
    processing_time: int


class StreamMessage(WireModel):
    """One frame of the incremental delivery protocol."""

    type: Literal["start", "chunk", "end", "error"]
    content: Optional[str] = None
    metadata: Optional[StreamMetadata] = None


class HistoryResponse(WireModel):
    """Conversation history with its aggregate statistics."""

    history: List[ConversationEntry]
    stats: ConversationStats
    count: int
    timestamp: datetime


class ArticleSearchRequest(WireModel):
    """Payload of the article search debug endpoint."""

    query: str = ""
