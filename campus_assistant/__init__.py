"""Campus assistant package exports."""

from __future__ import annotations

from .api import create_app
from .config import Settings
from .models import Article, ChatRequest, ChatResponse, QueryResult, SearchResult
from .search import ArticleSearchEngine
from .service import AssistantService
from .store import ConversationStore
from .streaming import chunk_text

__all__ = [
    "Article",
    "ArticleSearchEngine",
    "AssistantService",
    "ChatRequest",
    "ChatResponse",
    "ConversationStore",
    "QueryResult",
    "SearchResult",
    "Settings",
    "chunk_text",
    "create_app",
]
