"""FastAPI application factory for the campus assistant."""

from __future__ import annotations

import random
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from .clients import HttpArticleStore
from .config import Settings
from .errors import AssistantError, ConfigurationError, ValidationError
from .logging import configure_logging
from .models import (
    ArticleSearchRequest,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HistoryResponse,
)
from .providers import GenerationProvider, create_provider
from .search import ArticleSearchEngine
from .service import ArticleStore, AssistantService, require_query
from .store import ConversationStore
from .streaming import stream_reply
from .templates import GUIDANCE_REPLY

logger = structlog.get_logger(__name__)

SERVICE_NAME = "Local LLM Chat Service"
SERVICE_VERSION = "1.0.0"
APOLOGY_REPLY = "抱歉，服务暂时不可用。请稍后再试，或者检查你的网络连接。"
DEBUG_SEARCH_LIMIT = 5

ERROR_TITLES = {
    "QUERY_REQUIRED": "Query is required",
    "SERVICE_DISABLED": "Service disabled",
    "MISSING_API_KEY": "Service not configured",
    "UNSUPPORTED_PROVIDER": "Service not configured",
}

FEATURES = [
    "Multi-topic conversation",
    "Context-aware responses",
    "Conversation history with statistics",
    "Real-time typing simulation",
    "Topic detection and confidence scoring",
    "Article search and recommendations",
    "Server-sent event streaming",
]

ENDPOINTS = {
    "chat": "/api/chat",
    "stream": "/api/chat-stream",
    "history": "/api/chat/history",
    "status": "/api/chat/status",
    "checkApi": "/api/chat/check-api",
    "articleSearch": "/api/test-article-search",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _error_payload(error: str, reply: str, detail: Optional[str] = None) -> dict:
    return ErrorResponse(error=error, reply=reply, timestamp=_now(), detail=detail).model_dump(
        mode="json", by_alias=True, exclude_none=True
    )


def _unexpected_error(settings: Settings, exc: Exception) -> JSONResponse:
    detail = None if settings.is_production else str(exc)
    return JSONResponse(
        status_code=500,
        content=_error_payload("Internal server error", APOLOGY_REPLY, detail),
    )


def _recommendations(settings: Settings, has_key: bool) -> list:
    tips = []
    if not settings.provider_enabled:
        tips.append("Provider disabled: replies are generated from templates only")
        return tips
    if not has_key:
        tips.append(
            f"Configure {settings.llm_provider.upper()} API key in environment variables"
        )
        tips.append("Set DEEPSEEK_API_KEY in the .env file")
        tips.append("Visit https://platform.deepseek.com/api_keys to get your API key")
    if not tips:
        tips.append("Configuration looks good! Your AI provider should be working.")
    return tips


def create_app(
    *,
    settings: Optional[Settings] = None,
    article_store: Optional[ArticleStore] = None,
    provider: Optional[GenerationProvider] = None,
    conversations: Optional[ConversationStore] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    cfg = settings or Settings()
    configure_logging(cfg.debug)

    store = article_store or HttpArticleStore(cfg)
    if provider is None and cfg.provider_enabled:
        try:
            provider = create_provider(cfg)
        except ConfigurationError as exc:
            logger.warning("Provider unavailable at startup", error=exc.message, code=exc.code)
    service = AssistantService(
        cfg,
        article_store=store,
        provider=provider,
        conversations=conversations or ConversationStore(),
        rng=rng,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await service.aclose()

    app = FastAPI(
        title="Campus Assistant",
        description="Conversational question answering with article recommendations",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.assistant_service = service
    app.state.article_store = store
    app.state.rng = rng or random.Random()
    app.state.started_at = time.monotonic()

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        reply = GUIDANCE_REPLY if isinstance(exc, ValidationError) else exc.message
        logger.warning(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=_error_payload(ERROR_TITLES.get(exc.code, exc.code), reply),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed chat bodies are answered like a missing query."""
        try:
            service.ensure_available()
        except ConfigurationError as unavailable:
            return await assistant_error_handler(request, unavailable)
        logger.warning(
            "Malformed request body", path=request.url.path, errors=len(exc.errors())
        )
        return JSONResponse(
            status_code=ValidationError.http_status,
            content=_error_payload(ERROR_TITLES["QUERY_REQUIRED"], GUIDANCE_REPLY),
        )

    # Chat ---------------------------------------------------------------

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest):
        """Answer a query with a single JSON response."""
        service.ensure_available()
        query = require_query(request.query)
        try:
            result = await service.process_query(query)
        except Exception as exc:
            logger.error("Chat request failed", error=str(exc))
            return _unexpected_error(cfg, exc)
        return ChatResponse(
            reply=result.reply,
            timestamp=_now(),
            topic=result.topic,
            confidence=result.confidence,
            processing_time=result.processing_time,
        )

    @app.get("/api/chat")
    async def chat_liveness():
        return {
            "status": "ok",
            "message": f"{SERVICE_NAME} is running",
            "timestamp": _now().isoformat(),
        }

    @app.post("/api/chat-stream")
    async def chat_stream(request: Request, payload: ChatRequest):
        """Answer a query as a server-sent event stream."""
        service.ensure_available()
        query = require_query(payload.query)
        events = stream_reply(
            lambda: service.process_query(query),
            delay_min=cfg.stream_delay_min,
            delay_max=cfg.stream_delay_max,
            is_disconnected=request.is_disconnected,
            rng=app.state.rng,
        )
        return StreamingResponse(
            events,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    # History and diagnostics --------------------------------------------

    @app.get("/api/chat/history", response_model=HistoryResponse)
    async def get_history():
        history = service.conversation_history()
        return HistoryResponse(
            history=history,
            stats=service.stats(),
            count=len(history),
            timestamp=_now(),
        )

    @app.delete("/api/chat/history")
    async def clear_history():
        await service.clear_history()
        return {"message": "Conversation history cleared", "timestamp": _now().isoformat()}

    @app.get("/api/chat/status")
    async def status():
        """Read-only service status, configuration echo and statistics."""
        return {
            "service": SERVICE_NAME,
            "status": "online" if cfg.service_enabled else "disabled",
            "version": SERVICE_VERSION,
            "config": {
                "enabled": cfg.service_enabled,
                "maxTokens": cfg.max_tokens,
                "temperature": cfg.temperature,
                "typingSpeed": cfg.typing_speed,
                "debug": cfg.debug,
                "provider": cfg.llm_provider,
                "articleSearch": cfg.article_search_enabled,
            },
            "features": FEATURES,
            "statistics": service.stats().model_dump(mode="json", by_alias=True),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "timestamp": _now().isoformat(),
            "endpoints": ENDPOINTS,
        }

    @app.get("/api/chat/check-api")
    async def check_api():
        """Report provider credential state without revealing the key."""
        has_key = bool(cfg.deepseek_api_key)
        initialization = {"success": False, "error": None}
        try:
            probe = create_provider(cfg)
            if probe is not None:
                await probe.aclose()
            initialization["success"] = True
        except ConfigurationError as exc:
            initialization["error"] = exc.message

        return {
            "message": "API Key Configuration Check",
            "checks": {
                "provider": cfg.llm_provider,
                "apiKeys": {
                    "deepseek": {"configured": has_key, "keyPreview": cfg.api_key_preview()}
                },
                "currentProvider": {
                    "name": cfg.llm_provider,
                    "hasKey": has_key,
                    "model": cfg.provider_model,
                },
            },
            "initialization": initialization,
            "recommendations": _recommendations(cfg, has_key),
            "timestamp": _now().isoformat(),
        }

    @app.post("/api/test-article-search")
    async def test_article_search(payload: ArticleSearchRequest):
        """Debug endpoint: run a forced article search for a query."""
        try:
            articles = await store.fetch_all()
            engine = ArticleSearchEngine(
                articles, knowledge=service.knowledge, extractor=service.extractor
            )
            should_search = engine.should_search(payload.query)
            results = engine.search(payload.query, DEBUG_SEARCH_LIMIT)
        except Exception as exc:
            logger.error("Article search test failed", error=str(exc))
            return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

        return {
            "success": True,
            "query": payload.query,
            "articlesCount": len(articles),
            "shouldSearch": should_search,
            "searchResults": [
                {
                    "id": result.article.id,
                    "title": result.article.title,
                    "label": result.article.introduction.label,
                    "author": result.article.introduction.author,
                    "score": result.relevance_score,
                    "matchedKeywords": result.matched_keywords,
                }
                for result in results
            ],
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME, "timestamp": _now().isoformat()}

    return app


__all__ = ["create_app"]
