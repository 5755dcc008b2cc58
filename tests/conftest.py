"""Pytest configuration and fixtures."""

import random
import sys
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from campus_assistant.config import Settings  # noqa: E402
from campus_assistant.errors import ProviderError  # noqa: E402
from campus_assistant.models import Article, ArticleIntroduction  # noqa: E402
from campus_assistant.providers import GenerationProvider  # noqa: E402


def make_article(
    article_id: str,
    title: str,
    *,
    label: str = "",
    content: str = "",
    author: str = "测试作者",
) -> Article:
    """Build an article record the way the article backend returns it."""
    return Article(
        id=article_id,
        title=title,
        content=content,
        introduction=ArticleIntroduction(author=author, label=label, date="2024-03-01"),
    )


class FakeArticleStore:
    """In-memory article store that counts fetches."""

    def __init__(self, articles: Optional[List[Article]] = None) -> None:
        self.articles = list(articles or [])
        self.fetch_count = 0
        self.closed = False

    async def fetch_all(self) -> List[Article]:
        self.fetch_count += 1
        return list(self.articles)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure async backend."""
    return "asyncio"


@pytest.fixture
def settings():
    """Enabled, template-only settings with no stream pacing."""
    return Settings(
        service_enabled=True,
        llm_provider="template",
        stream_delay_min=0.0,
        stream_delay_max=0.0,
        environment="test",
    )


@pytest.fixture
def math_article():
    return make_article(
        "math-101",
        "高等数学复习笔记",
        label="数学 / 复习",
        content="整理了极限、导数与积分的常见题型和解题方法。",
        author="张老师",
    )


@pytest.fixture
def articles(math_article):
    """Small mixed corpus used by search and service tests."""
    return [
        math_article,
        make_article(
            "web-201",
            "前端开发入门指南",
            label="前端",
            content="介绍 HTML、CSS 与 JavaScript 的基础知识。",
        ),
        make_article(
            "life-301",
            "校园食堂探店",
            label="生活",
            content="盘点校园里好吃的窗口。",
        ),
    ]


@pytest.fixture
def article_store(articles):
    return FakeArticleStore(articles)


@pytest.fixture
def failing_provider():
    """Provider whose every call fails upstream."""
    provider = Mock(spec=GenerationProvider)
    provider.name = "deepseek"
    provider.generate = AsyncMock(
        side_effect=ProviderError(code="API_ERROR", message="DeepSeek API error: 500")
    )
    provider.aclose = AsyncMock()
    return provider


@pytest.fixture
def rng():
    return random.Random(42)
