"""Integration tests for API endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from campus_assistant.api import APOLOGY_REPLY, create_app
from campus_assistant.service import DISABLED_REPLY, UNSUPPORTED_PROVIDER_REPLY
from campus_assistant.streaming import START_PLACEHOLDER
from campus_assistant.templates import GUIDANCE_REPLY

SCENARIO_C_QUERY = "请你为我检索一下所有可能的高等数学学习笔记"


def parse_events(body):
    frames = [frame for frame in body.split("\n\n") if frame]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: ") :]) for frame in frames]


@pytest.fixture
def app(settings, article_store, rng):
    return create_app(settings=settings, article_store=article_store, rng=rng)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class TestChatAPI:
    """Tests for POST /api/chat."""

    def test_chat(self, client):
        response = client.post("/api/chat", json={"query": "如何学习 React？"})
        assert response.status_code == 200
        data = response.json()
        assert data["topic"] == "programming"
        assert "4. **优化改进**" in data["reply"]
        assert 0.3 <= data["confidence"] <= 0.95
        assert data["processingTime"] >= 0
        assert "timestamp" in data

    def test_chat_with_recommendations(self, client):
        response = client.post("/api/chat", json={"query": SCENARIO_C_QUERY})
        assert response.status_code == 200
        assert "/smartcampus/articles/math-101" in response.json()["reply"]

    @pytest.mark.parametrize("payload", [{}, {"query": ""}, {"query": None}])
    def test_missing_query(self, client, payload):
        response = client.post("/api/chat", json=payload)
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Query is required"
        assert data["reply"] == GUIDANCE_REPLY

    @pytest.mark.parametrize(
        "body",
        [b"not json", b'{"query": 123}', b'["query"]'],
    )
    def test_malformed_body(self, client, body):
        response = client.post(
            "/api/chat", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Query is required"
        assert data["reply"] == GUIDANCE_REPLY
        assert "detail" not in data
        assert client.get("/api/chat/history").json()["count"] == 0

    def test_malformed_body_when_disabled(self, settings, article_store):
        settings.service_enabled = False
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post(
                "/api/chat", content=b"not json", headers={"Content-Type": "application/json"}
            )
        assert response.status_code == 503
        assert response.json()["reply"] == DISABLED_REPLY

    def test_unsupported_provider(self, settings, article_store):
        settings.llm_provider = "acme"
        settings.deepseek_api_key = "sk-test-1234567890"
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post("/api/chat", json={"query": "你好"})
            assert response.status_code == 503
            data = response.json()
            assert data["error"] == "Service not configured"
            assert data["reply"] == UNSUPPORTED_PROVIDER_REPLY
            assert client.get("/api/chat/history").json()["count"] == 0

    def test_whitespace_query(self, client):
        response = client.post("/api/chat", json={"query": "   "})
        assert response.status_code == 200
        assert response.json()["reply"] == GUIDANCE_REPLY
        assert response.json()["confidence"] == 1.0
        assert client.get("/api/chat/history").json()["count"] == 0

    def test_service_disabled(self, settings, article_store):
        settings.service_enabled = False
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post("/api/chat", json={"query": "你好"})
            assert response.status_code == 503
            assert response.json()["reply"] == DISABLED_REPLY
            assert client.get("/api/chat/history").json()["count"] == 0

    def test_missing_api_key(self, settings, article_store):
        settings.llm_provider = "deepseek"
        settings.deepseek_api_key = None
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post("/api/chat", json={"query": "你好"})
            assert response.status_code == 503
            assert response.json()["error"] == "Service not configured"

    def test_unexpected_error(self, app, client, monkeypatch):
        service = app.state.assistant_service

        async def explode(query, **kwargs):
            raise RuntimeError("database exploded")

        monkeypatch.setattr(service, "process_query", explode)
        response = client.post("/api/chat", json={"query": "你好"})
        assert response.status_code == 500
        data = response.json()
        assert data["reply"] == APOLOGY_REPLY
        assert data["detail"] == "database exploded"

    def test_unexpected_error_hides_detail_in_production(
        self, settings, article_store, monkeypatch
    ):
        settings.environment = "production"
        app = create_app(settings=settings, article_store=article_store)

        async def explode(query, **kwargs):
            raise RuntimeError("database exploded")

        monkeypatch.setattr(app.state.assistant_service, "process_query", explode)
        with TestClient(app) as client:
            response = client.post("/api/chat", json={"query": "你好"})
        assert response.status_code == 500
        assert "detail" not in response.json()

    def test_liveness(self, client):
        response = client.get("/api/chat")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestChatStreamAPI:
    """Tests for POST /api/chat-stream."""

    def test_stream(self, client):
        response = client.post("/api/chat-stream", json={"query": "如何学习 React？"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = parse_events(response.text)
        assert events[0] == {"type": "start", "content": START_PLACEHOLDER}
        assert events[-1]["type"] == "end"
        assert events[-1]["metadata"]["topic"] == "programming"
        reply = "".join(event["content"] for event in events[1:-1])
        assert "1. **分析需求**" in reply

        history = client.get("/api/chat/history").json()["history"]
        assert history[-1]["reply"] == reply

    def test_stream_missing_query(self, client):
        response = client.post("/api/chat-stream", json={})
        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/json")

    @pytest.mark.parametrize("body", [b"not json", b'{"query": 123}'])
    def test_stream_malformed_body(self, client, body):
        response = client.post(
            "/api/chat-stream", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["reply"] == GUIDANCE_REPLY

    def test_stream_malformed_body_when_disabled(self, settings, article_store):
        settings.service_enabled = False
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post(
                "/api/chat-stream",
                content=b"not json",
                headers={"Content-Type": "application/json"},
            )
        assert response.status_code == 503
        assert response.json()["reply"] == DISABLED_REPLY

    def test_stream_disabled(self, settings, article_store):
        settings.service_enabled = False
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.post("/api/chat-stream", json={"query": "你好"})
        assert response.status_code == 503


class TestHistoryAPI:
    """Tests for the history endpoints."""

    def test_history_and_clear(self, client):
        client.post("/api/chat", json={"query": "你好"})
        client.post("/api/chat", json={"query": "如何学习 React？"})

        data = client.get("/api/chat/history").json()
        assert data["count"] == 2
        assert [entry["query"] for entry in data["history"]] == ["你好", "如何学习 React？"]
        stats = data["stats"]
        assert stats["conversationCount"] == 2
        assert stats["totalRequests"] == 2
        assert stats["topicDistribution"] == {"general": 1, "programming": 1}
        assert stats["lastActivity"] is not None

        response = client.delete("/api/chat/history")
        assert response.status_code == 200
        assert response.json()["message"] == "Conversation history cleared"
        assert client.get("/api/chat/history").json()["count"] == 0


class TestDiagnosticsAPI:
    """Tests for status, configuration check and debug search endpoints."""

    def test_status(self, client):
        client.post("/api/chat", json={"query": "你好"})
        data = client.get("/api/chat/status").json()
        assert data["service"] == "Local LLM Chat Service"
        assert data["status"] == "online"
        assert data["version"] == "1.0.0"
        assert data["config"]["maxTokens"] == 2000
        assert data["statistics"]["conversationCount"] == 1
        assert data["uptime"] >= 0
        assert data["endpoints"]["chat"] == "/api/chat"

    def test_status_has_no_side_effects(self, client):
        client.get("/api/chat/status")
        assert client.get("/api/chat/history").json()["stats"]["totalRequests"] == 0

    def test_check_api_never_echoes_key(self, settings, article_store):
        settings.llm_provider = "deepseek"
        settings.deepseek_api_key = "sk-supersecretvalue"
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            response = client.get("/api/chat/check-api")
        assert response.status_code == 200
        assert "sk-supersecretvalue" not in response.text
        data = response.json()
        assert data["checks"]["apiKeys"]["deepseek"]["keyPreview"] == "sk-super..."
        assert data["initialization"]["success"] is True

    def test_check_api_without_key(self, settings, article_store):
        settings.llm_provider = "deepseek"
        with TestClient(create_app(settings=settings, article_store=article_store)) as client:
            data = client.get("/api/chat/check-api").json()
        assert data["checks"]["currentProvider"]["hasKey"] is False
        assert data["initialization"]["success"] is False
        assert any("DEEPSEEK_API_KEY" in tip for tip in data["recommendations"])

    def test_article_search_debug(self, client, article_store):
        response = client.post("/api/test-article-search", json={"query": SCENARIO_C_QUERY})
        data = response.json()
        assert data["success"] is True
        assert data["articlesCount"] == len(article_store.articles)
        assert data["shouldSearch"] is True
        assert data["searchResults"][0]["title"] == "高等数学复习笔记"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
