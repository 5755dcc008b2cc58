"""Generation provider interface and the OpenAI-compatible implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
import structlog

from .clients import create_provider_client
from .config import Settings
from .errors import ConfigurationError, ProviderError
from .models import GenerationResult, GenerationUsage, ProviderMessage

logger = structlog.get_logger(__name__)


class GenerationProvider(ABC):
    """Base class for text generation providers."""

    name: str = "provider"
    model: str = ""

    @abstractmethod
    async def generate(self, messages: Sequence[ProviderMessage]) -> GenerationResult:
        """Generate a reply for an ordered chat transcript.

        Raises:
            ProviderError: on transport, auth, HTTP or empty-content failures.
        """

    async def aclose(self) -> None:
        """Release network resources."""


class DeepSeekProvider(GenerationProvider):
    """DeepSeek chat completions over its OpenAI-compatible HTTP API."""

    name = "deepseek"

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not settings.deepseek_api_key:
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="DeepSeek API key is required",
                provider=self.name,
            )
        self.settings = settings
        self.model = settings.deepseek_model
        self.base_url = settings.deepseek_base_url.rstrip("/")
        self.api_key = settings.deepseek_api_key
        self._owns_client = client is None
        self.client = client or create_provider_client(settings)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: Sequence[ProviderMessage]) -> dict:
        return {
            "model": self.model,
            "messages": [message.model_dump() for message in messages],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }

    async def generate(self, messages: Sequence[ProviderMessage]) -> GenerationResult:
        logger.debug(
            "DeepSeek API request",
            model=self.model,
            message_count=len(messages),
            max_tokens=self.settings.max_tokens,
        )
        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=self._payload(messages),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                code="API_ERROR",
                message=f"DeepSeek API error: {exc.response.status_code} {exc.response.text[:200]}",
                upstream_status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(code="NETWORK_ERROR", message=f"DeepSeek API error: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(
                code="INVALID_RESPONSE", message=f"DeepSeek API error: {exc}"
            ) from exc

        return self._parse_response(data)

    def _parse_response(self, data: dict) -> GenerationResult:
        choices = data.get("choices") or []
        choice = choices[0] if choices else {}
        content = (choice.get("message") or {}).get("content")
        if not content:
            raise ProviderError(code="EMPTY_CONTENT", message="No content in DeepSeek response")

        usage_raw = data.get("usage")
        usage = None
        if usage_raw:
            usage = GenerationUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        logger.debug(
            "DeepSeek API response",
            finish_reason=choice.get("finish_reason"),
            total_tokens=usage.total_tokens if usage else None,
        )
        return GenerationResult(
            content=content,
            model=data.get("model") or self.model,
            usage=usage,
            finish_reason=choice.get("finish_reason"),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


PROVIDERS = {
    "deepseek": DeepSeekProvider,
}


def create_provider(
    settings: Settings, *, client: Optional[httpx.AsyncClient] = None
) -> Optional[GenerationProvider]:
    """Instantiate the configured provider, or ``None`` in template-only mode.

    Raises:
        ConfigurationError: unknown provider name or missing credentials.
    """
    if not settings.provider_enabled:
        return None
    provider_cls = PROVIDERS.get(settings.llm_provider.lower())
    if provider_cls is None:
        raise ConfigurationError(
            code="UNSUPPORTED_PROVIDER",
            message=f"Unsupported AI provider: {settings.llm_provider}",
        )
    return provider_cls(settings, client=client)


__all__ = [
    "DeepSeekProvider",
    "GenerationProvider",
    "PROVIDERS",
    "create_provider",
]
