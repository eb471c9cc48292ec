"""Provider dispatch: one call contract over every LLM family."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol
import logging
import os

from codeplanner.config import Config
from codeplanner.errors import (
    EmptyCompletionError,
    ProviderTimeoutError,
    UpstreamProviderError,
    ValidationError,
)
from codeplanner.models.anthropic import AnthropicClient
from codeplanner.models.base import CompletionResult
from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.gemini import GeminiClient
from codeplanner.models.openai import OpenAIClient

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    async def complete(self, system: str, user: str, model: str) -> CompletionResult:
        ...


class LLMCaller(Protocol):
    """What the pipeline stages need from the provider layer."""

    async def call(self, provider: str, system: str, user: str, model_id: Optional[str]) -> str:
        ...


def raise_for_result(provider: str, result: CompletionResult) -> str:
    if result.ok:
        return result.text
    message = result.error or f"{provider} call failed"
    if result.timed_out:
        raise ProviderTimeoutError(provider, message)
    if result.empty:
        raise EmptyCompletionError(provider, message)
    raise UpstreamProviderError(provider, message)


class ProviderHub:
    def __init__(self, catalog: ModelCatalog, clients: Dict[str, CompletionClient]) -> None:
        self.catalog = catalog
        self.clients = clients

    @classmethod
    def from_config(cls, config: Config, catalog: ModelCatalog) -> "ProviderHub":
        def _key(settings: Dict[str, Any]) -> str:
            return os.environ.get(str(settings.get("api_key_env") or ""), "")

        openai_cfg = config.provider("openai")
        anthropic_cfg = config.provider("anthropic")
        google_cfg = config.provider("google")
        clients: Dict[str, CompletionClient] = {
            "openai": OpenAIClient(
                api_key=_key(openai_cfg),
                base_url=str(openai_cfg["api_base"]),
                timeout=float(openai_cfg["timeout_seconds"]),
            ),
            "anthropic": AnthropicClient(
                api_key=_key(anthropic_cfg),
                base_url=str(anthropic_cfg["api_base"]),
                api_version=str(anthropic_cfg["api_version"]),
                max_tokens=int(anthropic_cfg["max_tokens"]),
                timeout=float(anthropic_cfg["timeout_seconds"]),
            ),
            "google": GeminiClient(
                api_key=_key(google_cfg),
                base_url=str(google_cfg["api_base"]),
                max_output_tokens=int(google_cfg["max_output_tokens"]),
                timeout=float(google_cfg["timeout_seconds"]),
                list_timeout=float(google_cfg["list_timeout_seconds"]),
            ),
        }
        return cls(catalog, clients)

    async def call(self, provider: str, system: str, user: str, model_id: Optional[str]) -> str:
        client = self.clients.get(provider)
        if client is None:
            raise ValidationError(f"Unsupported provider: {provider}")
        model = self.catalog.validate(provider, model_id)
        result = await client.complete(system, user, model)
        logger.info(
            "provider call provider=%s model=%s ok=%s duration_ms=%.1f",
            provider,
            model,
            result.ok,
            result.duration_ms,
        )
        if not result.ok:
            logger.warning("provider %s failed: %s", provider, result.error)
        return raise_for_result(provider, result)
