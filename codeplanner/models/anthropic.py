"""Anthropic messages client (system field plus user-only message list)."""
from __future__ import annotations

import os

from codeplanner.models.base import CompletionResult, empty_completion, post_json


class AnthropicClient:
    label = "Anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.anthropic.com/v1",
        api_version: str = "2023-06-01",
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def complete(self, system: str, user: str, model: str) -> CompletionResult:
        if not self.api_key:
            return CompletionResult(ok=False, error="ANTHROPIC_API_KEY missing")

        body = {
            "model": model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }
        payload, result = await post_json(
            self.label, f"{self.base_url}/messages", body, headers=headers, timeout=self.timeout
        )
        if payload is None:
            return result

        blocks = payload.get("content") or []
        if not blocks:
            return empty_completion(self.label, "no content", result.duration_ms)
        text = (blocks[0] or {}).get("text")
        if not text or not isinstance(text, str):
            return empty_completion(self.label, "empty or invalid content", result.duration_ms)
        result.text = text
        return result
