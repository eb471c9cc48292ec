"""OpenAI chat completions client (separate system and user roles)."""
from __future__ import annotations

import os

from codeplanner.models.base import CompletionResult, empty_completion, post_json


class OpenAIClient:
    label = "OpenAI"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def complete(self, system: str, user: str, model: str) -> CompletionResult:
        if not self.api_key:
            return CompletionResult(ok=False, error="OPENAI_API_KEY missing")

        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload, result = await post_json(
            self.label, f"{self.base_url}/chat/completions", body, headers=headers, timeout=self.timeout
        )
        if payload is None:
            return result

        choices = payload.get("choices") or []
        if not choices:
            return empty_completion(self.label, "no choices", result.duration_ms)
        content = ((choices[0] or {}).get("message") or {}).get("content")
        if not content or not isinstance(content, str):
            return empty_completion(self.label, "empty or invalid content", result.duration_ms)
        result.text = content
        return result
