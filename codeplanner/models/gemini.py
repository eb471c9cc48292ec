"""Google Generative Language client.

The generateContent request used here has no system role, so the system and
user text are concatenated into a single user part.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, List

import httpx

from codeplanner.models.base import CompletionResult, empty_completion, post_json

logger = logging.getLogger(__name__)

_EXCLUDED_NAME_PARTS = ("deprecated", "realtime")


def _family_rank(model_id: str) -> int:
    if model_id.startswith("gemini-2"):
        return 0
    if model_id.startswith("gemini-1.5"):
        return 1
    return 2


class GeminiClient:
    """Native Gemini API client using httpx."""

    label = "Google AI"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_output_tokens: int = 4096,
        timeout: float = 60.0,
        list_timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GOOGLE_AI_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.list_timeout = list_timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def complete(self, system: str, user: str, model: str) -> CompletionResult:
        if not self.api_key:
            return CompletionResult(ok=False, error="GOOGLE_AI_API_KEY missing")

        url = f"{self.base_url}/models/{model}:generateContent?key={self.api_key}"
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": f"System: {system}\n\nUser: {user}"}]}],
            "generationConfig": {"maxOutputTokens": self.max_output_tokens},
        }
        payload, result = await post_json(self.label, url, body, timeout=self.timeout)
        if payload is None:
            return result

        candidates = payload.get("candidates") or []
        if not candidates:
            return empty_completion(self.label, "no candidates", result.duration_ms)
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        text = (parts[0] or {}).get("text") if parts else None
        if not text or not isinstance(text, str):
            return empty_completion(self.label, "empty or invalid content", result.duration_ms)
        result.text = text
        return result

    async def list_models(self) -> List[Dict[str, str]]:
        """List generateContent-capable Gemini models, newest families first.

        Raises httpx errors (including timeouts) to the caller, which decides
        whether to fall back to the catalog default.
        """
        if not self.api_key:
            raise RuntimeError("GOOGLE_AI_API_KEY missing")
        async with httpx.AsyncClient(timeout=self.list_timeout) as client:
            resp = await asyncio.wait_for(
                client.get(f"{self.base_url}/models", params={"key": self.api_key}),
                self.list_timeout,
            )
            resp.raise_for_status()
            data = resp.json()

        models: List[Dict[str, str]] = []
        for item in data.get("models") or []:
            name = str(item.get("name") or "")
            methods = item.get("supportedGenerationMethods") or []
            if "gemini" not in name or "generateContent" not in methods:
                continue
            if any(part in name for part in _EXCLUDED_NAME_PARTS):
                continue
            model_id = name.replace("models/", "", 1)
            models.append({"id": model_id, "name": str(item.get("displayName") or model_id)})
        # Reverse-lexicographic inside each family puts later versions first.
        models.sort(key=lambda m: m["id"], reverse=True)
        models.sort(key=lambda m: _family_rank(m["id"]))
        logger.debug("Listed %d Gemini models", len(models))
        return models
