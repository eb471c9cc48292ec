"""Shared result type and HTTP helper for LLM provider clients."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import asyncio
import time

import httpx


@dataclass
class CompletionResult:
    """Result from a provider call. Clients report failures here instead of raising."""
    text: str = ""
    ok: bool = True
    error: str | None = None
    duration_ms: float = 0.0
    timed_out: bool = False
    empty: bool = False
    status_code: int | None = None


async def post_json(
    label: str,
    url: str,
    body: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 60.0,
) -> tuple[Dict[str, Any] | None, CompletionResult | None]:
    """POST ``body`` and return ``(payload, None)`` or ``(None, failed_result)``.

    The timeout bounds the whole exchange, not each socket operation.
    """
    start = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await asyncio.wait_for(client.post(url, json=body, headers=headers), timeout)
    except (httpx.TimeoutException, asyncio.TimeoutError):
        return None, CompletionResult(
            ok=False,
            error=f"{label} request timeout after {timeout:g}s",
            duration_ms=(time.perf_counter() - start) * 1000,
            timed_out=True,
        )
    except httpx.HTTPError as exc:
        return None, CompletionResult(
            ok=False,
            error=f"{label} request failed: {exc}",
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    duration_ms = (time.perf_counter() - start) * 1000
    if response.status_code != 200:
        return None, CompletionResult(
            ok=False,
            error=f"{label} error: {response.status_code} - {response.text[:500]}",
            duration_ms=duration_ms,
            status_code=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError:
        return None, CompletionResult(
            ok=False,
            error=f"{label} returned a non-JSON body",
            duration_ms=duration_ms,
            status_code=response.status_code,
            empty=True,
        )
    if not isinstance(payload, dict):
        return None, CompletionResult(
            ok=False,
            error=f"{label} returned an unexpected body",
            duration_ms=duration_ms,
            status_code=response.status_code,
            empty=True,
        )
    return payload, CompletionResult(duration_ms=duration_ms, status_code=response.status_code)


def empty_completion(label: str, reason: str, duration_ms: float) -> CompletionResult:
    return CompletionResult(ok=False, error=f"{label} returned {reason}", duration_ms=duration_ms, empty=True)
