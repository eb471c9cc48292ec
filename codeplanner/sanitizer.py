"""Defang untrusted text before it reaches a prompt, and recover JSON from LLM replies.

File contents pulled from a repository are attacker-controlled as far as the
model is concerned. ``sanitize_content`` rewrites role prefixes, strips special
tokens and redacts common instruction-override phrasings before the text is
placed into a prompt.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
import html
import json
import math
import re

from codeplanner.errors import PromptTooLongError, ValidationError

DEFAULT_MAX_CHARS = 30_000

_ROLE_PREFIX = re.compile(r"^(system|user|assistant|role):\s*", re.IGNORECASE | re.MULTILINE)
_SPECIAL_TOKEN = re.compile(r"<\|[^|]+\|>")
_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(previous|all|above)\s+(instructions?|prompts?|rules?)", re.IGNORECASE),
    re.compile(r"forget\s+(previous|all|above)\s+(instructions?|prompts?|rules?)", re.IGNORECASE),
    re.compile(r"you\s+are\s+now\s+(a|an)\s+", re.IGNORECASE),
    re.compile(r"new\s+instructions?:", re.IGNORECASE),
    re.compile(r"override:", re.IGNORECASE),
]


def sanitize_content(content: Any, max_length: int = DEFAULT_MAX_CHARS) -> str:
    if not content or not isinstance(content, str):
        return ""
    # Role prefixes are rewritten before phrase redaction so "system: override:" loses both.
    cleaned = _ROLE_PREFIX.sub("[ROLE]: ", content)
    cleaned = _SPECIAL_TOKEN.sub("", cleaned)
    for pattern in _INJECTION_PATTERNS:
        cleaned = pattern.sub("[REDACTED]", cleaned)
    return cleaned[:max(0, max_length)]


def validate_length(text: str, max_length: int) -> str:
    """Return ``text`` unchanged, raising PromptTooLongError when it is too long."""
    if not isinstance(text, str):
        raise ValidationError("Prompt must be a string")
    if len(text) > max_length:
        raise PromptTooLongError(max_length)
    return text


def safe_json_extract(text: Any) -> Optional[Any]:
    if not text or not isinstance(text, str):
        return None
    try:
        return json.loads(text)
    except ValueError:
        pass
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except ValueError:
        return None


def validate_improver_response(parsed: Any) -> Dict[str, Any] | None:
    """Keep only the well-typed fields of a prompt improver reply.

    The reply must be an object carrying ``improved_user_prompt`` and/or
    ``search``. Each field is accepted independently, so a reply with a valid
    prompt and a broken ``search`` block still yields the prompt.
    """
    if not isinstance(parsed, dict):
        return None
    if "improved_user_prompt" not in parsed and "search" not in parsed:
        return None

    result: Dict[str, Any] = {}
    prompt = parsed.get("improved_user_prompt")
    if isinstance(prompt, str):
        result["improved_user_prompt"] = prompt

    search = parsed.get("search")
    if isinstance(search, dict):
        accepted: Dict[str, Any] = {}
        keywords = search.get("keywords")
        if isinstance(keywords, list) and all(isinstance(k, str) for k in keywords):
            accepted["keywords"] = keywords
        max_files = search.get("max_files")
        if isinstance(max_files, (int, float)) and not isinstance(max_files, bool) and math.isfinite(max_files):
            accepted["max_files"] = max_files
        result["search"] = accepted
    return result


def escape_for_display(name: Any) -> str:
    if not name or not isinstance(name, str):
        return ""
    return html.escape(name, quote=True)
