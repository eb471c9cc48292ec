"""Validate raw request bodies into typed pipeline requests.

Every check here runs before any stage starts; failures raise ValidationError.
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from codeplanner.errors import ValidationError
from codeplanner.models.catalog import PROVIDER_IDS
from codeplanner.pipeline.agents import normalize_roles
from codeplanner.pipeline.types import (
    AgentRequest,
    ModelSelection,
    PipelineRequest,
    StageModel,
    empty_selection,
)
from codeplanner.sanitizer import validate_length

MAX_USER_MESSAGE_CHARS = 10_000
MAX_SYSTEM_PROMPT_CHARS = 20_000


def _required_str(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing or invalid '{key}' field")
    return value


def _providers(body: Dict[str, Any]) -> Tuple[str, ...]:
    providers = body.get("providers")
    if not isinstance(providers, list) or not providers:
        raise ValidationError("Missing or invalid 'providers' array")
    invalid = [str(p) for p in providers if p not in PROVIDER_IDS]
    if invalid:
        raise ValidationError(f"Invalid providers: {', '.join(invalid)}")
    return tuple(providers)


def _repo(body: Dict[str, Any]) -> str:
    repo = _required_str(body, "repo").strip()
    parts = repo.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValidationError("Invalid repo format, expected 'owner/name'")
    return repo


def _selection(body: Dict[str, Any]) -> ModelSelection:
    raw = body.get("selected_models")
    selection = empty_selection()
    if raw is None:
        return selection
    if not isinstance(raw, dict):
        raise ValidationError("Invalid 'selected_models' field")
    for provider_id in PROVIDER_IDS:
        value = raw.get(provider_id)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Invalid model selection for {provider_id}")
        selection[provider_id] = value or None
    return selection


def _stage(settings: Dict[str, Any], key: str) -> StageModel:
    raw = settings.get(key)
    if raw is None:
        return StageModel()
    if not isinstance(raw, dict):
        raise ValidationError(f"Invalid pipeline setting '{key}'")
    provider = raw.get("provider") or "openai"
    if provider not in PROVIDER_IDS:
        raise ValidationError(f"Invalid providers: {provider}")
    model_id = raw.get("model_id")
    if model_id is not None and not isinstance(model_id, str):
        raise ValidationError(f"Invalid model id for '{key}'")
    return StageModel(provider=provider, model_id=model_id or None)


def _common(body: Any, max_user_message: int, max_system_prompt: int) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    repo = _repo(body)
    branch = _required_str(body, "branch")
    system_prompt = _required_str(body, "system_prompt")
    user_message = _required_str(body, "user_message")
    providers = _providers(body)
    validate_length(user_message, max_user_message)
    validate_length(system_prompt, max_system_prompt)
    return {
        "repo": repo,
        "branch": branch,
        "system_prompt": system_prompt,
        "user_message": user_message.strip(),
        "providers": providers,
        "selected_models": _selection(body),
    }


def parse_pipeline_request(
    body: Any,
    max_user_message: int = MAX_USER_MESSAGE_CHARS,
    max_system_prompt: int = MAX_SYSTEM_PROMPT_CHARS,
) -> PipelineRequest:
    fields = _common(body, max_user_message, max_system_prompt)
    settings = body.get("pipeline") or {}
    if not isinstance(settings, dict):
        raise ValidationError("Invalid 'pipeline' field")
    return PipelineRequest(
        improver=_stage(settings, "prompt_improver"),
        consolidator=_stage(settings, "consolidator"),
        **fields,
    )


def parse_agent_request(
    body: Any,
    max_user_message: int = MAX_USER_MESSAGE_CHARS,
    max_system_prompt: int = MAX_SYSTEM_PROMPT_CHARS,
) -> AgentRequest:
    fields = _common(body, max_user_message, max_system_prompt)
    scope = body.get("scope")
    if scope is not None and not isinstance(scope, str):
        raise ValidationError("Invalid 'scope' field")
    agents = body.get("agents")
    if agents is not None and (
        not isinstance(agents, list) or not all(isinstance(a, str) for a in agents)
    ):
        raise ValidationError("Invalid 'agents' field")
    return AgentRequest(
        scope=scope,
        roles=normalize_roles(agents),
        include_confidence=bool(body.get("include_confidence", False)),
        **fields,
    )
