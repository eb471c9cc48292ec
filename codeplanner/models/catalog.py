"""Model catalog: per-provider allowlists, defaults and model-id resolution."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
import logging

from codeplanner.errors import ValidationError

logger = logging.getLogger(__name__)

PROVIDER_IDS: Tuple[str, ...] = ("openai", "anthropic", "google")

# Chat-completions capable ids. The OpenAI inventory endpoint does not say which
# models accept chat requests, so the list is maintained by hand.
OPENAI_CHAT_MODELS: Tuple[Tuple[str, str], ...] = (
    ("gpt-4o", "GPT-4o"),
    ("gpt-4o-2024-05-13", "GPT-4o (2024-05-13)"),
    ("gpt-4o-mini", "GPT-4o Mini"),
    ("gpt-4o-mini-2024-07-18", "GPT-4o Mini (2024-07-18)"),
    ("gpt-4-turbo", "GPT-4 Turbo"),
    ("gpt-4-turbo-2024-04-09", "GPT-4 Turbo (2024-04-09)"),
    ("gpt-4-turbo-preview", "GPT-4 Turbo Preview"),
    ("gpt-4-0125-preview", "GPT-4 Turbo (2024-01-25)"),
    ("gpt-4-1106-preview", "GPT-4 Turbo (2023-11-06)"),
    ("gpt-4", "GPT-4"),
    ("gpt-4-0613", "GPT-4 (2023-06-13)"),
    ("gpt-4-0314", "GPT-4 (2023-03-14)"),
    ("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ("gpt-3.5-turbo-0125", "GPT-3.5 Turbo (2024-01-25)"),
    ("gpt-3.5-turbo-1106", "GPT-3.5 Turbo (2023-11-06)"),
    ("o1-preview", "O1 Preview"),
    ("o1-mini", "O1 Mini"),
    ("o3-mini", "O3 Mini"),
)

# Anthropic has no listing endpoint for these ids.
ANTHROPIC_MODELS: Tuple[Tuple[str, str], ...] = (
    ("claude-opus-4-1-20250805", "Claude Opus 4.1"),
    ("claude-opus-4-1", "Claude Opus 4.1 (alias)"),
    ("claude-opus-4-20250514", "Claude Opus 4.0"),
    ("claude-opus-4-0", "Claude Opus 4.0 (alias)"),
    ("claude-sonnet-4-20250514", "Claude Sonnet 4.0"),
    ("claude-sonnet-4-0", "Claude Sonnet 4.0 (alias)"),
    ("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet"),
    ("claude-3-7-sonnet-latest", "Claude 3.7 Sonnet (latest)"),
    ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
    ("claude-3-5-haiku-latest", "Claude 3.5 Haiku (latest)"),
    ("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet (latest)"),
    ("claude-3-opus-latest", "Claude 3 Opus (latest)"),
    ("claude-3-haiku-20240307", "Claude 3 Haiku"),
)

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-0",
    "google": "gemini-2.0-flash-exp",
}

# Google models are discovered at runtime, so any non-empty id is accepted.
OPEN_PROVIDERS: FrozenSet[str] = frozenset({"google"})


@dataclass
class ModelCatalog:
    """Immutable-after-construction allowlists and defaults for every provider.

    One instance is built per process (or per test) and injected wherever a
    model id must be resolved. There is no "current model" state: every
    outbound call resolves its own id through :meth:`resolve`.
    """

    cards: Dict[str, Tuple[Tuple[str, str], ...]]
    defaults: Dict[str, str]
    open_providers: FrozenSet[str] = field(default_factory=lambda: OPEN_PROVIDERS)

    @classmethod
    def from_config(cls, config: Dict[str, Any] | None = None) -> "ModelCatalog":
        config = config or {}
        cards: Dict[str, Tuple[Tuple[str, str], ...]] = {
            "openai": OPENAI_CHAT_MODELS,
            "anthropic": ANTHROPIC_MODELS,
            "google": (),
        }
        extra = config.get("extra_allowed") or {}
        for provider_id, model_ids in extra.items():
            if provider_id not in cards:
                logger.warning("Ignoring allowlist entries for unknown provider %s", provider_id)
                continue
            known = {model_id for model_id, _ in cards[provider_id]}
            added = tuple((str(m), str(m)) for m in (model_ids or []) if str(m) not in known)
            cards[provider_id] = cards[provider_id] + added
        defaults = dict(DEFAULT_MODELS)
        for provider_id, model_id in (config.get("defaults") or {}).items():
            if provider_id in defaults and model_id:
                defaults[provider_id] = str(model_id)
        return cls(cards=cards, defaults=defaults)

    def _require_provider(self, provider: str) -> None:
        if provider not in PROVIDER_IDS:
            raise ValidationError(f"Invalid providers: {provider}")

    def default_model(self, provider: str) -> str:
        self._require_provider(provider)
        return self.defaults[provider]

    def allowlist(self, provider: str) -> Tuple[str, ...]:
        self._require_provider(provider)
        return tuple(model_id for model_id, _ in self.cards.get(provider, ()))

    def list_models(self, provider: str) -> List[Dict[str, str]]:
        self._require_provider(provider)
        cards = self.cards.get(provider, ())
        if not cards:
            default = self.defaults[provider]
            return [{"id": default, "name": default}]
        return [{"id": model_id, "name": name} for model_id, name in cards]

    def validate(self, provider: str, requested: Optional[str]) -> str:
        self._require_provider(provider)
        if not requested:
            return self.defaults[provider]
        if provider in self.open_providers:
            return requested
        if requested in self.allowlist(provider):
            return requested
        logger.debug("Model %s not allowlisted for %s, using default", requested, provider)
        return self.defaults[provider]

    def resolve(
        self,
        provider: str,
        selection: Mapping[str, Optional[str]] | None,
        override: Optional[str] = None,
    ) -> str:
        requested = override if override is not None else (selection or {}).get(provider)
        return self.validate(provider, requested)
