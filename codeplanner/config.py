"""Configuration loader for codeplanner."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import os
import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "codeplanner" / "config.yaml"

PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "openai": {
        "api_base": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "timeout_seconds": 60,
    },
    "anthropic": {
        "api_base": "https://api.anthropic.com/v1",
        "api_key_env": "ANTHROPIC_API_KEY",
        "api_version": "2023-06-01",
        "max_tokens": 4096,
        "timeout_seconds": 60,
    },
    "google": {
        "api_base": "https://generativelanguage.googleapis.com/v1beta",
        "api_key_env": "GOOGLE_AI_API_KEY",
        "max_output_tokens": 4096,
        "timeout_seconds": 60,
        "list_timeout_seconds": 10,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def load_config(path: Path | None = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        data = yaml.safe_load(DEFAULT_CONFIG_PATH.read_text()) or {}
    override_path = path or USER_CONFIG_PATH
    if override_path.exists():
        override = yaml.safe_load(override_path.read_text()) or {}
        data = _deep_merge(data, override)

    # Environment overrides - Server
    host = os.getenv("CODEPLANNER_HOST")
    if host:
        data.setdefault("server", {})["host"] = host
    port = _env_int("CODEPLANNER_PORT")
    if port is not None:
        data.setdefault("server", {})["port"] = port

    # Environment overrides - Logging and audit
    level = os.getenv("CODEPLANNER_LOG_LEVEL")
    if level:
        data.setdefault("logging", {})["level"] = level.upper()
    audit_path = os.getenv("CODEPLANNER_AUDIT_PATH")
    if audit_path:
        data.setdefault("audit", {})["path"] = audit_path

    # Environment overrides - Rate limiting
    max_requests = _env_int("CODEPLANNER_RATE_LIMIT")
    if max_requests is not None:
        data.setdefault("rate_limit", {})["max_requests"] = max_requests
    window = _env_int("CODEPLANNER_RATE_WINDOW")
    if window is not None:
        data.setdefault("rate_limit", {})["window_seconds"] = window

    # Environment overrides - Provider call timeout (applies to every provider)
    timeout = _env_int("CODEPLANNER_PROVIDER_TIMEOUT")
    if timeout is not None:
        providers = data.setdefault("providers", {})
        for provider_id in PROVIDER_DEFAULTS:
            providers.setdefault(provider_id, {})["timeout_seconds"] = timeout

    github_base = os.getenv("GITHUB_API_BASE")
    if github_base:
        data.setdefault("github", {})["api_base"] = github_base

    return data


@dataclass
class Config:
    raw: Dict[str, Any]

    @property
    def server(self) -> Dict[str, Any]:
        return self.raw.get("server", {}) or {}

    @property
    def host(self) -> str:
        return str(self.server.get("host", "127.0.0.1"))

    @property
    def port(self) -> int:
        return int(self.server.get("port", 8095))

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging", {}) or {}).get("level", "INFO")).upper()

    @property
    def limits(self) -> Dict[str, Any]:
        return self.raw.get("limits", {}) or {}

    @property
    def max_total_chars(self) -> int:
        return int(self.limits.get("max_total_chars", 220_000))

    @property
    def max_file_chars(self) -> int:
        return int(self.limits.get("max_file_chars", 30_000))

    @property
    def load_concurrency(self) -> int:
        return max(1, int(self.limits.get("load_concurrency", 4)))

    @property
    def max_candidates(self) -> int:
        return int(self.limits.get("max_candidates", 25))

    @property
    def commit_batch_size(self) -> int:
        return max(1, int(self.limits.get("commit_batch_size", 5)))

    @property
    def max_user_message_chars(self) -> int:
        return int(self.limits.get("max_user_message_chars", 10_000))

    @property
    def max_system_prompt_chars(self) -> int:
        return int(self.limits.get("max_system_prompt_chars", 20_000))

    @property
    def rate_limit(self) -> Dict[str, Any]:
        return self.raw.get("rate_limit", {}) or {}

    @property
    def github(self) -> Dict[str, Any]:
        return self.raw.get("github", {}) or {}

    @property
    def github_api_base(self) -> str:
        return str(self.github.get("api_base") or "https://api.github.com")

    @property
    def github_token(self) -> str | None:
        env_name = str(self.github.get("token_env") or "GITHUB_TOKEN")
        return os.getenv(env_name) or None

    @property
    def models(self) -> Dict[str, Any]:
        return self.raw.get("models", {}) or {}

    def provider(self, provider_id: str) -> Dict[str, Any]:
        """Settings for one provider, layered over the built-in defaults."""
        configured = (self.raw.get("providers", {}) or {}).get(provider_id, {}) or {}
        return _deep_merge(PROVIDER_DEFAULTS.get(provider_id, {}), configured)

    @property
    def audit_path(self) -> Path | None:
        path = (self.raw.get("audit", {}) or {}).get("path")
        return Path(path).expanduser() if path else None


def get_config() -> Config:
    return Config(load_config())
