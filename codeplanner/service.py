"""Review service: the two entry points behind rate-limit admission and auditing."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

import httpx

from codeplanner.audit import (
    AGENTS_COMPLETE,
    AGENTS_ERROR,
    AGENTS_START,
    PIPELINE_COMPLETE,
    PIPELINE_ERROR,
    PIPELINE_START,
    RATE_LIMIT_REJECTED,
    AuditLog,
)
from codeplanner.config import Config
from codeplanner.errors import EmptyReviewSetError, InvalidScopeError, RateLimitExceeded
from codeplanner.github import GitHubClient
from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller, ProviderHub
from codeplanner.pipeline.agents import AgentDispatcher
from codeplanner.pipeline.loader import LoadLimits, load_files
from codeplanner.pipeline.orchestrator import ProgressSink, StandardPipeline
from codeplanner.pipeline.request import parse_agent_request, parse_pipeline_request
from codeplanner.pipeline.scope import RepoSource, describe_scope, parse_scope, resolve_scope_files
from codeplanner.pipeline.types import (
    AgentRequest,
    AgentRunMeta,
    AgentRunResult,
    PipelineRequest,
    PipelineResult,
    Scope,
    file_paths,
)
from codeplanner.rate_limit import RateLimiter
from codeplanner.sanitizer import escape_for_display

logger = logging.getLogger(__name__)

SourceFactory = Callable[[str, str, Optional[str]], RepoSource]


class ReviewService:
    """Process-scoped wiring of catalog, limiter, providers and repository access.

    ``identity`` is the rate-limit key. Passing ``None`` skips admission, for
    callers that already admitted the request themselves.
    """

    def __init__(
        self,
        config: Config,
        catalog: ModelCatalog,
        limiter: RateLimiter,
        llm: LLMCaller,
        source_factory: SourceFactory,
        audit: AuditLog | None = None,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.limiter = limiter
        self.llm = llm
        self.source_factory = source_factory
        self.audit = audit
        self.limits = LoadLimits.from_config(config)

    @classmethod
    def from_config(cls, config: Config) -> "ReviewService":
        catalog = ModelCatalog.from_config(config.models)
        hub = ProviderHub.from_config(config, catalog)

        def _github(owner: str, repo: str, token: Optional[str]) -> RepoSource:
            return GitHubClient(owner, repo, token=token or config.github_token, api_base=config.github_api_base)

        audit = AuditLog(config.audit_path) if config.audit_path else None
        return cls(
            config=config,
            catalog=catalog,
            limiter=RateLimiter.from_config(config.rate_limit),
            llm=hub,
            source_factory=_github,
            audit=audit,
        )

    def _audit(self, event: str, data: Dict[str, Any]) -> None:
        if self.audit is not None:
            self.audit.log(event, data)

    def admit(self, identity: str) -> None:
        try:
            self.limiter.admit(identity)
        except RateLimitExceeded as exc:
            logger.warning("Rate limit exceeded for %s", identity)
            self._audit(RATE_LIMIT_REJECTED, {"identity": identity, "retry_after": exc.retry_after})
            raise

    def parse_pipeline(self, body: Any) -> PipelineRequest:
        return parse_pipeline_request(
            body,
            max_user_message=self.config.max_user_message_chars,
            max_system_prompt=self.config.max_system_prompt_chars,
        )

    async def run_standard_pipeline(
        self,
        body: Any,
        sink: ProgressSink | None = None,
        identity: str | None = None,
        token: str | None = None,
    ) -> PipelineResult:
        if identity is not None:
            self.admit(identity)
        request = body if isinstance(body, PipelineRequest) else self.parse_pipeline(body)
        self._audit(
            PIPELINE_START,
            {"repo": request.repo, "branch": request.branch, "providers": list(request.providers)},
        )
        pipeline = StandardPipeline(
            self.llm,
            self.catalog,
            self.source_factory(request.owner, request.name, token),
            self.limits,
        )
        try:
            result = await pipeline.run(request, sink)
        except Exception as exc:
            self._audit(PIPELINE_ERROR, {"repo": request.repo, "stage": pipeline.state, "error": str(exc)})
            raise
        self._audit(
            PIPELINE_COMPLETE,
            {
                "repo": request.repo,
                "selected_files": list(result.meta.selected_files),
                "warning": result.meta.warning,
            },
        )
        return result

    async def run_agent_review(
        self,
        body: Any,
        identity: str | None = None,
        token: str | None = None,
    ) -> AgentRunResult:
        if identity is not None:
            self.admit(identity)
        request = parse_agent_request(
            body,
            max_user_message=self.config.max_user_message_chars,
            max_system_prompt=self.config.max_system_prompt_chars,
        )
        scope = parse_scope(request.scope)
        description = describe_scope(scope)
        if scope.kind == "invalid":
            raise InvalidScopeError(
                f"Invalid scope: {scope.value}. Use a file path, glob pattern, commit count, or leave empty."
            )
        self._audit(AGENTS_START, {"repo": request.repo, "scope": description, "agents": list(request.roles)})
        try:
            result = await self._run_agents(request, scope, description, token)
        except Exception as exc:
            self._audit(AGENTS_ERROR, {"repo": request.repo, "error": str(exc)})
            raise
        self._audit(
            AGENTS_COMPLETE,
            {
                "repo": request.repo,
                "selected_files": list(result.meta.selected_files),
                "confidence": result.confidence.score if result.confidence else None,
            },
        )
        return result

    async def _run_agents(
        self, request: AgentRequest, scope: Scope, description: str, token: str | None
    ) -> AgentRunResult:
        source = self.source_factory(request.owner, request.name, token)
        paths = await resolve_scope_files(
            scope, source, request.branch, commit_batch_size=self.limits.commit_batch_size
        )
        if not paths:
            raise EmptyReviewSetError(f"No files found for scope: {description}")

        files = await load_files(
            paths[:self.limits.max_candidates],
            lambda path: source.get_file(path, request.branch),
            total_budget=self.limits.total_budget,
            per_file_cap=self.limits.per_file_cap,
            concurrency=self.limits.concurrency,
        )
        if not files:
            raise EmptyReviewSetError("Found file paths but could not load contents within caps.")

        outcome = await AgentDispatcher(self.llm, self.catalog).dispatch(
            files,
            request.user_message,
            request.roles,
            request.providers,
            request.selected_models,
            request.system_prompt,
            include_confidence=request.include_confidence,
        )
        meta = AgentRunMeta(
            repo=request.repo,
            branch=request.branch,
            scope=scope,
            scope_description=description,
            selected_files=file_paths(files),
            agents=request.roles,
        )
        return AgentRunResult(
            results=outcome.results,
            synthesized=outcome.synthesized,
            meta=meta,
            confidence=outcome.confidence,
            warning=outcome.warning,
        )

    async def list_models(self, provider: str) -> List[Dict[str, str]]:
        """Models to offer for ``provider``; names are escaped for display."""
        models = self.catalog.list_models(provider)
        lister = getattr(getattr(self.llm, "clients", {}).get(provider), "list_models", None)
        if provider in self.catalog.open_providers and lister is not None:
            try:
                models = await lister() or models
            except (httpx.HTTPError, asyncio.TimeoutError, RuntimeError, ValueError) as exc:
                logger.warning("Model listing for %s failed, using default: %s", provider, exc)
        return [{"id": m["id"], "name": escape_for_display(m["name"])} for m in models]
