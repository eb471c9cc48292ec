"""Standard-mode pipeline: improve -> search -> load -> run -> consolidate."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional
import logging

from codeplanner.errors import ValidationError
from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller
from codeplanner.pipeline.consolidator import consolidate
from codeplanner.pipeline.improver import improve_prompt
from codeplanner.pipeline.loader import LoadLimits, load_files
from codeplanner.pipeline.ranker import rank_files
from codeplanner.pipeline.runner import run_models
from codeplanner.pipeline.scope import RepoSource
from codeplanner.pipeline.types import (
    LoadedFile,
    PipelineMeta,
    PipelineRequest,
    PipelineResult,
    StageModel,
    file_paths,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[Dict[str, Any]], None]

STAGES = ("validating", "improving", "searching", "loading", "running", "consolidating", "complete")
NO_FILES_WARNING = "no relevant files found"
LOAD_FAILED_WARNING = "could not load any files; running with prompt-only context"


def progress_frame(stage: str, message: str, progress: Optional[int] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {"stage": stage, "message": message}
    if progress is not None:
        data["progress"] = progress
    return {"type": "progress", "data": data}


class StandardPipeline:
    """One standard-mode run. Create a new instance per request.

    ``state`` walks ``STAGES`` in order, each stage entered once, and ends in
    ``complete`` or ``error``. Every run emits exactly one terminal frame to
    the sink: ``result`` on success, ``error`` on failure. Failures are
    re-raised after the error frame is emitted.
    """

    def __init__(
        self,
        llm: LLMCaller,
        catalog: ModelCatalog,
        source: RepoSource,
        limits: LoadLimits | None = None,
    ) -> None:
        self.llm = llm
        self.catalog = catalog
        self.source = source
        self.limits = limits or LoadLimits()
        self.state: str | None = None
        self._sink: ProgressSink | None = None

    def _emit(self, frame: Dict[str, Any]) -> None:
        if self._sink is not None:
            self._sink(frame)

    def _enter(self, stage: str, message: str | None = None, progress: Optional[int] = None) -> None:
        if self.state is not None and STAGES.index(stage) <= STAGES.index(self.state):
            raise RuntimeError(f"Pipeline stage {stage} entered out of order after {self.state}")
        self.state = stage
        logger.info("Pipeline stage: %s", stage)
        if message is not None:
            self._emit(progress_frame(stage, message, progress))

    async def run(self, request: PipelineRequest, sink: ProgressSink | None = None) -> PipelineResult:
        if self.state is not None:
            raise RuntimeError("StandardPipeline instances run once")
        self._sink = sink
        try:
            result = await self._run(request)
        except Exception as exc:
            self.state = "error"
            logger.error("Pipeline failed: %s", exc)
            self._emit({"type": "error", "error": str(exc)})
            raise
        self._emit({"type": "result", "data": result.to_dict()})
        return result

    async def _run(self, request: PipelineRequest) -> PipelineResult:
        self._enter("validating")
        if not request.providers:
            raise ValidationError("At least one provider is required")
        owner, _, name = request.repo.partition("/")
        if not owner or not name:
            raise ValidationError("Invalid repo format, expected 'owner/name'")

        self._enter("improving", "Improving prompt and generating search keywords...")
        improved = await improve_prompt(
            self.llm,
            self.catalog,
            request.system_prompt,
            request.user_message,
            request.improver,
            request.selected_models,
        )

        self._enter("searching", "Searching repository for relevant files...")
        tree = await self.source.get_tree(request.branch)
        candidates = rank_files(tree, improved.keywords, improved.max_files)
        candidates = candidates[:self.limits.max_candidates]

        warning: str | None = None
        files: List[LoadedFile] = []
        self._enter("loading", f"Loading {len(candidates)} files...", 0)
        if not candidates:
            warning = NO_FILES_WARNING
        else:
            files = await load_files(
                candidates,
                lambda path: self.source.get_file(path, request.branch),
                total_budget=self.limits.total_budget,
                per_file_cap=self.limits.per_file_cap,
                concurrency=self.limits.concurrency,
            )
            if not files:
                warning = LOAD_FAILED_WARNING
        if warning:
            logger.warning("Pipeline degraded: %s", warning)

        self._enter("running", f"Running {len(request.providers)} model(s)...", 50)
        results = await run_models(
            self.llm,
            self.catalog,
            request.providers,
            request.system_prompt,
            improved.improved_user_prompt,
            files,
            request.selected_models,
        )

        self._enter("consolidating", "Consolidating results...", 90)
        consolidated = await consolidate(
            self.llm,
            self.catalog,
            results,
            request.system_prompt,
            request.consolidator,
            request.selected_models,
        )

        self._enter("complete")
        meta = PipelineMeta(
            repo=request.repo,
            branch=request.branch,
            selected_files=file_paths(files),
            keywords=improved.keywords,
            prompt_improver=StageModel(request.improver.provider, improved.model_id),
            consolidator=StageModel(
                request.consolidator.provider,
                self.catalog.resolve(
                    request.consolidator.provider, request.selected_models, request.consolidator.model_id
                ),
            ),
            warning=warning,
        )
        return PipelineResult(results=tuple(results), consolidated=consolidated, meta=meta)
