"""Request-scoped value types shared by both review modes."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

ModelSelection = Dict[str, Optional[str]]


def empty_selection() -> ModelSelection:
    return {"openai": None, "anthropic": None, "google": None}


@dataclass(frozen=True)
class TreeEntry:
    path: str
    type: str  # "file" | "dir"
    id: str = ""


@dataclass(frozen=True)
class ChangedFile:
    path: str
    status: str


@dataclass(frozen=True)
class CommitDetail:
    id: str
    changed_files: Tuple[ChangedFile, ...] = ()


@dataclass(frozen=True)
class Scope:
    """Parsed agent-mode scope argument.

    ``kind`` is one of ``empty``, ``commits``, ``glob``, ``file`` or ``invalid``.
    ``commit_count`` is set only for ``commits``.
    """

    kind: str
    value: str = ""
    commit_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "value": self.value}
        if self.commit_count is not None:
            data["commit_count"] = self.commit_count
        return data


@dataclass(frozen=True)
class RankedPath:
    path: str
    score: int


@dataclass(frozen=True)
class LoadedFile:
    path: str
    content: str

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class StageModel:
    """Provider and optional model override for the improver or consolidator."""

    provider: str = "openai"
    model_id: Optional[str] = None


@dataclass(frozen=True)
class PipelineRequest:
    repo: str
    branch: str
    system_prompt: str
    user_message: str
    providers: Tuple[str, ...]
    selected_models: ModelSelection = field(default_factory=empty_selection)
    improver: StageModel = field(default_factory=StageModel)
    consolidator: StageModel = field(default_factory=StageModel)

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repo.split("/", 1)[1]


@dataclass(frozen=True)
class AgentRequest:
    repo: str
    branch: str
    system_prompt: str
    user_message: str
    providers: Tuple[str, ...]
    scope: Optional[str] = None
    selected_models: ModelSelection = field(default_factory=empty_selection)
    roles: Tuple[str, ...] = ()
    include_confidence: bool = False

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repo.split("/", 1)[1]


@dataclass(frozen=True)
class ProviderResult:
    provider: str
    output: str


@dataclass(frozen=True)
class AgentResult:
    agent: str
    output: str
    provider: str
    model_id: str


@dataclass(frozen=True)
class ConfidenceReport:
    score: int
    understanding: int
    solution: int
    side_effects: int
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "breakdown": {
                "understanding": self.understanding,
                "solution": self.solution,
                "side_effects": self.side_effects,
            },
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class PipelineMeta:
    repo: str
    branch: str
    selected_files: Tuple[str, ...]
    keywords: Tuple[str, ...]
    prompt_improver: StageModel
    consolidator: StageModel
    warning: Optional[str] = None


@dataclass(frozen=True)
class PipelineResult:
    results: Tuple[ProviderResult, ...]
    consolidated: str
    meta: PipelineMeta

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["results"] = [asdict(r) for r in self.results]
        data["meta"]["selected_files"] = list(self.meta.selected_files)
        data["meta"]["keywords"] = list(self.meta.keywords)
        return data


@dataclass(frozen=True)
class AgentRunMeta:
    repo: str
    branch: str
    scope: Scope
    scope_description: str
    selected_files: Tuple[str, ...]
    agents: Tuple[str, ...]


@dataclass(frozen=True)
class AgentRunResult:
    results: Tuple[AgentResult, ...]
    synthesized: str
    meta: AgentRunMeta
    confidence: Optional[ConfidenceReport] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "results": [asdict(r) for r in self.results],
            "synthesized": self.synthesized,
            "meta": {
                "repo": self.meta.repo,
                "branch": self.meta.branch,
                "scope": self.meta.scope.to_dict(),
                "scope_description": self.meta.scope_description,
                "selected_files": list(self.meta.selected_files),
                "agents": list(self.meta.agents),
            },
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence.to_dict()
        if self.warning:
            data["warning"] = self.warning
        return data


def file_paths(files: List[LoadedFile]) -> Tuple[str, ...]:
    return tuple(f.path for f in files)
