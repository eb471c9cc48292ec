"""In-memory collaborators for pipeline tests."""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

from codeplanner.errors import UpstreamFetchError
from codeplanner.pipeline.types import ChangedFile, CommitDetail, TreeEntry


class FakeLLM:
    """Records every call; replies come from ``responder(provider, system, user, model_id)``."""

    def __init__(self, responder: Callable[[str, str, str, Optional[str]], str] | None = None) -> None:
        self.responder = responder or (lambda provider, system, user, model_id: f"{provider} output")
        self.calls: List[Tuple[str, str, str, Optional[str]]] = []

    async def call(self, provider: str, system: str, user: str, model_id: Optional[str]) -> str:
        self.calls.append((provider, system, user, model_id))
        await asyncio.sleep(0)
        return self.responder(provider, system, user, model_id)


class FakeRepo:
    def __init__(
        self,
        files: Dict[str, str] | None = None,
        commits: List[str] | None = None,
        commit_files: Dict[str, List[Tuple[str, str]]] | None = None,
        failing_paths: Tuple[str, ...] = (),
        failing_commits: Tuple[str, ...] = (),
        extra_dirs: Tuple[str, ...] = (),
    ) -> None:
        self.files = dict(files or {})
        self.commits = list(commits or [])
        self.commit_files = commit_files or {}
        self.failing_paths = failing_paths
        self.failing_commits = failing_commits
        self.extra_dirs = extra_dirs
        self.fetched: List[str] = []
        self.detail_requests: List[str] = []

    async def get_file(self, path: str, ref: str) -> str:
        self.fetched.append(path)
        await asyncio.sleep(0)
        if path in self.failing_paths or path not in self.files:
            raise UpstreamFetchError("GitHub error 404: Failed to fetch file")
        return self.files[path]

    async def get_tree(self, ref: str) -> List[TreeEntry]:
        entries = [TreeEntry(path=d, type="dir") for d in self.extra_dirs]
        entries.extend(TreeEntry(path=p, type="file") for p in self.files)
        return entries

    async def list_commits(self, ref: str, count: int) -> List[str]:
        return self.commits[:count]

    async def get_commit_detail(self, sha: str) -> CommitDetail:
        self.detail_requests.append(sha)
        if sha in self.failing_commits:
            raise UpstreamFetchError("GitHub error 500: Failed to fetch commit")
        changed = tuple(ChangedFile(path=p, status=s) for p, s in self.commit_files.get(sha, []))
        return CommitDetail(id=sha, changed_files=changed)
