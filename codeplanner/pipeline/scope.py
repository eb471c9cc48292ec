"""Agent-mode scope parsing and resolution to a concrete file list.

A scope argument is a single free-text string: empty (files changed in the
last commit), a commit count, a glob pattern, or a file path.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol
import asyncio
import logging
import re

from codeplanner.errors import InvalidScopeError, UpstreamFetchError
from codeplanner.pipeline.types import CommitDetail, Scope, TreeEntry

logger = logging.getLogger(__name__)

_COMMIT_COUNT = re.compile(r"[1-9][0-9]*")
_GLOB_CHARS = ("*", "?", "[")
_SOURCE_EXTENSION = re.compile(
    r"\.(ts|tsx|js|jsx|py|java|go|rs|rb|php|cs|cpp|c|h|hpp|vue|svelte|html|css|scss"
    r"|json|yaml|yml|md|sql|sh|bash)$",
    re.IGNORECASE,
)

COMMIT_BATCH_SIZE = 5


class RepoSource(Protocol):
    """Repository access the scope resolver and file loader depend on."""

    async def get_file(self, path: str, ref: str) -> str:
        ...

    async def get_tree(self, ref: str) -> List[TreeEntry]:
        ...

    async def list_commits(self, ref: str, count: int) -> List[str]:
        ...

    async def get_commit_detail(self, sha: str) -> CommitDetail:
        ...


def _looks_like_file(value: str) -> bool:
    if "/" not in value:
        return False
    return bool(_SOURCE_EXTENSION.search(value)) or "." in value.rsplit("/", 1)[-1]


def parse_scope(raw: Optional[str]) -> Scope:
    value = (raw or "").strip()
    if not value:
        return Scope(kind="empty")
    if _COMMIT_COUNT.fullmatch(value):
        return Scope(kind="commits", value=value, commit_count=int(value))
    if any(ch in value for ch in _GLOB_CHARS):
        return Scope(kind="glob", value=value)
    if _looks_like_file(value):
        return Scope(kind="file", value=value)
    # A directory-like path without an extension is still treated as a file path.
    if "/" in value:
        return Scope(kind="file", value=value)
    return Scope(kind="invalid", value=value)


def describe_scope(scope: Scope) -> str:
    if scope.kind == "empty":
        return "Review files changed in last commit"
    if scope.kind == "commits":
        return f"Review files changed in last {scope.commit_count} commit(s)"
    if scope.kind == "file":
        return f"Review file: {scope.value}"
    if scope.kind == "glob":
        return f"Review files matching: {scope.value}"
    return f"Invalid scope: {scope.value}"


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a path glob into a regular expression anchored at the path start.

    ``*`` and ``?`` never cross a ``/``. ``**/`` matches zero or more whole
    directories and any other ``**`` matches anything. Only the start is
    anchored, so ``src/*`` also selects everything below ``src/``.
    """
    parts: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts))


def matches_glob(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).search(path) is not None


async def _commit_files(source: RepoSource, ref: str, count: int, batch_size: int) -> List[str]:
    shas = await source.list_commits(ref, count)

    async def _detail(sha: str) -> Optional[CommitDetail]:
        try:
            return await source.get_commit_detail(sha)
        except UpstreamFetchError as exc:
            logger.warning("Skipping commit %s: %s", sha, exc)
            return None

    seen: Dict[str, None] = {}
    for start in range(0, len(shas), batch_size):
        batch = shas[start:start + batch_size]
        details = await asyncio.gather(*(_detail(sha) for sha in batch))
        for detail in details:
            if detail is None:
                continue
            for changed in detail.changed_files:
                if changed.status != "removed":
                    seen.setdefault(changed.path, None)
    return list(seen)


async def resolve_scope_files(
    scope: Scope,
    source: RepoSource,
    ref: str,
    commit_batch_size: int = COMMIT_BATCH_SIZE,
) -> List[str]:
    """Resolve ``scope`` to repository paths, in discovery order."""
    if scope.kind == "invalid":
        raise InvalidScopeError(
            f"Invalid scope: {scope.value}. Use a file path, glob pattern, commit count, or leave empty."
        )
    if scope.kind == "file":
        return [scope.value]
    if scope.kind == "glob":
        regex = glob_to_regex(scope.value)
        tree = await source.get_tree(ref)
        return [entry.path for entry in tree if entry.type == "file" and regex.search(entry.path)]
    count = scope.commit_count if scope.kind == "commits" and scope.commit_count else 1
    return await _commit_files(source, ref, count, max(1, commit_batch_size))