"""Heuristic relevance ranking of repository paths against search keywords."""
from __future__ import annotations

from typing import Iterable, List, Sequence

from codeplanner.pipeline.types import RankedPath, TreeEntry

UI_KEYWORDS = frozenset({"ui", "react", "component", "modal", "page"})
API_KEYWORDS = frozenset({"api", "route", "endpoint", "server"})
AUTH_KEYWORDS = frozenset({"auth", "login", "oauth", "nextauth"})

EXCLUDED_DIRS = ("node_modules/", ".next/")
EXCLUDED_PENALTY = 100
LOCKFILE_PENALTY = 5
MIN_RANKED = 20


def score_path(path: str, keywords: Sequence[str]) -> int:
    p = path.lower()
    filename = p.rsplit("/", 1)[-1]
    score = 0
    for keyword in keywords:
        if keyword in filename:
            score += 8
        elif keyword in p:
            score += 4

    if any(k in UI_KEYWORDS for k in keywords) and p.endswith((".tsx", ".jsx")):
        score += 2
    if any(k in API_KEYWORDS for k in keywords) and "/api/" in p:
        score += 2
    if any(k in AUTH_KEYWORDS for k in keywords) and "auth" in p:
        score += 2

    for excluded in EXCLUDED_DIRS:
        if excluded in p:
            score -= EXCLUDED_PENALTY
    if p.endswith(".lock"):
        score -= LOCKFILE_PENALTY
    return score


def rank_paths(entries: Iterable[TreeEntry], keywords: Sequence[str]) -> List[RankedPath]:
    """Score file entries and keep the positive ones, best first.

    The sort is stable, so equal scores keep their tree order.
    """
    scored = [
        RankedPath(path=entry.path, score=score_path(entry.path, keywords))
        for entry in entries
        if entry.type == "file"
    ]
    positive = [item for item in scored if item.score > 0]
    return sorted(positive, key=lambda item: item.score, reverse=True)


def rank_files(entries: Iterable[TreeEntry], keywords: Sequence[str], max_files: int) -> List[str]:
    # Over-fetch so later size-cap skips still leave enough files.
    limit = max(max_files * 2, MIN_RANKED)
    return [item.path for item in rank_paths(entries, keywords)[:limit]]
