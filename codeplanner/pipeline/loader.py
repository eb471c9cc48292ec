"""Concurrency- and budget-bounded file loading shared by both review modes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence
import asyncio
import logging

from codeplanner.config import Config
from codeplanner.pipeline.types import LoadedFile
from codeplanner.sanitizer import sanitize_content

logger = logging.getLogger(__name__)

MAX_TOTAL_CHARS = 220_000
MAX_FILE_CHARS = 30_000
LOAD_CONCURRENCY = 4
MIN_PARTIAL_CHARS = 1_000

Fetcher = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class LoadLimits:
    total_budget: int = MAX_TOTAL_CHARS
    per_file_cap: int = MAX_FILE_CHARS
    concurrency: int = LOAD_CONCURRENCY
    max_candidates: int = 25
    commit_batch_size: int = 5

    @classmethod
    def from_config(cls, config: Config) -> "LoadLimits":
        return cls(
            total_budget=config.max_total_chars,
            per_file_cap=config.max_file_chars,
            concurrency=config.load_concurrency,
            max_candidates=config.max_candidates,
            commit_batch_size=config.commit_batch_size,
        )


async def _fetch_one(fetch: Fetcher, path: str, per_file_cap: int) -> Optional[LoadedFile]:
    try:
        raw = await fetch(path)
    except Exception as exc:
        logger.warning("Failed to fetch %s: %s", path, exc)
        return None
    if len(raw) > per_file_cap:
        logger.info("Skipping oversized file: %s (%d chars)", path, len(raw))
        return None
    return LoadedFile(path=path, content=sanitize_content(raw, per_file_cap))


async def load_files(
    paths: Sequence[str],
    fetch: Fetcher,
    total_budget: int = MAX_TOTAL_CHARS,
    per_file_cap: int = MAX_FILE_CHARS,
    concurrency: int = LOAD_CONCURRENCY,
) -> List[LoadedFile]:
    """Fetch ``paths`` in sequential batches of ``concurrency``.

    Oversized files are dropped whole and fetch failures are dropped silently.
    When the next file would overflow ``total_budget`` a prefix of it is kept
    if more than ``MIN_PARTIAL_CHARS`` remain, and loading stops there.
    Returning fewer files than requested, including none, is not an error.
    """
    concurrency = max(1, concurrency)
    loaded: List[LoadedFile] = []
    total = 0
    for start in range(0, len(paths), concurrency):
        if total >= total_budget:
            break
        batch = paths[start:start + concurrency]
        fetched = await asyncio.gather(*(_fetch_one(fetch, path, per_file_cap) for path in batch))
        for item in fetched:
            if item is None:
                continue
            if total + item.length > total_budget:
                remaining = total_budget - total
                if remaining > MIN_PARTIAL_CHARS:
                    loaded.append(LoadedFile(path=item.path, content=item.content[:remaining]))
                    logger.info("Character budget reached; kept %d chars of %s", remaining, item.path)
                return loaded
            total += item.length
            loaded.append(item)
    logger.debug("Loaded %d of %d files (%d chars)", len(loaded), len(paths), total)
    return loaded
