"""Prompt improver stage: rewrite the goal and propose repository search parameters."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple
import logging
import math
import re

from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller
from codeplanner.pipeline.types import ModelSelection, StageModel
from codeplanner.sanitizer import safe_json_extract, validate_improver_response

logger = logging.getLogger(__name__)

MAX_LLM_KEYWORDS = 20
MAX_FALLBACK_KEYWORDS = 12
DEFAULT_MAX_FILES = 12
MIN_MAX_FILES = 4
MAX_MAX_FILES = 25

STOPWORDS = frozenset({
    "the", "and", "for", "with", "from", "into", "that", "this", "these", "those",
    "then", "than", "your", "you", "our", "are", "was", "were", "will", "would",
    "should", "could", "can", "cant", "app", "code", "repo", "project", "file",
    "files", "please", "make", "add", "remove", "update", "able", "using", "use",
    "used", "run", "runs",
})

_TOKEN_SPLIT = re.compile(r"[^a-z0-9_./-]+")

IMPROVER_TEMPLATE = """Goal: {goal}

Return JSON:
{{
  "improved_user_prompt": "clear actionable version",
  "search": {{
    "keywords": ["component", "route", "file"],
    "max_files": 12
  }}
}}"""


@dataclass(frozen=True)
class ImproverOutput:
    improved_user_prompt: str
    keywords: Tuple[str, ...]
    max_files: int
    model_id: str


def extract_keywords(goal: str, limit: int = MAX_FALLBACK_KEYWORDS) -> List[str]:
    """Local keyword heuristic used when the improver returns none."""
    keywords: List[str] = []
    for token in _TOKEN_SPLIT.split(goal.lower()):
        token = token.strip()
        if len(token) < 3 or token in STOPWORDS or token in keywords:
            continue
        keywords.append(token)
        if len(keywords) >= limit:
            break
    return keywords


def _normalize_keywords(raw: List[str]) -> List[str]:
    keywords: List[str] = []
    for item in raw:
        token = item.strip().lower()
        if token and token not in keywords:
            keywords.append(token)
    return keywords[:MAX_LLM_KEYWORDS]


def clamp_max_files(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_MAX_FILES
    return min(max(math.floor(value), MIN_MAX_FILES), MAX_MAX_FILES)


async def improve_prompt(
    llm: LLMCaller,
    catalog: ModelCatalog,
    system_prompt: str,
    user_message: str,
    stage: StageModel,
    selection: ModelSelection,
) -> ImproverOutput:
    """Make one improver call. Provider failures propagate; a malformed reply does not."""
    goal = user_message.strip()
    model_id = catalog.resolve(stage.provider, selection, stage.model_id)
    logger.info("Calling prompt improver provider=%s model=%s", stage.provider, model_id)
    raw = await llm.call(stage.provider, system_prompt, IMPROVER_TEMPLATE.format(goal=goal), model_id)

    parsed = validate_improver_response(safe_json_extract(raw))
    if parsed is None:
        logger.info("Prompt improver reply was not usable JSON; using fallbacks")
        parsed = {}
    search = parsed.get("search") or {}

    improved = parsed.get("improved_user_prompt") or ""
    if not improved.strip():
        improved = goal
    keywords = _normalize_keywords(search.get("keywords") or [])
    if not keywords:
        keywords = extract_keywords(user_message)
    max_files = clamp_max_files(search.get("max_files"))
    return ImproverOutput(
        improved_user_prompt=improved,
        keywords=tuple(keywords),
        max_files=max_files,
        model_id=model_id,
    )
