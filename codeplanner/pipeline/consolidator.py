"""Merge independent provider outputs into one plan with a single LLM call."""
from __future__ import annotations

from typing import Sequence
import logging

from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller
from codeplanner.pipeline.types import ModelSelection, ProviderResult, StageModel

logger = logging.getLogger(__name__)


def build_consolidation_prompt(results: Sequence[ProviderResult]) -> str:
    reviews = "\n\n".join(f"--- {r.provider.upper()} ---\n{r.output}" for r in results)
    return (
        "You are given independent reviews of the same code/files. Synthesize them into a "
        "single, concise, actionable plan. Preserve the most important insights and resolve "
        "any conflicts. Do not add new opinions beyond what the reviews contain.\n\n"
        f"Reviews:\n{reviews}\n\n"
        "Synthesized plan:"
    )


async def consolidate(
    llm: LLMCaller,
    catalog: ModelCatalog,
    results: Sequence[ProviderResult],
    system_prompt: str,
    stage: StageModel,
    selection: ModelSelection,
) -> str:
    model_id = catalog.resolve(stage.provider, selection, stage.model_id)
    logger.info("Calling consolidator provider=%s model=%s", stage.provider, model_id)
    return await llm.call(stage.provider, system_prompt, build_consolidation_prompt(results), model_id)
