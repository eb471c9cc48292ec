"""Run the same prompt and file context against several providers at once."""
from __future__ import annotations

from typing import Iterable, List, Sequence
import asyncio
import logging

from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller
from codeplanner.pipeline.types import LoadedFile, ModelSelection, ProviderResult

logger = logging.getLogger(__name__)


def build_context(files: Iterable[LoadedFile]) -> str:
    return "\n\n".join(f"// {f.path}\n{f.content}" for f in files)


def build_user_prompt(prompt: str, files: Sequence[LoadedFile]) -> str:
    context = build_context(files)
    if not context:
        return prompt
    return f"{prompt}\n\n{context}"


async def run_models(
    llm: LLMCaller,
    catalog: ModelCatalog,
    providers: Sequence[str],
    system_prompt: str,
    improved_prompt: str,
    files: Sequence[LoadedFile],
    selection: ModelSelection,
) -> List[ProviderResult]:
    """Results follow ``providers`` order. Any single failure fails the whole call."""
    user_prompt = build_user_prompt(improved_prompt, files)

    async def _one(provider: str) -> ProviderResult:
        model_id = catalog.resolve(provider, selection)
        logger.info("Calling model provider=%s model=%s", provider, model_id)
        output = await llm.call(provider, system_prompt, user_prompt, model_id)
        return ProviderResult(provider=provider, output=output)

    return list(await asyncio.gather(*(_one(p) for p in providers)))
