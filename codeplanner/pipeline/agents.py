"""Specialist review agents: round-robin dispatch, synthesis and confidence scoring."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import asyncio
import json
import logging
import math
import re

from codeplanner.errors import UpstreamProviderError, ValidationError
from codeplanner.models.catalog import ModelCatalog
from codeplanner.models.providers import LLMCaller
from codeplanner.pipeline.runner import build_context
from codeplanner.pipeline.types import AgentResult, ConfidenceReport, LoadedFile, ModelSelection

logger = logging.getLogger(__name__)

_FINDING_FORMAT = """Provide findings in this format:

[SEVERITY] [CATEGORY] file:line
-----------------------------------
Issue: Brief description
Current:
  [code snippet]
Suggested:
  [{suggested}]
Rationale: Why this matters"""

_SUMMARY_LINE = "Return a summary count of findings by severity at the end."

AGENT_PROMPTS: Dict[str, str] = {
    "bug-detector": f"""You are a specialized code reviewer focused on detecting bugs and logic errors.

Your role is to identify:
- Runtime errors & null safety (unchecked nullable access, unsafe type assertions)
- Logic errors (off-by-one, incorrect boolean logic, race conditions)
- State management issues (stale closures, missing deps in useEffect)
- Data integrity (missing transactions, silent data loss)
- AI slop detection (over-commenting, unnecessary abstractions, defensive over-coding)

{_FINDING_FORMAT.format(suggested="fixed code")}

Severity levels:
- CRITICAL: Crashes, data loss, security vulnerabilities
- HIGH: Logic errors affecting core functionality
- MEDIUM: Edge case failures, minor data issues
- LOW: Cosmetic bugs, minor UX issues

{_SUMMARY_LINE}""",
    "security-auditor": f"""You are a specialized security auditor focused on identifying security vulnerabilities.

Your role is to identify:
- SQL injection risks
- XSS vulnerabilities
- Exposed secrets or API keys
- Insecure data handling
- Missing input validation at system boundaries
- OWASP Top 10 vulnerabilities

{_FINDING_FORMAT.format(suggested="fixed code")}

Severity levels:
- CRITICAL: Security vulnerabilities that could lead to data breach or system compromise
- HIGH: Security issues that could expose sensitive data
- MEDIUM: Security concerns that should be addressed
- LOW: Minor security improvements

{_SUMMARY_LINE}""",
    "performance-optimizer": f"""You are a specialized performance optimizer focused on identifying performance bottlenecks.

Your role is to identify:
- React performance (missing memoization, unnecessary re-renders)
- Database/API performance (N+1 queries, missing indexes, unbounded queries)
- Algorithm complexity (O(n^2) that could be O(n))
- Memory & resource issues (leaks, unbounded caches)

{_FINDING_FORMAT.format(suggested="fixed code")}

Severity levels:
- CRITICAL: Performance issues causing significant degradation or resource exhaustion
- HIGH: Performance problems affecting user experience
- MEDIUM: Performance optimizations that would improve efficiency
- LOW: Minor performance improvements

{_SUMMARY_LINE}""",
    "refactoring-architect": f"""You are a specialized refactoring architect focused on code organization and maintainability.

Your role is to identify:
- Large files analysis (>300 lines need review, >500 strong candidates, >800 critical)
- Component extraction opportunities
- Logic extraction (business logic to modules)
- Hook extraction (complex hooks to custom hooks)
- Type extraction (shared types to dedicated files)

{_FINDING_FORMAT.format(suggested="refactored structure")}

Severity levels:
- CRITICAL: Files >800 lines that significantly impact maintainability
- HIGH: Files >500 lines that should be split
- MEDIUM: Files >300 lines that could benefit from refactoring
- LOW: Minor refactoring opportunities

For each large file identified, provide a refactoring plan:
File: [path] ([X] lines)
Split into:
  1. [new-file-1.ts] - [purpose] (~X lines)
  2. [new-file-2.ts] - [purpose] (~X lines)
  3. [new-file-3.ts] - [purpose] (~X lines)
Dependencies to update: [list]

{_SUMMARY_LINE}""",
}

DEFAULT_ROLES: Tuple[str, ...] = tuple(AGENT_PROMPTS)
RECOMMENDATIONS = ("proceed", "ask", "stop")

CONFIDENCE_PROMPT = """Evaluate the confidence level for implementing the findings from this code review.

Review Summary:
{summary}

Rate your confidence (0-100%) on:
1. Understanding the problem: _%
2. Understanding the codebase context: _%
3. Knowing the correct solution: _%
4. No unintended side effects: _%

Provide an overall confidence score and recommendation:
- 100%: Proceed with fix
- 90-99%: Proceed, note uncertainty
- 70-89%: Ask user before proceeding
- <70%: Do NOT proceed, explain gaps

Return ONLY valid JSON:
{{
  "score": number (0-100),
  "breakdown": {{
    "understanding": number,
    "solution": number,
    "sideEffects": number
  }},
  "recommendation": "proceed" | "ask" | "stop"
}}"""

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


def normalize_roles(roles: Optional[Sequence[str]]) -> Tuple[str, ...]:
    """Return the enabled roles, falling back to all four when none are given."""
    if not roles:
        return DEFAULT_ROLES
    unknown = [r for r in roles if r not in AGENT_PROMPTS]
    if unknown:
        raise ValidationError(f"Unknown agents: {', '.join(unknown)}")
    return tuple(dict.fromkeys(roles))


def assign_provider(index: int, providers: Sequence[str]) -> str:
    return providers[index % len(providers)]


def role_label(role: str) -> str:
    return role.upper().replace("-", " ")


def build_agent_user_prompt(files: Sequence[LoadedFile], goal: str) -> str:
    context = build_context(files)
    if goal:
        return f"{goal}\n\n{context}"
    return f"Review the following files:\n\n{context}"


def build_synthesis_prompt(results: Sequence[AgentResult], file_count: int) -> str:
    reviews = "\n\n".join(
        f"--- {role_label(r.agent)} ({r.provider.upper()}) ---\n{r.output}" for r in results
    )
    return f"""You are synthesizing findings from multiple specialized code review agents.

Agent Reviews:
{reviews}

Synthesize these findings into a unified report with:

1. Summary Dashboard:
   - Files Reviewed: {file_count}
   - Total Findings by Severity (Critical, High, Medium, Low)
   - Security Issues Count
   - Performance Issues Count
   - Large Files Count (>300 LOC)

2. Priority Action List:
   - Fix Immediately (Critical/Security)
   - Fix This PR (High)
   - Fix This Sprint (Medium)
   - Backlog (Low/Tech debt)

3. Detailed Findings (grouped by severity)

4. Refactoring Plans (if any large files identified)

Be concise but comprehensive. Focus on actionable insights."""


def _clamp_percent(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return int(round(min(100, max(0, value))))


def parse_confidence(text: str) -> Optional[ConfidenceReport]:
    """Extract a confidence report from free text, or None when it cannot be read."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(parsed, dict) or "score" not in parsed or not parsed.get("recommendation"):
        return None
    breakdown = parsed.get("breakdown")
    if not isinstance(breakdown, dict):
        breakdown = {}
    recommendation = parsed["recommendation"]
    if recommendation not in RECOMMENDATIONS:
        recommendation = "ask"
    return ConfidenceReport(
        score=_clamp_percent(parsed["score"]),
        understanding=_clamp_percent(breakdown.get("understanding")),
        solution=_clamp_percent(breakdown.get("solution")),
        side_effects=_clamp_percent(breakdown.get("sideEffects", breakdown.get("side_effects"))),
        recommendation=recommendation,
    )


@dataclass(frozen=True)
class DispatchOutcome:
    results: Tuple[AgentResult, ...]
    synthesized: str
    confidence: Optional[ConfidenceReport] = None
    warning: Optional[str] = None


class AgentDispatcher:
    def __init__(self, llm: LLMCaller, catalog: ModelCatalog) -> None:
        self.llm = llm
        self.catalog = catalog

    async def run_roles(
        self,
        roles: Sequence[str],
        providers: Sequence[str],
        user_prompt: str,
        selection: ModelSelection,
    ) -> List[AgentResult]:
        async def _one(index: int, role: str) -> AgentResult:
            provider = assign_provider(index, providers)
            model_id = self.catalog.resolve(provider, selection)
            logger.info("Running agent %s on provider=%s model=%s", role, provider, model_id)
            output = await self.llm.call(provider, AGENT_PROMPTS[role], user_prompt, model_id)
            return AgentResult(agent=role, output=output, provider=provider, model_id=model_id)

        return list(await asyncio.gather(*(_one(i, role) for i, role in enumerate(roles))))

    async def evaluate_confidence(
        self, provider: str, system_prompt: str, summary: str, model_id: str
    ) -> Optional[ConfidenceReport]:
        raw = await self.llm.call(provider, system_prompt, CONFIDENCE_PROMPT.format(summary=summary), model_id)
        report = parse_confidence(raw)
        if report is None:
            logger.info("Confidence reply could not be parsed; omitting confidence block")
        return report

    async def dispatch(
        self,
        files: Sequence[LoadedFile],
        goal: str,
        roles: Sequence[str],
        providers: Sequence[str],
        selection: ModelSelection,
        system_prompt: str,
        include_confidence: bool = False,
    ) -> DispatchOutcome:
        if not providers:
            raise ValidationError("At least one provider is required")
        user_prompt = build_agent_user_prompt(files, goal)
        results = await self.run_roles(roles, providers, user_prompt, selection)

        synthesizer = providers[0]
        synth_model = self.catalog.resolve(synthesizer, selection)
        logger.info("Synthesizing agent findings provider=%s model=%s", synthesizer, synth_model)
        synthesized = await self.llm.call(
            synthesizer, system_prompt, build_synthesis_prompt(results, len(files)), synth_model
        )

        confidence = None
        warning = None
        if include_confidence:
            try:
                confidence = await self.evaluate_confidence(synthesizer, system_prompt, synthesized, synth_model)
            except UpstreamProviderError as exc:
                logger.warning("Confidence evaluation failed: %s", exc)
                warning = f"confidence evaluation failed: {exc}"
        return DispatchOutcome(
            results=tuple(results),
            synthesized=synthesized,
            confidence=confidence,
            warning=warning,
        )
