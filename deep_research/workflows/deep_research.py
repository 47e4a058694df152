from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.results import SearchResult
from deep_research.models.schemas import DeepResearchParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_errors, format_search_results
from deep_research.tools.perplexity import PerplexityAnswer
from deep_research.workflows.common import (
    ResearchContext,
    WorkflowTool,
    exa_results,
    firecrawl_results,
    perplexity_results,
)

DEFINITION = ToolDefinition(
    name="deep_research",
    description=(
        "Multi-step deep research on a topic. Step 1: parallel search across all 3 services. "
        "Step 2: Perplexity deep-research for comprehensive analysis. "
        "Step 3: expanded search on discovered sub-topics. "
        "Returns a thorough research report with all sources. Use for in-depth topic exploration."
    ),
    parameters={
        "type": "object",
        "properties": {
            "topic": {"type": "string", "description": "Topic to research"},
            "depth": {
                "type": "string",
                "enum": ["standard", "deep", "exhaustive"],
                "description": (
                    "Research depth: standard (1 round), deep (2 rounds, default), "
                    "exhaustive (3 rounds with sub-topic expansion)"
                ),
            },
            "focusAreas": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Specific aspects to focus on (e.g. ['pricing', 'technical architecture', 'competitors'])",
            },
            "language": {
                "type": "string",
                "description": "Language for results (ISO code, e.g. 'en', 'ru', 'uk')",
            },
        },
        "required": ["topic"],
    },
)

# depth -> (results per provider in round 1, Perplexity research steps)
DEPTH_SETTINGS: dict[str, tuple[int, int]] = {
    "standard": (20, 3),
    "deep": (30, 5),
    "exhaustive": (40, 8),
}
MAX_FOCUS_AREAS = 5
FOCUS_NUM_RESULTS = 15
VARIATION_SUFFIXES = ("analysis", "comparison review", "latest trends")
VARIATION_NUM_RESULTS = 10
MAX_LISTED_RESULTS = 100


@dataclass(slots=True)
class RoundOutcome:
    results: list[SearchResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    section: str | None = None


def _answer_outcome(
    exa: list[SearchResult] | None,
    firecrawl: list[SearchResult] | None,
    answer: PerplexityAnswer | None,
    errors: list[str],
    heading: str,
) -> RoundOutcome:
    outcome = RoundOutcome(results=[*(exa or []), *(firecrawl or [])], errors=list(errors))
    if answer is not None:
        outcome.results.extend(perplexity_results(answer))
        if answer.text:
            outcome.section = f"## {heading}\n\n{answer.text}"
    return outcome


async def run(params: DeepResearchParams, ctx: ResearchContext) -> str:
    depth = params.depth
    language = params.language or ctx.config.default_language
    focus_areas = params.focus_areas or []
    num_results, max_steps = DEPTH_SETTINGS[depth]
    logger.info(f"[deep_research] topic={params.topic!r} depth={depth} focus_areas={len(focus_areas)}")

    # --- Round 1: broad parallel search ---
    async def exa_call():
        res = await ctx.exa.search(params.topic, num_results=num_results, type="auto", text=True, highlights=True)
        return exa_results(res)

    async def firecrawl_call():
        items = await ctx.firecrawl.search(
            params.topic,
            limit=num_results,
            scrape_options={"formats": ["markdown", "summary"]},
        )
        return firecrawl_results(items)

    async def perplexity_call():
        focus = f" Focus on: {', '.join(focus_areas)}." if focus_areas else ""
        return await ctx.perplexity.deep_research(
            f"Comprehensive research on: {params.topic}.{focus}",
            max_steps=max_steps,
            language=language,
        )

    step1 = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    rounds = [
        _answer_outcome(
            step1.exa,
            step1.firecrawl,
            step1.perplexity,
            step1.errors,
            "Perplexity Deep Research Analysis",
        )
    ]

    # --- Round 2: one parallel search per focus area ---
    if depth in ("deep", "exhaustive") and focus_areas:
        rounds.extend(
            await asyncio.gather(
                *(_focus_round(params.topic, area, language, ctx) for area in focus_areas[:MAX_FOCUS_AREAS])
            )
        )

    # --- Round 3: query variations ---
    if depth == "exhaustive":
        rounds.extend(
            await asyncio.gather(
                *(_variation_round(f"{params.topic} {suffix}", ctx) for suffix in VARIATION_SUFFIXES)
            )
        )

    all_results = [r for outcome in rounds for r in outcome.results]
    all_errors = [e for outcome in rounds for e in outcome.errors]
    sections = [outcome.section for outcome in rounds if outcome.section]
    merged = rank_by_relevance(merge_results(all_results))

    return "\n".join(
        [
            f"# Deep Research: {params.topic}\n",
            f"**Depth:** {depth} | **Total unique sources:** {len(merged)} | "
            f"**Focus areas:** {', '.join(focus_areas) or 'general'}\n",
            *sections,
            "\n---\n",
            format_search_results(merged, max_results=MAX_LISTED_RESULTS),
            format_errors(all_errors),
        ]
    )


async def _focus_round(topic: str, area: str, language: str, ctx: ResearchContext) -> RoundOutcome:
    query = f"{topic} {area}"

    async def exa_call():
        res = await ctx.exa.search(query, num_results=FOCUS_NUM_RESULTS, text=True, highlights=True)
        return exa_results(res, with_score=False)

    async def firecrawl_call():
        items = await ctx.firecrawl.search(query, limit=FOCUS_NUM_RESULTS, scrape_options={"formats": ["markdown"]})
        return firecrawl_results(items)

    async def perplexity_call():
        return await ctx.perplexity.search(f"{topic}: detailed analysis of {area}", language=language)

    sub = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    return _answer_outcome(sub.exa, sub.firecrawl, sub.perplexity, sub.errors, f"Focus: {area}")


async def _variation_round(query: str, ctx: ResearchContext) -> RoundOutcome:
    async def exa_call():
        res = await ctx.exa.search(query, num_results=VARIATION_NUM_RESULTS, text=True)
        return exa_results(res, with_score=False)

    async def firecrawl_call():
        return firecrawl_results(await ctx.firecrawl.search(query, limit=VARIATION_NUM_RESULTS))

    async def perplexity_call():
        return perplexity_results(await ctx.perplexity.fast_search(query))

    sub = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    return RoundOutcome(
        results=[*(sub.exa or []), *(sub.firecrawl or []), *(sub.perplexity or [])],
        errors=sub.errors,
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=DeepResearchParams, run=run)
