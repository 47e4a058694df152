from __future__ import annotations

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.schemas import DeepSearchParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_errors, format_search_results, format_service_status
from deep_research.workflows.common import (
    ResearchContext,
    WorkflowTool,
    clamp,
    collect,
    exa_results,
    firecrawl_results,
    in_domains,
    perplexity_results,
    site_query,
)

DEFINITION = ToolDefinition(
    name="deep_search",
    description=(
        "Powerful multi-service web search using Exa.ai, Firecrawl, and Perplexity in parallel. "
        "Returns deduplicated, ranked results from all three services. "
        "Use this for general web searches that need comprehensive coverage."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "numResults": {
                "type": "number",
                "description": "Number of results per service (default: 20, max: 50)",
            },
            "domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Restrict search to these domains only (e.g. ['arxiv.org', 'github.com'])",
            },
            "excludeDomains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Exclude these domains from results",
            },
            "category": {
                "type": "string",
                "enum": ["news", "research paper", "company", "tweet", "personal site"],
                "description": "Filter by content category (Exa-specific, applied where supported)",
            },
        },
        "required": ["query"],
    },
)


async def run(params: DeepSearchParams, ctx: ResearchContext) -> str:
    num_results = clamp(params.num_results, ctx.config.default_num_results)
    excluded = params.exclude_domains or []
    logger.info(f"[deep_search] query={params.query!r} num_results={num_results}")

    async def exa_call():
        res = await ctx.exa.search(
            params.query,
            num_results=num_results,
            include_domains=params.domains,
            exclude_domains=params.exclude_domains,
            category=params.category,
            text=True,
            highlights=True,
        )
        return exa_results(res)

    async def firecrawl_call():
        items = await ctx.firecrawl.search(
            site_query(params.query, params.domains),
            limit=num_results,
            scrape_options={"formats": ["markdown"]},
        )
        return [r for r in firecrawl_results(items) if not in_domains(r.url, excluded)]

    async def perplexity_call():
        answer = await ctx.perplexity.search(params.query, search_domain_filter=params.domains)
        results = perplexity_results(answer, synthesis_title="Perplexity AI Summary")
        return [r for r in results if not in_domains(r.url, excluded)]

    results = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    merged = rank_by_relevance(merge_results(collect(results)))

    return "\n".join(
        [
            f"# Deep Search: {params.query}\n",
            format_service_status(results.status()),
            f"**Results found:** {len(merged)}\n",
            format_search_results(merged),
            format_errors(results.errors),
        ]
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=DeepSearchParams, run=run)
