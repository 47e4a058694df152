from __future__ import annotations

import asyncio

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.results import SearchResult
from deep_research.models.schemas import SiteSearchParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_errors, format_search_results, format_service_status
from deep_research.workflows.common import (
    ResearchContext,
    WorkflowTool,
    clamp,
    exa_results,
    firecrawl_results,
    perplexity_results,
    site_query,
)

DEFINITION = ToolDefinition(
    name="site_search",
    description=(
        "Search within specific domains/websites only. Uses all three services (Exa, Firecrawl, Perplexity) "
        "in parallel with domain restrictions. Firecrawl also maps the site to discover relevant pages. "
        "Use when you need content from particular websites."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Domains to search within (e.g. ['reddit.com', 'stackoverflow.com'])",
            },
            "numResults": {
                "type": "number",
                "description": "Number of results per service (default: 20)",
            },
            "mapSites": {
                "type": "boolean",
                "description": "Also discover/map URLs on these sites for broader coverage (default: false)",
            },
        },
        "required": ["query", "domains"],
    },
)

MAX_MAPPED_SITES = 3
MAP_LINK_LIMIT = 20


async def run(params: SiteSearchParams, ctx: ResearchContext) -> str:
    num_results = clamp(params.num_results, ctx.config.default_num_results)

    async def map_site(domain: str) -> list[SearchResult]:
        links = await ctx.firecrawl.map(f"https://{domain}", search=params.query, limit=MAP_LINK_LIMIT)
        return [
            SearchResult(
                url=link.url,
                title=link.title or "",
                snippet=link.description or "",
                source="firecrawl",
            )
            for link in links
        ]

    async def exa_call():
        res = await ctx.exa.search(
            params.query,
            num_results=num_results,
            include_domains=params.domains,
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
        results = firecrawl_results(items)
        warnings: list[str] = []

        if params.map_sites:
            mapped = await asyncio.gather(
                *(map_site(d) for d in params.domains[:MAX_MAPPED_SITES]),
                return_exceptions=True,
            )
            for domain, outcome in zip(params.domains, mapped):
                if isinstance(outcome, Exception):
                    logger.warning(f"[site_search] map {domain} failed: {outcome}")
                    warnings.append(f"[Firecrawl] map {domain}: {outcome}")
                    continue
                results.extend(outcome)

        return results, warnings

    async def perplexity_call():
        answer = await ctx.perplexity.search(params.query, search_domain_filter=params.domains)
        return perplexity_results(answer, synthesis_title="Perplexity AI Summary")

    results = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    site_hits, map_warnings = results.firecrawl or ([], [])
    merged = rank_by_relevance(merge_results([*(results.exa or []), *site_hits, *(results.perplexity or [])]))

    return "\n".join(
        [
            f"## Site Search: {', '.join(params.domains)}\n",
            format_service_status(results.status()),
            format_search_results(merged),
            format_errors([*results.errors, *map_warnings]),
        ]
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=SiteSearchParams, run=run)
