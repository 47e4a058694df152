from __future__ import annotations

import asyncio

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.results import is_synthetic_url
from deep_research.models.schemas import FindSimilarParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_errors, format_search_results, format_service_status
from deep_research.services.parallel import with_timeout
from deep_research.workflows.common import (
    ResearchContext,
    WorkflowTool,
    clamp,
    collect,
    exa_results,
    firecrawl_results,
    in_domains,
    perplexity_results,
    same_page,
)

DEFINITION = ToolDefinition(
    name="find_similar",
    description=(
        "Find similar content to a given URL. Uses Exa's findSimilar API, Firecrawl to scrape and search "
        "by content summary, and Perplexity to find related pages. "
        "Use when you have a good reference page and want more like it."
    ),
    parameters={
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "Reference URL to find similar content for",
            },
            "numResults": {
                "type": "number",
                "description": "Number of similar results to find (default: 20)",
            },
            "excludeDomains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Exclude these domains from results",
            },
        },
        "required": ["url"],
    },
)

SUMMARY_QUERY_CHARS = 200


async def describe_reference(url: str, ctx: ResearchContext) -> tuple[str, str]:
    """Title and summary of the reference page, from whichever provider answers."""
    exa_res, fc_res = await asyncio.gather(
        with_timeout(lambda: ctx.exa.get_contents([url], text=True, summary=True), ctx.config.timeouts.exa),
        with_timeout(lambda: ctx.firecrawl.scrape(url, formats=["summary", "markdown"]), ctx.config.timeouts.firecrawl),
        return_exceptions=True,
    )
    exa_page = None
    if isinstance(exa_res, Exception):
        logger.warning(f"[find_similar] Exa contents failed for {url}: {exa_res}")
    elif exa_res.results:
        exa_page = exa_res.results[0]

    fc_page = None
    if isinstance(fc_res, Exception):
        logger.warning(f"[find_similar] Firecrawl scrape failed for {url}: {fc_res}")
    else:
        fc_page = fc_res

    title = (exa_page and exa_page.title) or (fc_page and fc_page.title) or url
    summary = (
        (exa_page and exa_page.summary)
        or (fc_page and fc_page.summary)
        or (exa_page and (exa_page.text or "")[:500])
        or (fc_page and (fc_page.markdown or "")[:500])
        or ""
    )
    return title, summary


async def run(params: FindSimilarParams, ctx: ResearchContext) -> str:
    num_results = clamp(params.num_results, ctx.config.default_num_results)
    excluded = params.exclude_domains or []
    errors: list[str] = []

    title, summary = await describe_reference(params.url, ctx)
    if not summary:
        errors.append("Could not extract content from reference URL for similarity search")
    logger.info(f"[find_similar] url={params.url!r} summary={len(summary)} chars")

    def keep(url: str) -> bool:
        if is_synthetic_url(url):
            return True
        return not same_page(url, params.url) and not in_domains(url, excluded)

    async def exa_call():
        res = await ctx.exa.find_similar(
            params.url,
            num_results=num_results,
            exclude_domains=params.exclude_domains,
            text=True,
            highlights=True,
        )
        return exa_results(res)

    async def firecrawl_call():
        if not summary:
            return []
        items = await ctx.firecrawl.search(
            summary[:SUMMARY_QUERY_CHARS],
            limit=num_results,
            scrape_options={"formats": ["markdown"]},
        )
        return [r for r in firecrawl_results(items) if keep(r.url)]

    async def perplexity_call():
        query = (
            f'Find similar articles and resources to: "{title}". Content: {summary[:300]}'
            if summary
            else f"Find content similar to {params.url}"
        )
        answer = await ctx.perplexity.search(query, preset="pro-search")
        return [r for r in perplexity_results(answer, synthesis_title="Perplexity Analysis") if keep(r.url)]

    results = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    errors.extend(results.errors)
    merged = rank_by_relevance(merge_results(collect(results)))

    return "\n".join(
        [
            f"# Find Similar: [{title}]({params.url})\n",
            format_service_status(results.status()),
            f"> {summary[:300]}\n" if summary else "",
            f"**Similar results found:** {len(merged)}\n",
            format_search_results(merged),
            format_errors(errors),
        ]
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=FindSimilarParams, run=run)
