from __future__ import annotations

import json
from typing import Any, Sequence

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.results import is_synthetic_url
from deep_research.models.schemas import CompareOffersParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_comparison, format_errors, source_badges
from deep_research.services.parallel import with_timeout
from deep_research.tools.firecrawl import FirecrawlExtractResponse
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
    name="compare_offers",
    description=(
        "Find and compare offers, products, or services from the web. Searches across all three services, "
        "then uses Firecrawl structured extraction to pull out pricing, features, and ratings. "
        "Perplexity provides analysis and recommendations. "
        "Use for comparing products, rentals, vacation deals, services, etc."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "What to search for (e.g. 'apartment rental in Barcelona', 'best noise-cancelling headphones 2024')",
            },
            "criteria": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Comparison criteria (e.g. ['price', 'location', 'rating', 'features']). Auto-detected if not provided.",
            },
            "numOffers": {
                "type": "number",
                "description": "Number of offers to find (default: 30)",
            },
            "domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Preferred domains to search (e.g. ['booking.com', 'airbnb.com'])",
            },
        },
        "required": ["query"],
    },
)

DEFAULT_CRITERIA = ["name", "price", "rating", "key_features"]
MAX_EXTRACT_URLS = 20
MAX_ANALYSIS_DATA_CHARS = 15000
MAX_LISTED_SOURCES = 50


def extraction_schema(criteria: Sequence[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {c: {"type": "string"} for c in criteria},
    }


def tag_extracted(response: FirecrawlExtractResponse, urls: Sequence[str]) -> list[dict[str, Any]]:
    """Attach a source URL to each extracted record.

    Records are matched to URLs by position only when the provider returned
    exactly one record per URL; otherwise a record keeps the URL it names
    itself, or none.
    """
    data = response.data
    if not response.success or not data:
        return []

    items = data if isinstance(data, list) else [data]
    aligned = len(items) == len(urls)
    if not aligned:
        logger.warning(f"[compare_offers] extraction returned {len(items)} records for {len(urls)} URLs")

    tagged: list[dict[str, Any]] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        url = urls[i] if aligned else str(item.get("url") or "")
        tagged.append({**item, "url": url, "source": "firecrawl-extract"})
    return tagged


async def run(params: CompareOffersParams, ctx: ResearchContext) -> str:
    num_offers = clamp(params.num_offers, 30)
    criteria = DEFAULT_CRITERIA if params.criteria is None else params.criteria
    errors: list[str] = []

    # --- Step 1: search for offers ---
    async def exa_call():
        res = await ctx.exa.search(
            params.query,
            num_results=num_offers,
            include_domains=params.domains,
            category="company",
            text=True,
            highlights=True,
        )
        return exa_results(res)

    async def firecrawl_call():
        items = await ctx.firecrawl.search(
            site_query(params.query, params.domains),
            limit=num_offers,
            scrape_options={"formats": ["markdown"]},
        )
        return firecrawl_results(items)

    async def perplexity_call():
        return await ctx.perplexity.search(
            f"Best {params.query} - compare prices, features, ratings. List specific offers with details.",
            preset="pro-search",
        )

    search = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    errors.extend(search.errors)

    answer = search.perplexity
    found = [*(search.exa or []), *(search.firecrawl or [])]
    if answer is not None:
        found.extend(perplexity_results(answer))
    merged = rank_by_relevance(merge_results(found))

    # --- Step 2: structured extraction from the top URLs ---
    top_urls = [r.url for r in merged if not is_synthetic_url(r.url)][:MAX_EXTRACT_URLS]
    extracted: list[dict[str, Any]] = []

    if top_urls:
        try:
            response = await with_timeout(
                lambda: ctx.firecrawl.extract(
                    top_urls,
                    prompt=(
                        f'Extract the following for each offer/product related to "{params.query}": '
                        f"{', '.join(criteria)}. Return structured data."
                    ),
                    schema=extraction_schema(criteria),
                ),
                ctx.config.timeouts.firecrawl,
            )
            extracted = tag_extracted(response, top_urls)
        except Exception as e:
            logger.warning(f"[compare_offers] extraction failed: {e}")
            errors.append(f"[Extract] {e}")

    # --- Step 3: analysis and recommendations ---
    analysis = answer.text if answer is not None else ""

    if extracted:
        data = json.dumps(extracted, ensure_ascii=False)[:MAX_ANALYSIS_DATA_CHARS]
        try:
            ranked = await with_timeout(
                lambda: ctx.perplexity.search(
                    f'Analyze and rank these {len(extracted)} offers for "{params.query}". Data: {data}. '
                    f"Criteria: {', '.join(criteria)}. Provide top recommendations with reasoning.",
                    preset="pro-search",
                ),
                ctx.config.timeouts.perplexity,
            )
            analysis = ranked.text or analysis
        except Exception as e:
            logger.warning(f"[compare_offers] analysis failed, keeping first-pass synthesis: {e}")
            errors.append(f"[Perplexity] analysis: {e}")

    output = [
        f"# Offer Comparison: {params.query}\n",
        f"**Offers found:** {len(merged)} | **Extracted data:** {len(extracted)} items\n",
    ]
    if extracted:
        output.append(format_comparison(extracted, criteria))
    if analysis:
        output.append(f"\n## Analysis & Recommendations\n\n{analysis}")

    output.append("\n## All Sources\n")
    if not merged:
        output.append("No results found.")
    for i, r in enumerate(merged[:MAX_LISTED_SOURCES], 1):
        output.append(f"{i}. [{r.title}]({r.url}) - {source_badges(r.sources)}")

    output.append(format_errors(errors))
    return "\n".join(output)


TOOL = WorkflowTool(definition=DEFINITION, params_model=CompareOffersParams, run=run)
