from __future__ import annotations

from datetime import date

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.schemas import DateSearchParams
from deep_research.services.dedup import merge_results, rank_by_relevance
from deep_research.services.formatters import format_errors, format_search_results, format_service_status
from deep_research.tools.perplexity import Recency
from deep_research.workflows.common import (
    ResearchContext,
    WorkflowTool,
    clamp,
    collect,
    exa_results,
    firecrawl_results,
    perplexity_results,
    site_query,
)

DEFINITION = ToolDefinition(
    name="date_search",
    description=(
        "Search the web with strict date range filtering. All three services (Exa, Firecrawl, Perplexity) "
        "are queried in parallel with date constraints. "
        "Use for finding content published within a specific time period."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "dateFrom": {
                "type": "string",
                "description": "Start date in ISO format (YYYY-MM-DD), e.g. '2024-01-01'",
            },
            "dateTo": {
                "type": "string",
                "description": "End date in ISO format (YYYY-MM-DD), e.g. '2024-12-31'",
            },
            "domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Restrict to specific domains",
            },
            "numResults": {
                "type": "number",
                "description": "Number of results per service (default: 30)",
            },
        },
        "required": ["query", "dateFrom", "dateTo"],
    },
)

# Upper bound in days for each Perplexity recency bucket, narrowest first.
RECENCY_BUCKETS: tuple[tuple[int, Recency], ...] = (
    (1, "day"),
    (7, "week"),
    (30, "month"),
    (365, "year"),
)


def parse_iso_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def to_firecrawl_tbs(date_from: str, date_to: str) -> str | None:
    """Custom date range in Google ``tbs`` form: ``cdr:1,cd_min:M/D/YYYY,cd_max:M/D/YYYY``."""
    start, end = parse_iso_date(date_from), parse_iso_date(date_to)
    if start is None or end is None:
        return None

    def fmt(d: date) -> str:
        return f"{d.month}/{d.day}/{d.year}"

    return f"cdr:1,cd_min:{fmt(start)},cd_max:{fmt(end)}"


def to_perplexity_recency(date_from: str, *, today: date | None = None) -> Recency | None:
    """Smallest recency bucket that still reaches back to ``date_from``."""
    start = parse_iso_date(date_from)
    if start is None:
        return None
    age_days = ((today or date.today()) - start).days
    for limit, bucket in RECENCY_BUCKETS:
        if age_days <= limit:
            return bucket
    return None


async def run(params: DateSearchParams, ctx: ResearchContext) -> str:
    num_results = clamp(params.num_results, ctx.config.default_num_results)
    tbs = to_firecrawl_tbs(params.date_from, params.date_to)
    if tbs is None:
        logger.warning(f"[date_search] unparseable date range {params.date_from!r}..{params.date_to!r}")

    async def exa_call():
        res = await ctx.exa.search(
            params.query,
            num_results=num_results,
            start_published_date=params.date_from,
            end_published_date=params.date_to,
            include_domains=params.domains,
            text=True,
            highlights=True,
        )
        return exa_results(res)

    async def firecrawl_call():
        items = await ctx.firecrawl.search(
            site_query(params.query, params.domains),
            limit=num_results,
            tbs=tbs,
            scrape_options={"formats": ["markdown"]},
        )
        return firecrawl_results(items)

    async def perplexity_call():
        answer = await ctx.perplexity.search(
            f"{params.query} (published between {params.date_from} and {params.date_to})",
            search_domain_filter=params.domains,
            search_recency_filter=to_perplexity_recency(params.date_from),
        )
        return perplexity_results(answer, synthesis_title="Perplexity AI Summary")

    results = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    merged = rank_by_relevance(merge_results(collect(results)))

    return "\n".join(
        [
            f"## Date-filtered Search: {params.date_from} to {params.date_to}\n",
            format_service_status(results.status()),
            format_search_results(merged),
            format_errors(results.errors),
        ]
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=DateSearchParams, run=run)
