from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from deep_research.host import ToolDefinition
from deep_research.models.schemas import MassSummaryParams
from deep_research.services.dedup import deduplicate_urls, normalize_url
from deep_research.services.formatters import format_errors, format_summary
from deep_research.services.parallel import batch_process, chunk, with_timeout
from deep_research.workflows.common import ResearchContext, WorkflowTool, site_query

DEFINITION = ToolDefinition(
    name="mass_summary",
    description=(
        "Collect 100+ sources on a topic and create a comprehensive summary. Uses all three services in "
        "parallel for maximum URL collection, then batch-scrapes content and synthesizes via Perplexity "
        "deep-research. Use for creating thorough overviews from a large number of articles."
    ),
    parameters={
        "type": "object",
        "properties": {
            "topic": {"type": "string", "description": "Topic to collect and summarize"},
            "minSources": {
                "type": "number",
                "description": "Minimum number of unique sources to collect (default: 100)",
            },
            "maxSources": {
                "type": "number",
                "description": "Maximum number of sources (default: 150)",
            },
            "domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Prefer these domains for sources",
            },
            "dateFrom": {"type": "string", "description": "Only include sources from this date (ISO YYYY-MM-DD)"},
            "dateTo": {"type": "string", "description": "Only include sources until this date (ISO YYYY-MM-DD)"},
        },
        "required": ["topic"],
    },
)

QUERY_SUFFIXES = ("", "analysis", "review", "guide", "overview")
MAX_VARIATIONS_PER_PROVIDER = 4
COLLECT_NUM_RESULTS = 40
MAX_BACKFILL_URLS = 60
CONTENTS_CHUNK_SIZE = 10
CONTENTS_BATCH_SIZE = 3
MAX_CORPUS_SNIPPETS = 120
MAX_CORPUS_CHARS = 30000
SNIPPET_CHARS = 300


@dataclass(frozen=True, slots=True)
class CollectedSource:
    url: str
    title: str
    snippet: str


def query_variations(topic: str) -> list[str]:
    return [f"{topic} {suffix}".strip() for suffix in QUERY_SUFFIXES]


async def _probe_all(queries: list[str], probe: Callable[[str], Awaitable[list[Any]]]) -> list[Any]:
    """Run every variation; fail only when all of them failed."""
    outcomes = await asyncio.gather(*(probe(q) for q in queries), return_exceptions=True)
    failures = [o for o in outcomes if isinstance(o, Exception)]
    if failures and len(failures) == len(outcomes):
        raise failures[0]
    for query, outcome in zip(queries, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(f"[mass_summary] variation {query!r} failed: {outcome}")
    return [item for o in outcomes if not isinstance(o, Exception) for item in o]


async def run(params: MassSummaryParams, ctx: ResearchContext) -> str:
    min_sources = max(int(params.min_sources), 1)
    max_sources = max(int(params.max_sources), min_sources)
    variations = query_variations(params.topic)[:MAX_VARIATIONS_PER_PROVIDER]
    errors: list[str] = []

    # --- Step 1: mass URL collection ---
    async def exa_probe(query: str) -> list[CollectedSource]:
        res = await ctx.exa.search(
            query,
            num_results=COLLECT_NUM_RESULTS,
            include_domains=params.domains,
            start_published_date=params.date_from,
            end_published_date=params.date_to,
            text={"maxCharacters": 1500},
        )
        return [CollectedSource(r.url, r.title or "", (r.text or "")[:SNIPPET_CHARS]) for r in res.results]

    async def firecrawl_probe(query: str) -> list[CollectedSource]:
        items = await ctx.firecrawl.search(
            site_query(query, params.domains),
            limit=COLLECT_NUM_RESULTS,
            scrape_options={"formats": ["summary"]},
        )
        return [
            CollectedSource(r.url, r.title or "", r.description or (r.summary or "")[:SNIPPET_CHARS])
            for r in items
        ]

    async def perplexity_call():
        return await ctx.perplexity.search(
            f'Comprehensive overview of "{params.topic}" with as many relevant sources as possible',
            preset="pro-search",
        )

    collection = await ctx.parallel(
        exa=lambda: _probe_all(variations, exa_probe),
        firecrawl=lambda: _probe_all(variations, firecrawl_probe),
        perplexity=perplexity_call,
    )
    errors.extend(collection.errors)

    collected: list[CollectedSource] = [*(collection.exa or []), *(collection.firecrawl or [])]
    if collection.perplexity is not None:
        collected.extend(
            CollectedSource(c.url, c.title or "", c.snippet or "") for c in collection.perplexity.citations
        )

    trimmed = deduplicate_urls(s.url for s in collected)[:max_sources]

    by_key: dict[str, CollectedSource] = {}
    for s in collected:
        key = normalize_url(s.url)
        current = by_key.get(key)
        if current is None or (not current.snippet and s.snippet):
            by_key[key] = CollectedSource(s.url, (current and current.title) or s.title, s.snippet)
    logger.info(f"[mass_summary] collected={len(collected)} unique={len(by_key)} kept={len(trimmed)}")

    # --- Step 2: backfill content for kept URLs without a snippet ---
    lacking = [u for u in trimmed if not by_key[normalize_url(u)].snippet][:MAX_BACKFILL_URLS]

    async def fetch_contents(urls: list[str]):
        return await with_timeout(
            lambda: ctx.exa.get_contents(urls, text={"maxCharacters": 2000}, summary=True),
            ctx.config.timeouts.exa,
        )

    backfilled: dict[str, str] = {}
    if lacking:
        batches = await batch_process(chunk(lacking, CONTENTS_CHUNK_SIZE), CONTENTS_BATCH_SIZE, fetch_contents)
        errors.extend(f"[Exa] contents {e}" for e in batches.errors)
        for response in batches.results:
            if response is None:
                continue
            for r in response.results:
                text = r.summary or (r.text or "")[:500]
                if text:
                    backfilled[normalize_url(r.url)] = text

    corpus: list[str] = []
    for url in trimmed:
        key = normalize_url(url)
        source = by_key[key]
        text = backfilled.get(key) or source.snippet
        if text:
            corpus.append(f"[{source.title or url}]({url}): {text}")

    # --- Step 3: synthesis ---
    first_pass = collection.perplexity.text if collection.perplexity is not None else ""
    fallback = first_pass or f'Summary based on {len(trimmed)} collected sources about "{params.topic}".'
    content_for_summary = "\n\n".join(corpus[:MAX_CORPUS_SNIPPETS])[:MAX_CORPUS_CHARS]

    try:
        synthesis = await with_timeout(
            lambda: ctx.perplexity.deep_research(
                f'Create a comprehensive, well-structured summary of the topic "{params.topic}" based on these '
                f"{len(corpus)} sources. Include key findings, trends, and insights.\n\nSources:\n{content_for_summary}",
                max_steps=5,
            ),
            ctx.config.timeouts.perplexity,
        )
        final_summary = synthesis.text or fallback
    except Exception as e:
        logger.warning(f"[mass_summary] synthesis failed, using fallback: {e}")
        errors.append(f"[Perplexity] synthesis: {e}")
        final_summary = fallback

    sources = [{"url": url, "title": by_key[normalize_url(url)].title or url} for url in trimmed]

    return "\n".join(
        [
            f"# Mass Summary: {params.topic}\n",
            f"**Sources collected:** {len(trimmed)} (target: {min_sources}-{max_sources})\n",
            format_summary(final_summary, sources),
            format_errors(errors),
        ]
    )


TOOL = WorkflowTool(definition=DEFINITION, params_model=MassSummaryParams, run=run)
