from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from deep_research.exceptions import ProviderError
from deep_research.host import ToolDefinition
from deep_research.models.schemas import ScrapeExtractParams
from deep_research.services.formatters import CONTENT_MAX_CHARS, format_errors, format_service_status
from deep_research.tools.exa import ExaResult
from deep_research.tools.firecrawl import FirecrawlScrapeData
from deep_research.workflows.common import ResearchContext, WorkflowTool

DEFINITION = ToolDefinition(
    name="scrape_and_extract",
    description=(
        "Deep scrape specific URLs and extract content using all three services. Exa provides text and "
        "summaries, Firecrawl scrapes full markdown and structured data, Perplexity analyzes the content. "
        "Use when you have specific URLs to analyze in depth."
    ),
    parameters={
        "type": "object",
        "properties": {
            "urls": {
                "type": "array",
                "items": {"type": "string"},
                "description": "URLs to scrape and extract from (max 20)",
            },
            "extractPrompt": {
                "type": "string",
                "description": "What to extract from the pages (e.g. 'Extract all pricing information and feature lists')",
            },
            "extractSchema": {
                "type": "object",
                "description": "Optional JSON Schema for structured extraction via Firecrawl",
            },
            "formats": {
                "type": "array",
                "items": {"type": "string", "enum": ["markdown", "summary", "html", "links"]},
                "description": "Content formats to request (default: ['markdown', 'summary'])",
            },
        },
        "required": ["urls"],
    },
)

MAX_URLS = 20
DEFAULT_FORMATS = ["markdown", "summary"]
EXTRACTION_MAX_CHARS = 10000


@dataclass(slots=True)
class FirecrawlPages:
    scrapes: list[tuple[str, FirecrawlScrapeData | None]] = field(default_factory=list)
    extraction: Any = None
    errors: list[str] = field(default_factory=list)


def _details(label: str, text: str) -> str:
    return f"<details><summary>{label}</summary>\n\n{text[:CONTENT_MAX_CHARS]}\n\n</details>\n"


def render_exa_pages(pages: list[ExaResult]) -> list[str]:
    lines = ["## Content (Exa)\n"]
    for r in pages:
        lines.append(f"### [{r.title or r.url}]({r.url})\n")
        if r.summary:
            lines.append(f"**Summary:** {r.summary}\n")
        if r.highlights:
            lines.append("**Key highlights:**")
            lines.extend(f"- {h}" for h in r.highlights)
            lines.append("")
        if r.text:
            lines.append(_details("Full text", r.text))
    return lines


def render_firecrawl_pages(pages: FirecrawlPages) -> list[str]:
    lines = ["## Content (Firecrawl)\n"]
    for url, data in pages.scrapes:
        if data is None:
            continue
        lines.append(f"### [{data.title or url}]({url})\n")
        if data.summary:
            lines.append(f"**Summary:** {data.summary}\n")
        if data.markdown:
            lines.append(_details("Markdown content", data.markdown))
        if data.links:
            lines.append(f"**Links:** {len(data.links)} found\n")

    if pages.extraction:
        lines.append("## Structured Extraction\n")
        lines.append("```json")
        lines.append(json.dumps(pages.extraction, indent=2, ensure_ascii=False)[:EXTRACTION_MAX_CHARS])
        lines.append("```\n")
    return lines


async def run(params: ScrapeExtractParams, ctx: ResearchContext) -> str:
    urls = params.urls[:MAX_URLS]
    formats = list(params.formats or DEFAULT_FORMATS)
    if not urls:
        return "# Scrape & Extract: 0 URLs\n\nNo URLs to scrape."
    logger.info(f"[scrape_and_extract] urls={len(urls)} formats={formats}")

    async def exa_call():
        res = await ctx.exa.get_contents(
            urls,
            text=True,
            highlights=True,
            summary={"query": params.extract_prompt} if params.extract_prompt else True,
        )
        return res.results

    async def firecrawl_call():
        pages = FirecrawlPages()
        scraped = await asyncio.gather(
            *(ctx.firecrawl.scrape(url, formats=formats) for url in urls),
            return_exceptions=True,
        )
        for url, outcome in zip(urls, scraped):
            if isinstance(outcome, Exception):
                pages.errors.append(f"[Firecrawl] scrape {url}: {outcome}")
                pages.scrapes.append((url, None))
            else:
                pages.scrapes.append((url, outcome))

        if params.extract_prompt:
            try:
                extracted = await ctx.firecrawl.extract(
                    urls,
                    prompt=params.extract_prompt,
                    schema=params.extract_schema,
                )
                if extracted.success:
                    pages.extraction = extracted.data
            except Exception as e:
                pages.errors.append(f"[Extract] {e}")

        failures = [o for o in scraped if isinstance(o, Exception)]
        if len(failures) == len(urls) and pages.extraction is None:
            raise ProviderError(f"all {len(urls)} scrapes failed, first error: {failures[0]}")
        return pages

    async def perplexity_call():
        prompt = (
            f"Analyze these URLs and {params.extract_prompt}: {', '.join(urls)}"
            if params.extract_prompt
            else f"Analyze and summarize the content of these pages: {', '.join(urls)}"
        )
        return await ctx.perplexity.search(prompt, preset="pro-search")

    results = await ctx.parallel(exa=exa_call, firecrawl=firecrawl_call, perplexity=perplexity_call)
    errors = list(results.errors)

    output = [f"# Scrape & Extract: {len(urls)} URLs\n", format_service_status(results.status())]
    if results.exa:
        output.extend(render_exa_pages(results.exa))
    if results.firecrawl is not None:
        output.extend(render_firecrawl_pages(results.firecrawl))
        errors.extend(results.firecrawl.errors)
    if results.perplexity is not None and results.perplexity.text:
        output.append(f"## Analysis (Perplexity)\n\n{results.perplexity.text}\n")

    if results.succeeded == 0:
        output.append("No content could be retrieved.")

    output.append(format_errors(errors))
    return "\n".join(output)


TOOL = WorkflowTool(definition=DEFINITION, params_model=ScrapeExtractParams, run=run)
