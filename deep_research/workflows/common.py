from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Sequence
from urllib.parse import urlsplit

from pydantic import BaseModel

from deep_research.config import PluginConfig
from deep_research.host import ToolDefinition
from deep_research.models.results import SYNTHESIS_URL, ParallelResult, SearchResult
from deep_research.services.dedup import normalize_url
from deep_research.services.parallel import AsyncCall, run_parallel
from deep_research.tools.exa import ExaSearchResponse
from deep_research.tools.firecrawl import FirecrawlSearchItem
from deep_research.tools.interfaces import AnswerProvider, CrawlProvider, NeuralSearchProvider
from deep_research.tools.perplexity import PerplexityAnswer

MAX_NUM_RESULTS = 50
SYNTHESIS_SNIPPET_CHARS = 500


@dataclass(frozen=True, slots=True)
class ResearchContext:
    """Everything a workflow needs for one invocation."""

    exa: NeuralSearchProvider
    firecrawl: CrawlProvider
    perplexity: AnswerProvider
    config: PluginConfig

    async def parallel(
        self,
        *,
        exa: AsyncCall[Any],
        firecrawl: AsyncCall[Any],
        perplexity: AsyncCall[Any],
    ) -> ParallelResult:
        return await run_parallel(
            exa=exa,
            firecrawl=firecrawl,
            perplexity=perplexity,
            timeouts=self.config.timeouts,
        )


@dataclass(frozen=True, slots=True)
class WorkflowTool:
    definition: ToolDefinition
    params_model: type[BaseModel]
    run: Callable[[Any, ResearchContext], Awaitable[str]]

    @property
    def name(self) -> str:
        return self.definition.name


def clamp(value: float | None, default: int, *, minimum: int = 1, maximum: int = MAX_NUM_RESULTS) -> int:
    if value is None:
        value = default
    return max(minimum, min(int(value), maximum))


def site_query(query: str, domains: Sequence[str] | None) -> str:
    """Prefix ``site:`` operators for providers without a domain filter."""
    if not domains:
        return query
    return f"{' OR '.join(f'site:{d}' for d in domains)} {query}"


def domain_of(url: str) -> str:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return host.lower().removeprefix("www.")


def in_domains(url: str, domains: Iterable[str]) -> bool:
    host = domain_of(url)
    for d in domains:
        d = d.lower().removeprefix("www.")
        if host == d or host.endswith(f".{d}"):
            return True
    return False


def same_page(url: str, other: str) -> bool:
    return normalize_url(url) == normalize_url(other)


# --- Provider-native -> SearchResult adapters ---


def exa_results(response: ExaSearchResponse, *, with_score: bool = True) -> list[SearchResult]:
    return [
        SearchResult(
            url=r.url,
            title=r.title or "",
            snippet=r.snippet,
            content=r.text,
            published_date=r.published_date,
            source="exa",
            score=r.score if with_score else None,
        )
        for r in response.results
    ]


def firecrawl_results(items: Iterable[FirecrawlSearchItem]) -> list[SearchResult]:
    return [
        SearchResult(
            url=r.url,
            title=r.title or "",
            snippet=r.snippet,
            content=r.markdown,
            source="firecrawl",
        )
        for r in items
    ]


def synthesis_result(text: str, title: str = "Perplexity AI Summary") -> SearchResult:
    return SearchResult(
        url=SYNTHESIS_URL,
        title=title,
        snippet=text[:SYNTHESIS_SNIPPET_CHARS],
        content=text,
        source="perplexity",
    )


def perplexity_results(answer: PerplexityAnswer, *, synthesis_title: str | None = None) -> list[SearchResult]:
    """Citations as results, led by the narrative answer when a title is given."""
    results = [
        SearchResult(
            url=c.url,
            title=c.title or "",
            snippet=c.snippet or "",
            source="perplexity",
        )
        for c in answer.citations
    ]
    if synthesis_title and answer.text:
        results.insert(0, synthesis_result(answer.text, synthesis_title))
    return results


def collect(result: ParallelResult) -> list[SearchResult]:
    """Flatten the provider slots that succeeded."""
    collected: list[SearchResult] = []
    for slot in (result.exa, result.firecrawl, result.perplexity):
        if slot:
            collected.extend(slot)
    return collected
